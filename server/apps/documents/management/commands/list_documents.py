"""Management command to list an owner's documents."""

from typing import Any

from django.core.management.base import BaseCommand

from server.apps.documents.infrastructure.metadata import format_file_size
from server.apps.documents.logic.registry import ALL_CATEGORIES, load_listing
from server.apps.documents.models import FileCategory


class Command(BaseCommand):
    """Print an owner's files with optional search and category filter."""

    help = "List an owner's documents"

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('owner_id', help='Owner principal ID')
        parser.add_argument(
            '--category',
            choices=[ALL_CATEGORIES, *FileCategory.values],
            default=ALL_CATEGORIES,
            help='Only show files of this category',
        )
        parser.add_argument(
            '--search',
            default='',
            help='Case-insensitive text to find in names and descriptions',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the listing command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        listing = load_listing(options['owner_id'])
        matches = listing.search(options['search'], options['category'])

        for record in matches:
            self.stdout.write(
                '#{id}  {name}  {category}  {size}  {uploaded}'.format(
                    id=record.id,
                    name=record.name,
                    category=record.category,
                    size=format_file_size(record.size_bytes),
                    uploaded=record.uploaded_at.strftime('%Y-%m-%d %H:%M'),
                ),
            )

        if not matches and listing.count():
            self.stdout.write('No files match your search')

        self.stdout.write(
            f'{listing.count()} files, '
            f'{format_file_size(listing.total_size())} used',
        )
