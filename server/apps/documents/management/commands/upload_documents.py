"""Management command to upload local files for an owner."""

from contextlib import ExitStack
from pathlib import Path
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from server.apps.documents.infrastructure.metadata import format_file_size
from server.apps.documents.logic.progress import (
    ProgressEvent,
    ProgressRecorder,
    UploadStatus,
    upload_progress,
)
from server.apps.documents.logic.upload_pipeline import (
    CandidateFile,
    upload_batch,
)


class Command(BaseCommand):
    """Upload files from disk through the upload pipeline."""

    help = 'Upload local files as documents of the given owner'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('owner_id', help='Owner principal ID')
        parser.add_argument('paths', nargs='+', help='Files to upload')
        parser.add_argument(
            '--description',
            action='append',
            default=[],
            help='Description for the file at the same position (repeatable)',
        )
        parser.add_argument(
            '--parallelism',
            type=int,
            default=None,
            help='Concurrent uploads (default: DOCUMENTS_UPLOAD_PARALLELISM)',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the upload command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If a path is not a readable file.
        """
        owner_id = options['owner_id']
        paths = [Path(path) for path in options['paths']]

        missing = [str(path) for path in paths if not path.is_file()]
        if missing:
            raise CommandError(f'Not a file: {", ".join(missing)}')

        with ExitStack() as stack:
            candidates = [
                CandidateFile.from_file(
                    stack.enter_context(path.open('rb')),
                    path.name,
                )
                for path in paths
            ]
            recorder = stack.enter_context(ProgressRecorder(owner_id))
            upload_progress.connect(self._print_event, weak=False)
            stack.callback(upload_progress.disconnect, self._print_event)

            records = upload_batch(
                owner_id,
                candidates,
                options['description'],
                parallelism=options['parallelism'],
            )

        for record in records:
            self.stdout.write(
                f'Stored {record.name} as #{record.id} '
                f'({record.category}, {format_file_size(record.size_bytes)})',
            )

        failures = recorder.failures()
        summary = f'Uploaded {len(records)} files, {len(failures)} failed'
        if failures:
            self.stdout.write(self.style.WARNING(summary))
        else:
            self.stdout.write(self.style.SUCCESS(summary))

    def _print_event(
        self,
        sender: Any,
        event: ProgressEvent,
        **kwargs: Any,
    ) -> None:
        if event.status == UploadStatus.ERROR:
            self.stderr.write(f'{event.file_name}: error: {event.error}')
            return
        self.stdout.write(
            f'{event.file_name}: {event.status} {event.progress}%',
        )
