"""Django admin configuration for documents app."""

import logging
from collections import defaultdict

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.documents.exceptions import StoreUnavailableError
from server.apps.documents.infrastructure.metadata import format_file_size
from server.apps.documents.logic.registry import (
    delete_file,
    delete_files,
    resolve_download_url,
)
from server.apps.documents.models import FileRecord

logger = logging.getLogger(__name__)


@admin.register(FileRecord)
class FileRecordAdmin(admin.ModelAdmin[FileRecord]):
    """Admin interface for FileRecord model."""

    list_display = [
        'name',
        'owner_id',
        'category',
        'extension_display',
        'size_display',
        'mime_type',
        'uploaded_at',
        'processed',
    ]

    list_filter = [
        'category',
        'processed',
        'uploaded_at',
    ]

    search_fields = [
        'name',
        'description',
        'owner_id',
        'storage_key',
    ]

    readonly_fields = [
        'owner_id',
        'name',
        'mime_type',
        'size_bytes',
        'storage_key',
        'category',
        'uploaded_at',
        'processed',
        'download_link',
    ]

    fieldsets = (
        ('File Information', {
            'fields': ('name', 'owner_id', 'description'),
        }),
        ('Metadata', {
            'fields': (
                'mime_type',
                'size_bytes',
                'category',
                'processed',
            ),
        }),
        ('Storage', {
            'fields': ('storage_key', 'download_link'),
        }),
        ('Timestamps', {
            'fields': ('uploaded_at',),
        }),
    )

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Records are only created by the upload pipeline."""
        return False

    def extension_display(self, obj: FileRecord) -> str:
        """Display the file extension, or '-' when the name has none."""
        return obj.get_extension() or '-'
    extension_display.short_description = 'Extension'  # type: ignore[attr-defined]

    def size_display(self, obj: FileRecord) -> str:
        """Display file size in human-readable format.

        Args:
            obj: FileRecord instance.

        Returns:
            Formatted size string (e.g., '1.5 MB', '234 KB').
        """
        return format_file_size(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def download_link(self, obj: FileRecord) -> str:
        """Display a freshly signed download link.

        Args:
            obj: FileRecord instance.

        Returns:
            HTML anchor to the blob, or '-' for unsaved records and
            when no URL can be signed.
        """
        if not obj.pk:
            return '-'
        try:
            url = resolve_download_url(obj.storage_key)
        except StoreUnavailableError:
            logger.warning(
                'Download link unavailable for file record %d',
                obj.pk,
            )
            return '-'
        return format_html('<a href="{url}">Download</a>', url=url)
    download_link.short_description = 'Download'  # type: ignore[attr-defined]

    def delete_model(self, request: HttpRequest, obj: FileRecord) -> None:
        """Delete blob and record through the registry.

        Args:
            request: HTTP request.
            obj: FileRecord instance to delete.
        """
        delete_file(obj.id, obj.owner_id)

    def delete_queryset(
        self,
        request: HttpRequest,
        queryset: QuerySet[FileRecord],
    ) -> None:
        """Delete blobs and records through the registry, per owner.

        Args:
            request: HTTP request.
            queryset: Selected FileRecord rows.
        """
        ids_by_owner: defaultdict[str, list[int]] = defaultdict(list)
        for file_id, owner_id in queryset.values_list('id', 'owner_id'):
            ids_by_owner[owner_id].append(file_id)
        for owner_id, file_ids in ids_by_owner.items():
            delete_files(file_ids, owner_id)
