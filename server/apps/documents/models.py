"""Database models for documents app."""

from typing import Any, ClassVar, Final, Self, final, override

from django.db import models

from server.apps.documents.exceptions import (
    ImmutableFieldError,
    RecordParseError,
)

# Constants for field max lengths
_OWNER_ID_MAX_LENGTH: Final = 64
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_STORAGE_KEY_MAX_LENGTH: Final = 1024
_CATEGORY_MAX_LENGTH: Final = 16


class FileCategory(models.TextChoices):
    """Coarse classification derived from the declared content type."""

    DOCUMENT = 'document', 'Document'
    IMAGE = 'image', 'Image'
    SPREADSHEET = 'spreadsheet', 'Spreadsheet'
    OTHER = 'other', 'Other'


@final
class FileRecord(models.Model):
    """Metadata row for one user-owned uploaded file.

    The blob itself lives in S3-compatible storage under ``storage_key``,
    which follows the pattern: {owner_id}/{timestamp}_{sanitized_name}

    A row and its blob are created together by the upload pipeline and
    deleted together by the registry.
    """

    # Columns that never change once the row exists
    immutable_fields: ClassVar[tuple[str, ...]] = (
        'owner_id',
        'size_bytes',
        'storage_key',
        'category',
        'uploaded_at',
    )

    # Principal from the auth provider, not a local user row
    owner_id = models.CharField(
        max_length=_OWNER_ID_MAX_LENGTH,
        db_index=True,
    )

    name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        help_text='Original filename, display only',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        help_text='Content type declared at upload',
    )

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes at upload time',
    )

    storage_key = models.CharField(
        max_length=_STORAGE_KEY_MAX_LENGTH,
        unique=True,
        help_text='Key in storage: {owner_id}/{timestamp}_{name}',
    )

    category = models.CharField(
        max_length=_CATEGORY_MAX_LENGTH,
        choices=FileCategory.choices,
        default=FileCategory.OTHER,
    )

    description = models.TextField(
        null=True,
        blank=True,
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)

    # Reserved for downstream document analysis
    processed = models.BooleanField(default=False)

    class Meta:
        """Model metadata."""

        verbose_name = 'File record'  # type: ignore[mutable-override]
        verbose_name_plural = 'File records'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at']

        indexes = [
            # Optimize per-owner listing ordered by recency
            models.Index(
                fields=['owner_id', '-uploaded_at'],
                name='documents_owner_recent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='documents_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    @classmethod
    @override
    def from_db(
        cls,
        db: str | None,
        field_names: Any,
        values: Any,
    ) -> Self:
        """Build instance from a database row and validate enum tags.

        Also remembers the loaded values of immutable columns so that
        ``save`` can refuse to change them.

        Raises:
            RecordParseError: If the stored category is unknown.
        """
        instance = super().from_db(db, field_names, values)
        category = instance.__dict__.get('category')
        if category is not None and category not in FileCategory.values:
            raise RecordParseError(
                f'Unknown category {category!r} on file record {instance.pk}',
            )
        instance._loaded_values = {  # noqa: WPS437
            field: instance.__dict__[field]
            for field in cls.immutable_fields
            if field in instance.__dict__
        }
        return instance

    @override
    def save(self, *args: Any, **kwargs: Any) -> None:
        """Save the record, rejecting changes to immutable columns.

        Raises:
            ImmutableFieldError: If an immutable column was modified.
        """
        loaded_values: dict[str, Any] = getattr(self, '_loaded_values', {})
        changed = [
            field
            for field, original in loaded_values.items()
            if getattr(self, field) != original
        ]
        if changed:
            raise ImmutableFieldError(
                'Cannot change {fields} of file record {pk}'.format(
                    fields=', '.join(changed),
                    pk=self.pk,
                ),
            )
        super().save(*args, **kwargs)
        self._loaded_values = {  # noqa: WPS437
            field: getattr(self, field)
            for field in self.immutable_fields
        }

    def get_extension(self) -> str:
        """Extract file extension from the original name.

        Example: 'statement.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        _, dot, extension = self.name.rpartition('.')
        if not dot:
            return ''
        return extension.lower()
