"""Business logic for reading and managing stored documents."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final, final

from django.conf import settings
from django.db import DatabaseError, transaction

from server.apps.documents.exceptions import (
    RecordNotFoundError,
    StoreUnavailableError,
)
from server.apps.documents.infrastructure.storage import (
    BlobStorage,
    get_blob_storage,
)
from server.apps.documents.models import FileCategory, FileRecord

# Category filter value that matches every record
ALL_CATEGORIES: Final = 'all'

_DEFAULT_SIGNED_URL_TTL: Final = 3600

logger = logging.getLogger(__name__)


def get_signed_url_ttl() -> int:
    """Get validity window of download URLs.

    Returns:
        Seconds from settings or default of 3600 (1 hour).
    """
    return getattr(settings, 'DOCUMENTS_SIGNED_URL_TTL', _DEFAULT_SIGNED_URL_TTL)


def list_files(owner_id: str) -> list[FileRecord]:
    """List all files of an owner, newest first.

    Args:
        owner_id: Owner of the files.

    Returns:
        FileRecord instances ordered by upload time, descending.

    Raises:
        StoreUnavailableError: If the metadata query fails.
        RecordParseError: If a stored row cannot be read.
    """
    logger.debug('Listing files for owner %s', owner_id)
    try:
        return list(
            FileRecord.objects.filter(owner_id=owner_id).order_by(
                '-uploaded_at',
                '-id',
            ),
        )
    except DatabaseError as error:
        logger.exception('Failed to list files for owner %s', owner_id)
        raise StoreUnavailableError(
            f'Failed to list files for owner {owner_id}',
        ) from error


def get_file(file_id: int, owner_id: str) -> FileRecord:
    """Get one file, enforcing ownership.

    Args:
        file_id: ID of the file.
        owner_id: Principal asking for it.

    Returns:
        FileRecord instance.

    Raises:
        RecordNotFoundError: If no file matches both ID and owner.
        StoreUnavailableError: If the metadata query fails.
    """
    try:
        return FileRecord.objects.get(id=file_id, owner_id=owner_id)
    except FileRecord.DoesNotExist as error:
        raise RecordNotFoundError(file_id, owner_id) from error
    except DatabaseError as error:
        logger.exception('Failed to load file: ID=%s', file_id)
        raise StoreUnavailableError(
            f'Failed to load file {file_id}',
        ) from error


def update_description(
    file_id: int,
    owner_id: str,
    text: str | None,
) -> FileRecord:
    """Replace the description of a file.

    Last writer wins, there is no merging.

    Args:
        file_id: ID of the file.
        owner_id: Principal editing it.
        text: New description (empty clears it).

    Returns:
        Updated FileRecord instance.

    Raises:
        RecordNotFoundError: If no file matches both ID and owner.
        StoreUnavailableError: If the metadata update fails.
    """
    try:
        with transaction.atomic():
            record = FileRecord.objects.select_for_update().get(
                id=file_id,
                owner_id=owner_id,
            )
            record.description = text or None
            record.save(update_fields=['description'])
    except FileRecord.DoesNotExist as error:
        raise RecordNotFoundError(file_id, owner_id) from error
    except DatabaseError as error:
        logger.exception('Failed to update description: ID=%s', file_id)
        raise StoreUnavailableError(
            f'Failed to update file {file_id}',
        ) from error

    logger.info('Description updated: ID=%d', record.id)
    return record


def delete_file(
    file_id: int,
    owner_id: str,
    *,
    storage: BlobStorage | None = None,
) -> None:
    """Delete a file's blob, then its record.

    The blob delete is best-effort: a failure is logged and the record
    is deleted anyway, since the record is what makes a file exist.
    A failed blob delete therefore leaves an orphaned blob behind.

    Args:
        file_id: ID of the file.
        owner_id: Principal deleting it.
        storage: Blob storage (defaults to configured one).

    Raises:
        RecordNotFoundError: If no file matches both ID and owner.
        StoreUnavailableError: If the record delete fails.
    """
    record = get_file(file_id, owner_id)
    storage = storage or get_blob_storage()
    storage_key = record.storage_key

    logger.info('Deleting file: ID=%d, key=%s', file_id, storage_key)

    # Step 1: Delete blob (best effort)
    try:
        storage.delete(storage_key)
    except StoreUnavailableError:
        logger.exception(
            'Failed to delete blob, deleting record anyway (orphaned): %s',
            storage_key,
        )

    # Step 2: Delete database record
    try:
        with transaction.atomic():
            deleted, _ = FileRecord.objects.filter(
                id=file_id,
                owner_id=owner_id,
            ).delete()
    except DatabaseError as error:
        logger.exception('Failed to delete file record: ID=%d', file_id)
        raise StoreUnavailableError(
            f'Failed to delete file {file_id}',
        ) from error

    if not deleted:
        raise RecordNotFoundError(file_id, owner_id)
    logger.info('File record deleted: ID=%d', file_id)


def delete_files(
    file_ids: Iterable[int],
    owner_id: str,
    *,
    storage: BlobStorage | None = None,
) -> int:
    """Delete several files of one owner in one pass.

    Same policy as delete_file: blobs first (failures logged), then
    the records. IDs that do not belong to the owner are ignored.

    Args:
        file_ids: IDs of the files.
        owner_id: Principal deleting them.
        storage: Blob storage (defaults to configured one).

    Returns:
        Number of records deleted.

    Raises:
        StoreUnavailableError: If the metadata query or delete fails.
    """
    storage = storage or get_blob_storage()
    try:
        records = list(
            FileRecord.objects.filter(owner_id=owner_id, id__in=list(file_ids)),
        )
    except DatabaseError as error:
        logger.exception('Failed to load files for owner %s', owner_id)
        raise StoreUnavailableError(
            f'Failed to load files for owner {owner_id}',
        ) from error

    failed = storage.delete_many(record.storage_key for record in records)
    if failed:
        logger.error(
            'Failed to delete %d blobs, deleting records anyway '
            '(orphaned): %s',
            len(failed),
            ', '.join(failed),
        )

    try:
        with transaction.atomic():
            deleted, _ = FileRecord.objects.filter(
                owner_id=owner_id,
                id__in=[record.id for record in records],
            ).delete()
    except DatabaseError as error:
        logger.exception('Failed to delete file records for %s', owner_id)
        raise StoreUnavailableError(
            f'Failed to delete files for owner {owner_id}',
        ) from error

    logger.info('Deleted %d files for owner %s', deleted, owner_id)
    return deleted


def resolve_download_url(
    storage_key: str,
    *,
    storage: BlobStorage | None = None,
) -> str:
    """Get a time-limited download URL for a blob.

    URLs are not cached; callers must resolve again after expiry.

    Args:
        storage_key: Key of the blob.
        storage: Blob storage (defaults to configured one).

    Returns:
        Presigned URL valid for DOCUMENTS_SIGNED_URL_TTL seconds.

    Raises:
        StoreUnavailableError: If the URL cannot be issued.
    """
    storage = storage or get_blob_storage()
    return storage.signed_url(storage_key, get_signed_url_ttl())


@final
@dataclass(frozen=True, slots=True)
class FileListing:
    """In-memory view over one owner's files.

    Derived views never query the store again.
    """

    records: tuple[FileRecord, ...]

    def by_category(self, category: FileCategory | str) -> list[FileRecord]:
        """Files of one category."""
        wanted = FileCategory(category)
        return [record for record in self.records if record.category == wanted]

    def total_size(self) -> int:
        """Sum of file sizes in bytes."""
        return sum(record.size_bytes for record in self.records)

    def count(self) -> int:
        """Number of files."""
        return len(self.records)

    def search(
        self,
        term: str = '',
        category: FileCategory | str = ALL_CATEGORIES,
    ) -> list[FileRecord]:
        """Filter by text and category.

        Args:
            term: Case-insensitive substring of name or description.
                Empty matches everything.
            category: Category value, or 'all'.

        Returns:
            Matching records, in listing order.
        """
        needle = term.lower()
        if category == ALL_CATEGORIES:
            candidates = list(self.records)
        else:
            candidates = self.by_category(category)
        return [
            record
            for record in candidates
            if needle in record.name.lower()
            or needle in (record.description or '').lower()
        ]


def load_listing(owner_id: str) -> FileListing:
    """Load an owner's files into an in-memory listing.

    Args:
        owner_id: Owner of the files.

    Returns:
        FileListing over list_files(owner_id).
    """
    return FileListing(records=tuple(list_files(owner_id)))
