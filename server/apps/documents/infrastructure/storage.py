"""Custom storage backend for S3-compatible storage."""

import logging
from collections.abc import Iterable
from typing import Any, Final, final, override

from botocore.exceptions import BotoCoreError, ClientError
from django.core.files.storage import storages
from storages.backends.s3 import S3Storage

from server.apps.documents.exceptions import (
    BlobConflictError,
    StoreUnavailableError,
)

# Transport and service errors raised by boto3
_STORE_ERRORS: Final = (BotoCoreError, ClientError)

logger = logging.getLogger(__name__)


@final
class BlobStorage(S3Storage):
    """S3 storage backend for user documents.

    Extends django-storages S3Storage with:
    - Upload that refuses to overwrite an existing key
    - Best-effort rollback for failed metadata inserts
    - Signed URL issuance with an explicit validity window
    - boto errors translated to StoreUnavailableError
    """

    def put(self, name: str, content: Any) -> str:
        """Upload a blob under a key that must not exist yet.

        Args:
            name: Storage key for the blob.
            content: File content (Django File or file-like object).

        Returns:
            Storage key the blob was written under.

        Raises:
            BlobConflictError: If the key is already taken.
            StoreUnavailableError: If the storage request fails.
        """
        try:
            already_exists = self.exists(name)
        except _STORE_ERRORS as error:
            logger.exception('Failed to check blob existence: %s', name)
            raise StoreUnavailableError(
                f'Failed to check blob: {name}',
            ) from error

        if already_exists:
            logger.warning('Refusing to overwrite existing blob: %s', name)
            raise BlobConflictError(name)

        return self.save(name, content)

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage key for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual storage key used.

        Raises:
            StoreUnavailableError: If S3 upload fails.
        """
        try:
            logger.info('Uploading blob to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded blob: %s', saved_name)
        except _STORE_ERRORS as error:
            logger.exception('Failed to upload blob to storage: %s', name)
            raise StoreUnavailableError(
                f'Failed to upload blob: {name}',
            ) from error
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete blob from S3 with error handling and logging.

        Args:
            name: Storage key of the blob to delete.

        Raises:
            StoreUnavailableError: If S3 delete fails.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted blob: %s', name)
        except _STORE_ERRORS as error:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise StoreUnavailableError(
                f'Failed to delete blob: {name}',
            ) from error

    def delete_many(self, names: Iterable[str]) -> list[str]:
        """Delete several blobs, continuing past individual failures.

        Args:
            names: Storage keys to delete.

        Returns:
            Keys that could not be deleted (empty when all succeeded).
        """
        failed = []
        for name in names:
            try:
                self.delete(name)
            except StoreUnavailableError:
                failed.append(name)
        return failed

    def rollback_upload(self, name: str) -> bool:
        """Delete uploaded blob for metadata insert rollback.

        This method is called when the metadata insert fails after a blob
        has been successfully uploaded. It attempts to delete the blob to
        maintain consistency.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, and the blob is left orphaned.

        Args:
            name: Storage key of the blob to delete.

        Returns:
            True if the blob was deleted, False if it was orphaned.
        """
        try:
            logger.warning('Rolling back upload, deleting blob: %s', name)
            self.delete(name)
        except StoreUnavailableError:
            # Not retried, the caller still reports the insert failure
            logger.exception(
                'Failed to rollback upload, orphaned blob: %s',
                name,
            )
            return False
        logger.info('Successfully rolled back blob upload: %s', name)
        return True

    def signed_url(self, name: str, ttl_seconds: int) -> str:
        """Issue a time-limited presigned GET URL for a blob.

        Args:
            name: Storage key of the blob.
            ttl_seconds: Validity window in seconds.

        Returns:
            Presigned URL.

        Raises:
            StoreUnavailableError: If the URL cannot be signed.
        """
        try:
            url = self.url(name, expire=ttl_seconds)
        except _STORE_ERRORS as error:
            logger.exception('Failed to sign URL for blob: %s', name)
            raise StoreUnavailableError(
                f'Failed to generate URL for blob: {name}',
            ) from error
        logger.debug('Signed URL issued for %s (%d s)', name, ttl_seconds)
        return url


def get_blob_storage() -> BlobStorage:
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance with S3 configuration from settings.
    """
    return storages['default']  # type: ignore[return-value]
