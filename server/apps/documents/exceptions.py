"""Exceptions for documents app."""

from django.core.exceptions import ValidationError


class DocumentsError(Exception):
    """Base class for upload pipeline and registry failures."""


class UploadValidationError(DocumentsError, ValidationError):
    """Raised when a candidate file breaks an upload limit.

    Raised before any storage interaction takes place.
    """

    def __init__(self, file_name: str, reason: str, message: str) -> None:
        """Initialize UploadValidationError.

        Args:
            file_name: Name of the rejected file.
            reason: Machine-readable rejection code (e.g. 'file_too_large').
            message: Human-readable explanation.
        """
        self.file_name = file_name
        self.reason = reason
        ValidationError.__init__(self, message, code=reason)


class StoreUnavailableError(DocumentsError):
    """Raised when the bucket or the metadata table fails a request."""


class BlobConflictError(StoreUnavailableError):
    """Raised when a blob already exists under the requested key."""

    def __init__(self, storage_key: str) -> None:
        """Initialize BlobConflictError.

        Args:
            storage_key: Key that is already taken.
        """
        self.storage_key = storage_key
        super().__init__(f'Blob already exists: {storage_key}')


class RecordNotFoundError(DocumentsError):
    """Raised when no record matches both the id and the owner."""

    def __init__(self, file_id: int, owner_id: str) -> None:
        """Initialize RecordNotFoundError.

        Args:
            file_id: Requested record ID.
            owner_id: Principal that asked for it.
        """
        self.file_id = file_id
        self.owner_id = owner_id
        super().__init__(f'File {file_id} not found for owner {owner_id}')


class PartialInconsistencyError(DocumentsError):
    """Raised when the metadata insert fails after the blob was written.

    The original database error is chained as ``__cause__``.
    ``rolled_back`` tells whether the compensating blob delete succeeded;
    when it is False the blob under ``storage_key`` is orphaned.
    """

    def __init__(self, storage_key: str, rolled_back: bool) -> None:
        """Initialize PartialInconsistencyError.

        Args:
            storage_key: Key of the blob written before the failure.
            rolled_back: Whether the blob was deleted again.
        """
        self.storage_key = storage_key
        self.rolled_back = rolled_back
        state = 'rolled back' if rolled_back else 'orphaned'
        super().__init__(
            f'Failed to save file record, blob {state}: {storage_key}',
        )


class RecordParseError(DocumentsError):
    """Raised when a stored row carries an unknown enum tag."""


class ImmutableFieldError(DocumentsError):
    """Raised when saving a change to a write-once column."""
