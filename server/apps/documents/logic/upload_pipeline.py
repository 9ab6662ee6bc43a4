"""Business logic for uploading user documents."""

import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, Final, Self, TypeVar, final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import InMemoryUploadedFile, UploadedFile
from django.db import connections, transaction
from django.utils import timezone

from server.apps.documents.exceptions import (
    PartialInconsistencyError,
    UploadValidationError,
)
from server.apps.documents.infrastructure.metadata import (
    derive_category,
    detect_mime_type,
    extract_filename,
    format_file_size,
    generate_storage_key,
    mime_type_allowed,
    owner_id_key_safe,
)
from server.apps.documents.infrastructure.storage import (
    BlobStorage,
    get_blob_storage,
)
from server.apps.documents.logic.progress import UploadStatus, UploadTracker
from server.apps.documents.models import FileRecord

_DEFAULT_MAX_FILES: Final = 10
_DEFAULT_MAX_FILE_SIZE: Final = 25 * 1024 * 1024
_DEFAULT_ALLOWED_TYPES: Final = (
    'image/*',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/csv',
    'text/plain',
)

# Progress checkpoints, in percent
_BLOB_WRITE_STARTED: Final = 10
_BLOB_WRITE_DONE: Final = 70
_RECORD_SAVED: Final = 100

_Item = TypeVar('_Item')
_Result = TypeVar('_Result')

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class UploadLimits:
    """Limits every candidate file is validated against."""

    max_files: int
    max_file_size: int
    allowed_types: tuple[str, ...]


@final
@dataclass(frozen=True, slots=True)
class CandidateFile:
    """A file submitted for upload, before anything is stored."""

    name: str
    mime_type: str
    size_bytes: int
    content: BinaryIO

    @classmethod
    def from_file(cls, file_obj: BinaryIO, name: str) -> Self:
        """Build candidate from an open binary file.

        The MIME type is guessed from the filename extension and the
        size is measured by seeking to the end.

        Args:
            file_obj: Open binary file positioned anywhere.
            name: Original filename.

        Returns:
            CandidateFile for the file.
        """
        file_obj.seek(0, os.SEEK_END)
        size_bytes = file_obj.tell()
        file_obj.seek(0)
        return cls(
            name=name,
            mime_type=detect_mime_type(name),
            size_bytes=size_bytes,
            content=file_obj,
        )

    @classmethod
    def from_upload(cls, uploaded: UploadedFile) -> Self:
        """Build candidate from a Django uploaded file.

        Args:
            uploaded: File from ``request.FILES``.

        Returns:
            CandidateFile using the client-declared content type and
            the bare filename (any client-sent directories dropped).
        """
        name = extract_filename(uploaded.name or 'upload')
        return cls(
            name=name,
            mime_type=uploaded.content_type or detect_mime_type(name),
            size_bytes=uploaded.size or 0,
            content=uploaded.file,
        )


@final
class KeyClock:
    """Strictly increasing millisecond stamps for storage keys."""

    def __init__(self) -> None:
        """Initialize clock."""
        self._last_stamp = 0
        self._lock = threading.Lock()

    def next_stamp(self) -> int:
        """Current epoch milliseconds, bumped past the previous stamp.

        Returns:
            Stamp greater than every stamp returned before.
        """
        now = int(timezone.now().timestamp() * 1000)
        with self._lock:
            self._last_stamp = max(now, self._last_stamp + 1)
            return self._last_stamp


# Shared by every upload in this process
_key_clock: Final = KeyClock()


def get_upload_limits() -> UploadLimits:
    """Get upload limits from settings.

    Returns:
        UploadLimits with settings values or defaults.
    """
    return UploadLimits(
        max_files=getattr(settings, 'DOCUMENTS_MAX_FILES', _DEFAULT_MAX_FILES),
        max_file_size=getattr(
            settings,
            'DOCUMENTS_MAX_FILE_SIZE',
            _DEFAULT_MAX_FILE_SIZE,
        ),
        allowed_types=tuple(getattr(
            settings,
            'DOCUMENTS_ALLOWED_TYPES',
            _DEFAULT_ALLOWED_TYPES,
        )),
    )


def get_upload_parallelism() -> int:
    """Get number of concurrent uploads per batch.

    Returns:
        Worker count from settings, 0 meaning one worker per file.
    """
    return getattr(settings, 'DOCUMENTS_UPLOAD_PARALLELISM', 0)


def validate_candidate(candidate: CandidateFile, limits: UploadLimits) -> None:
    """Check one file against size and type limits.

    Args:
        candidate: File to check.
        limits: Limits to apply.

    Raises:
        UploadValidationError: If the file breaks a limit.
    """
    if candidate.size_bytes < 0:
        raise UploadValidationError(
            candidate.name,
            'invalid_size',
            f'{candidate.name} has a negative size',
        )

    if candidate.size_bytes > limits.max_file_size:
        raise UploadValidationError(
            candidate.name,
            'file_too_large',
            '{name} is {size}, the limit is {limit}'.format(
                name=candidate.name,
                size=format_file_size(candidate.size_bytes),
                limit=format_file_size(limits.max_file_size),
            ),
        )

    if not mime_type_allowed(candidate.mime_type, limits.allowed_types):
        raise UploadValidationError(
            candidate.name,
            'type_not_allowed',
            f'{candidate.name} has unsupported type {candidate.mime_type!r}',
        )


def validate_batch(
    candidates: Sequence[CandidateFile],
    limits: UploadLimits,
    owner_id: str | None = None,
) -> list[UploadValidationError | None]:
    """Check every file of a batch, including the per-batch count.

    Files past the ``max_files``-th are rejected individually; the
    files before them are still checked on their own merits.

    Args:
        candidates: Files in submission order.
        limits: Limits to apply.
        owner_id: Owner the files would be stored for. An owner ID that
            is unsafe as a storage key prefix rejects every file.

    Returns:
        One entry per candidate: the rejection, or None if accepted.
    """
    rejections: list[UploadValidationError | None] = []
    owner_unsafe = owner_id is not None and not owner_id_key_safe(owner_id)
    for index, candidate in enumerate(candidates):
        if owner_unsafe:
            rejections.append(UploadValidationError(
                candidate.name,
                'invalid_owner',
                f'Owner ID {owner_id!r} cannot be used for storage keys',
            ))
            continue
        if index >= limits.max_files:
            rejections.append(UploadValidationError(
                candidate.name,
                'too_many_files',
                f'{candidate.name} exceeds the limit of '
                f'{limits.max_files} files per upload',
            ))
            continue
        try:
            validate_candidate(candidate, limits)
        except UploadValidationError as error:
            rejections.append(error)
        else:
            rejections.append(None)
    return rejections


def upload_file(  # noqa: WPS211
    owner_id: str,
    candidate: CandidateFile,
    description: str | None = None,
    *,
    storage: BlobStorage | None = None,
    limits: UploadLimits | None = None,
    clock: KeyClock | None = None,
) -> FileRecord:
    """Validate and upload one file, then create its record.

    Progress is published through a fresh UploadTracker.

    Args:
        owner_id: Owner of the new file.
        candidate: File to upload.
        description: Optional free text stored with the record.
        storage: Blob storage to write to (defaults to configured one).
        limits: Limits to validate against (defaults to settings).
        clock: Stamp source for storage keys (defaults to process-wide one).

    Returns:
        Created FileRecord instance.

    Raises:
        UploadValidationError: If the file breaks a limit.
        StoreUnavailableError: If the blob upload fails.
        PartialInconsistencyError: If the record insert fails.
    """
    tracker = UploadTracker(owner_id, candidate.name)
    rejection = validate_batch(
        [candidate],
        limits or get_upload_limits(),
        owner_id,
    )[0]
    if rejection is not None:
        tracker.fail(_failure_reason(rejection))
        raise rejection

    return _store_file(
        owner_id,
        candidate,
        description,
        tracker=tracker,
        storage=storage or get_blob_storage(),
        clock=clock or _key_clock,
    )


def upload_batch(  # noqa: WPS211
    owner_id: str,
    candidates: Iterable[CandidateFile],
    descriptions: Sequence[str | None] = (),
    *,
    storage: BlobStorage | None = None,
    limits: UploadLimits | None = None,
    parallelism: int | None = None,
) -> list[FileRecord]:
    """Upload several files independently.

    A failure on one file never aborts the others: rejected and failed
    files are reported through their progress events (status 'error')
    and left out of the result.

    Args:
        owner_id: Owner of the new files.
        candidates: Files to upload.
        descriptions: Optional descriptions, matched to files by position.
        storage: Blob storage to write to (defaults to configured one).
        limits: Limits to validate against (defaults to settings).
        parallelism: Concurrent uploads (defaults to settings, 0 means
            one worker per file).

    Returns:
        Created FileRecord instances, in submission order.
    """
    candidates = list(candidates)
    storage = storage or get_blob_storage()
    trackers = [
        UploadTracker(owner_id, candidate.name)
        for candidate in candidates
    ]
    rejections = validate_batch(
        candidates,
        limits or get_upload_limits(),
        owner_id,
    )

    accepted: list[tuple[CandidateFile, str | None, UploadTracker]] = []
    for index, candidate in enumerate(candidates):
        rejection = rejections[index]
        if rejection is not None:
            logger.warning(
                'Rejected file %s (%s)',
                candidate.name,
                rejection.reason,
            )
            trackers[index].fail(_failure_reason(rejection))
            continue
        description = descriptions[index] if index < len(descriptions) else None
        accepted.append((candidate, description, trackers[index]))

    def upload_one(
        item: tuple[CandidateFile, str | None, UploadTracker],
    ) -> FileRecord | None:
        candidate, description, tracker = item
        try:
            return _store_file(
                owner_id,
                candidate,
                description,
                tracker=tracker,
                storage=storage,
                clock=_key_clock,
            )
        except Exception:
            # Reported through the tracker, siblings carry on
            logger.exception('Failed to upload file: %s', candidate.name)
            return None

    results = _run_all(
        upload_one,
        accepted,
        _worker_count(parallelism, len(accepted)),
    )
    records = [record for record in results if record is not None]
    logger.info(
        'Batch upload for owner %s stored %d of %d files',
        owner_id,
        len(records),
        len(candidates),
    )
    return records


def _store_file(  # noqa: WPS211
    owner_id: str,
    candidate: CandidateFile,
    description: str | None,
    *,
    tracker: UploadTracker,
    storage: BlobStorage,
    clock: KeyClock,
) -> FileRecord:
    """Upload blob and create record, rolling back the blob on failure.

    Transaction safety: Upload to storage first, then create DB record.
    If the DB insert fails, the uploaded blob is deleted from storage
    (best-effort rollback).
    """
    category = derive_category(candidate.mime_type)
    storage_key = generate_storage_key(
        owner_id,
        candidate.name,
        clock.next_stamp(),
    )
    logger.info(
        'Uploading %s for owner %s: %s, %d bytes, %s',
        candidate.name,
        owner_id,
        candidate.mime_type,
        candidate.size_bytes,
        category,
    )

    # Step 1: Upload to storage first
    tracker.advance(UploadStatus.UPLOADING, _BLOB_WRITE_STARTED)
    try:
        saved_key = storage.put(storage_key, _as_django_file(candidate))
    except Exception as error:
        tracker.fail(_failure_reason(error))
        raise
    tracker.advance(UploadStatus.PROCESSING, _BLOB_WRITE_DONE)

    # Step 2: Create database record (in transaction)
    try:
        with transaction.atomic():
            record = FileRecord.objects.create(
                owner_id=owner_id,
                name=candidate.name,
                mime_type=candidate.mime_type,
                size_bytes=candidate.size_bytes,
                storage_key=saved_key,
                category=category,
                description=description or None,
            )
    except Exception as error:
        # Rollback: Delete blob from storage since DB insert failed
        logger.exception(
            'Database insert failed, rolling back storage upload: %s',
            saved_key,
        )
        rolled_back = storage.rollback_upload(saved_key)
        tracker.fail(f'Failed to save file record: {error}')
        raise PartialInconsistencyError(saved_key, rolled_back) from error

    logger.info(
        'File record created: %s (ID: %d)',
        saved_key,
        record.id,
    )
    tracker.advance(UploadStatus.COMPLETED, _RECORD_SAVED)
    return record


def _as_django_file(candidate: CandidateFile) -> InMemoryUploadedFile:
    """Wrap candidate content so storage sees its declared content type."""
    candidate.content.seek(0)
    return InMemoryUploadedFile(
        file=candidate.content,
        field_name=None,
        name=candidate.name,
        content_type=candidate.mime_type,
        size=candidate.size_bytes,
        charset=None,
    )


def _failure_reason(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return '; '.join(error.messages)
    return str(error)


def _worker_count(parallelism: int | None, pending: int) -> int:
    if parallelism is None:
        parallelism = get_upload_parallelism()
    if parallelism <= 0:
        return pending
    return min(parallelism, pending)


def _run_all(
    task: Callable[[_Item], _Result],
    items: list[_Item],
    workers: int,
) -> list[_Result]:
    """Run task over items, in a thread pool when more than one worker."""
    if workers <= 1:
        return [task(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(partial(_in_worker, task), items))


def _in_worker(task: Callable[[_Item], _Result], item: _Item) -> _Result:
    try:
        return task(item)
    finally:
        # Each worker thread owns its own DB connections
        connections.close_all()
