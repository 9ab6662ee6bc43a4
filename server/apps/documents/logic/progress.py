"""Per-file upload progress reporting.

Every status change of an upload is published on the ``upload_progress``
signal as a :class:`ProgressEvent`, so any consumer (admin, management
command, tests) can subscribe without the pipeline knowing about it.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Final, Self, final

from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Sent with ``event=ProgressEvent(...)`` on every status change
upload_progress = Signal()


class UploadStatus(enum.StrEnum):
    """Lifecycle states of one file upload."""

    QUEUED = 'queued'
    UPLOADING = 'uploading'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    ERROR = 'error'


_STATUS_ORDER: Final = {
    UploadStatus.QUEUED: 0,
    UploadStatus.UPLOADING: 1,
    UploadStatus.PROCESSING: 2,
    UploadStatus.COMPLETED: 3,
}
_TERMINAL_STATUSES: Final = frozenset((
    UploadStatus.COMPLETED,
    UploadStatus.ERROR,
))
_MAX_PROGRESS: Final = 100


@final
@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Snapshot of one file's upload state."""

    upload_id: str
    owner_id: str
    file_name: str
    status: UploadStatus
    progress: int
    error: str | None = None


@final
class UploadTracker:
    """Tracks one file through the pipeline and publishes its changes.

    Transitions only move forward: queued -> uploading -> processing ->
    completed, or from any non-terminal state to error. The percentage
    never decreases.
    """

    def __init__(self, owner_id: str, file_name: str) -> None:
        """Create tracker in the queued state and publish it.

        Args:
            owner_id: Owner of the upload.
            file_name: Original filename, for display.
        """
        self.upload_id = uuid.uuid4().hex
        self.owner_id = owner_id
        self.file_name = file_name
        self.status = UploadStatus.QUEUED
        self.progress = 0
        self.error: str | None = None
        self._publish()

    @property
    def is_terminal(self) -> bool:
        """Whether the upload has completed or failed."""
        return self.status in _TERMINAL_STATUSES

    def advance(self, status: UploadStatus, progress: int) -> None:
        """Move to a later non-error status.

        Args:
            status: New status.
            progress: New percentage (0..100).

        Raises:
            ValueError: If the transition would move backwards.
        """
        self._ensure_open()
        if status == UploadStatus.ERROR:
            raise ValueError('Use fail() to report an error')
        if _STATUS_ORDER[status] < _STATUS_ORDER[self.status]:
            raise ValueError(
                f'Cannot move {self.file_name} from {self.status} to {status}',
            )
        if not self.progress <= progress <= _MAX_PROGRESS:
            raise ValueError(
                f'Progress for {self.file_name} cannot go from '
                f'{self.progress} to {progress}',
            )
        self.status = status
        self.progress = progress
        self._publish()

    def fail(self, reason: str) -> None:
        """Move to the error state, keeping the last percentage.

        Args:
            reason: Human-readable failure reason.
        """
        self._ensure_open()
        self.status = UploadStatus.ERROR
        self.error = reason
        self._publish()

    def snapshot(self) -> ProgressEvent:
        """Current state as an immutable event."""
        return ProgressEvent(
            upload_id=self.upload_id,
            owner_id=self.owner_id,
            file_name=self.file_name,
            status=self.status,
            progress=self.progress,
            error=self.error,
        )

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise ValueError(
                f'Upload of {self.file_name} already ended as {self.status}',
            )

    def _publish(self) -> None:
        event = self.snapshot()
        logger.debug(
            'Upload %s (%s): %s %d%%',
            event.upload_id,
            event.file_name,
            event.status,
            event.progress,
        )
        # Subscriber failures are logged by Django and never abort uploads
        upload_progress.send_robust(sender=UploadTracker, event=event)


@final
class ProgressRecorder:
    """Collect progress events published while the recorder is active.

    Usage::

        with ProgressRecorder(owner_id) as recorder:
            upload_batch(owner_id, candidates)
        failed = recorder.failures()
    """

    def __init__(self, owner_id: str | None = None) -> None:
        """Initialize recorder.

        Args:
            owner_id: Only keep events for this owner (None keeps all).
        """
        self.owner_id = owner_id
        self.events: list[ProgressEvent] = []

    def __enter__(self) -> Self:
        """Subscribe to upload progress."""
        upload_progress.connect(self._receive, weak=False)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Unsubscribe from upload progress."""
        upload_progress.disconnect(self._receive)

    def history(self, upload_id: str) -> list[ProgressEvent]:
        """All events of one upload, oldest first."""
        return [event for event in self.events if event.upload_id == upload_id]

    def latest(self) -> dict[str, ProgressEvent]:
        """Last known event per upload ID, in first-seen order."""
        latest: dict[str, ProgressEvent] = {}
        for event in self.events:
            latest[event.upload_id] = event
        return latest

    def failures(self) -> list[ProgressEvent]:
        """Uploads whose last known state is error."""
        return [
            event
            for event in self.latest().values()
            if event.status == UploadStatus.ERROR
        ]

    def _receive(self, sender: Any, event: ProgressEvent, **kwargs: Any) -> None:
        if self.owner_id is None or event.owner_id == self.owner_id:
            self.events.append(event)
