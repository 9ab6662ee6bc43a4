"""Signal handlers for documents app."""

import logging

from django.dispatch import receiver

from server.apps.documents.logic.progress import (
    ProgressEvent,
    UploadStatus,
    UploadTracker,
    upload_progress,
)

logger = logging.getLogger(__name__)


@receiver(upload_progress, sender=UploadTracker)
def log_upload_failure(
    sender: type[UploadTracker],
    event: ProgressEvent,
    **kwargs: object,
) -> None:
    """Log every upload that ends in the error state.

    Args:
        sender: The UploadTracker class.
        event: Progress snapshot that was published.
        **kwargs: Additional signal arguments.
    """
    if event.status != UploadStatus.ERROR:
        return

    logger.warning(
        'Upload failed for owner %s: %s (%s)',
        event.owner_id,
        event.file_name,
        event.error,
    )
