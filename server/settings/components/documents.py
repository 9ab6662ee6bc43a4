"""User document upload settings."""

from decouple import Csv

from server.settings.components import config

# Upload limits, checked before any storage call
DOCUMENTS_MAX_FILES = config('DOCUMENTS_MAX_FILES', cast=int, default=10)
DOCUMENTS_MAX_FILE_SIZE = config(
    'DOCUMENTS_MAX_FILE_SIZE',
    cast=int,
    default=25 * 1024 * 1024,
)
DOCUMENTS_ALLOWED_TYPES = config(
    'DOCUMENTS_ALLOWED_TYPES',
    cast=Csv(post_process=tuple),
    default=','.join((
        'image/*',
        'application/pdf',
        'application/msword',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'text/csv',
        'text/plain',
    )),
)

# Validity window of signed download URLs, in seconds
DOCUMENTS_SIGNED_URL_TTL = config(
    'DOCUMENTS_SIGNED_URL_TTL',
    cast=int,
    default=3600,
)

# Concurrent uploads per batch (0 means one worker per file)
DOCUMENTS_UPLOAD_PARALLELISM = config(
    'DOCUMENTS_UPLOAD_PARALLELISM',
    cast=int,
    default=0,
)
