"""Django storage configuration for S3-compatible backends.

This module configures django-storages to work with:
- MinIO for local development
- S3 / Cloudflare R2 for production

Both are S3-compatible and use the same S3Storage backend.
"""

from typing import Any, Final

from server.settings.components import config

# Uses S3-compatible storage for user documents, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.documents.infrastructure.storage.BlobStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='user-files',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='minioadmin'),
            'secret_key': config(
                'AWS_SECRET_ACCESS_KEY',
                default='minioadmin',
            ),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Never replace an existing blob
            'querystring_auth': True,  # Signed download URLs
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        # Keep static files separate from user documents
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
