"""Infrastructure layer for documents app.

This package contains integrations with external systems:
- Blob storage backend (S3/MinIO/R2)
- Metadata helpers (MIME type, category, storage keys)

Keep infrastructure concerns separate from business logic.
"""
