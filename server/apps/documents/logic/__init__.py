"""Business logic layer for documents app.

This package contains all business logic for user documents:
- Upload pipeline (validation, blob write, metadata insert, rollback)
- Per-file progress reporting
- File registry (listing, description edits, deletion, download URLs)

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
