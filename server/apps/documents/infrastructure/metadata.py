"""Metadata helpers for uploaded files."""

import mimetypes
import re
from pathlib import Path
from typing import Final

from server.apps.documents.models import FileCategory

_UNSAFE_KEY_CHARS: Final = re.compile(r'[^a-zA-Z0-9.-]')
# Owner IDs form the first key segment: no separators, no leading dot
_SAFE_OWNER_ID: Final = re.compile(r'[A-Za-z0-9_-][A-Za-z0-9._-]{0,63}')
_SPREADSHEET_MARKERS: Final = ('spreadsheet', 'excel', 'csv')
_DOCUMENT_MARKERS: Final = ('pdf', 'document', 'text')
_SIZE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB')
_SIZE_BASE: Final = 1024


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def derive_category(mime_type: str) -> FileCategory:
    """Classify a declared content type.

    Checks run in a fixed order and the first match wins, since loose
    substring checks can overlap (e.g. 'text/csv').

    Args:
        mime_type: Declared MIME type.

    Returns:
        FileCategory for the type.
    """
    if mime_type.startswith('image/'):
        return FileCategory.IMAGE
    if any(marker in mime_type for marker in _SPREADSHEET_MARKERS):
        return FileCategory.SPREADSHEET
    if any(marker in mime_type for marker in _DOCUMENT_MARKERS):
        return FileCategory.DOCUMENT
    return FileCategory.OTHER


def sanitize_filename(filename: str) -> str:
    """Make a filename safe for use inside a storage key.

    Args:
        filename: Original filename, any characters.

    Returns:
        Filename with every character outside [A-Za-z0-9.-] replaced by '_'.
    """
    return _UNSAFE_KEY_CHARS.sub('_', filename)


def generate_storage_key(owner_id: str, filename: str, stamp: int) -> str:
    """Build the storage key for a new upload.

    Args:
        owner_id: Owner's principal ID.
        filename: Original filename.
        stamp: Upload timestamp in epoch milliseconds.

    Returns:
        Storage key (e.g., 'abc123/1718000000000_tax_return_2023.pdf').
    """
    return f'{owner_id}/{stamp}_{sanitize_filename(filename)}'


def owner_id_key_safe(owner_id: str) -> bool:
    """Check that an owner ID can be used as a storage key prefix.

    Args:
        owner_id: Owner's principal ID.

    Returns:
        True for 1-64 characters of [A-Za-z0-9._-] not starting with a dot.
    """
    return _SAFE_OWNER_ID.fullmatch(owner_id) is not None


def extract_filename(path: str) -> str:
    """Extract filename from a filesystem path.

    Args:
        path: Full path (e.g., '/home/me/docs/file.pdf').

    Returns:
        Filename (e.g., 'file.pdf').
    """
    return Path(path).name


def mime_type_allowed(mime_type: str, allowed_types: tuple[str, ...]) -> bool:
    """Check a MIME type against an allow-list.

    Entries are exact types ('application/pdf') or major-type
    wildcards ('image/*').

    Args:
        mime_type: Declared MIME type.
        allowed_types: Allow-list entries.

    Returns:
        True if any entry matches.
    """
    for allowed in allowed_types:
        if allowed.endswith('/*'):
            if mime_type.startswith(allowed[:-1]):
                return True
        elif mime_type == allowed:
            return True
    return False


def format_file_size(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '0 Bytes', '1.5 KB', '10 MB').
    """
    if size_bytes <= 0:
        return '0 Bytes'
    exponent = 0
    while (
        exponent < len(_SIZE_UNITS) - 1
        and size_bytes >= _SIZE_BASE ** (exponent + 1)
    ):
        exponent += 1
    scaled = round(size_bytes / _SIZE_BASE ** exponent, 2)
    return f'{scaled:g} {_SIZE_UNITS[exponent]}'
