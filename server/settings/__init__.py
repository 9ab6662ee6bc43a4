"""Main settings file.

This file is the entry point for ``DJANGO_SETTINGS_MODULE``.
Settings are split into components and assembled with
``django-split-settings``.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/documents.py',
)
