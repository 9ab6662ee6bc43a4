"""Django app configuration for documents app."""

from typing import override

from django.apps import AppConfig


class DocumentsConfig(AppConfig):
    """Configuration for documents app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.documents'
    verbose_name = 'Documents'

    @override
    def ready(self) -> None:
        """Import signal handlers when app is ready."""
        from server.apps.documents import signals  # noqa: F401
