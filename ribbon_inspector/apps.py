"""
Django app configuration for ribbon-inspector.

This module configures:
- The ``ribbon_inspector`` logger namespace
- Dataverse settings validation
"""

import logging
import os

from django.apps import AppConfig as BaseAppConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseAppConfig):
    """Django app configuration for ribbon-inspector."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ribbon_inspector"
    verbose_name = "Ribbon Inspector"
    label = "ribbon_inspector"

    def ready(self):
        """Initialize the application after Django has loaded."""
        self._configure_logging()
        self._validate_configuration()
        logger.debug("Ribbon inspector initialized")

    def _configure_logging(self):
        """Set the package log level from the DEBUG environment variable."""
        level = logging.DEBUG if self._is_debug_mode() else logging.INFO
        logging.getLogger("ribbon_inspector").setLevel(level)

    def _validate_configuration(self):
        """Warn about settings that would make every comparison fail."""
        from .dataverse.config import get_inspector_settings

        settings = get_inspector_settings()
        dataverse = settings.dataverse
        if not dataverse.environment_url:
            logger.warning(
                "No Dataverse environment URL configured; set RIBBON_INSPECTOR"
                "['dataverse']['environment_url'] or DATAVERSE_URL"
            )
            return
        if not dataverse.access_token and not dataverse.uses_client_credentials:
            logger.warning(
                "No Dataverse credentials configured for %s; set an access token "
                "or tenant_id, client_id and client_secret",
                dataverse.environment_url,
            )
        logger.debug("Configuration validation completed")

    def _is_debug_mode(self) -> bool:
        return os.environ.get("DEBUG", "").lower() in ("1", "true", "yes", "on")
