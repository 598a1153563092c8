"""
Settings access for ribbon-inspector.

Values resolve from the ``RIBBON_INSPECTOR`` Django setting first and fall
back to ``LIBRARY_DEFAULTS``. Keys use dot notation (``"analysis.max_workers"``).
"""

from typing import Any

from django.conf import settings

from .defaults import LIBRARY_DEFAULTS, merge_settings

SETTINGS_NAME = "RIBBON_INSPECTOR"


class SettingsProxy:
    """
    Proxy for accessing ribbon-inspector settings.

    Lookups are cached per key; call ``clear_cache`` after changing Django
    settings at runtime (tests do this through ``override_inspector_settings``).
    """

    def __init__(self):
        self._cache: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            key: Setting key to retrieve, dot notation for nested values
            default: Value returned when neither Django settings nor the
                library defaults define the key

        Returns:
            The resolved value
        """
        if key in self._cache:
            return self._cache[key]

        value = self._get_nested_value(self.as_dict(), key)
        if value is None:
            value = default
        self._cache[key] = value
        return value

    def as_dict(self) -> dict[str, Any]:
        """Return the library defaults merged with the project's overrides."""
        overrides = getattr(settings, SETTINGS_NAME, None) or {}
        if not isinstance(overrides, dict):
            overrides = {}
        return merge_settings(LIBRARY_DEFAULTS, overrides)

    def _get_nested_value(self, data: dict[str, Any], key: str) -> Any:
        if not isinstance(data, dict):
            return None

        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def clear_cache(self) -> None:
        self._cache.clear()


settings_proxy = SettingsProxy()


def get_settings_proxy() -> SettingsProxy:
    return settings_proxy


def get_setting(key: str, default: Any = None) -> Any:
    """Convenience wrapper around the module-level proxy."""
    return settings_proxy.get(key, default)
