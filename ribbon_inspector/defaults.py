"""
Library default settings for ribbon-inspector.

Projects override any of these through the ``RIBBON_INSPECTOR`` Django setting.
Nested dictionaries are merged, so only the keys that differ need to be set.
"""

from typing import Any

LIBRARY_DEFAULTS: dict[str, Any] = {
    "dataverse": {
        "environment_url": None,
        "api_version": "9.2",
        "timeout_seconds": 60,
        "page_size": 5000,
        "tenant_id": None,
        "client_id": None,
        "client_secret": None,
        "access_token": None,
        "authority_url": "https://login.microsoftonline.com",
    },
    "analysis": {
        "max_workers": 8,
        "ribbon_cache_ttl_seconds": 600,
        "resolve_rule_definitions": True,
        "default_context": "HomePageGrid",
    },
    "graphql": {
        "require_authentication": True,
        "require_staff": False,
    },
}

# Environment variables consulted when the matching setting is empty.
ENVIRONMENT_OVERRIDES: dict[str, str] = {
    "dataverse.environment_url": "DATAVERSE_URL",
    "dataverse.tenant_id": "DATAVERSE_TENANT_ID",
    "dataverse.client_id": "DATAVERSE_CLIENT_ID",
    "dataverse.client_secret": "DATAVERSE_CLIENT_SECRET",
    "dataverse.access_token": "DATAVERSE_ACCESS_TOKEN",
}


def merge_settings(*settings_dicts: dict[str, Any]) -> dict[str, Any]:
    """
    Merge multiple settings dictionaries with deep merging for nested dicts.
    Later dictionaries override earlier ones.
    """
    result: dict[str, Any] = {}
    for settings_dict in settings_dicts:
        for key, value in settings_dict.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = merge_settings(result[key], value)
            else:
                result[key] = value
    return result
