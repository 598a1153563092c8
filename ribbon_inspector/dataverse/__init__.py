"""
Dataverse Web API access for ribbon-inspector.
"""

from .cache import RibbonXmlCache, get_shared_ribbon_cache
from .client import DataverseClient
from .config import DataverseSettings, InspectorSettings, get_inspector_settings
from .exceptions import (
    DataverseAuthenticationError,
    DataverseConfigurationError,
    DataverseError,
    DataverseHTTPError,
    DataversePermissionError,
    DataverseTransportError,
    RibbonParseError,
    is_permission_error,
)

__all__ = [
    "DataverseClient",
    "DataverseSettings",
    "InspectorSettings",
    "get_inspector_settings",
    "RibbonXmlCache",
    "get_shared_ribbon_cache",
    "DataverseError",
    "DataverseConfigurationError",
    "DataverseAuthenticationError",
    "DataverseTransportError",
    "DataverseHTTPError",
    "DataversePermissionError",
    "RibbonParseError",
    "is_permission_error",
]
