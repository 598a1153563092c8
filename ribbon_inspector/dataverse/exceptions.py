"""
Exception hierarchy for Dataverse access.

Fetch boundaries in the analysis service catch ``DataverseError`` and degrade
the affected source to an empty result.
"""

from typing import Optional


class DataverseError(Exception):
    """Base class for failures talking to a Dataverse environment."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url
        self.body = body


class DataverseConfigurationError(DataverseError):
    """The environment URL or credentials are missing."""


class DataverseAuthenticationError(DataverseError):
    """An access token could not be obtained."""


class DataverseTransportError(DataverseError):
    """Network failure or timeout before a response was received."""


class DataverseHTTPError(DataverseError):
    """The Web API answered with a non-success status."""


class DataversePermissionError(DataverseHTTPError):
    """HTTP 403 or a missing ``prv...`` privilege reported by the server."""


class RibbonParseError(Exception):
    """Ribbon XML could not be decoded or parsed."""


def is_permission_error(error: BaseException) -> bool:
    if isinstance(error, DataversePermissionError):
        return True
    message = str(error)
    return "Status 403" in message or "prvReadEntity" in message


__all__ = [
    "DataverseError",
    "DataverseConfigurationError",
    "DataverseAuthenticationError",
    "DataverseTransportError",
    "DataverseHTTPError",
    "DataversePermissionError",
    "RibbonParseError",
    "is_permission_error",
]
