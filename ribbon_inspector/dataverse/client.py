"""
Thin client for the Dataverse Web API.

Only the read operations the analysis layer needs are implemented: single
GETs, paginated collection reads that follow ``@odata.nextLink`` and WhoAmI.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

from .auth import TokenProvider
from .config import DataverseSettings
from .exceptions import (
    DataverseConfigurationError,
    DataverseError,
    DataverseHTTPError,
    DataversePermissionError,
    DataverseTransportError,
)

logger = logging.getLogger(__name__)

_API_PREFIX_RE = re.compile(r"^.*?/api/data/v\d+(?:\.\d+)?/", re.IGNORECASE)
_PRIVILEGE_MESSAGE_RE = re.compile(r"\bprv[A-Z][A-Za-z]+")


class DataverseClient:
    """
    Read-only Web API client.

    ``impersonate`` on every read sends ``MSCRMCallerID`` so the request runs
    with that principal's privileges.
    """

    def __init__(
        self,
        settings: DataverseSettings,
        token_provider: Optional[TokenProvider] = None,
        session: Optional[requests.Session] = None,
    ):
        if not settings.environment_url:
            raise DataverseConfigurationError("Dataverse environment_url is not configured")
        self.settings = settings
        self.session = session or requests.Session()
        self.token_provider = token_provider or TokenProvider(settings, session=self.session)

    def get(self, path: str, impersonate: Optional[str] = None) -> dict[str, Any]:
        url = self._build_url(path)
        headers = self._build_headers(impersonate)
        try:
            response = self.session.get(
                url, headers=headers, timeout=self.settings.timeout_seconds
            )
        except requests.RequestException as exc:
            raise DataverseTransportError(f"Request failed: {exc}", url=url) from exc

        if not response.ok:
            raise self._build_http_error(response, url)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise DataverseHTTPError(
                "Response is not JSON",
                status_code=response.status_code,
                url=url,
                body=response.text,
            ) from exc

    def get_all(self, path: str, impersonate: Optional[str] = None) -> list[dict[str, Any]]:
        """Read every page of a collection, following ``@odata.nextLink``."""
        records: list[dict[str, Any]] = []
        next_path: Optional[str] = path
        pages = 0
        while next_path:
            payload = self.get(next_path, impersonate=impersonate)
            records.extend(payload.get("value") or [])
            pages += 1
            next_link = payload.get("@odata.nextLink")
            next_path = strip_api_prefix(next_link) if next_link else None
        logger.debug("Read %s records in %s page(s) from %s", len(records), pages, path)
        return records

    def who_am_i(self) -> str:
        payload = self.get("WhoAmI")
        user_id = payload.get("UserId")
        if not user_id:
            raise DataverseError("WhoAmI response has no UserId")
        return str(user_id)

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.settings.api_root}/{path.lstrip('/')}"

    def _build_headers(self, impersonate: Optional[str]) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token_provider.get_token()}",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
            "Prefer": f"odata.maxpagesize={self.settings.page_size}",
        }
        if impersonate:
            headers["MSCRMCallerID"] = impersonate
        return headers

    def _build_http_error(self, response: requests.Response, url: str) -> DataverseHTTPError:
        detail = _extract_error_message(response)
        message = f"HTTP {response.status_code} {response.reason or ''}".strip()
        if detail:
            message = f"{message}: {detail}"
        error_class = DataverseHTTPError
        if response.status_code == 403 or _PRIVILEGE_MESSAGE_RE.search(detail or ""):
            error_class = DataversePermissionError
        return error_class(
            message, status_code=response.status_code, url=url, body=response.text
        )


def strip_api_prefix(link: str) -> str:
    """Turn an absolute ``@odata.nextLink`` into a path relative to the API root."""
    return _API_PREFIX_RE.sub("", link, count=1)


def _extract_error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "").strip()
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or "")
    return ""
