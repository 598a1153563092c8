"""Access token acquisition for the Dataverse Web API."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import requests

from .config import DataverseSettings
from .exceptions import DataverseAuthenticationError, DataverseConfigurationError

logger = logging.getLogger(__name__)

# Tokens are refreshed this many seconds before they expire.
EXPIRY_MARGIN_SECONDS = 60


class TokenProvider:
    """
    Supplies bearer tokens for Web API requests.

    A statically configured ``access_token`` is returned as is. Otherwise the
    OAuth2 client-credentials flow is used against the configured authority
    and the token is cached until shortly before it expires.
    """

    def __init__(
        self,
        settings: DataverseSettings,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.session = session or requests.Session()
        self.clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get_token(self) -> str:
        if self.settings.access_token:
            return self.settings.access_token

        with self._lock:
            if self._token and self.clock() < self._expires_at:
                return self._token
            self._token, lifetime = self._fetch_client_credentials_token()
            self._expires_at = self.clock() + max(0, lifetime - EXPIRY_MARGIN_SECONDS)
            return self._token

    def _fetch_client_credentials_token(self) -> tuple[str, int]:
        settings = self.settings
        if not settings.environment_url:
            raise DataverseConfigurationError("Dataverse environment_url is not configured")
        if not settings.uses_client_credentials:
            raise DataverseConfigurationError(
                "Dataverse credentials are not configured; set access_token or "
                "tenant_id, client_id and client_secret"
            )

        token_url = f"{settings.authority_url}/{settings.tenant_id}/oauth2/v2.0/token"
        try:
            response = self.session.post(
                token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": settings.client_id,
                    "client_secret": settings.client_secret,
                    "scope": f"{settings.environment_url}/.default",
                },
                timeout=settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.warning("Dataverse token request failed: %s", exc)
            raise DataverseAuthenticationError(
                f"Token request failed: {exc}", url=token_url
            ) from exc

        if not response.ok:
            logger.warning("Dataverse token request failed (status %s)", response.status_code)
            raise DataverseAuthenticationError(
                f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
                url=token_url,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DataverseAuthenticationError(
                "Token response is not JSON", url=token_url
            ) from exc

        token = data.get("access_token")
        if not token:
            raise DataverseAuthenticationError(
                "Token response has no access_token", url=token_url
            )
        try:
            lifetime = int(data.get("expires_in", 3600))
        except (TypeError, ValueError):
            lifetime = 3600
        logger.debug("Acquired Dataverse token valid for %s seconds", lifetime)
        return str(token), lifetime
