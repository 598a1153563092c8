"""Configuration helpers for Dataverse access and comparison runs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config_proxy import get_settings_proxy
from ..defaults import ENVIRONMENT_OVERRIDES, LIBRARY_DEFAULTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataverseSettings:
    environment_url: Optional[str] = None
    api_version: str = "9.2"
    timeout_seconds: int = 60
    page_size: int = 5000
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    authority_url: str = "https://login.microsoftonline.com"

    @property
    def api_root(self) -> str:
        return f"{(self.environment_url or '').rstrip('/')}/api/data/v{self.api_version}"

    @property
    def uses_client_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


@dataclass(frozen=True)
class InspectorSettings:
    dataverse: DataverseSettings = field(default_factory=DataverseSettings)
    max_workers: int = 8
    ribbon_cache_ttl_seconds: int = 600
    resolve_rule_definitions: bool = True
    default_context: str = "HomePageGrid"
    require_authentication: bool = True
    require_staff: bool = False


def get_inspector_settings() -> InspectorSettings:
    config = get_settings_proxy().as_dict()
    return _build_settings(config)


def _build_settings(config: dict[str, Any]) -> InspectorSettings:
    dataverse = config.get("dataverse") or {}
    analysis = config.get("analysis") or {}
    graphql = config.get("graphql") or {}
    analysis_defaults = LIBRARY_DEFAULTS["analysis"]

    return InspectorSettings(
        dataverse=_build_dataverse_settings(dataverse),
        max_workers=max(1, _coerce_int(analysis.get("max_workers"), 8)),
        ribbon_cache_ttl_seconds=_coerce_int(
            analysis.get("ribbon_cache_ttl_seconds"), 600
        ),
        resolve_rule_definitions=bool(
            analysis.get(
                "resolve_rule_definitions",
                analysis_defaults["resolve_rule_definitions"],
            )
        ),
        default_context=_normalize_context(analysis.get("default_context")),
        require_authentication=bool(graphql.get("require_authentication", True)),
        require_staff=bool(graphql.get("require_staff", False)),
    )


def _build_dataverse_settings(config: dict[str, Any]) -> DataverseSettings:
    values = {
        key.split(".", 1)[1]: _from_environment(config, key, env_name)
        for key, env_name in ENVIRONMENT_OVERRIDES.items()
    }
    return DataverseSettings(
        environment_url=_strip_trailing_slash(values["environment_url"]),
        api_version=str(config.get("api_version") or "9.2"),
        timeout_seconds=_coerce_int(config.get("timeout_seconds"), 60),
        page_size=_coerce_int(config.get("page_size"), 5000),
        tenant_id=values["tenant_id"],
        client_id=values["client_id"],
        client_secret=values["client_secret"],
        access_token=values["access_token"],
        authority_url=str(
            config.get("authority_url") or "https://login.microsoftonline.com"
        ).rstrip("/"),
    )


def _from_environment(config: dict[str, Any], key: str, env_name: str) -> Optional[str]:
    value = _coerce_optional_str(config.get(key.split(".", 1)[1]))
    if value:
        return value
    return _coerce_optional_str(os.environ.get(env_name))


def _normalize_context(value: Any) -> str:
    from ..analysis.ribbon.context import normalize_context

    normalized = normalize_context(value)
    if normalized is None:
        if value:
            logger.warning(
                "Unknown default_context %r, falling back to HomePageGrid", value
            )
        return "HomePageGrid"
    return normalized


def _coerce_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer setting %r, using %s", value, default)
        return default


def _coerce_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _strip_trailing_slash(value: Optional[str]) -> Optional[str]:
    return value.rstrip("/") if value else value
