"""
Command bar visibility comparison service.

Fetches everything a comparison needs from Dataverse in one fan-out, reduces
it with the privilege resolver and the security context comparator and hands
the result to the visibility aggregator.

Every fan-out member degrades to an empty result on a ``DataverseError``; the
failure is recorded as a notification on the returned comparison.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import quote

from ..dataverse.cache import RibbonXmlCache
from ..dataverse.config import InspectorSettings, get_inspector_settings
from ..dataverse.exceptions import DataverseError, RibbonParseError
from ..notifications import NotificationCollector
from .privileges.resolver import DataverseReader, PrivilegeResolver, clean_id
from .privileges.types import PrincipalPrivilegeMap, SecurityContext
from .ribbon.context import APP_ACTION_LOCATIONS, CommandContext, normalize_context
from .ribbon.decoding import decode_compressed_ribbon
from .ribbon.extractor import RibbonCatalogExtractor, RuleDefinitionIndex
from .ribbon.modern import modern_command_from_record
from .ribbon.standard_commands import (
    ENTITY_PROPERTIES_FOR_COMMANDS,
    ENTITY_PROPERTY_DEFAULTS,
    commands_for_context,
    misc_privileges_for_context,
)
from .ribbon.types import Command
from .rules.evaluation import CustomRuleRegistry
from .security_context import SecurityContextComparator, SecurityContextReport
from .visibility.aggregator import AggregationInput, VisibilityAggregator
from .visibility.types import ComparisonResult

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_FILTER = "All"

RIBBON_DIFF_SELECT = "ribbondiffid,solutionid,diffid,rdx,entity,difftype,tabid,ismanaged"
HIDDEN_ACTION_SELECT = "ribbondiffid,solutionid,diffid,rdx,entity"
APP_ACTION_SELECT = (
    "appactionid,name,uniquename,buttonlabeltext,location,context,contextvalue,type,"
    "hidden,visibilitytype,visibilityformulafunctionname,solutionid,statecode,ismanaged"
)
# appaction.context option value for actions available on every table.
APP_ACTION_CONTEXT_ALL = 2

_FILTER_SAFE = "(),'="


@dataclass
class PrincipalData:
    """Roles, teams and entity privileges of one principal."""

    principal_id: Optional[str]
    security: SecurityContext = field(default_factory=SecurityContext)
    privileges: PrincipalPrivilegeMap = field(default_factory=PrincipalPrivilegeMap.empty)
    misc_privileges: dict[str, bool] = field(default_factory=dict)


class CommandBarAnalysisService:
    """
    Compare command bar visibility between two principals.

    ``client`` is anything with ``get``, ``get_all`` and ``who_am_i``, normally a
    ``DataverseClient``. The ribbon XML ``cache`` is owned by the service
    unless one is passed in. ``impersonate`` is sent with every read.
    """

    def __init__(
        self,
        client: DataverseReader,
        settings: Optional[InspectorSettings] = None,
        cache: Optional[RibbonXmlCache] = None,
        custom_rules: Optional[CustomRuleRegistry] = None,
        impersonate: Optional[str] = None,
        max_workers: Optional[int] = None,
    ):
        self.client = client
        self.settings = settings or get_inspector_settings()
        self.cache = cache or RibbonXmlCache(self.settings.ribbon_cache_ttl_seconds)
        self.custom_rules = custom_rules
        self.impersonate = clean_id(impersonate) if impersonate else None
        self.max_workers = max(1, max_workers or self.settings.max_workers)
        self.comparator = SecurityContextComparator()

    def compare_command_bar_visibility(
        self,
        target_user_id: str,
        entity: Optional[str] = None,
        context: Optional[str] = None,
        comparison_user_id: Optional[str] = None,
    ) -> ComparisonResult:
        """
        Compare what ``target_user_id`` sees on a command bar against the
        comparison principal, the acting principal when not given.

        Raises:
            ValueError: when ``target_user_id`` is missing or ``context`` is unknown
        """
        if not target_user_id:
            raise ValueError("target_user_id is required")
        context = self._resolve_context(context)
        entity = _normalize_entity(entity)
        target_user_id = clean_id(target_user_id)
        notifications = NotificationCollector()
        current_user_id = self._resolve_current_user(comparison_user_id, notifications)

        logger.info(
            "Comparing %s command bar of %s: %s against %s",
            context,
            entity or "all entities",
            current_user_id or "unknown principal",
            target_user_id,
        )

        resolver = PrivilegeResolver(self.client, notifications, impersonate=self.impersonate)
        misc_names = misc_privileges_for_context(context)
        tasks: dict[str, tuple[Callable[[], Any], Any]] = {
            "solutions": (lambda: self._get_solutions(notifications), {}),
            "publishers": (lambda: self._get_publishers(notifications), {}),
            "ribbon_diffs": (lambda: self._get_ribbon_diffs(entity, context, notifications), []),
            "hidden_actions": (
                lambda: self._get_hidden_actions(entity, context, notifications),
                [],
            ),
            "modern": (lambda: self._get_modern_commands(entity, context, notifications), []),
            "entity_metadata": (lambda: self._get_entity_metadata(entity, notifications), {}),
            "definitions": (
                lambda: self._get_rule_definitions(entity, notifications),
                RuleDefinitionIndex(),
            ),
            "current": (
                lambda: self._get_principal_data(resolver, current_user_id, entity, misc_names),
                PrincipalData(current_user_id),
            ),
            "target": (
                lambda: self._get_principal_data(resolver, target_user_id, entity, misc_names),
                PrincipalData(target_user_id),
            ),
        }
        fetched = self._run_fan_out(tasks, notifications)

        extractor = RibbonCatalogExtractor(entity)
        diff_commands = [
            extractor.extract_diff_command(record, context, fetched["definitions"])
            for record in fetched["ribbon_diffs"]
        ]
        modern_commands = [
            command
            for command in (
                modern_command_from_record(record, context) for record in fetched["modern"]
            )
            if command is not None
        ]
        current: PrincipalData = fetched["current"]
        target: PrincipalData = fetched["target"]

        aggregation = AggregationInput(
            context=context,
            entity=entity,
            current_privileges=current.privileges,
            target_privileges=target.privileges,
            security=self.comparator.compare_contexts(current.security, target.security),
            standard_commands=commands_for_context(context),
            ribbon_diff_commands=diff_commands,
            modern_commands=modern_commands,
            hidden_command_ids=extractor.hidden_action_ids(fetched["hidden_actions"]),
            entity_metadata=fetched["entity_metadata"],
            current_misc_privileges=current.misc_privileges,
            target_misc_privileges=target.misc_privileges,
            solutions=fetched["solutions"],
            publishers=fetched["publishers"],
            custom_rule_context={"user_id": current_user_id},
        )
        commands, summary = VisibilityAggregator(self.custom_rules).aggregate(aggregation)

        logger.info(
            "Compared %s command(s): %s difference(s), %s potential, %s notification(s)",
            summary.total_commands,
            summary.differences,
            summary.potential_differences,
            len(notifications),
        )
        return ComparisonResult(
            commands=commands,
            summary=summary,
            notifications=notifications.to_list(),
            current_user_id=current_user_id,
            target_user_id=target_user_id,
        )

    def compare_security_context(
        self, target_user_id: str, comparison_user_id: Optional[str] = None
    ) -> SecurityContextReport:
        """
        Roles and teams of two principals side by side.

        Raises:
            ValueError: when ``target_user_id`` is missing
            DataverseError: when either principal cannot be read
        """
        if not target_user_id:
            raise ValueError("target_user_id is required")
        target_user_id = clean_id(target_user_id)
        current_user_id = (
            clean_id(comparison_user_id) if comparison_user_id else clean_id(self.client.who_am_i())
        )
        resolver = PrivilegeResolver(self.client, impersonate=self.impersonate)
        with ThreadPoolExecutor(max_workers=min(2, self.max_workers)) as executor:
            current_future = executor.submit(resolver.get_security_context, current_user_id)
            target_future = executor.submit(resolver.get_security_context, target_user_id)
            current, target = current_future.result(), target_future.result()
        return SecurityContextReport(
            current_user_id=current_user_id,
            target_user_id=target_user_id,
            current=current,
            target=target,
            comparison=self.comparator.compare_contexts(current, target),
        )

    def retrieve_entity_ribbon(
        self,
        entity: str,
        location_filter: str = DEFAULT_LOCATION_FILTER,
        skip_cache: bool = False,
    ) -> Optional[str]:
        """
        Full ribbon XML of an entity, read through the cache.

        Returns ``None`` when the response carries no ribbon.

        Raises:
            ValueError: when ``entity`` is empty
            DataverseError: when the request fails
            RibbonParseError: when the payload cannot be decoded
        """
        entity = _normalize_entity(entity)
        if not entity:
            raise ValueError("entity is required for ribbon retrieval")

        if not skip_cache:
            cached = self.cache.get(entity, location_filter)
            if cached is not None:
                return cached

        payload = self.client.get(
            f"RetrieveEntityRibbon(EntityName='{entity}',"
            f"RibbonLocationFilter=Microsoft.Dynamics.CRM.RibbonLocationFilters'{location_filter}')",
            impersonate=self.impersonate,
        )
        compressed = payload.get("CompressedEntityXml")
        if not compressed:
            logger.debug("RetrieveEntityRibbon returned no ribbon for %s", entity)
            return None
        xml = decode_compressed_ribbon(compressed)
        self.cache.put(entity, location_filter, xml)
        return xml

    def list_entity_commands(self, entity: str, context: Optional[str] = None) -> list[Command]:
        """Commands of an entity's full ribbon that belong to ``context``."""
        context = self._resolve_context(context)
        xml = self.retrieve_entity_ribbon(entity)
        if not xml:
            return []
        return RibbonCatalogExtractor(_normalize_entity(entity)).extract_commands(xml, context)

    def clear_ribbon_cache(
        self, entity: Optional[str] = None, location_filter: Optional[str] = None
    ) -> int:
        return self.cache.invalidate(_normalize_entity(entity), location_filter)

    def _resolve_context(self, context: Optional[str]) -> str:
        if context is None or context == "":
            return self.settings.default_context
        normalized = normalize_context(context)
        if normalized is None:
            raise ValueError(f"Unknown command bar context: {context}")
        return normalized

    def _resolve_current_user(
        self, comparison_user_id: Optional[str], notifications: NotificationCollector
    ) -> Optional[str]:
        if comparison_user_id:
            return clean_id(comparison_user_id)
        try:
            return clean_id(self.client.who_am_i())
        except DataverseError as exc:
            notifications.record_failure("principal", "determine the current user", exc)
            return None

    def _run_fan_out(
        self,
        tasks: dict[str, tuple[Callable[[], Any], Any]],
        notifications: NotificationCollector,
    ) -> dict[str, Any]:
        results: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {name: executor.submit(task) for name, (task, _) in tasks.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except DataverseError as exc:
                    self._record(notifications, name, f"load {name.replace('_', ' ')}", exc)
                    results[name] = tasks[name][1]
        return results

    def _record(
        self,
        notifications: NotificationCollector,
        source: str,
        description: str,
        exc: DataverseError,
    ) -> None:
        notifications.record_failure(
            source, description, exc, impersonating=bool(self.impersonate)
        )

    def _get_solutions(self, notifications: NotificationCollector) -> dict[str, dict[str, Any]]:
        try:
            records = self.client.get_all(
                "solutions?$select=solutionid,uniquename,friendlyname,_publisherid_value,modifiedon",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            self._record(notifications, "solutions", "fetch solutions", exc)
            return {}
        return {
            clean_id(record.get("solutionid")): {
                "solutionid": clean_id(record.get("solutionid")),
                "uniquename": record.get("uniquename"),
                "friendlyname": record.get("friendlyname"),
                "publisherid": clean_id(record.get("_publisherid_value")),
                "modifiedon": record.get("modifiedon"),
            }
            for record in records
            if record.get("solutionid")
        }

    def _get_publishers(self, notifications: NotificationCollector) -> dict[str, dict[str, Any]]:
        try:
            records = self.client.get_all(
                "publishers?$select=publisherid,uniquename,friendlyname",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            self._record(notifications, "publishers", "fetch publishers", exc)
            return {}
        return {
            clean_id(record.get("publisherid")): record
            for record in records
            if record.get("publisherid")
        }

    def _get_ribbon_diffs(
        self, entity: Optional[str], context: str, notifications: NotificationCollector
    ) -> list[dict[str, Any]]:
        query = f"contains(tabid,'{context}') and {_entity_filter(entity)}"
        try:
            return self.client.get_all(
                f"ribbondiffs?$filter={_quote_filter(query)}&$select={RIBBON_DIFF_SELECT}",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            self._record(notifications, "ribbon_diffs", "fetch ribbon diffs", exc)
            return []

    def _get_hidden_actions(
        self, entity: Optional[str], context: str, notifications: NotificationCollector
    ) -> list[dict[str, Any]]:
        query = (
            f"contains(rdx,'<HideCustomAction') and contains(tabid,'{context}') "
            f"and difftype eq 0 and {_entity_filter(entity)}"
        )
        try:
            return self.client.get_all(
                f"ribbondiffs?$filter={_quote_filter(query)}&$select={HIDDEN_ACTION_SELECT}",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            self._record(notifications, "hidden_actions", "fetch hidden actions", exc)
            return []

    def _get_modern_commands(
        self, entity: Optional[str], context: str, notifications: NotificationCollector
    ) -> list[dict[str, Any]]:
        location = APP_ACTION_LOCATIONS[CommandContext(context)]
        query = f"location eq {location} and statecode eq 0"
        if entity:
            query += f" and (contextvalue eq '{entity}' or context eq {APP_ACTION_CONTEXT_ALL})"
        else:
            query += f" and context eq {APP_ACTION_CONTEXT_ALL}"
        try:
            return self.client.get_all(
                f"appactions?$filter={_quote_filter(query)}&$select={APP_ACTION_SELECT}",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            # Older environments have no appaction table.
            self._record(notifications, "modern", "fetch modern commands", exc)
            return []

    def _get_entity_metadata(
        self, entity: Optional[str], notifications: NotificationCollector
    ) -> dict[str, Any]:
        if not entity:
            return {}
        try:
            payload = self.client.get(
                f"EntityDefinitions(LogicalName='{entity}')"
                f"?$select={','.join(ENTITY_PROPERTIES_FOR_COMMANDS)}",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            self._record(notifications, "entity_metadata", "get entity metadata", exc)
            return {}
        return {
            name: bool(payload.get(name, ENTITY_PROPERTY_DEFAULTS.get(name, False)))
            for name in ENTITY_PROPERTIES_FOR_COMMANDS
        }

    def _get_rule_definitions(
        self, entity: Optional[str], notifications: NotificationCollector
    ) -> RuleDefinitionIndex:
        if not entity or not self.settings.resolve_rule_definitions:
            return RuleDefinitionIndex()
        try:
            xml = self.retrieve_entity_ribbon(entity)
        except DataverseError as exc:
            self._record(notifications, "ribbon", "retrieve entity ribbon", exc)
            return RuleDefinitionIndex()
        except RibbonParseError as exc:
            notifications.warning(f"Failed to decode entity ribbon: {exc}", "ribbon")
            return RuleDefinitionIndex()
        if not xml:
            return RuleDefinitionIndex()
        try:
            return RibbonCatalogExtractor(entity).rule_definitions(xml)
        except RibbonParseError as exc:
            notifications.warning(f"Failed to parse entity ribbon: {exc}", "ribbon")
            return RuleDefinitionIndex()

    def _get_principal_data(
        self,
        resolver: PrivilegeResolver,
        principal_id: Optional[str],
        entity: Optional[str],
        misc_names: list[str],
    ) -> PrincipalData:
        data = PrincipalData(principal_id)
        if not principal_id:
            data.misc_privileges = resolver.check_misc_privileges(None, misc_names)
            return data
        try:
            data.security = resolver.get_security_context(principal_id)
        except DataverseError as exc:
            self._record(
                resolver.notifications,
                "security_context",
                f"get roles and teams of {principal_id}",
                exc,
            )
            data.misc_privileges = resolver.check_misc_privileges(principal_id, misc_names)
            return data
        data.privileges = resolver.resolve(principal_id, entity, roles=data.security.roles)
        data.misc_privileges = resolver.check_misc_privileges(principal_id, misc_names)
        return data


def _normalize_entity(entity: Optional[str]) -> Optional[str]:
    text = (entity or "").strip().lower()
    return text or None


def _entity_filter(entity: Optional[str]) -> str:
    if entity:
        return f"(entity eq '{entity}' or entity eq null)"
    return "entity eq null"


def _quote_filter(query: str) -> str:
    return quote(query, safe=_FILTER_SAFE)


def build_analysis_service(
    settings: Optional[InspectorSettings] = None,
    cache: Optional[RibbonXmlCache] = None,
    custom_rules: Optional[CustomRuleRegistry] = None,
    impersonate: Optional[str] = None,
) -> CommandBarAnalysisService:
    """
    Service backed by a ``DataverseClient`` built from settings.

    Raises:
        DataverseConfigurationError: when no environment URL is configured
    """
    from ..dataverse.client import DataverseClient

    settings = settings or get_inspector_settings()
    return CommandBarAnalysisService(
        DataverseClient(settings.dataverse),
        settings=settings,
        cache=cache,
        custom_rules=custom_rules,
        impersonate=impersonate,
    )
