"""
Effective privilege resolution for a principal on one entity.

Privileges come from the principal's direct security roles and from the
roles of every team the principal belongs to. A verb's recorded depth is the
best depth granted by any of those roles.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Protocol
from urllib.parse import quote

from ...dataverse.exceptions import DataverseError
from ...notifications import NotificationCollector
from ..depth import decode
from .types import (
    PRIVILEGE_VERBS,
    PrincipalPrivilegeMap,
    Role,
    SecurityContext,
    Team,
    TeamRef,
)

logger = logging.getLogger(__name__)

ACTIVITY_FAMILY = "activity"
ACTIVITY_POINTER = "activitypointer"

_GUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)


class DataverseReader(Protocol):
    """The subset of ``DataverseClient`` the analysis layer reads through."""

    def get(self, path: str, impersonate: Optional[str] = None) -> dict[str, Any]: ...

    def get_all(self, path: str, impersonate: Optional[str] = None) -> list[dict[str, Any]]: ...

    def who_am_i(self) -> str: ...


def clean_id(value: Any) -> str:
    """Strip braces and whitespace from a GUID-like id."""
    text = str(value or "").strip().strip("{}")
    match = _GUID_RE.search(text)
    return match.group(0).lower() if match else text


def privilege_family(entity: str, is_activity: bool = False) -> str:
    """Activity entities share the ``activity`` privilege set."""
    name = (entity or "").lower()
    if is_activity or name == ACTIVITY_POINTER:
        return ACTIVITY_FAMILY
    return name


def match_privilege_verb(privilege_name: str, family: str) -> Optional[str]:
    """Return the lower-case verb when ``privilege_name`` is ``prv{Verb}{family}``."""
    name = (privilege_name or "").lower()
    for verb in PRIVILEGE_VERBS:
        if name == f"prv{verb.lower()}{family}":
            return verb.lower()
    return None


class PrivilegeResolver:
    """
    Resolve roles, teams and entity privileges for principals.

    ``impersonate`` is sent with every read; failures are recorded on
    ``notifications`` and never raised from ``resolve``.
    """

    def __init__(
        self,
        client: DataverseReader,
        notifications: Optional[NotificationCollector] = None,
        impersonate: Optional[str] = None,
    ):
        self.client = client
        self.notifications = notifications or NotificationCollector()
        self.impersonate = impersonate

    def resolve(
        self,
        principal_id: Optional[str],
        entity: Optional[str],
        is_activity: Optional[bool] = None,
        roles: Optional[list[Role]] = None,
    ) -> PrincipalPrivilegeMap:
        privileges = PrincipalPrivilegeMap.empty()
        if not principal_id or not entity:
            logger.debug("No principal or entity given; returning an empty privilege map")
            return privileges

        try:
            if is_activity is None:
                is_activity = self._is_activity_entity(entity)
            family = privilege_family(entity, is_activity)
            verb_by_privilege = self._privilege_catalog(family)
            if not verb_by_privilege:
                logger.debug("No privileges found for family %s", family)
                return privileges

            if roles is None:
                roles = self.get_roles(principal_id)
            for role in roles:
                for record in self._role_privileges(role.id):
                    verb = verb_by_privilege.get(clean_id(record.get("privilegeid")))
                    if verb is None:
                        continue
                    privileges[verb].grant(decode(record.get("privilegedepthmask")), role.name)
        except DataverseError as exc:
            self.notifications.record_failure(
                "privileges",
                f"get privileges for {principal_id} on {entity}",
                exc,
                impersonating=bool(self.impersonate),
            )
            return PrincipalPrivilegeMap.empty()
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Malformed privilege data for %s on %s: %s", principal_id, entity, exc
            )
            self.notifications.warning(
                f"Failed to get privileges for {principal_id} on {entity}: "
                f"malformed response ({exc})",
                "privileges",
            )
            return PrincipalPrivilegeMap.empty()

        return privileges

    def get_security_context(self, principal_id: str) -> SecurityContext:
        """
        Roles and teams of a principal.

        Raises:
            DataverseError: when the direct roles or team memberships cannot be read
        """
        teams = self.get_teams(principal_id)
        return SecurityContext(roles=self.get_roles(principal_id, teams=teams), teams=teams)

    def get_roles(self, principal_id: str, teams: Optional[list[Team]] = None) -> list[Role]:
        """
        Effective roles: direct assignments plus roles inherited through teams.

        Roles are keyed by root role id; a role granted by several teams is
        listed once with every granting team. Sorted by name.
        """
        principal_id = clean_id(principal_id)
        direct = self.client.get_all(
            f"systemusers({principal_id})/systemuserroles_association"
            "?$select=roleid,name,_parentrootroleid_value",
            impersonate=self.impersonate,
        )
        roles: dict[str, Role] = {}
        for record in direct:
            role_id = clean_id(record.get("_parentrootroleid_value") or record.get("roleid"))
            if not role_id:
                continue
            roles.setdefault(role_id, Role(id=role_id, name=record.get("name") or role_id))

        if teams is None:
            teams = self.get_teams(principal_id)
        for team in teams:
            for record in self._team_roles(team):
                role_id = clean_id(record.get("_parentrootroleid_value") or record.get("roleid"))
                if not role_id:
                    continue
                role = roles.get(role_id)
                if role is None:
                    role = Role(id=role_id, name=record.get("name") or role_id, is_inherited=True)
                    roles[role_id] = role
                if role.is_inherited and all(ref.team_id != team.id for ref in role.teams):
                    role.teams.append(TeamRef(team_id=team.id, team_name=team.name))

        return sorted(roles.values(), key=lambda role: (role.name or "").lower())

    def get_teams(self, principal_id: str) -> list[Team]:
        principal_id = clean_id(principal_id)
        records = self.client.get_all(
            f"systemusers({principal_id})/teammembership_association"
            "?$select=teamid,name,teamtype",
            impersonate=self.impersonate,
        )
        teams = [
            Team(
                id=clean_id(record.get("teamid")),
                name=record.get("name") or "",
                team_type=record.get("teamtype"),
            )
            for record in records
            if record.get("teamid")
        ]
        return sorted(teams, key=lambda team: team.name.lower())

    def check_misc_privileges(
        self, principal_id: Optional[str], privilege_names: list[str]
    ) -> dict[str, bool]:
        """
        Check miscellaneous (non-entity) privileges by name.

        A privilege that cannot be verified is reported as granted.
        """
        if not privilege_names:
            return {}
        if not principal_id:
            return {name: True for name in privilege_names}

        principal_id = clean_id(principal_id)
        result: dict[str, bool] = {}
        for name in privilege_names:
            path = (
                f"systemusers({principal_id})/Microsoft.Dynamics.CRM."
                f"RetrieveUserPrivilegeByPrivilegeName(PrivilegeName='{quote(name)}')"
            )
            try:
                payload = self.client.get(path, impersonate=self.impersonate)
            except DataverseError as exc:
                logger.debug("Could not verify %s for %s, assuming granted: %s", name, principal_id, exc)
                result[name] = True
                continue
            result[name] = bool(payload.get("RolePrivileges"))
        return result

    def _is_activity_entity(self, entity: str) -> bool:
        payload = self.client.get(
            f"EntityDefinitions(LogicalName='{entity}')?$select=LogicalName,IsActivity",
            impersonate=self.impersonate,
        )
        return payload.get("IsActivity") is True

    def _privilege_catalog(self, family: str) -> dict[str, str]:
        records = self.client.get_all(
            f"privileges?$select=privilegeid,name&$filter=endswith(name,'{family}')",
            impersonate=self.impersonate,
        )
        catalog: dict[str, str] = {}
        for record in records:
            verb = match_privilege_verb(record.get("name") or "", family)
            if verb is not None:
                catalog[clean_id(record.get("privilegeid"))] = verb
        return catalog

    def _role_privileges(self, role_id: str) -> list[dict[str, Any]]:
        return self.client.get_all(
            "roleprivilegescollection?$select=privilegeid,privilegedepthmask"
            f"&$filter=roleid eq '{role_id}'",
            impersonate=self.impersonate,
        )

    def _team_roles(self, team: Team) -> list[dict[str, Any]]:
        try:
            return self.client.get_all(
                f"teams({team.id})/teamroles_association"
                "?$select=roleid,name,_parentrootroleid_value",
                impersonate=self.impersonate,
            )
        except DataverseError as exc:
            logger.warning("Could not read roles of team %s: %s", team.name, exc)
            return []

