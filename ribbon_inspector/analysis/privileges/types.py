"""
Type definitions for principal privileges and security context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ..depth import PrivilegeDepth, higher

PRIVILEGE_VERBS: tuple[str, ...] = (
    "Read",
    "Create",
    "Write",
    "Delete",
    "Append",
    "AppendTo",
    "Assign",
    "Share",
)

TEAM_TYPE_NAMES: dict[int, str] = {
    0: "Owner",
    1: "Access",
    2: "AAD Security Group",
    3: "AAD Office Group",
}


def team_type_name(team_type: Any) -> str:
    try:
        return TEAM_TYPE_NAMES.get(int(team_type), "Unknown")
    except (TypeError, ValueError):
        return "Unknown"


@dataclass
class VerbPrivilege:
    has_privilege: bool = False
    depth: Optional[PrivilegeDepth] = None
    granting_roles: list[str] = field(default_factory=list)

    def grant(self, depth: PrivilegeDepth, role_name: str) -> None:
        """Record a grant; depth only ever rises."""
        self.has_privilege = True
        self.depth = higher(self.depth, depth)
        if role_name and role_name not in self.granting_roles:
            self.granting_roles.append(role_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_privilege": self.has_privilege,
            "depth": self.depth.label if self.depth is not None else None,
            "granting_roles": list(self.granting_roles),
        }


class PrincipalPrivilegeMap:
    """
    Privileges of one principal on one entity, keyed by lower-case verb.

    Every verb in ``PRIVILEGE_VERBS`` is always present.
    """

    def __init__(self, entries: Optional[dict[str, VerbPrivilege]] = None):
        self._entries: dict[str, VerbPrivilege] = {
            verb.lower(): VerbPrivilege() for verb in PRIVILEGE_VERBS
        }
        for verb, entry in (entries or {}).items():
            self._entries[verb.lower()] = entry

    @classmethod
    def empty(cls) -> "PrincipalPrivilegeMap":
        return cls()

    def __getitem__(self, verb: str) -> VerbPrivilege:
        return self._entries[verb.lower()]

    def get(self, verb: Optional[str]) -> Optional[VerbPrivilege]:
        if not verb:
            return None
        return self._entries.get(verb.lower())

    def __contains__(self, verb: object) -> bool:
        return isinstance(verb, str) and verb.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self):
        return self._entries.items()

    def has(self, verb: str) -> bool:
        entry = self.get(verb)
        return bool(entry and entry.has_privilege)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {verb: entry.to_dict() for verb, entry in self._entries.items()}


@dataclass(frozen=True)
class TeamRef:
    team_id: str
    team_name: str


@dataclass
class Role:
    """
    An effective security role.

    ``id`` is the root role id, so copies of a role in different business
    units compare equal.
    """

    id: str
    name: str
    is_inherited: bool = False
    teams: list[TeamRef] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "is_inherited": self.is_inherited,
        }
        if self.teams:
            data["teams"] = [
                {"team_id": team.team_id, "team_name": team.team_name}
                for team in self.teams
            ]
        return data


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    team_type: Optional[int] = None

    @property
    def team_type_name(self) -> str:
        return team_type_name(self.team_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team_type": self.team_type,
            "team_type_name": self.team_type_name,
        }


@dataclass
class SecurityContext:
    roles: list[Role] = field(default_factory=list)
    teams: list[Team] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "roles": [role.to_dict() for role in self.roles],
            "teams": [team.to_dict() for team in self.teams],
        }


__all__ = [
    "PRIVILEGE_VERBS",
    "TEAM_TYPE_NAMES",
    "team_type_name",
    "VerbPrivilege",
    "PrincipalPrivilegeMap",
    "TeamRef",
    "Role",
    "Team",
    "SecurityContext",
]
