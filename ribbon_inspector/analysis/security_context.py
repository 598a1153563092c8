"""
Security context comparison between two principals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Sequence, TypeVar

from .privileges.types import Role, SecurityContext, Team

logger = logging.getLogger(__name__)

T = TypeVar("T", Role, Team)


@dataclass
class Partition(Generic[T]):
    shared: list[T] = field(default_factory=list)
    only_a: list[T] = field(default_factory=list)
    only_b: list[T] = field(default_factory=list)

    @property
    def matches(self) -> bool:
        return not self.only_a and not self.only_b

    def to_dict(self) -> dict[str, Any]:
        return {
            "shared": [item.to_dict() for item in self.shared],
            "only_a": [item.to_dict() for item in self.only_a],
            "only_b": [item.to_dict() for item in self.only_b],
        }


@dataclass
class SecurityComparison:
    """Roles and teams of principal A against principal B."""

    roles: Partition[Role] = field(default_factory=Partition)
    teams: Partition[Team] = field(default_factory=Partition)

    @property
    def roles_match(self) -> bool:
        return self.roles.matches

    @property
    def teams_match(self) -> bool:
        return self.teams.matches

    @property
    def security_context_match(self) -> bool:
        return self.roles_match and self.teams_match

    def hints_for_a(self) -> list[str]:
        return _hints(self.roles.only_a, self.teams.only_a)

    def hints_for_b(self) -> list[str]:
        return _hints(self.roles.only_b, self.teams.only_b)

    def to_dict(self) -> dict[str, Any]:
        return {
            "roles_match": self.roles_match,
            "teams_match": self.teams_match,
            "security_context_match": self.security_context_match,
            "roles": self.roles.to_dict(),
            "teams": self.teams.to_dict(),
        }


@dataclass
class SecurityContextReport:
    current_user_id: str
    target_user_id: str
    current: SecurityContext
    target: SecurityContext
    comparison: SecurityComparison

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_user": {"user_id": self.current_user_id, **self.current.to_dict()},
            "target_user": {"user_id": self.target_user_id, **self.target.to_dict()},
            "differences": self.comparison.to_dict(),
        }


class SecurityContextComparator:
    """Partition two principals' roles and teams by id."""

    def compare(
        self,
        roles_a: Sequence[Role],
        roles_b: Sequence[Role],
        teams_a: Sequence[Team],
        teams_b: Sequence[Team],
    ) -> SecurityComparison:
        comparison = SecurityComparison(
            roles=_partition(roles_a, roles_b),
            teams=_partition(teams_a, teams_b),
        )
        logger.debug(
            "Security context compared: %s shared role(s), %s shared team(s), match=%s",
            len(comparison.roles.shared),
            len(comparison.teams.shared),
            comparison.security_context_match,
        )
        return comparison

    def compare_contexts(self, current: SecurityContext, target: SecurityContext) -> SecurityComparison:
        return self.compare(current.roles, target.roles, current.teams, target.teams)


def _partition(items_a: Iterable[T], items_b: Iterable[T]) -> Partition[T]:
    items_a, items_b = list(items_a), list(items_b)
    ids_a = {item.id for item in items_a}
    ids_b = {item.id for item in items_b}
    return Partition(
        shared=[item for item in items_a if item.id in ids_b],
        only_a=[item for item in items_a if item.id not in ids_b],
        only_b=[item for item in items_b if item.id not in ids_a],
    )


def _hints(roles: Sequence[Role], teams: Sequence[Team]) -> list[str]:
    hints = []
    if roles:
        hints.append(f"Has roles: {', '.join(role.name for role in roles)}")
    if teams:
        hints.append(f"Member of teams: {', '.join(team.name for team in teams)}")
    return hints
