"""
Principal privileges, roles and teams.
"""

from .resolver import PrivilegeResolver, clean_id, match_privilege_verb, privilege_family
from .types import (
    PRIVILEGE_VERBS,
    PrincipalPrivilegeMap,
    Role,
    SecurityContext,
    Team,
    TeamRef,
    VerbPrivilege,
)

__all__ = [
    "PrivilegeResolver",
    "clean_id",
    "match_privilege_verb",
    "privilege_family",
    "PRIVILEGE_VERBS",
    "PrincipalPrivilegeMap",
    "Role",
    "SecurityContext",
    "Team",
    "TeamRef",
    "VerbPrivilege",
]
