"""
Type definitions for ribbon commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..rules.types import Rule


class CommandSource(Enum):
    """Where a command definition came from, in merge precedence order."""

    STANDARD = "Standard"
    RIBBON_DIFF = "RibbonDiff"
    MODERN = "Modern"
    # Full entity ribbon; listed on its own, never merged into a comparison.
    RIBBON = "Ribbon"


@dataclass
class Command:
    id: str
    name: str
    context: str
    source: CommandSource
    button_id: Optional[str] = None
    entity: Optional[str] = None
    is_managed: bool = False
    display_rules: list[Rule] = field(default_factory=list)
    enable_rules: list[Rule] = field(default_factory=list)
    is_ootb: bool = False
    solution_id: Optional[str] = None
    parse_error: Optional[str] = None

    @property
    def rules(self) -> list[Rule]:
        return [*self.display_rules, *self.enable_rules]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "button_id": self.button_id or self.id,
            "name": self.name,
            "context": self.context,
            "entity": self.entity,
            "source": self.source.value,
            "is_managed": self.is_managed,
            "is_ootb": self.is_ootb,
            "display_rules": [rule.to_dict() for rule in self.display_rules],
            "enable_rules": [rule.to_dict() for rule in self.enable_rules],
            "parse_error": self.parse_error,
        }
