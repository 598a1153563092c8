"""
Command context heuristic.

The platform resolves a command's context (main form, home page grid or
sub-grid) from metadata this engine does not read. Instead the context is
approximated from substrings of the command or button identifier. The
substring rules are kept as data below so the approximation stays visible.
Identifiers that carry markers for several contexts (``...Form...Selected``)
can match more than one context; that ambiguity is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CommandContext(Enum):
    FORM = "Form"
    HOME_PAGE_GRID = "HomePageGrid"
    SUB_GRID = "SubGrid"


@dataclass(frozen=True)
class ContextMatchRule:
    """
    Identifier substrings that place a command in one context.

    An identifier matches when it contains any of ``markers``, when it
    contains ``required`` but not ``excluded`` for one of the ``conditional``
    pairs, or when it contains none of ``absent_markers``.
    """

    markers: tuple[str, ...]
    conditional: tuple[tuple[str, str], ...] = ()
    absent_markers: tuple[str, ...] = ()

    def matches(self, identifier: str) -> bool:
        text = identifier.lower()
        if any(marker in text for marker in self.markers):
            return True
        if any(required in text and excluded not in text for required, excluded in self.conditional):
            return True
        if self.absent_markers and not any(marker in text for marker in self.absent_markers):
            return True
        return False


CONTEXT_MATCH_RULES: dict[CommandContext, ContextMatchRule] = {
    CommandContext.FORM: ContextMatchRule(
        markers=("form", "primary", "record"),
        absent_markers=("grid", "subgrid", "homepage"),
    ),
    CommandContext.SUB_GRID: ContextMatchRule(
        markers=("subgrid", "associated"),
        conditional=(("selected", "homepage"),),
    ),
    CommandContext.HOME_PAGE_GRID: ContextMatchRule(
        markers=("grid", "homepage", "selected", "new"),
        absent_markers=("form", "subgrid"),
    ),
}

# appaction.location option values.
APP_ACTION_LOCATIONS: dict[CommandContext, int] = {
    CommandContext.FORM: 0,
    CommandContext.HOME_PAGE_GRID: 1,
    CommandContext.SUB_GRID: 2,
}


def normalize_context(value: Any) -> Optional[str]:
    """Return the canonical context name, or ``None`` when unrecognised."""
    if isinstance(value, CommandContext):
        return value.value
    text = str(value or "").replace(" ", "").lower()
    for context in CommandContext:
        if context.value.lower() == text:
            return context.value
    if text == "grid":
        return CommandContext.HOME_PAGE_GRID.value
    return None


def command_matches_context(identifier: str, context: Any) -> bool:
    name = normalize_context(context)
    if name is None:
        return True
    return CONTEXT_MATCH_RULES[CommandContext(name)].matches(identifier or "")
