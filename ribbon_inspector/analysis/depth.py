"""
Privilege depth model.

Depth is a total order ``NONE < BASIC < LOCAL < DEEP < GLOBAL``. Role
privilege records carry it as a bitmask (1, 2, 4, 8) while already formatted
data carries human readable labels; ``to_ordinal`` and ``compare`` accept
both so callers never have to care which shape they were given.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional, Union


class PrivilegeDepth(IntEnum):
    """Privilege scope, valued by its ordinal."""

    NONE = -1
    BASIC = 0  # owned by the user
    LOCAL = 1  # business unit
    DEEP = 2  # business unit and children
    GLOBAL = 3  # organization

    @property
    def mask(self) -> int:
        return DEPTH_MASKS.get(self, 0)

    @property
    def label(self) -> str:
        return DEPTH_LABELS[self]


DEPTH_MASKS: dict[PrivilegeDepth, int] = {
    PrivilegeDepth.BASIC: 1,
    PrivilegeDepth.LOCAL: 2,
    PrivilegeDepth.DEEP: 4,
    PrivilegeDepth.GLOBAL: 8,
}

DEPTH_LABELS: dict[PrivilegeDepth, str] = {
    PrivilegeDepth.NONE: "Not Allowed",
    PrivilegeDepth.BASIC: "Basic (User)",
    PrivilegeDepth.LOCAL: "Local (BU)",
    PrivilegeDepth.DEEP: "Deep (BU + Child)",
    PrivilegeDepth.GLOBAL: "Global (Org)",
}

# Checked in order; "Deep (BU + Child)" must hit "deep" before "bu".
_NAME_MARKERS: tuple[tuple[tuple[str, ...], PrivilegeDepth], ...] = (
    (("global", "organization"), PrivilegeDepth.GLOBAL),
    (("deep", "parent"), PrivilegeDepth.DEEP),
    (("local", "bu"), PrivilegeDepth.LOCAL),
    (("basic", "user"), PrivilegeDepth.BASIC),
)

# Highest bit first.
_DECODE_ORDER = (
    PrivilegeDepth.GLOBAL,
    PrivilegeDepth.DEEP,
    PrivilegeDepth.LOCAL,
    PrivilegeDepth.BASIC,
)

DepthValue = Union[PrivilegeDepth, int, str, None]


def decode(mask: Any) -> PrivilegeDepth:
    """Return the depth of the highest recognised bit in ``mask``."""
    try:
        value = int(mask)
    except (TypeError, ValueError):
        return PrivilegeDepth.NONE
    for depth in _DECODE_ORDER:
        if value & depth.mask:
            return depth
    return PrivilegeDepth.NONE


def parse_depth_name(name: Optional[str]) -> PrivilegeDepth:
    text = (name or "").strip().lower()
    if not text:
        return PrivilegeDepth.NONE
    for markers, depth in _NAME_MARKERS:
        if any(marker in text for marker in markers):
            return depth
    return PrivilegeDepth.NONE


def to_ordinal(value: DepthValue) -> int:
    """
    Normalise a depth in any accepted shape to its ordinal.

    - ``PrivilegeDepth`` members map to their own value.
    - Integers 1, 2, 4 and 8 are bitmasks; any other integer is an ordinal.
    - Strings are depth labels (``"Global (Org)"``, ``"local"``, ``"BU"``)
      or decimal integers.
    - Anything unrecognised is ``NONE`` (-1).
    """
    if value is None or isinstance(value, bool):
        return int(PrivilegeDepth.NONE)
    if isinstance(value, PrivilegeDepth):
        return int(value)
    if isinstance(value, int):
        if value in (1, 2, 4, 8):
            return int(decode(value))
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return to_ordinal(int(text))
        return int(parse_depth_name(text))
    return int(PrivilegeDepth.NONE)


def to_depth(value: DepthValue) -> PrivilegeDepth:
    ordinal = to_ordinal(value)
    if ordinal >= PrivilegeDepth.GLOBAL:
        return PrivilegeDepth.GLOBAL
    if ordinal <= PrivilegeDepth.NONE:
        return PrivilegeDepth.NONE
    return PrivilegeDepth(ordinal)


def compare(a: DepthValue, b: DepthValue) -> int:
    """Signed comparison of two depths: -1, 0 or 1."""
    left, right = to_ordinal(a), to_ordinal(b)
    return (left > right) - (left < right)


def higher(a: Optional[PrivilegeDepth], b: Optional[PrivilegeDepth]) -> Optional[PrivilegeDepth]:
    """Return the higher of two depths; ``None`` only when both are ``None``."""
    if a is None:
        return b
    if b is None:
        return a
    return a if compare(a, b) >= 0 else b


__all__ = [
    "PrivilegeDepth",
    "DEPTH_MASKS",
    "DEPTH_LABELS",
    "decode",
    "parse_depth_name",
    "to_ordinal",
    "to_depth",
    "compare",
    "higher",
]
