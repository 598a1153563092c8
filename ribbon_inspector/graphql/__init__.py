"""
GraphQL surface for the visibility comparison engine.

Mix ``RibbonInspectorQuery`` into a project's root query.
"""

from .queries import (
    RibbonInspectorQuery,
    RibbonVisibilityComparisonType,
    SecurityContextComparisonType,
)

__all__ = [
    "RibbonInspectorQuery",
    "RibbonVisibilityComparisonType",
    "SecurityContextComparisonType",
]
