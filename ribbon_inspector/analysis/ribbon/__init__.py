"""
Ribbon command extraction: context heuristic, standard command catalog and
XML parsing.
"""

from .context import CommandContext, command_matches_context, normalize_context
from .decoding import decode_compressed_ribbon, parse_ribbon_document, parse_ribbon_fragment
from .extractor import RibbonCatalogExtractor, RuleDefinitionIndex, label_from_id
from .standard_commands import STANDARD_COMMANDS, StandardCommand
from .types import Command, CommandSource

__all__ = [
    "CommandContext",
    "command_matches_context",
    "normalize_context",
    "decode_compressed_ribbon",
    "parse_ribbon_document",
    "parse_ribbon_fragment",
    "RibbonCatalogExtractor",
    "RuleDefinitionIndex",
    "label_from_id",
    "STANDARD_COMMANDS",
    "StandardCommand",
    "Command",
    "CommandSource",
]
