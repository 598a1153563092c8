"""
Ribbon catalog extraction.

Turns full ribbon documents (RetrieveEntityRibbon) and ribbon-diff records
into ``Command`` objects whose DisplayRule/EnableRule references have been
classified.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional, Union

from lxml import etree

from ...dataverse.exceptions import RibbonParseError
from ..rules import catalog
from ..rules.classifier import RULE_ELEMENT_KINDS, RuleClassifier, local_name
from ..rules.types import Rule, RuleKind
from .context import command_matches_context
from .decoding import parse_ribbon_document, parse_ribbon_fragment
from .types import Command, CommandSource

logger = logging.getLogger(__name__)

RULE_TYPES = ("DisplayRule", "EnableRule")

_HIDE_ACTION_RE = re.compile(r'HideActionId="([^"]+)"')
_CAMEL_CASE_RE = re.compile(r"([a-z])([A-Z])")
_LABEL_PREFIXES = (
    re.compile(r"^Mscrm\.", re.IGNORECASE),
    re.compile(r"^Grid\.", re.IGNORECASE),
    re.compile(r"^Form\.", re.IGNORECASE),
    re.compile(r"^SubGrid\.", re.IGNORECASE),
)

XmlSource = Union[str, etree._Element, None]


def label_from_id(identifier: Optional[str]) -> str:
    """Derive a readable label from a command or button id."""
    if not identifier:
        return "Unknown"
    name = identifier
    for prefix in _LABEL_PREFIXES:
        name = prefix.sub("", name, count=1)
    name = name.split(".")[-1]
    return _CAMEL_CASE_RE.sub(r"\1 \2", name)


def _iter_tag(root: etree._Element, tag: str) -> Iterator[etree._Element]:
    for element in root.iter():
        if local_name(element) == tag:
            yield element


def _has_rule_children(element: etree._Element) -> bool:
    return any(local_name(child) in RULE_ELEMENT_KINDS for child in element)


def _unique(values: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value and value not in seen:
            seen[value] = None
    return list(seen)


class RuleDefinitionIndex:
    """Rule definition elements keyed by rule type and id."""

    def __init__(self):
        self._definitions: dict[tuple[str, str], etree._Element] = {}

    def add(self, rule_type: str, rule_id: str, element: etree._Element) -> None:
        self._definitions.setdefault((rule_type, rule_id), element)

    def get(self, rule_type: str, rule_id: str) -> Optional[etree._Element]:
        return self._definitions.get((rule_type, rule_id))

    def merge(self, other: Optional["RuleDefinitionIndex"]) -> "RuleDefinitionIndex":
        """Return a new index; entries already here take precedence."""
        merged = RuleDefinitionIndex()
        merged._definitions = dict(self._definitions)
        if other is not None:
            for key, element in other._definitions.items():
                merged._definitions.setdefault(key, element)
        return merged

    def __len__(self) -> int:
        return len(self._definitions)

    @classmethod
    def from_root(cls, root: etree._Element) -> "RuleDefinitionIndex":
        index = cls()
        for rule_type in RULE_TYPES:
            for element in _iter_tag(root, f"{rule_type}Definition"):
                if element.get("Id"):
                    index.add(rule_type, element.get("Id"), element)
            # RetrieveEntityRibbon writes definitions as <DisplayRule Id=..>
            # elements with rule children under RuleDefinitions.
            for element in _iter_tag(root, rule_type):
                if element.get("Id") and _has_rule_children(element):
                    index.add(rule_type, element.get("Id"), element)
        return index


@dataclass
class RibbonDiffReferences:
    display_rule_ids: list[str] = field(default_factory=list)
    enable_rule_ids: list[str] = field(default_factory=list)
    definitions: RuleDefinitionIndex = field(default_factory=RuleDefinitionIndex)


class RibbonCatalogExtractor:
    """
    Extract commands from ribbon XML.

    ``entity`` is the entity under analysis; it is stamped on commands from
    the full ribbon and passed to the rule classifier.
    """

    def __init__(self, entity: Optional[str] = None, classifier: Optional[RuleClassifier] = None):
        self.entity = entity
        self.classifier = classifier or RuleClassifier(entity)

    def rule_definitions(self, xml: XmlSource) -> RuleDefinitionIndex:
        if xml is None:
            return RuleDefinitionIndex()
        root = parse_ribbon_document(xml) if isinstance(xml, str) else xml
        return RuleDefinitionIndex.from_root(root)

    def extract_commands(self, xml: XmlSource, context: str) -> list[Command]:
        """
        Commands of a full ribbon document matching ``context``.

        Buttons come first; command definitions without a button follow.
        A command id appears once, from its first occurrence.

        Raises:
            RibbonParseError: when the document cannot be parsed
        """
        if xml is None or (isinstance(xml, str) and not xml.strip()):
            return []
        root = parse_ribbon_document(xml) if isinstance(xml, str) else xml
        definitions = RuleDefinitionIndex.from_root(root)
        command_definitions: dict[str, etree._Element] = {}
        for element in _iter_tag(root, "CommandDefinition"):
            command_id = element.get("Id")
            if command_id and command_id not in command_definitions:
                command_definitions[command_id] = element

        commands: list[Command] = []
        seen: set[str] = set()

        for button in _iter_tag(root, "Button"):
            command_id = button.get("Command")
            if not command_id or command_id in seen:
                continue
            button_id = button.get("Id") or command_id
            if not command_matches_context(button_id, context):
                continue
            seen.add(command_id)
            name = button.get("LabelText") or button.get("Alt") or label_from_id(button_id)
            commands.append(
                self._build_command(
                    command_id,
                    button_id,
                    name,
                    context,
                    command_definitions.get(command_id),
                    definitions,
                )
            )

        for command_id, element in command_definitions.items():
            if command_id in seen or not command_matches_context(command_id, context):
                continue
            seen.add(command_id)
            commands.append(
                self._build_command(
                    command_id, command_id, label_from_id(command_id), context, element, definitions
                )
            )

        logger.debug("Extracted %s %s command(s) from ribbon XML", len(commands), context)
        return commands

    def parse_ribbon_diff(self, rdx: Optional[str]) -> RibbonDiffReferences:
        """
        Collect the rule ids referenced by a ribbon-diff fragment.

        Ids are de-duplicated per rule type, first occurrence first.

        Raises:
            RibbonParseError: when the fragment cannot be parsed
        """
        if not rdx:
            return RibbonDiffReferences()
        root = parse_ribbon_fragment(rdx)
        return RibbonDiffReferences(
            display_rule_ids=_unique(el.get("Id") for el in _iter_tag(root, "DisplayRule")),
            enable_rule_ids=_unique(el.get("Id") for el in _iter_tag(root, "EnableRule")),
            definitions=RuleDefinitionIndex.from_root(root),
        )

    def extract_diff_command(
        self,
        record: dict[str, Any],
        context: str,
        definitions: Optional[RuleDefinitionIndex] = None,
    ) -> Command:
        """
        Build a command from a ``ribbondiffs`` record.

        A fragment that cannot be parsed yields a command with a single
        non-evaluable ``UNKNOWN`` rule instead of an exception.
        """
        command_id = record.get("diffid") or record.get("ribbondiffid") or ""
        rdx = record.get("rdx") or ""
        command = Command(
            id=command_id,
            button_id=command_id,
            name=command_name_from_diff(rdx, command_id),
            context=context,
            source=CommandSource.RIBBON_DIFF,
            entity=record.get("entity"),
            is_managed=bool(record.get("ismanaged")),
            is_ootb=command_id.startswith(catalog.BUILTIN_NAMESPACE),
            solution_id=record.get("solutionid"),
        )
        try:
            references = self.parse_ribbon_diff(rdx)
        except RibbonParseError as exc:
            logger.warning("Could not parse ribbon diff %s: %s", command_id, exc)
            command.parse_error = str(exc)
            command.display_rules = [
                Rule(id=command_id, kind=RuleKind.UNKNOWN, reason=catalog.REASON_PARSE_ERROR)
            ]
            return command

        index = references.definitions.merge(definitions)
        command.display_rules = self._classify_refs("DisplayRule", references.display_rule_ids, index)
        command.enable_rules = self._classify_refs("EnableRule", references.enable_rule_ids, index)
        return command

    def hidden_action_ids(self, records: Iterable[dict[str, Any]]) -> set[str]:
        """Command ids hidden through ``HideCustomAction`` in ribbon diffs."""
        hidden: set[str] = set()
        for record in records:
            rdx = record.get("rdx") or ""
            if not rdx:
                continue
            try:
                root = parse_ribbon_fragment(rdx)
            except RibbonParseError as exc:
                logger.warning("Could not parse hidden action %s: %s", record.get("diffid"), exc)
                hidden.update(_HIDE_ACTION_RE.findall(rdx))
                continue
            for element in _iter_tag(root, "HideCustomAction"):
                if element.get("HideActionId"):
                    hidden.add(element.get("HideActionId"))
        return hidden

    def _build_command(
        self,
        command_id: str,
        button_id: str,
        name: str,
        context: str,
        definition: Optional[etree._Element],
        definitions: RuleDefinitionIndex,
    ) -> Command:
        display_ids: list[str] = []
        enable_ids: list[str] = []
        if definition is not None:
            display_ids = self._rule_refs(definition, "DisplayRule")
            enable_ids = self._rule_refs(definition, "EnableRule")
        return Command(
            id=command_id,
            button_id=button_id,
            name=name,
            context=context,
            source=CommandSource.RIBBON,
            entity=self.entity,
            is_managed=True,
            display_rules=self._classify_refs("DisplayRule", display_ids, definitions),
            enable_rules=self._classify_refs("EnableRule", enable_ids, definitions),
            is_ootb=command_id.startswith(catalog.BUILTIN_NAMESPACE)
            or button_id.startswith(catalog.BUILTIN_NAMESPACE),
        )

    def _rule_refs(self, definition: etree._Element, rule_type: str) -> list[str]:
        ids: list[str] = []
        for container in definition:
            if local_name(container) != f"{rule_type}s":
                continue
            ids.extend(
                child.get("Id") for child in container if local_name(child) == rule_type
            )
        return _unique(ids)

    def _classify_refs(
        self, rule_type: str, rule_ids: Iterable[str], definitions: RuleDefinitionIndex
    ) -> list[Rule]:
        return [
            self.classifier.classify(rule_id, definitions.get(rule_type, rule_id))
            for rule_id in rule_ids
        ]


def command_name_from_diff(rdx: Optional[str], diff_id: str) -> str:
    """
    Display name of a ribbon-diff command: ``LabelText``, else a
    ``description`` attribute, else the last dotted segment of the id.
    """
    if rdx:
        for pattern in (r'LabelText="([^"]+)"', r'description="([^"]+)"'):
            match = re.search(pattern, rdx)
            if match:
                return match.group(1)
    match = re.search(r"\.([^.]+)$", diff_id or "")
    if match:
        return re.sub(r"([A-Z])", r" \1", match.group(1)).strip()
    return diff_id
