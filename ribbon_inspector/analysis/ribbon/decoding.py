"""
Ribbon XML decoding and parsing helpers built on lxml.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import re
import zlib
from typing import Optional

from lxml import etree

from ...dataverse.exceptions import RibbonParseError

FRAGMENT_ROOT = "RibbonFragment"

_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False, no_network=True, remove_comments=True, huge_tree=True
    )


def decode_compressed_ribbon(payload: Optional[str]) -> str:
    """Decode the base64 gzip ``CompressedEntityXml`` of RetrieveEntityRibbon."""
    if not payload:
        raise RibbonParseError("Ribbon response has no CompressedEntityXml")
    try:
        raw = base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise RibbonParseError(f"Ribbon payload is not valid base64: {exc}") from exc
    try:
        data = gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as exc:
        raise RibbonParseError(f"Ribbon payload is not gzip data: {exc}") from exc
    return data.decode("utf-8-sig")


def parse_ribbon_document(xml: str) -> etree._Element:
    """Parse a complete ribbon document."""
    if not xml or not xml.strip():
        raise RibbonParseError("Ribbon XML is empty")
    try:
        return etree.fromstring(xml.encode("utf-8"), parser=_parser())
    except etree.XMLSyntaxError as exc:
        raise RibbonParseError(f"Malformed ribbon XML: {exc}") from exc


def parse_ribbon_fragment(rdx: str) -> etree._Element:
    """
    Parse a ribbon-diff fragment.

    Fragments may hold several sibling elements, so they are wrapped in a
    synthetic root before parsing.
    """
    body = _XML_DECLARATION_RE.sub("", rdx or "", count=1)
    if not body.strip():
        raise RibbonParseError("Ribbon diff XML is empty")
    try:
        return etree.fromstring(
            f"<{FRAGMENT_ROOT}>{body}</{FRAGMENT_ROOT}>".encode("utf-8"), parser=_parser()
        )
    except etree.XMLSyntaxError as exc:
        raise RibbonParseError(f"Malformed ribbon diff XML: {exc}") from exc
