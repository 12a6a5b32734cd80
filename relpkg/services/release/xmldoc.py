"""Small DOM helpers shared by the nuspec and content-types stages.

minidom is used (rather than ElementTree) because it keeps CDATA sections,
prefixes and sibling order intact across a load/save cycle.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from xml.dom import minidom
from xml.dom.minidom import Document, Element, Node
from xml.parsers.expat import ExpatError

from relpkg.platform.files import atomic_write_bytes

__all__ = [
    "ExpatError",
    "element_children",
    "first_element_child",
    "local_name",
    "name_key",
    "parse_xml",
    "load_xml",
    "save_xml",
    "strip_whitespace_text",
    "text_content",
]


def parse_xml(data: bytes) -> Document:
    """Parse XML bytes. Raises ExpatError on malformed input."""
    return minidom.parseString(data)


def load_xml(path: Path) -> Document:
    return parse_xml(path.read_bytes())


def save_xml(doc: Document, path: Path) -> None:
    """Serialize as UTF-8 with an XML declaration and replace atomically."""
    atomic_write_bytes(path, doc.toxml(encoding="utf-8"))


def local_name(el: Element) -> str:
    return el.localName or el.tagName.rpartition(":")[2]


def name_key(name: str) -> str:
    """Case- and separator-insensitive element name ("releaseNotes" == "release-notes")."""
    return name.replace("-", "").replace("_", "").lower()


def element_children(node: Node) -> Iterator[Element]:
    for child in list(node.childNodes):
        if child.nodeType == Node.ELEMENT_NODE:
            yield child  # type: ignore[misc]


def first_element_child(node: Node) -> Element | None:
    return next(element_children(node), None)


def text_content(node: Node) -> str:
    parts: list[str] = []
    for child in node.childNodes:
        if child.nodeType in (Node.TEXT_NODE, Node.CDATA_SECTION_NODE):
            parts.append(child.data)  # type: ignore[attr-defined]
        elif child.nodeType == Node.ELEMENT_NODE:
            parts.append(text_content(child))
    return "".join(parts)


def strip_whitespace_text(node: Node) -> None:
    """Drop whitespace-only text nodes under node (recursively)."""
    for child in list(node.childNodes):
        if child.nodeType == Node.TEXT_NODE and not child.data.strip():  # type: ignore[attr-defined]
            node.removeChild(child)
        elif child.nodeType == Node.ELEMENT_NODE:
            strip_whitespace_text(child)
