"""[Content_Types].xml reconciliation.

Every file extension present in the working tree (including delta files
dropped in by later tooling) gets a <Default> declaration; duplicate and
redundant declarations are removed. Iteration is always sorted and the
document is re-serialized without insignificant whitespace, so merge+clean
is a fixed point: running it on its own output yields identical bytes.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable, Mapping
from pathlib import Path
from xml.dom import minidom
from xml.dom.minidom import Document, Element

from relpkg.core.result import Err, Ok, Result
from relpkg.output.console import ConsoleProtocol, NullConsole
from relpkg.services.release.errors import ReleaseError
from relpkg.services.release.xmldoc import (
    ExpatError,
    element_children,
    load_xml,
    local_name,
    save_xml,
    strip_whitespace_text,
)

__all__ = [
    "CONTENT_TYPES_FILENAME",
    "CONTENT_TYPES_NAMESPACE",
    "DELTA_CONTENT_TYPES",
    "clean",
    "discover_extensions",
    "merge",
    "mime_type_for",
    "reconcile_content_types",
]

CONTENT_TYPES_FILENAME = "[Content_Types].xml"
CONTENT_TYPES_NAMESPACE = "http://schemas.openxmlformats.org/package/2006/content-types"

OCTET = "application/octet"

# Always declared: delta/patch artefacts are added to the tree after packing
# by the diffing stage, so they may not be present yet.
DELTA_CONTENT_TYPES: Mapping[str, str] = {
    "bsdiff": OCTET,
    "diff": OCTET,
    "dll": OCTET,
    "exe": OCTET,
    "shasum": "text/plain",
}

_KNOWN_CONTENT_TYPES: Mapping[str, str] = {
    **DELTA_CONTENT_TYPES,
    "nuspec": OCTET,
    "psmdcp": "application/vnd.openxmlformats-package.core-properties+xml",
    "rels": "application/vnd.openxmlformats-package.relationships+xml",
}

# Built-in table only; the host's mime.types must not change the output.
_BUILTIN_MIME = mimetypes.MimeTypes()


def mime_type_for(extension: str, overrides: Mapping[str, str] | None = None) -> str:
    ext = extension.lstrip(".").lower()
    if overrides and ext in overrides:
        return overrides[ext]
    if ext in _KNOWN_CONTENT_TYPES:
        return _KNOWN_CONTENT_TYPES[ext]
    guessed, _ = _BUILTIN_MIME.guess_type(f"file.{ext}", strict=False)
    return guessed or OCTET


def discover_extensions(root: Path) -> list[str]:
    """Sorted, lower-cased extensions of every file under root.

    Dot-files count: "_rels/.rels" has the extension "rels".
    """
    found: set[str] = set()
    for p in root.rglob("*"):
        if not p.is_file() or p.name == CONTENT_TYPES_FILENAME:
            continue
        ext = _part_extension(p.name)
        if ext:
            found.add(ext)
    return sorted(found)


def _types_element(doc: Document) -> Element:
    root = doc.documentElement
    if root is None or local_name(root) != "Types":
        raise ValueError("root element is not <Types>")
    return root


def _by_name(types: Element, name: str) -> list[Element]:
    return [el for el in element_children(types) if local_name(el) == name]


def _new_element(doc: Document, types: Element, name: str) -> Element:
    ns = types.namespaceURI
    if ns:
        prefix = types.prefix
        return doc.createElementNS(ns, f"{prefix}:{name}" if prefix else name)
    return doc.createElement(name)


def merge(
    doc: Document,
    extensions: Iterable[str],
    *,
    overrides: Mapping[str, str] | None = None,
) -> list[str]:
    """Add a <Default> for every extension lacking one.

    Returns the extensions that were added, in the order they were appended.
    """
    types = _types_element(doc)
    declared = {
        el.getAttribute("Extension").lower()
        for el in _by_name(types, "Default")
        if el.getAttribute("Extension")
    }

    wanted = {e.lstrip(".").lower() for e in extensions if e.lstrip(".")}
    wanted |= set(DELTA_CONTENT_TYPES)

    added: list[str] = []
    for ext in sorted(wanted - declared):
        el = _new_element(doc, types, "Default")
        el.setAttribute("Extension", ext)
        el.setAttribute("ContentType", mime_type_for(ext, overrides))
        types.appendChild(el)
        added.append(ext)
    return added


def _part_extension(part_name: str) -> str:
    last = part_name.rsplit("/", 1)[-1]
    if "." not in last:
        return ""
    return last.rsplit(".", 1)[-1].lower()


def clean(doc: Document) -> int:
    """Remove duplicate and redundant declarations.

    - repeated <Default> for the same extension (first wins)
    - repeated <Override> for the same part name (first wins)
    - <Override> whose content type equals its extension's <Default>

    Returns the number of elements removed.
    """
    types = _types_element(doc)
    removed = 0

    defaults: dict[str, str] = {}
    for el in _by_name(types, "Default"):
        ext = el.getAttribute("Extension").lower()
        if ext in defaults:
            types.removeChild(el).unlink()
            removed += 1
            continue
        defaults[ext] = el.getAttribute("ContentType")

    seen_parts: set[str] = set()
    for el in _by_name(types, "Override"):
        part = el.getAttribute("PartName")
        key = part.lower()
        ext = _part_extension(part)
        redundant = ext in defaults and defaults[ext] == el.getAttribute("ContentType")
        if key in seen_parts or redundant:
            types.removeChild(el).unlink()
            removed += 1
            continue
        seen_parts.add(key)

    strip_whitespace_text(doc.documentElement)
    return removed


def _empty_manifest() -> Document:
    impl = minidom.getDOMImplementation()
    doc = impl.createDocument(CONTENT_TYPES_NAMESPACE, "Types", None)
    doc.documentElement.setAttribute("xmlns", CONTENT_TYPES_NAMESPACE)
    return doc


def reconcile_content_types(
    root: Path,
    *,
    overrides: Mapping[str, str] | None = None,
    console: ConsoleProtocol | None = None,
) -> Result[Path, ReleaseError]:
    """Merge and clean root/[Content_Types].xml in place."""
    console = console or NullConsole()
    path = root / CONTENT_TYPES_FILENAME

    try:
        if path.exists():
            doc = load_xml(path)
        else:
            console.warning(f"{CONTENT_TYPES_FILENAME} missing; creating it")
            doc = _empty_manifest()
    except (ExpatError, OSError) as e:
        return Err(
            ReleaseError(
                kind="invalid_manifest",
                message=f"failed to load {CONTENT_TYPES_FILENAME}",
                hint=str(e),
                path=path,
            )
        )

    try:
        added = merge(doc, discover_extensions(root), overrides=overrides)
        removed = clean(doc)
    except ValueError as e:
        doc.unlink()
        return Err(
            ReleaseError(
                kind="invalid_manifest",
                message=f"{CONTENT_TYPES_FILENAME} is malformed",
                hint=str(e),
                path=path,
            )
        )

    if added:
        console.debug(f"declared content types for: {', '.join(added)}")
    if removed:
        console.debug(f"removed {removed} redundant content type declaration(s)")

    try:
        save_xml(doc, path)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_manifest",
                message=f"failed to write {CONTENT_TYPES_FILENAME}",
                hint=str(e),
                path=path,
            )
        )
    finally:
        doc.unlink()

    return Ok(path)
