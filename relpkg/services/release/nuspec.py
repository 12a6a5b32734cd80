"""Package metadata (.nuspec) normalization.

Two independent operations on the loaded document:
- remove_dependencies: drop the <dependencies> element from <metadata>
- render_release_notes: replace the release notes text with rendered markup,
  stored as CDATA so the serializer keeps it verbatim instead of escaping it
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from xml.dom.minidom import Document, Element, Node

from relpkg.core.result import Err, Ok, Result
from relpkg.output.console import ConsoleProtocol, NullConsole
from relpkg.services.release.errors import ReleaseError
from relpkg.services.release.xmldoc import (
    ExpatError,
    element_children,
    first_element_child,
    load_xml,
    local_name,
    name_key,
    save_xml,
    text_content,
)

__all__ = [
    "NotesRenderer",
    "SpecChanges",
    "find_release_notes",
    "normalize_spec_file",
    "remove_dependencies",
    "render_release_notes",
]

NotesRenderer = Callable[[str], str]

_CDATA_END = "]]>"


def _metadata(doc: Document) -> Element | None:
    return first_element_child(doc.documentElement)


def _child_named(parent: Element, key: str) -> Element | None:
    for child in element_children(parent):
        if name_key(local_name(child)) == key:
            return child
    return None


def remove_dependencies(doc: Document) -> bool:
    """Remove every <dependencies> child of the metadata element.

    Returns True when something was removed; a second call is a no-op.
    """
    metadata = _metadata(doc)
    if metadata is None:
        return False

    removed = False
    while (deps := _child_named(metadata, "dependencies")) is not None:
        metadata.removeChild(deps).unlink()
        removed = True
    return removed


def find_release_notes(doc: Document) -> Element | None:
    metadata = _metadata(doc)
    if metadata is None:
        return None
    return _child_named(metadata, "releasenotes")


def _original_notes(el: Element) -> str:
    significant = [
        c
        for c in el.childNodes
        if not (c.nodeType == Node.TEXT_NODE and not c.data.strip())  # type: ignore[attr-defined]
    ]
    if significant and all(c.nodeType == Node.CDATA_SECTION_NODE for c in significant):
        # Rendered by an earlier run: recover the payload without the padding.
        data = "".join(c.data for c in significant)  # type: ignore[attr-defined]
        return data.removeprefix("\n").removesuffix("\n")
    return text_content(el)


def _cdata_sections(doc: Document, text: str) -> list[Node]:
    # "]]>" cannot appear inside one section; split it across two.
    pieces = text.split(_CDATA_END)
    nodes: list[Node] = []
    for i, piece in enumerate(pieces):
        data = piece
        if i > 0:
            data = ">" + data
        if i < len(pieces) - 1:
            data = data + "]]"
        nodes.append(doc.createCDATASection(data))
    return nodes


def render_release_notes(doc: Document, render: NotesRenderer) -> bool:
    """Replace the release notes content with render(original) as CDATA.

    Returns False (and leaves the document alone) when there are no notes.
    """
    notes = find_release_notes(doc)
    if notes is None:
        return False

    rendered = render(_original_notes(notes))

    for child in list(notes.childNodes):
        notes.removeChild(child).unlink()
    for node in _cdata_sections(doc, f"\n{rendered}\n"):
        notes.appendChild(node)
    return True


@dataclass(frozen=True, slots=True)
class SpecChanges:
    """What normalize_spec_file did to the document."""

    dependencies_removed: bool
    notes_rendered: bool


def normalize_spec_file(
    spec_path: Path,
    *,
    render: NotesRenderer | None,
    console: ConsoleProtocol | None = None,
) -> Result[SpecChanges, ReleaseError]:
    """Load the .nuspec file, strip dependencies, render release notes, save in place."""
    console = console or NullConsole()

    try:
        doc = load_xml(spec_path)
    except ExpatError as e:
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"{spec_path.name} is not well-formed XML",
                hint=str(e),
                path=spec_path,
            )
        )
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"failed to read {spec_path.name}",
                hint=str(e),
                path=spec_path,
            )
        )

    console.info("Removing unnecessary data")
    removed = remove_dependencies(doc)
    if removed:
        console.debug(f"removed dependencies from {spec_path.name}")

    rendered = False
    if render is not None:
        rendered = render_release_notes(doc, render)
        if not rendered:
            console.info(f"No release notes found in {spec_path.name}")

    try:
        save_xml(doc, spec_path)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"failed to write {spec_path.name}",
                hint=str(e),
                path=spec_path,
            )
        )
    finally:
        doc.unlink()

    return Ok(SpecChanges(dependencies_removed=removed, notes_rendered=rendered))
