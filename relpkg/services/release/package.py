"""Read-only view over an input package archive.

The view is built straight from the zip (nothing is extracted) so validation
can run before any working tree exists.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path
from xml.dom.minidom import Element

from relpkg.core.result import Err, Ok, Result
from relpkg.services.release.errors import ReleaseError
from relpkg.services.release.extract import UnsafeEntryError, decode_entry_key
from relpkg.services.release.frameworks import normalize_framework
from relpkg.services.release.xmldoc import (
    ExpatError,
    element_children,
    first_element_child,
    local_name,
    name_key,
    parse_xml,
    text_content,
)

__all__ = ["DependencyGroup", "SourcePackage", "SPEC_SUFFIX", "read_source_package"]

SPEC_SUFFIX = ".nuspec"


@dataclass(frozen=True, slots=True)
class DependencyGroup:
    target_framework: str | None
    dependencies: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SourcePackage:
    """Parsed package metadata.

    Attributes:
        path: The input archive.
        spec_name: Archive key of the metadata file.
        id: Package id.
        version: Version string exactly as declared.
        frameworks: Supported target frameworks from lib/ folders and
            frameworkAssemblies (short form, sorted, unique).
        dependency_groups: Declared dependency groups.
        release_notes: Raw release notes text, if any.
    """

    path: Path
    spec_name: str
    id: str
    version: str
    frameworks: tuple[str, ...]
    dependency_groups: tuple[DependencyGroup, ...]
    release_notes: str | None = None


def _frameworks_from_entries(names: list[str]) -> set[str]:
    out: set[str] = set()
    for name in names:
        try:
            parts = decode_entry_key(name)
        except UnsafeEntryError:
            # Reported with context by the extractor.
            continue
        # lib/<tfm>/<file>; files directly under lib/ carry no framework.
        if len(parts) >= 3 and parts[0].lower() == "lib":
            tfm = normalize_framework(parts[1])
            if tfm:
                out.add(tfm)
    return out


def _is_root_spec(name: str) -> bool:
    try:
        parts = decode_entry_key(name)
    except UnsafeEntryError:
        return False
    return len(parts) == 1 and parts[0].lower().endswith(SPEC_SUFFIX)


def _parse_dependency_groups(dependencies: Element) -> list[DependencyGroup]:
    groups: list[DependencyGroup] = []
    loose: list[str] = []

    for child in element_children(dependencies):
        name = name_key(local_name(child))
        if name == "group":
            tfm = normalize_framework(child.getAttribute("targetFramework"))
            deps = tuple(
                d.getAttribute("id")
                for d in element_children(child)
                if name_key(local_name(d)) == "dependency"
            )
            groups.append(DependencyGroup(target_framework=tfm, dependencies=deps))
        elif name == "dependency":
            loose.append(child.getAttribute("id"))

    if loose:
        groups.insert(0, DependencyGroup(target_framework=None, dependencies=tuple(loose)))
    return groups


def parse_spec(
    data: bytes, *, archive: Path, spec_name: str, entry_names: list[str]
) -> Result[SourcePackage, ReleaseError]:
    try:
        doc = parse_xml(data)
    except ExpatError as e:
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"{spec_name} in {archive.name} is not well-formed XML",
                hint=str(e),
                path=archive,
            )
        )

    metadata = first_element_child(doc.documentElement)
    if metadata is None or name_key(local_name(metadata)) != "metadata":
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"{spec_name} in {archive.name} has no metadata element",
                path=archive,
            )
        )

    fields: dict[str, str] = {}
    frameworks = _frameworks_from_entries(entry_names)
    groups: list[DependencyGroup] = []

    for child in element_children(metadata):
        name = name_key(local_name(child))
        if name == "dependencies":
            groups.extend(_parse_dependency_groups(child))
        elif name == "frameworkassemblies":
            for asm in element_children(child):
                for moniker in asm.getAttribute("targetFramework").split(","):
                    tfm = normalize_framework(moniker)
                    if tfm:
                        frameworks.add(tfm)
        else:
            fields.setdefault(name, text_content(child))

    version = fields.get("version", "").strip()
    if not version:
        return Err(
            ReleaseError(
                kind="invalid_spec",
                message=f"{spec_name} in {archive.name} declares no version",
                path=archive,
            )
        )

    return Ok(
        SourcePackage(
            path=archive,
            spec_name=spec_name,
            id=fields.get("id", "").strip(),
            version=version,
            frameworks=tuple(sorted(frameworks)),
            dependency_groups=tuple(groups),
            release_notes=fields.get("releasenotes"),
        )
    )


def read_source_package(archive: Path) -> Result[SourcePackage, ReleaseError]:
    """Parse the metadata of a package archive without extracting it."""
    try:
        with zipfile.ZipFile(archive, "r") as zf:
            names = [i.filename for i in zf.infolist() if not i.is_dir()]
            specs = sorted(n for n in names if _is_root_spec(n))
            if not specs:
                return Err(
                    ReleaseError(
                        kind="spec_not_found",
                        message=f"{archive.name} contains no {SPEC_SUFFIX} file at its root",
                        path=archive,
                    )
                )
            if len(specs) > 1:
                return Err(
                    ReleaseError(
                        kind="multiple_specs",
                        message=(
                            f"{archive.name} contains more than one {SPEC_SUFFIX} file at its root"
                        ),
                        hint="; ".join(specs),
                        path=archive,
                    )
                )
            data = zf.read(specs[0])
    except zipfile.BadZipFile as e:
        return Err(
            ReleaseError(
                kind="invalid_package",
                message=f"{archive.name} is not a valid zip archive",
                hint=str(e),
                path=archive,
            )
        )
    except OSError as e:
        return Err(
            ReleaseError(
                kind="invalid_package",
                message=f"failed to read {archive}",
                hint=str(e),
                path=archive,
            )
        )

    return parse_spec(data, archive=archive, spec_name=specs[0], entry_names=names)
