from __future__ import annotations

import re
from dataclasses import dataclass

# https://semver.org grammar, no "v" prefix and no informal variants
# (four-part versions, leading zeros, missing patch).
_STRICT_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


@dataclass(frozen=True, slots=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            out += f"-{self.prerelease}"
        if self.build:
            out += f"+{self.build}"
        return out


def parse_strict(version: str) -> SemVer | None:
    m = _STRICT_RE.fullmatch(version)
    if m is None:
        return None
    return SemVer(
        int(m.group(1)),
        int(m.group(2)),
        int(m.group(3)),
        prerelease=m.group(4),
        build=m.group(5),
    )


def is_strict_semver(version: str) -> bool:
    return parse_strict(version) is not None
