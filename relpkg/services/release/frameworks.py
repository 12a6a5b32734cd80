"""Target framework moniker normalization.

Packages spell the same framework several ways: "net45" as a lib/ folder,
".NETFramework4.5" or ".NETFramework,Version=v4.5" in frameworkAssemblies.
normalize_framework maps all of them onto one short form so they compare
equal.
"""

from __future__ import annotations

import re

__all__ = ["normalize_framework"]

_IDENTIFIERS: dict[str, str] = {
    "net": "net",
    ".netframework": "net",
    "netframework": "net",
    "netstandard": "netstandard",
    ".netstandard": "netstandard",
    "netcoreapp": "netcoreapp",
    ".netcoreapp": "netcoreapp",
    "netcore": "netcore",
    ".netcore": "netcore",
    "win": "netcore",
    "portable": "portable",
    ".netportable": "portable",
    "sl": "sl",
    "silverlight": "sl",
}

_SHORT_RE = re.compile(r"(?P<id>[a-z.]+?)(?P<version>\d[\d.]*)?(?:-(?P<profile>.+))?")


def _short_version(identifier: str, version: str) -> str:
    parts = [p for p in version.split(".") if p]
    if not parts:
        return ""
    if identifier == "net" and parts[0].isdigit() and int(parts[0]) < 5:
        # net40, net45, net451: dotless, at least two digits.
        if len(parts) == 1 and len(parts[0]) == 1:
            parts.append("0")
        return "".join(parts)
    if len(parts) == 1 and len(parts[0]) == 1:
        parts.append("0")
    return ".".join(parts)


def normalize_framework(moniker: str) -> str | None:
    """Return the short form of a framework moniker, or None if blank.

    Unrecognized monikers come back lower-cased and otherwise unchanged.
    """
    text = moniker.strip().lower()
    if not text:
        return None

    if "," in text:
        head, *pairs = (p.strip() for p in text.split(","))
        version = ""
        profile = ""
        for pair in pairs:
            key, _, value = pair.partition("=")
            if key.strip() == "version":
                version = value.strip().removeprefix("v")
            elif key.strip() == "profile":
                profile = value.strip()
        identifier = head
    else:
        m = _SHORT_RE.fullmatch(text)
        if m is None:
            return text
        identifier = m.group("id")
        version = m.group("version") or ""
        profile = m.group("profile") or ""

    short_id = _IDENTIFIERS.get(identifier)
    if short_id is None:
        return text

    out = short_id + _short_version(short_id, version)
    if profile:
        out += f"-{profile}"
    return out
