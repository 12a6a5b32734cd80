"""Archive extraction with escaped-path decoding.

Package writers percent-encode entry names (spaces, brackets, non-ASCII). Keys
are split on both separators first and every component is decoded on its
own, so an encoded separator ("%2f", "%5c") can never turn into a real path
boundary and smuggle "../" past the containment check.
"""

from __future__ import annotations

import shutil
import stat
import zipfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from relpkg.core.config import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS
from relpkg.core.result import Err, Ok, Result
from relpkg.output.console import ConsoleProtocol, NullConsole
from relpkg.platform.files import retry_io
from relpkg.services.release.errors import ReleaseError

__all__ = ["ExtractResult", "UnsafeEntryError", "decode_entry_key", "extract_archive"]

_SEPARATORS = ("/", "\\")


class UnsafeEntryError(ValueError):
    """An archive key that would resolve outside the destination."""


@dataclass(frozen=True, slots=True)
class ExtractResult:
    dest: Path
    files_count: int
    dirs_count: int
    skipped: tuple[str, ...] = ()


def _split_key(key: str) -> list[str]:
    return key.replace("\\", "/").split("/")


def decode_entry_key(key: str) -> tuple[str, ...]:
    """Decode an archive key into safe relative path components.

    Empty and "." components are dropped. Raises UnsafeEntryError for
    components that are "..", carry a separator after decoding, contain NUL,
    or name a drive.
    """
    parts: list[str] = []
    for raw in _split_key(key):
        part = unquote(raw)
        if part in ("", "."):
            continue
        if part == "..":
            raise UnsafeEntryError(f"parent reference in entry: {key}")
        if any(sep in part for sep in _SEPARATORS):
            raise UnsafeEntryError(f"encoded separator in entry: {key}")
        if "\x00" in part:
            raise UnsafeEntryError(f"NUL in entry: {key}")
        if not parts and len(part) >= 2 and part[1] == ":":
            raise UnsafeEntryError(f"drive-qualified entry: {key}")
        parts.append(part)
    return tuple(parts)


def _is_within_root(root: Path, target: Path) -> bool:
    try:
        return target.resolve().is_relative_to(root)
    except OSError:
        return False


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def _write_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path) -> None:
    with zf.open(info) as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)


def extract_archive(
    archive: Path,
    dest: Path,
    *,
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    console: ConsoleProtocol | None = None,
) -> Result[ExtractResult, ReleaseError]:
    """Extract a zip archive into dest.

    Each file write is retried up to `attempts` times; once exhausted the
    entry fails the whole extraction. Unsafe keys are rejected, symlinks
    skipped.
    """
    console = console or NullConsole()
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()

    files_count = 0
    dirs_count = 0
    skipped: list[str] = []

    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for info in zf.infolist():
                try:
                    parts = decode_entry_key(info.filename)
                except UnsafeEntryError as e:
                    return Err(
                        ReleaseError(
                            kind="unsafe_entry",
                            message=f"{archive.name} contains an entry outside the package root",
                            hint=str(e),
                            path=archive,
                        )
                    )
                if not parts:
                    continue

                target = dest.joinpath(*parts)
                if not _is_within_root(root, target):
                    return Err(
                        ReleaseError(
                            kind="unsafe_entry",
                            message=f"{archive.name} contains an entry outside the package root",
                            hint=info.filename,
                            path=archive,
                        )
                    )

                if _is_symlink(info):
                    console.warning(f"skipping symlink entry: {info.filename}")
                    skipped.append(info.filename)
                    continue

                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if info.is_dir():
                        retry_io(
                            lambda t=target: t.mkdir(parents=True, exist_ok=True),
                            attempts=attempts,
                            delay=delay,
                        )
                        dirs_count += 1
                    else:
                        retry_io(
                            lambda i=info, t=target: _write_entry(zf, i, t),
                            attempts=attempts,
                            delay=delay,
                        )
                        files_count += 1
                except OSError as e:
                    return Err(
                        ReleaseError(
                            kind="extraction_failed",
                            message=f"failed to extract {info.filename} from {archive.name}",
                            hint=str(e),
                            path=target,
                        )
                    )
                console.debug(f"extracted {'/'.join(parts)}")
    except zipfile.BadZipFile as e:
        return Err(
            ReleaseError(
                kind="extraction_failed",
                message=f"{archive.name} is not a valid zip archive",
                hint=str(e),
                path=archive,
            )
        )
    except OSError as e:
        return Err(
            ReleaseError(
                kind="extraction_failed",
                message=f"failed to read {archive.name}",
                hint=str(e),
                path=archive,
            )
        )

    return Ok(
        ExtractResult(
            dest=dest,
            files_count=files_count,
            dirs_count=dirs_count,
            skipped=tuple(skipped),
        )
    )
