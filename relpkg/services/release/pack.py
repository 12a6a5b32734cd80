"""Deterministic zip creation from a working tree."""

from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from relpkg.core.result import Err, Ok, Result
from relpkg.services.release.errors import ReleaseError

__all__ = ["PackResult", "collect_entries", "pack_directory"]

# Earliest timestamp the zip format can represent.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True, slots=True)
class PackResult:
    path: Path
    entries: int


def collect_entries(base_dir: Path) -> list[tuple[Path, str]]:
    """(source, arcname) pairs in stable order.

    Files plus empty directories (arcname ending in "/").
    """
    out: list[tuple[Path, str]] = []
    for p in sorted(base_dir.rglob("*"), key=lambda x: x.relative_to(base_dir).as_posix()):
        rel = p.relative_to(base_dir).as_posix()
        if p.is_dir():
            if not any(p.iterdir()):
                out.append((p, f"{rel}/"))
            continue
        out.append((p, rel))
    return out


def _zip_info(src: Path, arcname: str) -> ZipInfo:
    info = ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
    mode = stat.S_IMODE(src.stat().st_mode)
    if arcname.endswith("/"):
        info.external_attr = ((stat.S_IFDIR | (mode or 0o755)) << 16) | 0x10
    else:
        info.external_attr = (stat.S_IFREG | (mode or 0o644)) << 16
        info.compress_type = ZIP_DEFLATED
    return info


def _write_zip(zip_path: Path, entries: list[tuple[Path, str]]) -> None:
    with ZipFile(zip_path, "w", compression=ZIP_DEFLATED) as zf:
        for src, arc in entries:
            info = _zip_info(src, arc)
            if arc.endswith("/"):
                zf.writestr(info, b"")
            else:
                with src.open("rb") as fh, zf.open(info, "w") as dst:
                    for chunk in iter(lambda: fh.read(1024 * 1024), b""):
                        dst.write(chunk)


def pack_directory(src: Path, output: Path) -> Result[PackResult, ReleaseError]:
    """Zip src into output.

    The archive is written next to output and moved into place only when
    complete, so a failure never leaves a partial file at output.
    """
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        entries = collect_entries(src)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output.name}.",
            suffix=".tmp",
            dir=str(output.parent),
        )
        os.close(fd)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="pack_failed",
                message=f"failed to prepare {output.name}",
                hint=str(e),
                path=output,
            )
        )

    tmp_path = Path(tmp_name)
    try:
        _write_zip(tmp_path, entries)
        os.replace(tmp_path, output)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="pack_failed",
                message=f"failed to write {output.name}",
                hint=str(e),
                path=output,
            )
        )
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)

    return Ok(PackResult(path=output, entries=len(entries)))
