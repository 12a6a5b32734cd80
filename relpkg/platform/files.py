"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from time import sleep
from typing import TypeVar

__all__ = ["atomic_write_bytes", "retry_io", "scoped_temp_dir"]

T = TypeVar("T")


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def retry_io(
    action: Callable[[], T],
    *,
    attempts: int,
    delay: float = 0.0,
) -> T:
    """Run a filesystem action, retrying transient OSErrors.

    The last OSError is re-raised once all attempts are used. Delay grows
    linearly with the attempt number; 0 disables sleeping.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return action()
        except OSError:
            if attempt == attempts - 1:
                raise
            if delay > 0:
                sleep(delay * (attempt + 1))
    raise AssertionError("unreachable")


@contextmanager
def scoped_temp_dir(*, prefix: str = "relpkg-", root: Path | None = None) -> Iterator[Path]:
    """Create a uniquely named directory and remove it on every exit path."""
    if root is not None:
        root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root is not None else None))
    try:
        yield path
    finally:
        if path.exists():
            retry_io(lambda: shutil.rmtree(path), attempts=3, delay=0.05)
