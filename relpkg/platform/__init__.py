"""Platform helpers (filesystem)."""

from .files import atomic_write_bytes, retry_io, scoped_temp_dir

__all__ = ["atomic_write_bytes", "retry_io", "scoped_temp_dir"]
