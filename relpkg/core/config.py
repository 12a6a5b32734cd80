"""Typed configuration loading and access.

Maps the optional relpkg.toml file onto frozen dataclasses. Missing keys fall
back to defaults; a missing file is only an error for load_config.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_float, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "ReleaseConfig",
    "CONFIG_FILENAME",
    "DEFAULT_RETRY_ATTEMPTS",
    "DEFAULT_RETRY_DELAY_SECONDS",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "relpkg.toml"

# Per-write extraction retry policy
DEFAULT_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_DELAY_SECONDS = 0.05


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


def _empty_mime_map() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Pipeline tuning.

    Attributes:
        retry_attempts: Attempts per extracted entry write.
        retry_delay: Base delay between attempts (seconds, linear backoff).
        temp_root: Parent directory for working trees (None = system temp).
        test_mode: Skip the strict semver check.
    """

    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    temp_root: Path | None = None
    test_mode: bool = False


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    # extension (lower-case, no dot) -> MIME type
    content_types: Mapping[str, str] = field(default_factory=_empty_mime_map)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        release: StrDict = get_table(data, "release") or {}
        content_types: StrDict = get_table(data, "content_types") or {}

        attempts = get_int(release, "retry_attempts")
        if attempts is not None and attempts < 1:
            raise ValueError(f"release.retry_attempts must be >= 1 (got {attempts})")
        delay = get_float(release, "retry_delay")
        if delay is not None and delay < 0:
            raise ValueError(f"release.retry_delay must be >= 0 (got {delay})")
        temp_root = get_str(release, "temp_root")

        mime_map: dict[str, str] = {}
        for ext, mime in content_types.items():
            if not isinstance(mime, str) or not mime.strip():
                raise ValueError(f"content_types.{ext} must be a non-empty string")
            mime_map[ext.lstrip(".").lower()] = mime.strip()

        return cls(
            release=ReleaseConfig(
                retry_attempts=attempts if attempts is not None else DEFAULT_RETRY_ATTEMPTS,
                retry_delay=delay if delay is not None else DEFAULT_RETRY_DELAY_SECONDS,
                temp_root=Path(temp_root).expanduser() if temp_root else None,
                test_mode=get_bool(release, "test_mode") or False,
            ),
            content_types=MappingProxyType(mime_map),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Config:
    """Load config from file, or return the default config if unusable."""
    result = load_config(path)
    if isinstance(result, Ok):
        return result.value
    return Config()
