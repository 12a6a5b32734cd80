from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from relpkg.core.errors import ErrorCode

ReleaseErrorKind = Literal[
    "invalid_package",
    "non_semver_version",
    "no_target_framework",
    "multiple_target_frameworks",
    "dependencies_not_supported",
    "extraction_failed",
    "unsafe_entry",
    "spec_not_found",
    "multiple_specs",
    "invalid_spec",
    "invalid_manifest",
    "pack_failed",
]

ReleaseStage = Literal["input", "validation", "extraction", "spec", "content_types", "pack"]

VALIDATION_KINDS: frozenset[str] = frozenset(
    {
        "non_semver_version",
        "no_target_framework",
        "multiple_target_frameworks",
        "dependencies_not_supported",
    }
)

_STAGE_BY_KIND: dict[str, ReleaseStage] = {
    "invalid_package": "input",
    "non_semver_version": "validation",
    "no_target_framework": "validation",
    "multiple_target_frameworks": "validation",
    "dependencies_not_supported": "validation",
    "extraction_failed": "extraction",
    "unsafe_entry": "extraction",
    "spec_not_found": "spec",
    "multiple_specs": "spec",
    "invalid_spec": "spec",
    "invalid_manifest": "content_types",
    "pack_failed": "pack",
}

_EXIT_BY_STAGE: dict[ReleaseStage, ErrorCode] = {
    "input": ErrorCode.USER_ERROR,
    "validation": ErrorCode.USER_ERROR,
    "extraction": ErrorCode.IO_ERROR,
    "spec": ErrorCode.BUILD_ERROR,
    "content_types": ErrorCode.BUILD_ERROR,
    "pack": ErrorCode.IO_ERROR,
}


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical pipeline error payload.

    Attributes:
        kind: Machine-readable failure kind.
        message: Human-readable message; names the offending input file.
        hint: Optional extra detail (entry name, underlying OS error).
        path: File the failure is about, when there is one.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    path: Path | None = None

    @property
    def stage(self) -> ReleaseStage:
        return _STAGE_BY_KIND[self.kind]

    @property
    def is_validation(self) -> bool:
        return self.kind in VALIDATION_KINDS

    @property
    def exit_code(self) -> ErrorCode:
        return _EXIT_BY_STAGE[self.stage]

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
