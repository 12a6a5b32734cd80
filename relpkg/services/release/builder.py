"""Release package orchestrator.

validate -> working tree -> extract -> normalize spec -> content types ->
post-process hook -> pack. Validation runs on metadata read straight from the
archive, so invalid packages never create a working tree. The working tree
is removed on every exit path and the output file only appears once packing
has fully succeeded.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Literal

from relpkg.core.config import Config
from relpkg.core.result import Err, Ok, Result
from relpkg.output.console import ConsoleProtocol, NullConsole
from relpkg.platform.files import scoped_temp_dir
from relpkg.services.release.content_types import reconcile_content_types
from relpkg.services.release.errors import ReleaseError
from relpkg.services.release.extract import extract_archive
from relpkg.services.release.nuspec import NotesRenderer, normalize_spec_file
from relpkg.services.release.pack import pack_directory
from relpkg.services.release.package import SPEC_SUFFIX, SourcePackage, read_source_package
from relpkg.services.release.validate import validate_package

__all__ = ["BuildState", "PostProcessHook", "ReleasePackageBuilder", "find_spec", "markdown_to_html"]

PostProcessHook = Callable[[Path], None]
BuildState = Literal["unbuilt", "built", "failed"]


def markdown_to_html(text: str) -> str:
    """Default release notes renderer ("Hello" -> "<p>Hello</p>")."""
    import markdown

    return markdown.markdown(text)


def find_spec(root: Path) -> Result[Path, ReleaseError]:
    """Locate the single metadata file at the root of an extracted tree.

    Nested .nuspec files are package content. More than one match at the
    root fails fast rather than guessing a precedence.
    """
    matches = sorted(
        p for p in root.iterdir() if p.is_file() and p.name.lower().endswith(SPEC_SUFFIX)
    )
    if not matches:
        return Err(
            ReleaseError(
                kind="spec_not_found",
                message=f"no {SPEC_SUFFIX} file found at the root of the extracted package",
                path=root,
            )
        )
    if len(matches) > 1:
        return Err(
            ReleaseError(
                kind="multiple_specs",
                message=(
                    f"more than one {SPEC_SUFFIX} file found at the root of the extracted package"
                ),
                hint="; ".join(p.relative_to(root).as_posix() for p in matches),
                path=root,
            )
        )
    return Ok(matches[0])


class ReleasePackageBuilder:
    """Builds one release archive from one input package.

    The instance is single-use: the first build() result (success or
    failure) is cached and returned by every later call. An exception raised
    during the build (from the post-process hook, typically) is terminal too
    and is raised again by later calls. Callers sharing an instance across
    threads must serialize build() themselves.

    Usage:
        builder = ReleasePackageBuilder(Path("MyApp.1.0.0.nupkg"))
        result = builder.build(Path("releases/MyApp-1.0.0-full.nupkg"))
        if is_ok(result):
            print(result.value)
    """

    def __init__(
        self,
        input_package: Path,
        *,
        test_mode: bool | None = None,
        config: Config | None = None,
        console: ConsoleProtocol | None = None,
    ) -> None:
        self._input = input_package
        self._config = config or Config()
        self._test_mode = self._config.release.test_mode if test_mode is None else test_mode
        self._console = console or NullConsole()
        self._result: Result[Path, ReleaseError] | None = None
        self._exception: Exception | None = None

    @property
    def input_package(self) -> Path:
        return self._input

    @property
    def state(self) -> BuildState:
        if self._exception is not None:
            return "failed"
        if self._result is None:
            return "unbuilt"
        return "built" if isinstance(self._result, Ok) else "failed"

    @property
    def release_package_file(self) -> Path | None:
        if self._result is not None and isinstance(self._result, Ok):
            return self._result.value
        return None

    def read_package(self) -> Result[SourcePackage, ReleaseError]:
        return read_source_package(self._input)

    def validate(self) -> Result[SourcePackage, ReleaseError]:
        package = self.read_package()
        if isinstance(package, Err):
            return package
        return validate_package(package.value, test_mode=self._test_mode)

    def build(
        self,
        output: Path,
        *,
        render_notes: NotesRenderer | None = markdown_to_html,
        post_process: PostProcessHook | None = None,
    ) -> Result[Path, ReleaseError]:
        """Create the release archive at output (or return the cached result)."""
        if self._exception is not None:
            raise self._exception
        if self._result is not None:
            if isinstance(self._result, Ok):
                self._console.debug(f"release package already built: {self._result.value}")
            return self._result

        try:
            result = self._build(output, render_notes=render_notes, post_process=post_process)
        except Exception as e:
            self._exception = e
            raise
        self._result = result
        return result

    def _build(
        self,
        output: Path,
        *,
        render_notes: NotesRenderer | None,
        post_process: PostProcessHook | None,
    ) -> Result[Path, ReleaseError]:
        validated = self.validate()
        if isinstance(validated, Err):
            return validated
        package = validated.value

        self._console.info(f"Creating release package: {self._input} => {output}")
        release = self._config.release

        # Extract and pack run on a worker thread; each is awaited before the
        # next stage starts.
        with (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="relpkg-io") as io,
            scoped_temp_dir(root=release.temp_root) as work_dir,
        ):
            self._console.debug(f"working tree: {work_dir}")

            extracted = io.submit(
                extract_archive,
                self._input,
                work_dir,
                attempts=release.retry_attempts,
                delay=release.retry_delay,
                console=self._console,
            ).result()
            if isinstance(extracted, Err):
                return extracted
            self._console.debug(
                f"extracted {extracted.value.files_count} file(s) from {self._input.name}"
            )

            spec = find_spec(work_dir)
            if isinstance(spec, Err):
                return spec

            normalized = normalize_spec_file(
                spec.value, render=render_notes, console=self._console
            )
            if isinstance(normalized, Err):
                return normalized

            types = reconcile_content_types(
                work_dir, overrides=self._config.content_types, console=self._console
            )
            if isinstance(types, Err):
                return types

            if post_process is not None:
                post_process(work_dir)

            packed = io.submit(pack_directory, work_dir, output).result()
            if isinstance(packed, Err):
                return packed

        self._console.success(f"{package.id or self._input.stem} {package.version} => {output}")
        return Ok(output)
