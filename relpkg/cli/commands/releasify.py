from __future__ import annotations

from pathlib import Path

import typer

from relpkg.cli.context import build_context
from relpkg.core.errors import ErrorCode
from relpkg.core.result import Err
from relpkg.output.console import ConsoleProtocol
from relpkg.services.release.builder import ReleasePackageBuilder, markdown_to_html
from relpkg.services.release.errors import ReleaseError


def default_output_path(package: Path) -> Path:
    return package.with_name(f"{package.stem}-full.nupkg")


def _fail(console: ConsoleProtocol, error: ReleaseError) -> typer.Exit:
    console.error(error.pretty())
    return typer.Exit(code=int(error.exit_code))


def releasify(
    package: Path = typer.Argument(..., help="Input package (.nupkg)"),
    out: Path | None = typer.Option(
        None, "--out", "-o", help="Output release package (default: <name>-full.nupkg)"
    ),
    test_mode: bool = typer.Option(
        False, "--test-mode", help="Accept non-SemVer versions (test fixtures only)"
    ),
    no_release_notes: bool = typer.Option(
        False, "--no-release-notes", help="Leave release notes unrendered"
    ),
) -> None:
    """Transform a package into a normalized release package."""
    ctx = build_context()

    if not package.is_file():
        ctx.console.error(f"package not found: {package}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    output = out if out is not None else default_output_path(package)
    builder = ReleasePackageBuilder(
        package,
        test_mode=True if test_mode else None,
        config=ctx.config,
        console=ctx.console,
    )
    result = builder.build(output, render_notes=None if no_release_notes else markdown_to_html)
    if isinstance(result, Err):
        raise _fail(ctx.console, result.error)

    ctx.console.print(str(result.value))


def inspect(
    package: Path = typer.Argument(..., help="Input package (.nupkg)"),
    test_mode: bool = typer.Option(False, "--test-mode", help="Skip the SemVer check"),
) -> None:
    """Show package metadata and whether it can become a release package."""
    ctx = build_context()

    builder = ReleasePackageBuilder(
        package,
        test_mode=True if test_mode else None,
        config=ctx.config,
        console=ctx.console,
    )
    parsed = builder.read_package()
    if isinstance(parsed, Err):
        raise _fail(ctx.console, parsed.error)

    info = parsed.value
    ctx.console.header(f"{info.id or package.stem} {info.version}")
    ctx.console.print(f"spec: {info.spec_name}")
    ctx.console.print(f"frameworks: {', '.join(info.frameworks) or '(none)'}")
    ctx.console.print(f"dependency groups: {len(info.dependency_groups)}")
    ctx.console.print(f"release notes: {'yes' if info.release_notes else 'no'}")

    validated = builder.validate()
    if isinstance(validated, Err):
        raise _fail(ctx.console, validated.error)
    ctx.console.success("package can be released")
