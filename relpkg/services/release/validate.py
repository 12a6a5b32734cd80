from __future__ import annotations

from relpkg.core.result import Err, Ok, Result
from relpkg.services.release.errors import ReleaseError
from relpkg.services.release.package import SourcePackage
from relpkg.services.release.semver import is_strict_semver


def validate_package(
    package: SourcePackage, *, test_mode: bool = False
) -> Result[SourcePackage, ReleaseError]:
    """Check the release invariants on already-parsed metadata.

    Rules run in order and the first failure wins: strict semver (skipped in
    test mode), exactly one target framework, no dependency groups. Pure; no
    filesystem access.
    """
    name = package.path.name

    if not test_mode and not is_strict_semver(package.version):
        return Err(
            ReleaseError(
                kind="non_semver_version",
                message=(
                    f"The input package file {name} has version {package.version}, "
                    "which is not SemVer-compatible"
                ),
                hint="Change the package version to a SemVer version number (e.g. 1.2.3)",
                path=package.path,
            )
        )

    frameworks = package.frameworks
    if not frameworks:
        return Err(
            ReleaseError(
                kind="no_target_framework",
                message=(
                    f"The input package file {name} targets no platform "
                    "and cannot be transformed into a release package"
                ),
                path=package.path,
            )
        )
    if len(frameworks) > 1:
        platforms = "; ".join(frameworks)
        return Err(
            ReleaseError(
                kind="multiple_target_frameworks",
                message=(
                    f"The input package file {name} targets multiple platforms - {platforms} - "
                    "and cannot be transformed into a release package"
                ),
                hint=platforms,
                path=package.path,
            )
        )

    if package.dependency_groups:
        return Err(
            ReleaseError(
                kind="dependencies_not_supported",
                message=f"The input package file {name} must have no dependencies",
                hint=", ".join(
                    dep for group in package.dependency_groups for dep in group.dependencies
                )
                or None,
                path=package.path,
            )
        )

    return Ok(package)
