"""Release package transformation pipeline.

Stages, leaf-first:
- package: read-only view over the input archive
- validate: packaging invariants (checked before any working tree exists)
- extract: escaped-path-safe unpacking into a working tree
- nuspec: dependency stripping + release notes rendering
- content_types: [Content_Types].xml reconciliation
- pack: deterministic zip creation
- builder: orchestrator composing the above
"""

from __future__ import annotations

from .builder import ReleasePackageBuilder, markdown_to_html
from .errors import ReleaseError

__all__ = ["ReleaseError", "ReleasePackageBuilder", "markdown_to_html"]
