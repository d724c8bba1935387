"""Pure review steps: patch parsing, finding aggregation and comment emission."""

from .aggregate import aggregate_findings
from .emitter import emit_comments
from .patch import HunkHeader, MalformedPatchError, parse_hunk_header, parse_patch

__all__ = [
    "HunkHeader",
    "MalformedPatchError",
    "aggregate_findings",
    "emit_comments",
    "parse_hunk_header",
    "parse_patch",
]
