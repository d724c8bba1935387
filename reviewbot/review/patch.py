"""Map new-file line numbers to GitHub diff view positions.

GitHub anchors inline pull request comments on a *position*: the ordinal of a
line inside the file's patch, not the line number in the file. Only lines
added by the pull request can be commented on, so the map built here holds
an entry for addition lines only. Findings on any other line have nowhere to
go in the diff view and are dropped further down the pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from reviewbot.models.review import LineMap

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

ADDITION_MARKER = "+"
DELETION_MARKER = "-"
NO_NEWLINE_MARKER = "\\"


class MalformedPatchError(ValueError):
    """Raised when a patch has content before its first hunk header."""


@dataclass(frozen=True, slots=True)
class HunkHeader:
    old_start: int
    old_length: int
    new_start: int
    new_length: int


def parse_hunk_header(line: str) -> HunkHeader | None:
    """Return the parsed header, or None if the line is not a hunk header."""

    match = HUNK_HEADER_RE.match(line)
    if match is None:
        return None
    old_start, old_length, new_start, new_length = match.groups()
    return HunkHeader(
        old_start=int(old_start),
        old_length=int(old_length) if old_length is not None else 1,
        new_start=int(new_start),
        new_length=int(new_length) if new_length is not None else 1,
    )


def parse_patch(patch: str | None) -> LineMap:
    """Build the line map for a single file patch.

    Hunk headers reset the file line counter to ``new_start - 1`` and do not
    count as a position. Every other line advances the position, which keeps
    increasing across hunks. Deletions and ``\\ No newline at end of file``
    markers take a position but belong to no new-file line. Every other line
    advances the file line, and lines starting with ``+`` are recorded.

    Raises:
        MalformedPatchError: if a non-empty patch has a body line before any
            hunk header, since positions would be mapped against nothing.
    """

    line_map: LineMap = {}
    if not patch:
        return line_map

    position = 0
    file_line = 0
    seen_header = False

    for number, line in enumerate(patch.split("\n"), start=1):
        header = parse_hunk_header(line)
        if header is not None:
            file_line = header.new_start - 1
            seen_header = True
            continue

        if not seen_header:
            raise MalformedPatchError(
                f"Patch line {number} appears before any hunk header: {line[:80]!r}"
            )

        position += 1
        if line.startswith((DELETION_MARKER, NO_NEWLINE_MARKER)):
            continue
        file_line += 1
        if line.startswith(ADDITION_MARKER):
            line_map[file_line] = position

    return line_map
