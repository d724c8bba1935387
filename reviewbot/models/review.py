"""Shared data structures for review processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

DEFAULT_RULE_ID = "Lint"

# new-file line number -> diff display position
LineMap = Dict[int, int]


@dataclass(frozen=True, slots=True)
class ChangedFile:
    filename: str
    patch: str | None = None
    sha: str | None = None
    status: str = ""


@dataclass(frozen=True, slots=True)
class Finding:
    message: str
    line: int
    rule_id: str | None = None
    column: int | None = None
    severity: int | None = None

    def render(self) -> str:
        return f"**{self.rule_id or DEFAULT_RULE_ID}**: {self.message}"


@dataclass(frozen=True, slots=True)
class FindingGroup:
    """All findings reported on one line, in the order the analyzer produced them."""

    line: int
    findings: Tuple[Finding, ...] = ()

    @property
    def body(self) -> str:
        return "\n".join(finding.render() for finding in self.findings)

    def with_finding(self, finding: Finding) -> FindingGroup:
        return FindingGroup(line=self.line, findings=self.findings + (finding,))


@dataclass(frozen=True, slots=True)
class CommentTarget:
    path: str
    commit_id: str
    pull_number: int


@dataclass(frozen=True, slots=True)
class ReviewComment:
    path: str
    commit_id: str
    pull_number: int
    position: int
    body: str


@dataclass(slots=True)
class FileReviewResult:
    path: str
    comments: List[ReviewComment] = field(default_factory=list)
    posted: int = 0
    failed: int = 0
    failed_step: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None and self.failed == 0
