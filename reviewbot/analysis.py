"""Static analysis of file content."""

from __future__ import annotations

from typing import Iterable, List, Protocol

from pyflakes import api as pyflakes_api
from pyflakes.messages import Message

from reviewbot.logger import get_logger
from reviewbot.models.review import Finding

logger = get_logger()

SEVERITY_WARNING = 1
SEVERITY_ERROR = 2


class AnalysisError(RuntimeError):
    """Raised when the analyzer itself fails on a piece of content."""


class Analyzer(Protocol):
    def analyze(self, content: str, filename: str) -> List[Finding]: ...


class _CollectingReporter:
    """pyflakes reporter that turns its callbacks into findings."""

    def __init__(self) -> None:
        self.findings: List[Finding] = []

    def unexpectedError(self, filename: str, msg: str) -> None:  # noqa: N802 - pyflakes interface
        self.findings.append(Finding(message=str(msg), line=1, severity=SEVERITY_ERROR))

    def syntaxError(  # noqa: N802 - pyflakes interface
        self, filename: str, msg: str, lineno: int | None, offset: int | None, text: str | None
    ) -> None:
        self.findings.append(
            Finding(
                message=f"Parsing error: {msg}",
                line=lineno or 1,
                column=offset,
                severity=SEVERITY_ERROR,
            )
        )

    def flake(self, message: Message) -> None:
        self.findings.append(
            Finding(
                message=message.message % message.message_args,
                line=message.lineno,
                rule_id=type(message).__name__,
                column=message.col + 1 if message.col is not None else None,
                severity=SEVERITY_WARNING,
            )
        )


class PyflakesAnalyzer:
    """Run pyflakes over in-memory source, keeping the order it reports in."""

    def __init__(self, ignore: Iterable[str] = ()) -> None:
        self.ignore = frozenset(ignore)

    def describe(self) -> str:
        ignored = ", ".join(sorted(self.ignore)) or "none"
        return f"pyflakes (ignored rules: {ignored})"

    def analyze(self, content: str, filename: str) -> List[Finding]:
        reporter = _CollectingReporter()
        try:
            pyflakes_api.check(content, filename, reporter)
        except (RecursionError, MemoryError) as exc:
            raise AnalysisError(f"pyflakes could not analyze {filename}: {exc!r}") from exc
        return [finding for finding in reporter.findings if finding.rule_id not in self.ignore]
