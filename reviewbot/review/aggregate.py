"""Group analyzer findings into one comment body per line."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Mapping

from reviewbot.models.review import Finding, FindingGroup


def aggregate_findings(findings: Iterable[Finding]) -> Mapping[int, FindingGroup]:
    """Fold findings into groups keyed by line.

    Findings keep the order the analyzer delivered them in, both inside a group
    and across groups (groups iterate in first-seen order). The result is a
    read-only view over a mapping built fresh for every call.
    """

    groups: Dict[int, FindingGroup] = {}
    for finding in findings:
        group = groups.get(finding.line) or FindingGroup(line=finding.line)
        groups[finding.line] = group.with_finding(finding)
    return MappingProxyType(groups)
