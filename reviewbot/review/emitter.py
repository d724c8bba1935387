"""Turn finding groups into review comments positioned in the diff view."""

from __future__ import annotations

from typing import List, Mapping

from reviewbot.logger import get_logger
from reviewbot.models.review import CommentTarget, FindingGroup, LineMap, ReviewComment

logger = get_logger()


def emit_comments(
    groups: Mapping[int, FindingGroup],
    line_map: LineMap,
    target: CommentTarget,
) -> List[ReviewComment]:
    comments: List[ReviewComment] = []
    for line, group in groups.items():
        position = line_map.get(line)
        # Not an added line, so it is not visible in the diff.
        if position is None:
            continue
        comments.append(
            ReviewComment(
                path=target.path,
                commit_id=target.commit_id,
                pull_number=target.pull_number,
                position=position,
                body=group.body,
            )
        )

    skipped = len(groups) - len(comments)
    if skipped:
        logger.debug(f"Skipped {skipped} finding group(s) outside the diff of {target.path}")
    return comments
