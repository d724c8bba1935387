"""Review of a single changed file: fetch, analyze, position, post."""

from __future__ import annotations

from typing import List

from reviewbot.analysis import AnalysisError, Analyzer
from reviewbot.github_client import GitHubAPIError, ReviewService
from reviewbot.logger import get_logger, log_failure, log_timing, log_with_context
from reviewbot.models.review import ChangedFile, CommentTarget, FileReviewResult, ReviewComment
from reviewbot.review import MalformedPatchError, aggregate_findings, emit_comments, parse_patch

logger = get_logger()


class FileReviewError(RuntimeError):
    """Raised when one step of a file review fails."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error


class FileReviewPipeline:
    """Review files of one pull request.

    Only ``fetch_content`` and ``post_comments`` touch the network; the steps
    in between are plain function calls.
    """

    def __init__(
        self,
        service: ReviewService,
        analyzer: Analyzer,
        *,
        pull_number: int,
        commit_id: str,
        repository: str | None = None,
    ) -> None:
        self.service = service
        self.analyzer = analyzer
        self.pull_number = pull_number
        self.commit_id = commit_id
        self.repository = repository

    async def run(self, file: ChangedFile, ref: str) -> FileReviewResult:
        ctx_logger = log_with_context(
            logger, repository=self.repository, pull_number=self.pull_number, path=file.filename
        )
        result = FileReviewResult(path=file.filename)
        try:
            content = await self._fetch_content(file, ref)
            with log_timing(ctx_logger, "analyze_and_position"):
                result.comments = self._build_comments(file, content)
        except FileReviewError as exc:
            log_failure(
                logger,
                f"Review of {file.filename} aborted at {exc.step}",
                exc.original_error or exc,
                repository=self.repository,
                pull_number=self.pull_number,
            )
            result.failed_step = exc.step
            result.error = str(exc.original_error or exc)
            return result

        ctx_logger.info(f"Sending {len(result.comments)} comment(s)")
        await self._post_comments(result)
        return result

    async def _fetch_content(self, file: ChangedFile, ref: str) -> str:
        try:
            return await self.service.get_file_content(file.filename, ref)
        except GitHubAPIError as exc:
            raise FileReviewError(
                f"Failed to fetch content (status={exc.status_code})", "fetch_content", exc
            ) from exc

    def _build_comments(self, file: ChangedFile, content: str) -> List[ReviewComment]:
        try:
            findings = self.analyzer.analyze(content, file.filename)
        except AnalysisError as exc:
            raise FileReviewError("Analysis failed", "analyze", exc) from exc

        groups = aggregate_findings(findings)

        try:
            line_map = parse_patch(file.patch)
        except MalformedPatchError as exc:
            raise FileReviewError("Patch could not be parsed", "parse_patch", exc) from exc

        logger.debug(
            f"{file.filename}: {len(findings)} finding(s) on {len(groups)} line(s), "
            f"{len(line_map)} added line(s) in diff"
        )
        target = CommentTarget(path=file.filename, commit_id=self.commit_id, pull_number=self.pull_number)
        return emit_comments(groups, line_map, target)

    async def _post_comments(self, result: FileReviewResult) -> None:
        # Each comment stands alone; one rejected comment must not stop the rest.
        for number, comment in enumerate(result.comments, start=1):
            try:
                await self.service.create_review_comment(comment)
            except GitHubAPIError as exc:
                result.failed += 1
                log_failure(
                    logger,
                    f"Failed to post comment {number} on {comment.path} at position {comment.position}",
                    exc,
                    repository=self.repository,
                    pull_number=self.pull_number,
                )
                continue
            result.posted += 1
            logger.debug(f"Posted comment {number} on {comment.path} at position {comment.position}")
