"""Fan a pull request out into one file review per matching changed file."""

from __future__ import annotations

import asyncio
import re
from typing import Iterable, List

from reviewbot.analysis import Analyzer
from reviewbot.github_client import GitHubAPIError, ReviewService
from reviewbot.logger import get_logger, log_failure, log_success, log_timing, log_with_context
from reviewbot.models.review import ChangedFile, FileReviewResult
from reviewbot.queue.models import PullRequestPayload
from reviewbot.services.file_review import FileReviewPipeline

logger = get_logger()

REVIEWABLE_ACTIONS = frozenset({"opened", "reopened"})


def filter_files(files: Iterable[ChangedFile], pattern: re.Pattern[str]) -> List[ChangedFile]:
    return [file for file in files if pattern.search(file.filename)]


class RequestCoordinator:
    def __init__(
        self,
        service: ReviewService,
        analyzer: Analyzer,
        *,
        file_pattern: re.Pattern[str],
        repository: str | None = None,
        max_concurrent_files: int = 0,
    ) -> None:
        self.service = service
        self.analyzer = analyzer
        self.file_pattern = file_pattern
        self.repository = repository
        self.max_concurrent_files = max_concurrent_files

    async def handle(self, payload: PullRequestPayload) -> List[FileReviewResult]:
        """Review every matching file of the pull request and return per-file outcomes."""

        pull_number = payload.pull_number
        if payload.action not in REVIEWABLE_ACTIONS or payload.pull_request is None or pull_number is None:
            logger.debug(f"Nothing to review for action '{payload.action}'")
            return []

        ctx_logger = log_with_context(logger, repository=self.repository, pull_number=pull_number)
        head = payload.pull_request.head
        ref = head.sha or head.ref
        if not ref:
            log_failure(logger, "Pull request head has neither sha nor ref", repository=self.repository,
                        pull_number=pull_number)
            return []
        commit_id = head.sha or ref

        try:
            with log_timing(ctx_logger, "list_pull_request_files"):
                files = await self.service.list_pull_request_files(pull_number)
        except GitHubAPIError as exc:
            log_failure(logger, f"Could not list files (status={exc.status_code})", exc,
                        repository=self.repository, pull_number=pull_number)
            return []

        selected = filter_files(files, self.file_pattern)
        ctx_logger.info(
            f"Reviewing {len(selected)} of {len(files)} changed file(s) matching {self.file_pattern.pattern!r}"
        )
        if not selected:
            return []

        pipeline = FileReviewPipeline(
            self.service,
            self.analyzer,
            pull_number=pull_number,
            commit_id=commit_id,
            repository=self.repository,
        )
        semaphore = asyncio.Semaphore(self.max_concurrent_files) if self.max_concurrent_files else None

        async def _review(file: ChangedFile) -> FileReviewResult:
            if semaphore is None:
                return await pipeline.run(file, ref)
            async with semaphore:
                return await pipeline.run(file, ref)

        outcomes = await asyncio.gather(*(_review(file) for file in selected), return_exceptions=True)
        results: List[FileReviewResult] = []
        for file, outcome in zip(selected, outcomes):
            if isinstance(outcome, FileReviewResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.opt(exception=outcome).error(f"Unexpected error while reviewing {file.filename}")
            results.append(FileReviewResult(path=file.filename, failed_step="unexpected", error=str(outcome)))

        posted = sum(result.posted for result in results)
        aborted = [result.path for result in results if result.failed_step]
        if aborted:
            ctx_logger.warning(f"{len(aborted)} file(s) could not be reviewed: {', '.join(aborted)}")
        log_success(logger, f"All files reviewed ({posted} comment(s) posted)",
                    repository=self.repository, pull_number=pull_number)
        return results
