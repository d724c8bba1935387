"""In-memory queue so webhook deliveries are acknowledged before reviews run."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from reviewbot.logger import get_logger, log_failure, log_timing, log_with_context

from .models import PullRequestPayload, ReviewJob

logger = get_logger()

ReviewJobHandler = Callable[[ReviewJob], Awaitable[object]]


class ReviewQueue:
    def __init__(self, handler: ReviewJobHandler | None = None) -> None:
        self._queue: asyncio.Queue[ReviewJob] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._handler = handler

    def configure_handler(self, handler: ReviewJobHandler | None) -> None:
        self._handler = handler

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            loop = asyncio.get_running_loop()
            self._worker = loop.create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            start_time = time.monotonic()
            ctx_logger = log_with_context(
                logger, delivery_id=job.delivery_id, pull_number=job.payload.pull_number
            )
            try:
                if self._handler is None:
                    log_failure(logger, "No review job handler configured; dropping job",
                                delivery_id=job.delivery_id)
                else:
                    with log_timing(ctx_logger, "process_review_job"):
                        await self._handler(job)
                    ctx_logger.info(f"Job completed in {time.monotonic() - start_time:.3f}s")
            except Exception as exc:
                log_failure(logger, "Unhandled exception while processing job", exc,
                            delivery_id=job.delivery_id)
                logger.exception("Full exception traceback:")
            finally:
                self._queue.task_done()

    async def enqueue(self, job: ReviewJob) -> None:
        self._ensure_worker()
        await self._queue.put(job)
        logger.debug(f"Job {job.delivery_id} queued (pending_jobs={self.pending()})")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""

        await self._queue.join()

    async def shutdown(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        finally:
            self._worker = None

    def pending(self) -> int:
        return self._queue.qsize()


__all__ = ["PullRequestPayload", "ReviewJob", "ReviewJobHandler", "ReviewQueue"]
