import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import fastapi
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from reviewbot.analysis import Analyzer, PyflakesAnalyzer
from reviewbot.config import Settings
from reviewbot.github_client import GitHubInstallationClient
from reviewbot.logger import get_logger, log_success
from reviewbot.queue import ReviewJob, ReviewQueue
from reviewbot.services.coordinator import RequestCoordinator
from reviewbot.webhook import router as webhook_router

logger = get_logger()


def build_github_client(settings: Settings) -> GitHubInstallationClient:
    return GitHubInstallationClient(
        base_url=settings.normalized_github_api_base_url,
        app_id=settings.github_app_id,
        private_key_pem=settings.github_private_key_pem,
        owner=settings.repository_owner,
        repo=settings.repository_name,
        timeout=settings.request_timeout,
    )


def create_app(
    settings: Settings,
    *,
    github_client: Any | None = None,
    analyzer: Analyzer | None = None,
) -> FastAPI:
    """Build the webhook application around an already loaded configuration."""

    client = github_client or build_github_client(settings)
    analyzer = analyzer or PyflakesAnalyzer(ignore=settings.analyzer_ignore)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        describe = getattr(analyzer, "describe", None)
        if describe is not None:
            logger.info(f"Findings will be produced by {describe()}")

        installation_id = await client.authenticate()
        logger.info(f"Authenticated on {settings.repository_full_name} (installation {installation_id})")

        coordinator = RequestCoordinator(
            client,
            analyzer,
            file_pattern=settings.file_pattern,
            repository=settings.repository_full_name,
            max_concurrent_files=settings.max_concurrent_files,
        )

        async def _handle(job: ReviewJob) -> None:
            await coordinator.handle(job.payload)

        app.state.review_queue = ReviewQueue(_handle)
        log_success(logger, f"Reviewer is listening on port {settings.port}")
        try:
            yield
        finally:
            await app.state.review_queue.shutdown()
            app.state.review_queue = None
            await client.aclose()

    app = FastAPI(title="Lint Review Bot", lifespan=lifespan)
    app.state.settings = settings
    app.state.review_queue = None
    app.include_router(webhook_router, tags=["webhook"])

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "pong"

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        queue = request.app.state.review_queue
        return {
            "status": "ok" if queue is not None else "starting",
            "repository": settings.repository_full_name,
            "pending_jobs": queue.pending() if queue is not None else 0,
            "environment": {
                "python version": sys.version,
                "fastapi version": fastapi.__version__,
                "uvicorn version": uvicorn.__version__,
            },
        }

    return app
