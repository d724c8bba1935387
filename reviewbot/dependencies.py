"""FastAPI dependency factories."""

from __future__ import annotations

from fastapi import HTTPException, Request

from reviewbot.config import Settings
from reviewbot.queue import ReviewQueue


def settings_dependency(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise HTTPException(status_code=503, detail="Service is not configured yet.")
    return settings


def queue_dependency(request: Request) -> ReviewQueue:
    queue = getattr(request.app.state, "review_queue", None)
    if queue is None:
        raise HTTPException(status_code=503, detail="Review queue is not running.")
    return queue
