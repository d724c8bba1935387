"""GitHub webhook ingestion."""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from reviewbot.config import Settings
from reviewbot.dependencies import queue_dependency, settings_dependency
from reviewbot.logger import get_logger, log_failure, log_success, log_with_context
from reviewbot.queue import ReviewQueue
from reviewbot.queue.models import PullRequestPayload, ReviewJob
from reviewbot.services.coordinator import REVIEWABLE_ACTIONS
from reviewbot.utils.security import is_signature_valid

router = APIRouter()

logger = get_logger()

DELIVERY_TTL_SECONDS = 60 * 60  # retain delivery IDs for one hour
_delivery_cache: Dict[str, float] = {}


class IgnoreEventError(RuntimeError):
    """Raised when a webhook event should be acknowledged but not processed."""


def _prune_delivery_cache(now: float) -> None:
    expiry_threshold = now - DELIVERY_TTL_SECONDS
    expired = [key for key, timestamp in _delivery_cache.items() if timestamp < expiry_threshold]
    for key in expired:
        _delivery_cache.pop(key, None)


def _is_duplicate(delivery_id: str, now: float) -> bool:
    _prune_delivery_cache(now)
    return delivery_id in _delivery_cache


def reset_delivery_cache() -> None:
    _delivery_cache.clear()


def _build_pull_request_payload(payload: Dict[str, Any], settings: Settings) -> PullRequestPayload:
    action = payload.get("action")
    if action not in REVIEWABLE_ACTIONS:
        raise IgnoreEventError(f"Pull request action '{action}' not actionable.")
    if not payload.get("pull_request"):
        raise IgnoreEventError("Payload has no pull_request object.")

    pr_payload = PullRequestPayload.model_validate(payload)
    if pr_payload.pull_number is None:
        raise ValueError("Pull request payload missing number.")

    full_name = pr_payload.repository.full_name if pr_payload.repository else None
    if full_name and full_name.lower() != settings.repository_full_name.lower():
        raise IgnoreEventError(f"Repository '{full_name}' is not the configured repository.")
    return pr_payload


@router.post("/", include_in_schema=False)
@router.post("/webhook", summary="Receive GitHub webhooks")
async def receive_webhook(
    request: Request,
    settings: Settings = Depends(settings_dependency),
    queue: ReviewQueue = Depends(queue_dependency),
) -> Dict[str, str]:
    """Verify the delivery, then queue a review and acknowledge straight away."""

    raw_body = await request.body()
    delivery_id = request.headers.get("X-GitHub-Delivery") or uuid.uuid4().hex
    event = request.headers.get("X-GitHub-Event")
    ctx_logger = log_with_context(logger, delivery_id=delivery_id, event_type=event)
    ctx_logger.info("Received request")

    if not is_signature_valid(
        settings.github_webhook_secret, raw_body, request.headers.get("X-Hub-Signature-256")
    ):
        log_failure(logger, "Webhook signature verification failed", delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        log_failure(logger, "Invalid JSON payload", exc, delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payload must be a JSON object")

    # Deliveries without an event header are accepted if they carry a pull request
    if event is None and payload.get("pull_request"):
        event = "pull_request"
    if event == "ping":
        return {"status": "pong"}
    if event != "pull_request":
        ctx_logger.debug(f"Ignoring event '{event}'")
        return {"status": "ignored", "reason": f"Event '{event}' is not handled."}

    now = time.time()
    if _is_duplicate(delivery_id, now):
        ctx_logger.info("Duplicate delivery ignored")
        return {"status": "ignored", "reason": "duplicate"}

    try:
        pr_payload = _build_pull_request_payload(payload, settings)
    except IgnoreEventError as exc:
        ctx_logger.debug(f"Webhook ignored: {exc}")
        return {"status": "ignored", "reason": str(exc)}
    except (ValidationError, ValueError) as exc:
        log_failure(logger, "Invalid pull request payload", exc, delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await queue.enqueue(ReviewJob(delivery_id=delivery_id, payload=pr_payload))
    _delivery_cache[delivery_id] = now
    log_success(logger, f"Review of PR #{pr_payload.pull_number} queued", delivery_id=delivery_id)
    return {"status": "accepted"}
