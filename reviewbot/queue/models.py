"""Data models for review queue jobs."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class PullRequestEndpoint(BaseModel):
    ref: str | None = None
    sha: str | None = None


class PullRequestInfo(BaseModel):
    number: int | None = None
    head: PullRequestEndpoint = Field(default_factory=PullRequestEndpoint)


class RepositoryInfo(BaseModel):
    full_name: str | None = None


class PullRequestPayload(BaseModel):
    """The part of a ``pull_request`` webhook body the reviewer relies on.

    Everything else GitHub sends is ignored on validation.
    """

    action: str
    number: int | None = None
    pull_request: PullRequestInfo | None = None
    repository: RepositoryInfo | None = None

    @property
    def pull_number(self) -> int | None:
        if self.number is not None:
            return self.number
        return self.pull_request.number if self.pull_request else None


class ReviewJob(BaseModel):
    delivery_id: str
    payload: PullRequestPayload
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
