"""Shared fixtures for reviewer tests."""

from typing import Dict, List
from unittest.mock import AsyncMock

import pytest

from reviewbot.config import Settings
from reviewbot.models.review import ChangedFile, Finding


class StaticAnalyzer:
    """Analyzer double returning canned findings per filename."""

    def __init__(self, findings: Dict[str, List[Finding]] | None = None) -> None:
        self.findings = findings or {}
        self.calls: List[tuple[str, str]] = []

    def analyze(self, content: str, filename: str) -> List[Finding]:
        self.calls.append((content, filename))
        return list(self.findings.get(filename, []))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        github_app_id=1234,
        github_private_key_pem="not-a-real-key",
        repository_owner="octo",
        repository_name="widgets",
        github_webhook_secret="s3cret",
    )


@pytest.fixture
def review_service() -> AsyncMock:
    service = AsyncMock()
    service.authenticate.return_value = 42
    service.list_pull_request_files.return_value = []
    service.get_file_content.return_value = "import os\n"
    service.create_review_comment.return_value = {"id": 1}
    return service


@pytest.fixture
def changed_file() -> ChangedFile:
    return ChangedFile(
        filename="app/models.py",
        patch="@@ -1,2 +1,3 @@\n context\n+added line\n context2",
        sha="blobsha",
        status="modified",
    )
