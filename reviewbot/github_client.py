"""GitHub API client helpers."""

from __future__ import annotations

import asyncio
import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Protocol
from urllib.parse import quote

import httpx
import jwt

from reviewbot.models.review import ChangedFile, ReviewComment


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails.

    ``status_code`` is 0 when no response was received (timeout, connection
    error) or the response could not be used.
    """

    def __init__(self, message: str, status_code: int, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DEFAULT_API_VERSION = "2022-11-28"
FILES_PER_PAGE = 100


class ReviewService(Protocol):
    """The calls a review needs from the code-review host.

    Implementations raise ``GitHubAPIError`` on failure. Retry or rate-limit
    policies can be layered by wrapping an implementation.
    """

    async def list_pull_request_files(self, pull_number: int) -> List[ChangedFile]: ...

    async def get_file_content(self, path: str, ref: str) -> str: ...

    async def create_review_comment(self, comment: ReviewComment) -> Dict[str, Any]: ...


@dataclass
class InstallationToken:
    token: str
    expires_at: datetime

    def is_active(self, *, skew_seconds: int = 60) -> bool:
        """Return True if the token is still valid accounting for clock skew."""

        return self.expires_at - timedelta(seconds=skew_seconds) > datetime.now(timezone.utc)


class GitHubInstallationClient:
    """GitHub App client scoped to the installation on one repository."""

    def __init__(
        self,
        *,
        base_url: str,
        app_id: int,
        private_key_pem: str,
        owner: str,
        repo: str,
        timeout: float = 10.0,
        user_agent: str = "Lint-ReviewBot/1.0",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._app_id = app_id
        # Keys pasted into env files often carry literal "\n" sequences
        self._private_key = private_key_pem.replace("\\n", "\n")
        self.owner = owner
        self.repo = repo
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": DEFAULT_ACCEPT_HEADER,
                "X-GitHub-Api-Version": DEFAULT_API_VERSION,
            },
        )
        self._owns_client = client is None
        self._installation_id: int | None = None
        self._token: InstallationToken | None = None
        self._token_lock = asyncio.Lock()

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def installation_id(self) -> int | None:
        return self._installation_id

    def _build_jwt(self) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iat": int((now - timedelta(seconds=60)).timestamp()),
            "exp": int((now + timedelta(minutes=10)).timestamp()),
            "iss": str(self._app_id),
        }
        try:
            return jwt.encode(payload, self._private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise GitHubAPIError(
                f"Failed to encode JWT: {exc}. Check that GITHUB_PRIVATE_KEY is a valid RSA private key in PEM format.",
                0,
                None,
            ) from exc

    def _app_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._build_jwt()}"}

    @staticmethod
    def _installation_headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise GitHubAPIError(f"GitHub API request to {url} timed out.", 0, None) from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request to {url} failed: {exc}", 0, None) from exc

        if response.status_code >= 400:
            detail: Any | None
            if response.content:
                try:
                    detail = response.json()
                except ValueError:
                    detail = response.text
            else:
                detail = None
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                detail,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                "GitHub API returned invalid JSON.", response.status_code, response.text
            ) from exc

    async def authenticate(self) -> int:
        """Resolve the App installation for the configured repository."""

        response = await self._request(
            "GET",
            f"/repos/{self.owner}/{self.repo}/installation",
            headers=self._app_headers(),
        )
        data = self._json(response)
        installation_id = data.get("id") if isinstance(data, dict) else None
        if not installation_id:
            raise GitHubAPIError(
                f"GitHub App is not installed on {self.full_name}.",
                response.status_code,
                data,
            )
        self._installation_id = int(installation_id)
        return self._installation_id

    async def _fetch_installation_token(self) -> InstallationToken:
        if self._installation_id is None:
            await self.authenticate()
        response = await self._request(
            "POST",
            f"/app/installations/{self._installation_id}/access_tokens",
            headers=self._app_headers(),
        )
        data = self._json(response)
        token_value = data.get("token")
        if not token_value:
            raise GitHubAPIError(
                "GitHub did not return an installation token.",
                response.status_code,
                data,
            )

        expires_at_raw = data.get("expires_at")
        if not expires_at_raw:
            raise GitHubAPIError(
                "GitHub did not return an expires_at value for installation token.",
                response.status_code,
                data,
            )
        return InstallationToken(token=token_value, expires_at=_parse_github_timestamp(expires_at_raw))

    async def get_installation_token(self) -> InstallationToken:
        """Return the cached installation token, minting one when it expired.

        Concurrent file reviews share one refresh.
        """

        if self._token and self._token.is_active():
            return self._token
        async with self._token_lock:
            if self._token is None or not self._token.is_active():
                self._token = await self._fetch_installation_token()
            return self._token

    async def list_pull_request_files(self, pull_number: int) -> List[ChangedFile]:
        token = await self.get_installation_token()

        files: List[ChangedFile] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                f"/repos/{self.owner}/{self.repo}/pulls/{pull_number}/files",
                headers=self._installation_headers(token.token),
                params={"per_page": FILES_PER_PAGE, "page": page},
            )
            batch = self._json(response)
            if not isinstance(batch, list):
                raise GitHubAPIError(
                    "Unexpected response while listing pull request files.",
                    response.status_code,
                    batch,
                )
            files.extend(
                ChangedFile(
                    filename=entry["filename"],
                    patch=entry.get("patch"),
                    sha=entry.get("sha"),
                    status=entry.get("status", ""),
                )
                for entry in batch
                if entry.get("filename")
            )
            if len(batch) < FILES_PER_PAGE:
                break
            page += 1
        return files

    async def get_file_content(self, path: str, ref: str) -> str:
        """Return the decoded text of ``path`` at ``ref``."""

        token = await self.get_installation_token()
        response = await self._request(
            "GET",
            f"/repos/{self.owner}/{self.repo}/contents/{quote(path)}",
            headers=self._installation_headers(token.token),
            params={"ref": ref},
        )
        data = self._json(response)
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise GitHubAPIError(f"{path} is not a file at {ref}.", response.status_code, data)
        if data.get("encoding") != "base64":
            # Files over 1 MB come back without inline content
            raise GitHubAPIError(
                f"Content of {path} is not available inline (encoding={data.get('encoding')!r}).",
                response.status_code,
                None,
            )
        try:
            raw = base64.b64decode(data.get("content") or "")
        except (binascii.Error, ValueError) as exc:
            raise GitHubAPIError(f"Content of {path} is not valid base64.", response.status_code, None) from exc
        return raw.decode("utf-8", errors="replace")

    async def create_review_comment(self, comment: ReviewComment) -> Dict[str, Any]:
        token = await self.get_installation_token()
        response = await self._request(
            "POST",
            f"/repos/{self.owner}/{self.repo}/pulls/{comment.pull_number}/comments",
            headers=self._installation_headers(token.token),
            json={
                "body": comment.body,
                "commit_id": comment.commit_id,
                "path": comment.path,
                "position": comment.position,
            },
        )
        return self._json(response)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _parse_github_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw).astimezone(timezone.utc)
