"""Application configuration helpers.

Settings are read once, from an explicit environment mapping, into an
immutable ``Settings`` object that is then handed to every component that
needs it. Startup waits (polling) until the required variables are set.
"""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Callable, Final, Mapping, Sequence, Tuple

from dotenv import dotenv_values
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, ValidationError, field_validator

from reviewbot.logger import get_logger

logger = get_logger()

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_FILE_FILTER: Final[str] = r".*\.pyi?$"
DEFAULT_POLL_INTERVAL: Final[float] = 2.0

REQUIRED_SETTINGS: Final[Tuple[str, ...]] = (
    "GITHUB_APP_ID",
    "GITHUB_PRIVATE_KEY",
    "REPOSITORY_OWNER",
    "REPOSITORY_NAME",
)
SECRET_SETTINGS: Final[frozenset[str]] = frozenset({"GITHUB_PRIVATE_KEY", "GITHUB_WEBHOOK_SECRET"})


class SettingsError(RuntimeError):
    """Raised when application configuration is invalid."""


class Settings(BaseModel):
    """Runtime settings, immutable once built."""

    model_config = ConfigDict(frozen=True)

    github_app_id: int
    github_private_key_pem: str
    repository_owner: str
    repository_name: str
    github_webhook_secret: str | None = None
    github_api_base_url: AnyHttpUrl = "https://api.github.com"
    file_filter: str = DEFAULT_FILE_FILTER
    host: str = "0.0.0.0"
    port: int = Field(default=5000, ge=1, le=65535)
    request_timeout: float = Field(default=10.0, gt=0)
    max_concurrent_files: int = Field(default=0, ge=0)
    analyzer_ignore: Tuple[str, ...] = ()

    @field_validator("file_filter")
    @classmethod
    def _check_file_filter(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"FILE_FILTER is not a valid regular expression: {exc}") from exc
        return value

    @property
    def repository_full_name(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"

    @property
    def normalized_github_api_base_url(self) -> str:
        """Return the GitHub API base URL without a trailing slash."""
        return str(self.github_api_base_url).rstrip("/")

    @cached_property
    def file_pattern(self) -> re.Pattern[str]:
        return re.compile(self.file_filter)


@dataclass(frozen=True)
class ReadinessReport:
    present: Tuple[str, ...]
    missing: Tuple[str, ...]

    @property
    def ready(self) -> bool:
        return not self.missing


def check_readiness(
    environ: Mapping[str, str], required: Sequence[str] = REQUIRED_SETTINGS
) -> ReadinessReport:
    """Report which required variables are set and which are still missing."""

    present = tuple(name for name in required if (environ.get(name) or "").strip())
    missing = tuple(name for name in required if name not in present)
    return ReadinessReport(present=present, missing=missing)


def describe_settings(environ: Mapping[str, str], names: Sequence[str]) -> str:
    lines = []
    for name in names:
        value = "********" if name in SECRET_SETTINGS else environ.get(name)
        lines.append(f"* {name} = {value}")
    return "\n".join(lines)


def _split_list(raw_value: str | None) -> Tuple[str, ...]:
    if not raw_value:
        return ()
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


def build_settings(environ: Mapping[str, str]) -> Settings:
    """Build settings from an environment mapping.

    Raises:
        SettingsError: if a required value is missing or a value is invalid.
    """

    report = check_readiness(environ)
    if not report.ready:
        raise SettingsError(
            f"Missing environment variables: {', '.join(report.missing)}."
        )

    values: dict[str, object] = {
        "github_private_key_pem": environ["GITHUB_PRIVATE_KEY"],
        "repository_owner": environ["REPOSITORY_OWNER"].strip(),
        "repository_name": environ["REPOSITORY_NAME"].strip(),
        "github_webhook_secret": environ.get("GITHUB_WEBHOOK_SECRET") or None,
        "analyzer_ignore": _split_list(environ.get("ANALYZER_IGNORE")),
    }
    optional = {
        "GITHUB_API_BASE_URL": "github_api_base_url",
        "FILE_FILTER": "file_filter",
        "HOST": "host",
        "PORT": "port",
        "REQUEST_TIMEOUT": "request_timeout",
        "MAX_CONCURRENT_FILES": "max_concurrent_files",
    }
    for env_name, field_name in optional.items():
        raw_value = environ.get(env_name)
        if raw_value:
            values[field_name] = raw_value.strip()

    try:
        values["github_app_id"] = int(environ["GITHUB_APP_ID"])
    except ValueError as exc:
        raise SettingsError("Invalid value for GITHUB_APP_ID. It must be an integer.") from exc

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise SettingsError(f"Invalid application configuration: {exc}") from exc


def read_environ(env_file: Path | None = ENV_FILE) -> dict[str, str]:
    """Snapshot the process environment, with ``.env`` values as fallbacks."""

    merged: dict[str, str] = {}
    if env_file is not None and env_file.exists():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(os.environ)
    return merged


def wait_for_settings(
    load_environ: Callable[[], Mapping[str, str]] = read_environ,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    extra_required: Sequence[str] = (),
    sleep: Callable[[float], None] = time.sleep,
) -> Settings:
    """Block until every required variable is set, then build the settings.

    ``REQUIRED_SETTINGS`` are always waited for since ``Settings`` cannot be
    built without them; ``extra_required`` names further variables to wait for
    (for instance ``GITHUB_WEBHOOK_SECRET`` to refuse unsigned deliveries).
    """

    required = tuple(dict.fromkeys((*REQUIRED_SETTINGS, *extra_required)))
    while True:
        environ = load_environ()
        report = check_readiness(environ, required)
        if report.present:
            logger.info(f"Set variables:\n{describe_settings(environ, report.present)}")
        if report.ready:
            return build_settings(environ)
        logger.warning(f"Still waiting for following env vars to be set: {', '.join(report.missing)}")
        sleep(interval)


def poll_interval_from(environ: Mapping[str, str]) -> float:
    raw_value = environ.get("STARTUP_POLL_INTERVAL")
    if not raw_value:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(raw_value)
    except ValueError as exc:
        raise SettingsError("STARTUP_POLL_INTERVAL must be a number of seconds.") from exc
    if interval <= 0:
        raise SettingsError("STARTUP_POLL_INTERVAL must be positive.")
    return interval
