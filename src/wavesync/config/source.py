"""Desired-state source configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_REVISION = "HEAD"
DEFAULT_ROOT_PATH = "apps/root.yaml"
DEFAULT_ENVIRONMENT = "dev"
SOURCE_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class SourceConfig:
    """Where the root manifest lives and which overlay to resolve it with.

    ``location`` is either a local checkout directory or the base URL of a
    contents API (``http://`` or ``https://``).
    """

    location: str
    repo_url: str
    revision: str = DEFAULT_REVISION
    root_path: str = DEFAULT_ROOT_PATH
    environment: str = DEFAULT_ENVIRONMENT
    token: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(("http://", "https://"))

    def resilience(self) -> ResilienceConfig:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return ResilienceConfig(
            name="source",
            base_url=self.location.rstrip("/") + "/",
            timeout_seconds=SOURCE_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            cache=CacheConfig(backend="memory"),
            default_headers=headers,
        )


def get_source_config(*, environment: str | None = None) -> SourceConfig:
    values = require_env_vars(("WAVESYNC_SOURCE",))
    location = values["WAVESYNC_SOURCE"]
    return SourceConfig(
        location=location,
        repo_url=optional_env_var("WAVESYNC_REPO_URL", location),
        revision=optional_env_var("WAVESYNC_REVISION", DEFAULT_REVISION),
        root_path=optional_env_var("WAVESYNC_ROOT_PATH", DEFAULT_ROOT_PATH),
        environment=environment or optional_env_var("WAVESYNC_ENVIRONMENT", DEFAULT_ENVIRONMENT),
        token=os.getenv("WAVESYNC_SOURCE_TOKEN") or None,
    )
