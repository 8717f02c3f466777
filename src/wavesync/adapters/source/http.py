"""Desired-state source backed by a GitHub-style contents API."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote, urlsplit

import httpx
from pydantic import ValidationError

from wavesync.adapters.http_resilience import ResilientClient
from wavesync.config.http_resilience import CacheConfig, RateLimit, ResilienceConfig
from wavesync.domain.model import SourceError

from .schema import CommitPayload, DirectoryListing, FilePayload

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from wavesync.domain.model import SourceRef
    from wavesync.domain.ports import DesiredStateSource

log = getLogger(__name__)

GITHUB_API_URL = "https://api.github.com/"
_DEFAULT_TIMEOUT_SECONDS = 15.0


def _default_resilience_config() -> ResilienceConfig:
    return ResilienceConfig(
        name="source",
        base_url=GITHUB_API_URL,
        timeout_seconds=_DEFAULT_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=CacheConfig(backend="memory"),
        default_headers={"Accept": "application/json"},
    )


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def repository_slug(repo_url: str) -> str:
    """``https://github.com/org/repo.git`` -> ``org/repo``; ``org/repo`` is kept."""

    path = urlsplit(repo_url).path if "://" in repo_url else repo_url
    path = path.strip("/")
    path = path.removesuffix(".git")
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:  # noqa: PLR2004
        raise SourceError(f"Cannot derive repository from {repo_url!r}")
    return "/".join(parts[-2:])


@dataclass(slots=True)
class HttpSource:
    """Read manifests through ``repos/{repo}/commits`` and ``repos/{repo}/contents``."""

    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> HttpSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the shared client; the next request opens a fresh one."""

        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    def _shared_client(self) -> ResilientClient:
        # One client per source so the rate limit and response cache span every call.
        if self._client is None:
            self._client = self.client_factory(self.resilience)
        return self._client

    async def resolve_revision(self, repo_url: str, revision: str) -> str:
        slug = repository_slug(repo_url)
        payload = await self._get_json(
            self._shared_client(), f"repos/{slug}/commits/{quote(revision, safe='')}", params=None
        )
        try:
            commit = CommitPayload.model_validate(payload)
        except ValidationError as exc:
            raise SourceError(f"Unexpected commit payload for {slug}@{revision}") from exc
        log.debug("Resolved %s@%s to %s", slug, revision, commit.sha)
        return commit.sha

    async def list_files(self, ref: SourceRef) -> tuple[str, ...]:
        slug = repository_slug(ref.repo_url)
        files: list[str] = []
        client = self._shared_client()
        pending = [ref.path.strip("/")]
        while pending:
            directory = pending.pop()
            payload = await self._get_json(
                client, self._contents_url(slug, directory), params={"ref": ref.revision}
            )
            if isinstance(payload, dict):
                # The path names a single file.
                files.append(_single_file(payload, slug, directory))
                continue
            try:
                entries = DirectoryListing.validate_python(payload)
            except ValidationError as exc:
                raise SourceError(f"Unexpected listing for {slug}:{directory}") from exc
            for entry in entries:
                if entry.type == "dir":
                    pending.append(entry.path)
                elif entry.type == "file":
                    files.append(entry.path)
        return tuple(sorted(files))

    async def read_file(self, ref: SourceRef) -> str:
        slug = repository_slug(ref.repo_url)
        payload = await self._get_json(
            self._shared_client(), self._contents_url(slug, ref.path), params={"ref": ref.revision}
        )
        if not isinstance(payload, dict):
            raise SourceError(f"{ref.path} is a directory, not a file")
        try:
            return FilePayload.model_validate(payload).decoded()
        except (ValidationError, ValueError) as exc:
            raise SourceError(f"Cannot decode {slug}:{ref.path}@{ref.revision}: {exc}") from exc

    def _contents_url(self, slug: str, path: str) -> str:
        normalized = posixpath.normpath(path.strip("/")) if path.strip("/") else ""
        if normalized in {"", "."}:
            return f"repos/{slug}/contents"
        return f"repos/{slug}/contents/{quote(normalized)}"

    async def _get_json(
        self,
        client: ResilientClient,
        url: str,
        *,
        params: dict[str, str] | None,
    ) -> object:
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise SourceError(f"Request to {url} failed: {exc}") from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            raise SourceError(f"Not found: {url}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.error("Source API error %s for %s", response.status_code, url)
            raise SourceError(f"Source API returned {response.status_code} for {url}") from exc
        return response.json()


def _single_file(payload: object, slug: str, path: str) -> str:
    try:
        return FilePayload.model_validate(payload).path
    except ValidationError as exc:
        raise SourceError(f"Unexpected contents payload for {slug}:{path}") from exc


if TYPE_CHECKING:
    _source_check: DesiredStateSource = HttpSource()
