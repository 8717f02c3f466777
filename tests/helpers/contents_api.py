"""A GitHub-style contents API served from a ``path -> text`` mapping."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from urllib.parse import unquote

import httpx

from wavesync.adapters.http_resilience import ResilientClient
from wavesync.adapters.source import repository_slug
from wavesync.config import ResilienceConfig, RetryPolicy

BASE_URL = "https://api.example.test/"


@dataclass(slots=True)
class ContentsApi:
    repo_url: str
    files: dict[str, str]
    sha: str = "0123abcd"
    requests: list[str] = field(default_factory=list)
    clients: list[ResilientClient] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        slug = repository_slug(self.repo_url)
        path = unquote(request.url.path)
        if path.startswith(f"/repos/{slug}/commits/"):
            return httpx.Response(200, json={"sha": self.sha, "commit": {}})
        relative = path.removeprefix(f"/repos/{slug}/contents").strip("/")
        if relative in self.files:
            return httpx.Response(200, json=self._file(relative))
        listing = self._listing(relative)
        if not listing:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=listing)

    def client_factory(self, resilience: ResilienceConfig) -> ResilientClient:
        """Build a real ``ResilientClient`` whose transport is this fake."""

        async def handler(request: httpx.Request) -> httpx.Response:
            return self.handle(request)

        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL, transport=httpx.MockTransport(handler)
        )
        self.clients.append(client)
        return client

    def _file(self, path: str) -> dict[str, object]:
        return {
            "type": "file",
            "path": path,
            "name": path.rsplit("/", 1)[-1],
            "encoding": "base64",
            "content": base64.encodebytes(self.files[path].encode()).decode(),
        }

    def _listing(self, directory: str) -> list[dict[str, object]]:
        prefix = f"{directory}/" if directory else ""
        entries: dict[str, str] = {}
        for path in self.files:
            if not path.startswith(prefix):
                continue
            head, _, rest = path.removeprefix(prefix).partition("/")
            entries[prefix + head] = "dir" if rest else "file"
        return [
            {"type": kind, "path": path, "name": path.rsplit("/", 1)[-1]}
            for path, kind in sorted(entries.items())
        ]


def resilience_config() -> ResilienceConfig:
    return ResilienceConfig(
        name="source-test", base_url=BASE_URL, retry=RetryPolicy(total=0), cache=None
    )
