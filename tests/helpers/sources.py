"""In-memory desired-state trees for controller tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from wavesync.domain.model import SourceError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from wavesync.domain.model import SourceRef

REPO_URL = "https://git.example.test/platform/gitops.git"
ROOT_PATH = "apps/root.yaml"


@dataclass(slots=True)
class DictSource:
    """``DesiredStateSource`` over a ``path -> text`` mapping.

    ``revision`` is what every symbolic revision resolves to; bump it together
    with ``files`` to simulate a new commit.
    """

    files: dict[str, str] = field(default_factory=dict)
    revision: str = "rev-1"
    reads: list[str] = field(default_factory=list)

    async def resolve_revision(self, repo_url: str, revision: str) -> str:
        _ = repo_url, revision
        return self.revision

    async def list_files(self, ref: SourceRef) -> tuple[str, ...]:
        prefix = ref.path.strip("/")
        if prefix in self.files:
            return (prefix,)
        matched = sorted(path for path in self.files if path.startswith(f"{prefix}/"))
        if not matched:
            raise SourceError(f"Path {ref.path!r} not found")
        return tuple(matched)

    async def read_file(self, ref: SourceRef) -> str:
        self.reads.append(ref.path)
        try:
            return self.files[ref.path]
        except KeyError:
            raise SourceError(f"File {ref.path!r} not found") from None

    def commit(self, files: Mapping[str, str], revision: str) -> None:
        self.files = dict(files)
        self.revision = revision


def dump(document: Any) -> str:
    return yaml.safe_dump(document, sort_keys=False)


def config_map(name: str, **data: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name},
        "data": dict(data) or {"key": "value"},
    }


def deployment(name: str, *, replicas: int = 1) -> dict[str, Any]:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name},
        "spec": {"replicas": replicas},
    }


def gitops_tree(
    waves: Mapping[str, int],
    *,
    automated: bool = True,
    prune: bool = True,
    self_heal: bool = True,
    retry_limit: int = 2,
    backoff: Mapping[str, Any] | None = None,
    root_prune: bool = True,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
    environment: str = "dev",
    extra_manifests: Mapping[str, list[dict[str, Any]]] | None = None,
) -> dict[str, str]:
    """Build a root template, one overlay and one ConfigMap per application."""

    template = {
        "name": "root",
        "syncPolicy": {"automated": True, "prune": root_prune},
        "defaults": {
            "syncPolicy": {
                "automated": automated,
                "prune": prune,
                "selfHeal": self_heal,
                "retry": {
                    "limit": retry_limit,
                    "backoff": dict(
                        backoff or {"duration": "1s", "factor": 2, "maxDuration": "1m"}
                    ),
                },
            }
        },
        "applications": {
            name: {"path": f"manifests/{name}", "namespace": name, "syncWave": wave}
            for name, wave in waves.items()
        },
    }
    overlay: dict[str, Any] = {"applications": {k: dict(v) for k, v in (overrides or {}).items()}}

    files = {
        ROOT_PATH: dump(template),
        f"apps/overlays/{environment}.yaml": dump(overlay),
    }
    for name in waves:
        manifests = [config_map(f"{name}-config")]
        manifests.extend((extra_manifests or {}).get(name, []))
        files[f"manifests/{name}/resources.yaml"] = yaml.safe_dump_all(manifests, sort_keys=False)
    return files
