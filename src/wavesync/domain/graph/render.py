"""Render an application's desired manifests from the desired-state source."""

from __future__ import annotations

import asyncio
import re
from logging import getLogger
from typing import TYPE_CHECKING, Any

from wavesync.domain.model import ConfigError, ConflictError, ResourceKey, SourceRef
from wavesync.domain.model.resources import CLUSTER_SCOPED_KINDS

from .graph import RenderedApplication
from .yaml_loader import load_documents

if TYPE_CHECKING:
    from collections.abc import Mapping

    from wavesync.domain.model import Application, Manifest
    from wavesync.domain.ports import DesiredStateSource

    from .graph import ApplicationGraph

log = getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")
_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_.-]*)\}")


def substitute_parameters(text: str, parameters: Mapping[str, str], *, origin: str) -> str:
    """Replace ``${name}`` placeholders; any other ``$`` is left untouched."""

    missing: set[str] = set()

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in parameters:
            missing.add(name)
            return match.group(0)
        return parameters[name]

    rendered = _PLACEHOLDER.sub(_replace, text)
    if missing:
        raise ConfigError(f"Unresolved parameters in {origin}: {', '.join(sorted(missing))}")
    return rendered


def parse_manifests(text: str, *, origin: str, namespace: str) -> list[Manifest]:
    manifests: list[Manifest] = []
    for document in load_documents(text, origin=origin):
        if not isinstance(document, dict):
            raise ConfigError(f"Expected a mapping document in {origin}")
        if document.get("kind") == "List" and isinstance(document.get("items"), list):
            items: list[Any] = document["items"]
            for item in items:
                manifests.append(_validated(item, origin=origin, namespace=namespace))
            continue
        manifests.append(_validated(document, origin=origin, namespace=namespace))
    return manifests


def _validated(document: object, *, origin: str, namespace: str) -> Manifest:
    if not isinstance(document, dict):
        raise ConfigError(f"Expected a mapping document in {origin}")
    metadata = document.get("metadata")
    if not document.get("apiVersion") or not document.get("kind"):
        raise ConfigError(f"Manifest in {origin} is missing apiVersion or kind")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise ConfigError(f"Manifest {document['kind']} in {origin} has no metadata.name")
    if document["kind"] not in CLUSTER_SCOPED_KINDS:
        metadata.setdefault("namespace", namespace)
    else:
        metadata.pop("namespace", None)
    return document


async def render_application(source: DesiredStateSource, app: Application) -> RenderedApplication:
    """Fetch and parse every manifest file below ``app.source.path``.

    Files are read in sorted path order so the rendered tuple is stable for a
    given revision.
    """

    revision = await source.resolve_revision(app.source.repo_url, app.source.revision)
    ref = app.source.with_revision(revision)
    listed = await source.list_files(ref)
    paths = sorted(path for path in listed if path.endswith(MANIFEST_SUFFIXES))

    manifests: list[Manifest] = []
    seen: set[ResourceKey] = set()
    for path in paths:
        text = await source.read_file(
            SourceRef(repo_url=ref.repo_url, revision=revision, path=path)
        )
        origin = f"{app.name}:{path}"
        rendered = substitute_parameters(text, app.parameters, origin=origin)
        for manifest in parse_manifests(
            rendered, origin=origin, namespace=app.destination.namespace
        ):
            key = ResourceKey.from_manifest(manifest)
            if key in seen:
                raise ConflictError(f"Application {app.name} declares {key} more than once")
            seen.add(key)
            manifests.append(manifest)

    log.debug("Rendered %s resources for %s at %s", len(manifests), app.name, revision)
    return RenderedApplication(revision=revision, manifests=tuple(manifests))


async def render_graph(
    source: DesiredStateSource, graph: ApplicationGraph
) -> dict[str, RenderedApplication]:
    """Render every application; resource ownership must not overlap."""

    rendered = await asyncio.gather(
        *(render_application(source, app) for app in graph.applications)
    )
    manifests = dict(zip(graph.names, rendered, strict=True))

    owners: dict[ResourceKey, str] = {}
    for name, item in manifests.items():
        for manifest in item.manifests:
            key = ResourceKey.from_manifest(manifest)
            owner = owners.get(key)
            if owner is not None:
                raise ConflictError(f"Resource {key} is declared by both {owner} and {name}")
            owners[key] = name
    return manifests
