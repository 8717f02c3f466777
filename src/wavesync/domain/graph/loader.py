"""Fetch the root template and overlay, then build and render the graph."""

from __future__ import annotations

import posixpath
from logging import getLogger
from typing import TYPE_CHECKING

from wavesync.domain.model import ConfigError, SourceError, SourceRef

from .builder import build_application_graph
from .graph import DesiredState
from .render import render_graph

if TYPE_CHECKING:
    from wavesync.domain.ports import DesiredStateSource

    from .graph import ApplicationGraph

log = getLogger(__name__)

OVERLAY_DIR = "overlays"


def overlay_path(root_path: str, environment: str) -> str:
    """Overlays live next to the root template: ``<dir>/overlays/<env>.yaml``."""

    return posixpath.join(posixpath.dirname(root_path), OVERLAY_DIR, f"{environment}.yaml")


async def load_graph(
    source: DesiredStateSource,
    *,
    repo_url: str,
    revision: str,
    root_path: str,
    environment: str,
) -> ApplicationGraph:
    """Resolve ``revision`` and build the graph for ``environment``."""

    resolved = await source.resolve_revision(repo_url, revision)
    root_ref = SourceRef(repo_url=repo_url, revision=resolved, path=root_path)
    try:
        template_text = await source.read_file(root_ref)
    except SourceError as exc:
        raise ConfigError(f"Root template {root_path} not found at {resolved}") from exc

    overlay_ref = SourceRef(
        repo_url=repo_url, revision=resolved, path=overlay_path(root_path, environment)
    )
    try:
        overlay_text = await source.read_file(overlay_ref)
    except SourceError as exc:
        available = await _available_environments(source, overlay_ref)
        raise ConfigError(
            f"Environment {environment!r} not found. "
            f"Available environments: {', '.join(available) or 'none'}"
        ) from exc

    graph = build_application_graph(
        template_text,
        overlay_text,
        repo_url=repo_url,
        revision=resolved,
        root_path=root_path,
        overlay_name=environment,
    )
    log.info(
        "Built graph %s@%s for %s: %s applications in %s waves",
        graph.root.name,
        resolved[:12],
        environment,
        len(graph.applications),
        len(graph.waves()),
    )
    return graph


async def load_desired_state(
    source: DesiredStateSource,
    *,
    repo_url: str,
    revision: str,
    root_path: str,
    environment: str,
) -> DesiredState:
    """Build the graph and render every application before anything is applied."""

    graph = await load_graph(
        source,
        repo_url=repo_url,
        revision=revision,
        root_path=root_path,
        environment=environment,
    )
    try:
        rendered = await render_graph(source, graph)
    except SourceError as exc:
        raise ConfigError(f"Cannot render applications: {exc}") from exc
    return DesiredState(graph=graph, rendered=rendered)


async def _available_environments(source: DesiredStateSource, ref: SourceRef) -> list[str]:
    directory = SourceRef(
        repo_url=ref.repo_url, revision=ref.revision, path=posixpath.dirname(ref.path)
    )
    try:
        files = await source.list_files(directory)
    except SourceError:
        return []
    return sorted(
        posixpath.splitext(posixpath.basename(path))[0]
        for path in files
        if path.endswith((".yaml", ".yml"))
    )
