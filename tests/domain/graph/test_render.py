from __future__ import annotations

import asyncio
import textwrap

import pytest

from wavesync.domain.graph import render_application, render_graph, substitute_parameters
from wavesync.domain.graph.graph import ApplicationGraph, RootApplication
from wavesync.domain.model import (
    Application,
    ConfigError,
    ConflictError,
    Destination,
    ResourceKey,
    SourceRef,
    SyncPolicy,
)

from tests.helpers.sources import REPO_URL, DictSource


def _app(name: str, *, path: str | None = None, **parameters: str) -> Application:
    return Application(
        name=name,
        source=SourceRef(repo_url=REPO_URL, revision="HEAD", path=path or f"manifests/{name}"),
        destination=Destination(namespace=name),
        parameters=parameters,
    )


def test_substitute_parameters_replaces_known_placeholders_only() -> None:
    text = "image: ${image}\nprice: $5\nshell: $HOME\n"

    assert substitute_parameters(text, {"image": "api:1"}, origin="t") == (
        "image: api:1\nprice: $5\nshell: $HOME\n"
    )


def test_substitute_parameters_reports_every_missing_name() -> None:
    with pytest.raises(ConfigError, match="Unresolved parameters in api:x.yaml: a, b"):
        substitute_parameters("${b} ${a}", {}, origin="api:x.yaml")


def test_render_application_reads_files_in_path_order() -> None:
    source = DictSource(
        files={
            "manifests/api/20-deploy.yaml": textwrap.dedent(
                """
                apiVersion: apps/v1
                kind: Deployment
                metadata:
                  name: api
                spec:
                  replicas: ${replicas}
                """
            ),
            "manifests/api/10-config.yaml": textwrap.dedent(
                """
                apiVersion: v1
                kind: ConfigMap
                metadata:
                  name: api-config
                ---
                apiVersion: v1
                kind: Namespace
                metadata:
                  name: api
                  namespace: ignored
                """
            ),
            "manifests/api/README.md": "not a manifest",
        },
        revision="deadbeef",
    )

    rendered = asyncio.run(render_application(source, _app("api", replicas="2")))

    assert rendered.revision == "deadbeef"
    keys = [ResourceKey.from_manifest(manifest) for manifest in rendered.manifests]
    assert keys == [
        ResourceKey("", "ConfigMap", "api", "api-config"),
        ResourceKey("", "Namespace", "", "api"),
        ResourceKey("apps", "Deployment", "api", "api"),
    ]
    assert rendered.manifests[2]["spec"]["replicas"] == 2
    assert "manifests/api/README.md" not in source.reads


def test_render_application_expands_list_documents() -> None:
    source = DictSource(
        files={
            "manifests/api/list.yaml": textwrap.dedent(
                """
                apiVersion: v1
                kind: List
                items:
                  - apiVersion: v1
                    kind: ConfigMap
                    metadata: {name: one}
                  - apiVersion: v1
                    kind: ConfigMap
                    metadata: {name: two}
                """
            )
        }
    )

    rendered = asyncio.run(render_application(source, _app("api")))

    assert [manifest["metadata"]["name"] for manifest in rendered.manifests] == ["one", "two"]


def test_render_application_rejects_manifest_without_name() -> None:
    source = DictSource(files={"manifests/api/bad.yaml": "apiVersion: v1\nkind: ConfigMap\n"})

    with pytest.raises(ConfigError, match="has no metadata.name"):
        asyncio.run(render_application(source, _app("api")))


def test_render_application_rejects_resource_declared_twice() -> None:
    config = "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: same\n"
    source = DictSource(files={"manifests/api/a.yaml": config, "manifests/api/b.yaml": config})

    with pytest.raises(ConflictError, match="more than once"):
        asyncio.run(render_application(source, _app("api")))


def test_render_graph_rejects_resources_owned_by_two_applications() -> None:
    shared = "apiVersion: v1\nkind: Namespace\nmetadata:\n  name: shared\n"
    source = DictSource(
        files={"manifests/one/ns.yaml": shared, "manifests/two/ns.yaml": shared}
    )
    graph = ApplicationGraph(
        root=RootApplication(
            name="root",
            source=SourceRef(repo_url=REPO_URL, revision="rev-1", path="apps/root.yaml"),
            destination=Destination(),
            overlay="dev",
            sync_policy=SyncPolicy(),
        ),
        revision="rev-1",
        applications=(_app("one"), _app("two")),
    )

    with pytest.raises(ConflictError, match="declared by both one and two"):
        asyncio.run(render_graph(source, graph))
