from __future__ import annotations

import asyncio

import pytest

from wavesync.domain.graph import DesiredState, load_desired_state, overlay_path
from wavesync.domain.model import ConfigError

from tests.helpers.sources import REPO_URL, ROOT_PATH, DictSource, gitops_tree


def _load(source: DictSource, environment: str = "dev") -> DesiredState:
    return asyncio.run(
        load_desired_state(
            source,
            repo_url=REPO_URL,
            revision="HEAD",
            root_path=ROOT_PATH,
            environment=environment,
        )
    )


def test_overlay_path_sits_next_to_the_root_template() -> None:
    assert overlay_path("apps/root.yaml", "prod") == "apps/overlays/prod.yaml"
    assert overlay_path("root.yaml", "dev") == "overlays/dev.yaml"


def test_load_desired_state_renders_every_application() -> None:
    source = DictSource(files=gitops_tree({"infra": -1, "api": 0}), revision="c0ffee")

    desired = _load(source)

    assert desired.graph.revision == "c0ffee"
    assert desired.graph.names == ("infra", "api")
    assert desired.revision_for("api") == "c0ffee"
    (manifest,) = desired.manifests_for("infra")
    assert manifest["metadata"] == {"name": "infra-config", "namespace": "infra"}


def test_unknown_environment_lists_the_available_overlays() -> None:
    files = gitops_tree({"api": 0})
    files["apps/overlays/prod.yaml"] = "applications: {}\n"
    source = DictSource(files=files)

    with pytest.raises(ConfigError, match="Available environments: dev, prod"):
        _load(source, environment="staging")


def test_missing_root_template_is_a_config_error() -> None:
    with pytest.raises(ConfigError, match="Root template apps/root.yaml not found"):
        _load(DictSource(files={"apps/overlays/dev.yaml": ""}))


def test_missing_application_path_is_a_config_error() -> None:
    files = gitops_tree({"api": 0})
    del files["manifests/api/resources.yaml"]

    with pytest.raises(ConfigError, match="Cannot render applications"):
        _load(DictSource(files=files))
