from __future__ import annotations

from typing import TYPE_CHECKING

from wavesync.adapters.memory import InMemoryCluster, InMemoryStateStore
from wavesync.adapters.source import FilesystemSource, HttpSource
from wavesync.app import build_controller, build_source, root_status, run_rollout
from wavesync.config import SourceConfig
from wavesync.domain.model import HealthStatus, RolloutOutcome

from tests.helpers.contents_api import ContentsApi, resilience_config
from tests.helpers.controllers import FAST_SETTINGS
from tests.helpers.sources import REPO_URL, ROOT_PATH, gitops_tree

if TYPE_CHECKING:
    from pathlib import Path


def _write_tree(root: Path, files: dict[str, str]) -> None:
    for relative, text in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")


def test_build_source_uses_a_local_checkout_for_paths(tmp_path: Path) -> None:
    source = build_source(SourceConfig(location=str(tmp_path), repo_url=REPO_URL))

    assert isinstance(source, FilesystemSource)
    assert source.root == tmp_path


def test_build_source_uses_the_contents_api_for_urls() -> None:
    config = SourceConfig(
        location="https://api.example.test",
        repo_url=REPO_URL,
        token="secret",
    )

    source = build_source(config)

    assert isinstance(source, HttpSource)
    assert source.resilience.base_url == "https://api.example.test/"
    assert source.resilience.default_headers == {
        "Accept": "application/json",
        "Authorization": "Bearer secret",
    }


def test_build_controller_rolls_out_a_local_checkout(tmp_path: Path) -> None:
    _write_tree(tmp_path, gitops_tree({"infra": -1, "api": 0}, environment="staging"))
    cluster = InMemoryCluster()
    store = InMemoryStateStore()
    controller = build_controller(
        environment="staging",
        source_config=SourceConfig(location=str(tmp_path), repo_url=REPO_URL, root_path=ROOT_PATH),
        settings=FAST_SETTINGS,
        cluster=cluster,
        unit_of_work_factory=store.unit_of_work,
    )

    assert controller.environment == "staging"
    assert controller.repo_url == REPO_URL

    report = run_rollout(controller=controller)

    assert report.outcome is RolloutOutcome.COMPLETED
    assert len(cluster.owned_keys("infra")) == 1
    assert len(cluster.owned_keys("api")) == 1
    status = root_status(controller=controller)
    assert status.health_status is HealthStatus.HEALTHY
    assert [app.name for app in status.applications] == ["infra", "api"]


def test_operations_close_the_contents_api_client() -> None:
    api = ContentsApi(repo_url=REPO_URL, files=gitops_tree({"infra": -1, "api": 0}))
    cluster = InMemoryCluster()
    store = InMemoryStateStore()
    controller = build_controller(
        environment="dev",
        source_config=SourceConfig(
            location="https://api.example.test", repo_url=REPO_URL, root_path=ROOT_PATH
        ),
        settings=FAST_SETTINGS,
        source=HttpSource(resilience=resilience_config(), client_factory=api.client_factory),
        cluster=cluster,
        unit_of_work_factory=store.unit_of_work,
    )

    report = run_rollout(controller=controller)
    status = root_status(controller=controller)

    assert report.outcome is RolloutOutcome.COMPLETED
    assert status.health_status is HealthStatus.HEALTHY
    assert len(cluster.owned_keys("api")) == 1
    assert api.clients
    assert all(client._client.is_closed for client in api.clients)  # noqa: SLF001  # type: ignore[reportPrivateUsage]
