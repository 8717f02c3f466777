"""Controller state persisted through SQLAlchemy across controller instances."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from wavesync.adapters.sqlalchemy import SqlAlchemyCluster
from wavesync.adapters.sqlalchemy.unit_of_work import configured_session_factory
from wavesync.domain.controller import GitOpsController
from wavesync.domain.model import HealthStatus, RolloutOutcome, SyncStatus

from tests.helpers.controllers import FAST_SETTINGS, RecordingSleep
from tests.helpers.sources import REPO_URL, ROOT_PATH, DictSource, gitops_tree

if TYPE_CHECKING:
    from collections.abc import Callable

    from wavesync.adapters.sqlalchemy import SqlAlchemyStateUnitOfWork


def _controller(
    source: DictSource, unit_of_work: Callable[[], SqlAlchemyStateUnitOfWork]
) -> GitOpsController:
    return GitOpsController(
        source=source,
        cluster=SqlAlchemyCluster(session_factory=configured_session_factory()),
        unit_of_work_factory=unit_of_work,
        repo_url=REPO_URL,
        root_path=ROOT_PATH,
        settings=FAST_SETTINGS,
        sleep=RecordingSleep(),
    )


@pytest.mark.integration
def test_rollout_state_survives_a_new_controller(
    sqlite_unit_of_work: Callable[[], SqlAlchemyStateUnitOfWork],
) -> None:
    source = DictSource(files=gitops_tree({"infra": -1, "api": 0}))

    report = asyncio.run(_controller(source, sqlite_unit_of_work).rollout())
    assert report.outcome is RolloutOutcome.COMPLETED

    fresh = _controller(source, sqlite_unit_of_work)
    status = asyncio.run(fresh.root_status())

    assert status.sync_status is SyncStatus.SYNCED
    assert status.health_status is HealthStatus.HEALTHY
    assert [app.name for app in status.applications] == ["infra", "api"]
    assert all(app.last_sync_result is not None for app in status.applications)

    refreshed = asyncio.run(fresh.refresh())
    assert refreshed.rollout is None
    assert all(not drift.drifted for drift in refreshed.drift)


@pytest.mark.integration
def test_delete_root_clears_persisted_state(
    sqlite_unit_of_work: Callable[[], SqlAlchemyStateUnitOfWork],
) -> None:
    source = DictSource(files=gitops_tree({"infra": -1, "api": 0}))
    controller = _controller(source, sqlite_unit_of_work)
    asyncio.run(controller.rollout())

    report = asyncio.run(controller.delete_root())

    assert report.complete
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.applications.list_for_root("root") == []
    assert asyncio.run(controller.cluster.list_owned("infra")) == []
