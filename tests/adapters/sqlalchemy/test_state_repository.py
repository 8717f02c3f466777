from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from wavesync.adapters.sqlalchemy import SqlAlchemyApplicationStateRepository
from wavesync.domain.model import (
    RESOURCES_FINALIZER,
    ApplicationState,
    HealthStatus,
    LastSyncResult,
    ReconcilePhase,
    SyncOutcome,
    SyncStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from wavesync.adapters.sqlalchemy import SqlAlchemyStateUnitOfWork


def _state(name: str, *, root: str = "root") -> ApplicationState:
    return ApplicationState(
        name=name,
        root=root,
        sync_wave=-1,
        sync_status=SyncStatus.OUT_OF_SYNC,
        health_status=HealthStatus.DEGRADED,
        phase=ReconcilePhase.DEGRADED,
        non_blocking=True,
        revision="rev-1",
        last_sync_result=LastSyncResult(
            revision="rev-2",
            timestamp=datetime(2025, 3, 1, 12, 30, tzinfo=UTC),
            outcome=SyncOutcome.FAILED,
            error_detail="Injected apply failure (application=infra)",
            retries=3,
        ),
    )


def test_save_and_get_round_trips_every_field(sqlite_session: Session) -> None:
    repository = SqlAlchemyApplicationStateRepository(sqlite_session)
    state = _state("infra")

    repository.save(state)
    sqlite_session.commit()

    assert repository.get("infra") == state
    assert repository.get("missing") is None


def test_save_updates_existing_rows(sqlite_session: Session) -> None:
    repository = SqlAlchemyApplicationStateRepository(sqlite_session)
    state = _state("infra")
    repository.save(state)

    state.paused = True
    state.deleting = True
    state.finalizers = []
    state.last_sync_result = None
    repository.save(state)
    sqlite_session.commit()

    loaded = repository.get("infra")
    assert loaded is not None
    assert loaded.paused is True
    assert loaded.deleting is True
    assert loaded.finalizers == []
    assert loaded.last_sync_result is None


def test_list_for_root_and_delete(sqlite_session: Session) -> None:
    repository = SqlAlchemyApplicationStateRepository(sqlite_session)
    for name, root in (("web", "root"), ("api", "root"), ("other", "elsewhere")):
        repository.save(ApplicationState(name=name, root=root))
    sqlite_session.commit()

    assert [state.name for state in repository.list_for_root("root")] == ["api", "web"]

    repository.delete("api")
    sqlite_session.commit()

    assert [state.name for state in repository.list_for_root("root")] == ["web"]
    web = repository.get("web")
    assert web is not None
    assert web.finalizers == [RESOURCES_FINALIZER]


def test_unit_of_work_rolls_back_uncommitted_changes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyStateUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.applications.save(_state("infra"))

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.applications.get("infra") is None
        uow.repositories.applications.save(_state("infra"))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.applications.get("infra") == _state("infra")
