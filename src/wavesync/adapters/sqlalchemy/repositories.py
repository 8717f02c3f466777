"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from wavesync.adapters.sqlalchemy.tables import application_state_table
from wavesync.domain.model import (
    ApplicationState,
    HealthStatus,
    LastSyncResult,
    ReconcilePhase,
    SyncOutcome,
    SyncStatus,
)

if TYPE_CHECKING:
    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from wavesync.domain.ports import ApplicationStateRepository


class SqlAlchemyApplicationStateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, name: str) -> ApplicationState | None:
        stmt = select(application_state_table).where(application_state_table.c.name == name)
        row = self.session.execute(stmt).one_or_none()
        return _to_state(row) if row is not None else None

    def list_for_root(self, root: str) -> list[ApplicationState]:
        stmt = (
            select(application_state_table)
            .where(application_state_table.c.root == root)
            .order_by(application_state_table.c.name)
        )
        return [_to_state(row) for row in self.session.execute(stmt)]

    def save(self, state: ApplicationState) -> None:
        values = _to_values(state)
        exists = self.session.execute(
            select(application_state_table.c.name).where(
                application_state_table.c.name == state.name
            )
        ).scalar_one_or_none()
        if exists is None:
            self.session.execute(application_state_table.insert().values(**values))
        else:
            self.session.execute(
                application_state_table.update()
                .where(application_state_table.c.name == state.name)
                .values(**values)
            )

    def delete(self, name: str) -> None:
        self.session.execute(
            delete(application_state_table).where(application_state_table.c.name == name)
        )


def _to_values(state: ApplicationState) -> dict[str, Any]:
    result = state.last_sync_result
    return {
        "name": state.name,
        "root": state.root,
        "sync_wave": state.sync_wave,
        "sync_status": state.sync_status,
        "health_status": state.health_status,
        "phase": state.phase,
        "paused": state.paused,
        "non_blocking": state.non_blocking,
        "deleting": state.deleting,
        "revision": state.revision,
        "finalizers": list(state.finalizers),
        "last_sync_revision": result.revision if result else None,
        "last_sync_at": result.timestamp if result else None,
        "last_sync_outcome": result.outcome if result else None,
        "last_sync_error": result.error_detail if result else None,
        "last_sync_retries": result.retries if result else None,
    }


def _to_state(row: Row[Any]) -> ApplicationState:
    data = row._mapping  # noqa: SLF001
    last_sync_result: LastSyncResult | None = None
    if data["last_sync_outcome"] is not None:
        last_sync_result = LastSyncResult(
            revision=data["last_sync_revision"] or "",
            timestamp=data["last_sync_at"],
            outcome=SyncOutcome(data["last_sync_outcome"]),
            error_detail=data["last_sync_error"],
            retries=data["last_sync_retries"] or 0,
        )
    return ApplicationState(
        name=data["name"],
        root=data["root"],
        sync_wave=data["sync_wave"],
        sync_status=SyncStatus(data["sync_status"]),
        health_status=HealthStatus(data["health_status"]),
        phase=ReconcilePhase(data["phase"]),
        paused=bool(data["paused"]),
        non_blocking=bool(data["non_blocking"]),
        revision=data["revision"],
        last_sync_result=last_sync_result,
        finalizers=list(data["finalizers"] or []),
        deleting=bool(data["deleting"]),
    )


if TYPE_CHECKING:
    _repository_check: ApplicationStateRepository = SqlAlchemyApplicationStateRepository(Session())
