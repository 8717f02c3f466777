"""Cluster backend that keeps live resources in a SQL table.

Useful as a durable declarative-state store for dry runs and for driving the
controller end to end without a Kubernetes API server.

Session I/O runs synchronously on the event loop, so concurrent wave members
reach the database one call at a time. Each call opens and commits its own short
session and never awaits while holding it, so the state unit of work can share
the engine, including a single SQLite connection.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from wavesync.adapters.sqlalchemy.tables import live_resource_table
from wavesync.domain.model import ApplyError, ClusterUnavailableError, ResourceKey
from wavesync.domain.model.resources import with_owner

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session, sessionmaker

    from wavesync.domain.model import Manifest
    from wavesync.domain.ports import ClusterClient

log = getLogger(__name__)


def _default_session_factory() -> sessionmaker[Session]:
    from .unit_of_work import configured_session_factory  # noqa: PLC0415

    return configured_session_factory()


@dataclass(slots=True)
class SqlAlchemyCluster:
    session_factory: sessionmaker[Session] = field(default_factory=_default_session_factory)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))

    async def list_owned(self, owner: str) -> list[Manifest]:
        stmt = (
            select(live_resource_table.c.manifest)
            .where(live_resource_table.c.owner == owner)
            .order_by(
                live_resource_table.c.api_group,
                live_resource_table.c.kind,
                live_resource_table.c.namespace,
                live_resource_table.c.name,
            )
        )
        try:
            with self.session_factory() as session:
                return [copy.deepcopy(manifest) for manifest in session.scalars(stmt)]
        except OperationalError as exc:
            raise ClusterUnavailableError(f"Live resource store unavailable: {exc}") from exc

    async def get(self, key: ResourceKey) -> Manifest | None:
        try:
            with self.session_factory() as session:
                manifest = session.scalars(
                    select(live_resource_table.c.manifest).where(*_matches(key))
                ).one_or_none()
        except OperationalError as exc:
            raise ClusterUnavailableError(f"Live resource store unavailable: {exc}") from exc
        return copy.deepcopy(manifest) if manifest is not None else None

    async def apply(self, manifest: Manifest, *, owner: str) -> Manifest:
        key = ResourceKey.from_manifest(manifest)
        stored = with_owner(manifest, owner)
        stored.pop("status", None)
        try:
            with self.session_factory() as session:
                row = session.execute(
                    select(
                        live_resource_table.c.manifest, live_resource_table.c.generation
                    ).where(*_matches(key))
                ).one_or_none()
                values: dict[str, Any] = {
                    "owner": owner,
                    "manifest": stored,
                    "updated_at": self.clock(),
                }
                if row is None:
                    stored["metadata"]["generation"] = 1
                    session.execute(
                        live_resource_table.insert().values(
                            api_group=key.group,
                            kind=key.kind,
                            namespace=key.namespace,
                            name=key.name,
                            generation=1,
                            **values,
                        )
                    )
                else:
                    generation = int(row.generation) + 1
                    stored["metadata"]["generation"] = generation
                    if isinstance(row.manifest, dict) and "status" in row.manifest:
                        stored["status"] = row.manifest["status"]
                    session.execute(
                        live_resource_table.update()
                        .where(*_matches(key))
                        .values(generation=generation, **values)
                    )
                session.commit()
        except OperationalError as exc:
            raise ClusterUnavailableError(f"Live resource store unavailable: {exc}") from exc
        except SQLAlchemyError as exc:
            raise ApplyError(
                f"Apply rejected: {exc}", application=owner, resource=str(key)
            ) from exc
        log.debug("Applied %s for %s", key, owner)
        return copy.deepcopy(stored)

    async def delete(self, key: ResourceKey) -> None:
        try:
            with self.session_factory() as session:
                session.execute(delete(live_resource_table).where(*_matches(key)))
                session.commit()
        except OperationalError as exc:
            raise ClusterUnavailableError(f"Live resource store unavailable: {exc}") from exc
        except SQLAlchemyError as exc:
            raise ApplyError(f"Delete rejected: {exc}", resource=str(key)) from exc

    def set_status(self, key: ResourceKey, status: dict[str, Any]) -> None:
        """Record backend-observed status, as a controller on the cluster would."""

        with self.session_factory() as session:
            manifest = session.scalars(
                select(live_resource_table.c.manifest).where(*_matches(key))
            ).one()
            updated = copy.deepcopy(manifest)
            updated["status"] = copy.deepcopy(status)
            session.execute(
                live_resource_table.update().where(*_matches(key)).values(manifest=updated)
            )
            session.commit()


def _matches(key: ResourceKey) -> tuple[Any, ...]:
    return (
        live_resource_table.c.api_group == key.group,
        live_resource_table.c.kind == key.kind,
        live_resource_table.c.namespace == key.namespace,
        live_resource_table.c.name == key.name,
    )


if TYPE_CHECKING:
    _cluster_check: ClusterClient = SqlAlchemyCluster()
