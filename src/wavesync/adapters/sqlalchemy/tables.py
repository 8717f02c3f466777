"""SQLAlchemy Core tables for controller state and the SQL-backed cluster."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from wavesync.domain.model import HealthStatus, ReconcilePhase, SyncOutcome, SyncStatus

metadata: Final[MetaData] = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum_column[TEnum: StrEnum](enum_cls: type[TEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
        length=32,
    )


application_state_table = Table(
    "application_state",
    metadata,
    Column("name", String(253), primary_key=True),
    Column("root", String(253), nullable=False),
    Column("sync_wave", Integer, nullable=False, default=0),
    Column("sync_status", _enum_column(SyncStatus, "sync_status"), nullable=False),
    Column("health_status", _enum_column(HealthStatus, "health_status"), nullable=False),
    Column("phase", _enum_column(ReconcilePhase, "reconcile_phase"), nullable=False),
    Column("paused", Boolean, nullable=False, default=False),
    Column("non_blocking", Boolean, nullable=False, default=False),
    Column("deleting", Boolean, nullable=False, default=False),
    Column("revision", String(128), nullable=True),
    Column("finalizers", JSON, nullable=False, default=list),
    Column("last_sync_revision", String(128), nullable=True),
    Column("last_sync_at", UTCDateTime(), nullable=True),
    Column("last_sync_outcome", _enum_column(SyncOutcome, "sync_outcome"), nullable=True),
    Column("last_sync_error", Text, nullable=True),
    Column("last_sync_retries", Integer, nullable=True),
    Index("ix_application_state_root", "root"),
)

live_resource_table = Table(
    "live_resource",
    metadata,
    Column("api_group", String(253), primary_key=True),
    Column("kind", String(63), primary_key=True),
    Column("namespace", String(63), primary_key=True),
    Column("name", String(253), primary_key=True),
    Column("owner", String(253), nullable=True),
    Column("manifest", JSON, nullable=False),
    Column("generation", Integer, nullable=False, default=1),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_live_resource_owner", "owner"),
)

