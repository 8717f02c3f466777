"""Application state and live resource tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from wavesync.adapters.sqlalchemy.tables import UTCDateTime

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_SYNC_STATUS = ("Unknown", "Synced", "OutOfSync")
_HEALTH_STATUS = ("Unknown", "Progressing", "Healthy", "Degraded", "Suspended", "Missing")
_PHASE = (
    "Pending",
    "Comparing",
    "Synced",
    "OutOfSync",
    "Applying",
    "Progressing",
    "Healthy",
    "Degraded",
    "Suspended",
    "Missing",
    "Deleting",
)
_OUTCOME = ("Succeeded", "Failed", "Skipped", "Cancelled")


def _enum(values: tuple[str, ...], name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def upgrade() -> None:
    op.create_table(
        "application_state",
        sa.Column("name", sa.String(253), primary_key=True),
        sa.Column("root", sa.String(253), nullable=False),
        sa.Column("sync_wave", sa.Integer(), nullable=False),
        sa.Column("sync_status", _enum(_SYNC_STATUS, "sync_status"), nullable=False),
        sa.Column("health_status", _enum(_HEALTH_STATUS, "health_status"), nullable=False),
        sa.Column("phase", _enum(_PHASE, "reconcile_phase"), nullable=False),
        sa.Column("paused", sa.Boolean(), nullable=False),
        sa.Column("non_blocking", sa.Boolean(), nullable=False),
        sa.Column("deleting", sa.Boolean(), nullable=False),
        sa.Column("revision", sa.String(128), nullable=True),
        sa.Column("finalizers", sa.JSON(), nullable=False),
        sa.Column("last_sync_revision", sa.String(128), nullable=True),
        sa.Column("last_sync_at", UTCDateTime(), nullable=True),
        sa.Column("last_sync_outcome", _enum(_OUTCOME, "sync_outcome"), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("last_sync_retries", sa.Integer(), nullable=True),
    )
    op.create_index("ix_application_state_root", "application_state", ["root"])

    op.create_table(
        "live_resource",
        sa.Column("api_group", sa.String(253), primary_key=True),
        sa.Column("kind", sa.String(63), primary_key=True),
        sa.Column("namespace", sa.String(63), primary_key=True),
        sa.Column("name", sa.String(253), primary_key=True),
        sa.Column("owner", sa.String(253), nullable=True),
        sa.Column("manifest", sa.JSON(), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
    )
    op.create_index("ix_live_resource_owner", "live_resource", ["owner"])


def downgrade() -> None:
    op.drop_index("ix_live_resource_owner", table_name="live_resource")
    op.drop_table("live_resource")
    op.drop_index("ix_application_state_root", table_name="application_state")
    op.drop_table("application_state")
