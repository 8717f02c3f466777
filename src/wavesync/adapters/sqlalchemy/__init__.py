"""SQLAlchemy adapter package for wavesync."""

from __future__ import annotations

from .cluster import SqlAlchemyCluster
from .repositories import SqlAlchemyApplicationStateRepository
from .tables import application_state_table, live_resource_table, metadata
from .unit_of_work import SqlAlchemyStateUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyApplicationStateRepository",
    "SqlAlchemyCluster",
    "SqlAlchemyStateUnitOfWork",
    "application_state_table",
    "live_resource_table",
    "metadata",
    "shutdown",
    "startup",
]
