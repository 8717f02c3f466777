"""Ports the controller core depends on."""

from __future__ import annotations

from .cluster import ClusterClient
from .persistence import ApplicationStateRepository
from .source import DesiredStateSource
from .unit_of_work import RepositoryCollection, StateRepositories, StateUnitOfWork, UnitOfWork

__all__ = [
    "ApplicationStateRepository",
    "ClusterClient",
    "DesiredStateSource",
    "RepositoryCollection",
    "StateRepositories",
    "StateUnitOfWork",
    "UnitOfWork",
]
