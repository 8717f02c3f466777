"""Domain model for the App-of-Apps controller."""

from __future__ import annotations

from .application import (
    IN_CLUSTER,
    RESOURCES_FINALIZER,
    Application,
    ApplicationState,
    ApplicationView,
    Destination,
    LastSyncResult,
    RetrySpec,
    SourceRef,
    SyncPolicy,
)
from .enums import (
    ChangeKind,
    HealthStatus,
    ReconcilePhase,
    RolloutOutcome,
    SyncOutcome,
    SyncStatus,
    SyncTrigger,
)
from .errors import (
    ApplyError,
    ClusterUnavailableError,
    ConfigError,
    ConflictError,
    DriftError,
    SourceError,
    SyncTimeoutError,
    UnknownApplicationError,
    WavesyncError,
)
from .resources import TRACKING_LABEL, Manifest, ResourceKey

__all__ = [
    "IN_CLUSTER",
    "RESOURCES_FINALIZER",
    "TRACKING_LABEL",
    "Application",
    "ApplicationState",
    "ApplicationView",
    "ApplyError",
    "ChangeKind",
    "ClusterUnavailableError",
    "ConfigError",
    "ConflictError",
    "Destination",
    "DriftError",
    "HealthStatus",
    "LastSyncResult",
    "Manifest",
    "ReconcilePhase",
    "ResourceKey",
    "RetrySpec",
    "RolloutOutcome",
    "SourceError",
    "SourceRef",
    "SyncOutcome",
    "SyncPolicy",
    "SyncStatus",
    "SyncTimeoutError",
    "SyncTrigger",
    "UnknownApplicationError",
    "WavesyncError",
]
