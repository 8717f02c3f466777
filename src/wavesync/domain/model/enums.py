"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SyncStatus(StrEnum):
    UNKNOWN = "Unknown"
    SYNCED = "Synced"
    OUT_OF_SYNC = "OutOfSync"


class HealthStatus(StrEnum):
    UNKNOWN = "Unknown"
    PROGRESSING = "Progressing"
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    SUSPENDED = "Suspended"
    MISSING = "Missing"

    @property
    def severity(self) -> int:
        """Rank used when folding resource health into application health."""

        return _HEALTH_SEVERITY[self]


# Healthy < Suspended < Progressing < Missing < Degraded < Unknown
_HEALTH_SEVERITY: dict[HealthStatus, int] = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.SUSPENDED: 1,
    HealthStatus.PROGRESSING: 2,
    HealthStatus.MISSING: 3,
    HealthStatus.DEGRADED: 4,
    HealthStatus.UNKNOWN: 5,
}


class ReconcilePhase(StrEnum):
    """Where an application's convergence loop currently is."""

    PENDING = "Pending"
    COMPARING = "Comparing"
    SYNCED = "Synced"
    OUT_OF_SYNC = "OutOfSync"
    APPLYING = "Applying"
    PROGRESSING = "Progressing"
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    SUSPENDED = "Suspended"
    MISSING = "Missing"
    DELETING = "Deleting"


class ChangeKind(StrEnum):
    UNCHANGED = "Unchanged"
    ADDED = "Added"
    MODIFIED = "Modified"
    REMOVED = "Removed"


class SyncOutcome(StrEnum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"
    CANCELLED = "Cancelled"


class SyncTrigger(StrEnum):
    """Why a diff-and-apply cycle ran."""

    REVISION = "revision"
    SELF_HEAL = "self-heal"
    MANUAL = "manual"


class RolloutOutcome(StrEnum):
    COMPLETED = "Completed"
    HALTED = "Halted"
    BLOCKED = "Blocked"
    CANCELLED = "Cancelled"
