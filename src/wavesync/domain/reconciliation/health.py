"""Health assessment of live resources.

Resources without a ``status`` block (config maps, services, roles...) are
healthy as soon as they exist. Workloads compare ready replicas against the
requested count; pods, claims and jobs use their phase or conditions; any
resource may report ``status.health.status`` explicitly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from wavesync.domain.model import HealthStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wavesync.domain.model import Manifest

_REPLICATED_KINDS = frozenset({"Deployment", "StatefulSet", "ReplicaSet", "ReplicationController"})

_POD_PHASES = {
    "Pending": HealthStatus.PROGRESSING,
    "Running": HealthStatus.HEALTHY,
    "Succeeded": HealthStatus.HEALTHY,
    "Failed": HealthStatus.DEGRADED,
    "Unknown": HealthStatus.UNKNOWN,
}

_CLAIM_PHASES = {
    "Pending": HealthStatus.PROGRESSING,
    "Bound": HealthStatus.HEALTHY,
    "Lost": HealthStatus.DEGRADED,
}


def assess_resource(manifest: Manifest) -> HealthStatus:
    status = manifest.get("status")
    if not isinstance(status, dict) or not status:
        return HealthStatus.HEALTHY

    health_block = status.get("health")
    explicit = health_block.get("status") if isinstance(health_block, dict) else None
    if explicit:
        try:
            return HealthStatus(explicit)
        except ValueError:
            return HealthStatus.UNKNOWN

    kind = manifest.get("kind")
    if kind in _REPLICATED_KINDS:
        return _replicated_health(manifest, status)
    if kind == "Pod":
        return _POD_PHASES.get(str(status.get("phase")), HealthStatus.UNKNOWN)
    if kind == "PersistentVolumeClaim":
        return _CLAIM_PHASES.get(str(status.get("phase")), HealthStatus.UNKNOWN)
    if kind == "Job":
        return _job_health(status)
    return _conditions_health(status)


def assess_application(
    manifests: Iterable[Manifest], *, expected: int | None = None
) -> HealthStatus:
    """Fold resource health into application health (worst resource wins).

    ``expected`` is the number of desired resources; observing fewer live
    resources means something is ``Missing``.
    """

    observed = list(manifests)
    worst = HealthStatus.HEALTHY
    for manifest in observed:
        health = assess_resource(manifest)
        if health.severity > worst.severity:
            worst = health
    missing = expected is not None and len(observed) < expected
    if missing and HealthStatus.MISSING.severity > worst.severity:
        worst = HealthStatus.MISSING
    return worst


def _replicated_health(manifest: Manifest, status: dict[str, Any]) -> HealthStatus:
    spec = manifest.get("spec") or {}
    if spec.get("paused"):
        return HealthStatus.SUSPENDED
    wanted = int(spec.get("replicas", 1))
    ready = int(status.get("readyReplicas", 0) or 0)
    if ready >= wanted:
        return HealthStatus.HEALTHY
    return HealthStatus.PROGRESSING


def _job_health(status: dict[str, Any]) -> HealthStatus:
    for condition in status.get("conditions") or []:
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Failed":
            return HealthStatus.DEGRADED
        if condition.get("type") == "Complete":
            return HealthStatus.HEALTHY
    return HealthStatus.PROGRESSING


def _conditions_health(status: dict[str, Any]) -> HealthStatus:
    conditions = {
        str(condition.get("type")): str(condition.get("status"))
        for condition in status.get("conditions") or []
        if isinstance(condition, dict)
    }
    for condition_type in ("Ready", "Available"):
        value = conditions.get(condition_type)
        if value == "True":
            return HealthStatus.HEALTHY
        if value == "False":
            return HealthStatus.PROGRESSING
    if str(status.get("phase", "")).lower() in {"failed", "error"}:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
