"""Application descriptors and their runtime state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .enums import HealthStatus, ReconcilePhase, SyncOutcome, SyncStatus

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

RESOURCES_FINALIZER: Final[str] = "resources-finalizer.argocd.argoproj.io"
IN_CLUSTER: Final[str] = "https://kubernetes.default.svc"


@dataclass(frozen=True, slots=True)
class SourceRef:
    """Location in the desired-state tree: repository, revision and path."""

    repo_url: str
    revision: str
    path: str

    def with_revision(self, revision: str) -> SourceRef:
        return SourceRef(repo_url=self.repo_url, revision=revision, path=self.path)


@dataclass(frozen=True, slots=True)
class Destination:
    server: str = IN_CLUSTER
    namespace: str = "default"

    def __str__(self) -> str:
        return f"{self.server}/{self.namespace}"


@dataclass(frozen=True, slots=True)
class RetrySpec:
    limit: int = 5
    backoff_base: float = 5.0
    backoff_factor: float = 2.0
    backoff_max_duration: float = 180.0


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    automated: bool = False
    prune: bool = False
    self_heal: bool = False
    retry: RetrySpec = field(default_factory=RetrySpec)


@dataclass(frozen=True, slots=True)
class Application:
    """One node of the expanded App-of-Apps graph (desired state only)."""

    name: str
    source: SourceRef
    destination: Destination
    sync_wave: int = 0
    sync_policy: SyncPolicy = field(default_factory=SyncPolicy)
    parameters: Mapping[str, str] = field(default_factory=dict["str", "str"])
    non_blocking: bool = False


@dataclass(frozen=True, slots=True)
class LastSyncResult:
    revision: str
    timestamp: datetime
    outcome: SyncOutcome
    error_detail: str | None = None
    retries: int = 0


@dataclass(slots=True)
class ApplicationState:
    """Mutable observed state of one application, persisted between runs."""

    name: str
    root: str
    sync_wave: int = 0
    sync_status: SyncStatus = SyncStatus.UNKNOWN
    health_status: HealthStatus = HealthStatus.UNKNOWN
    phase: ReconcilePhase = ReconcilePhase.PENDING
    paused: bool = False
    non_blocking: bool = False
    revision: str | None = None
    last_sync_result: LastSyncResult | None = None
    finalizers: list[str] = field(default_factory=lambda: [RESOURCES_FINALIZER])
    deleting: bool = False


@dataclass(frozen=True, slots=True)
class ApplicationView:
    """Read-only projection exposed to observers."""

    name: str
    sync_wave: int
    sync_status: SyncStatus
    health_status: HealthStatus
    last_sync_result: LastSyncResult | None
    paused: bool = False

    @classmethod
    def from_state(cls, state: ApplicationState) -> ApplicationView:
        return cls(
            name=state.name,
            sync_wave=state.sync_wave,
            sync_status=state.sync_status,
            health_status=state.health_status,
            last_sync_result=state.last_sync_result,
            paused=state.paused,
        )
