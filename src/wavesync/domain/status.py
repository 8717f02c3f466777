"""Status Aggregator: roll child application status up into the root."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wavesync.domain.model import ApplicationView, HealthStatus, SyncStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wavesync.domain.model import ApplicationState


@dataclass(frozen=True, slots=True)
class RootStatus:
    name: str
    sync_status: SyncStatus
    health_status: HealthStatus
    applications: tuple[ApplicationView, ...] = ()
    rolling_out: bool = False
    current_wave: int | None = None

    @property
    def degraded(self) -> tuple[str, ...]:
        return tuple(
            app.name for app in self.applications if app.health_status is HealthStatus.DEGRADED
        )


def aggregate_sync(states: Iterable[ApplicationState]) -> SyncStatus:
    statuses = [state.sync_status for state in states]
    if all(status is SyncStatus.SYNCED for status in statuses):
        return SyncStatus.SYNCED
    if any(status is SyncStatus.OUT_OF_SYNC for status in statuses):
        return SyncStatus.OUT_OF_SYNC
    return SyncStatus.UNKNOWN


def aggregate_health(
    states: Iterable[ApplicationState], *, rolling_out: bool = False
) -> HealthStatus:
    """Worst child health, with policy-accepted failures treated as healthy.

    A running rollout reports ``Progressing`` unless a child is already degraded.
    """

    counted: list[HealthStatus] = []
    for state in states:
        if state.non_blocking and state.health_status is HealthStatus.DEGRADED:
            continue
        counted.append(state.health_status)
    if HealthStatus.DEGRADED in counted:
        return HealthStatus.DEGRADED
    if rolling_out:
        return HealthStatus.PROGRESSING
    if not counted:
        return HealthStatus.HEALTHY
    return max(counted, key=lambda status: status.severity)


@dataclass(slots=True)
class StatusAggregator:
    """Read-only view over a root's children.

    The controller tells it when a rollout starts and which wave is running;
    nothing here ever mutates an ``ApplicationState``.
    """

    root: str
    current_wave: int | None = None
    _rolling_out: bool = field(default=False, repr=False)

    def begin_rollout(self) -> None:
        self._rolling_out = True

    def end_rollout(self) -> None:
        self._rolling_out = False
        self.current_wave = None

    def wave_started(self, wave: int | None) -> None:
        self.current_wave = wave

    @property
    def rolling_out(self) -> bool:
        return self._rolling_out

    def summarize(self, states: Iterable[ApplicationState]) -> RootStatus:
        children = sorted(
            (state for state in states if state.name != self.root),
            key=lambda state: (state.sync_wave, state.name),
        )
        return RootStatus(
            name=self.root,
            sync_status=aggregate_sync(children),
            health_status=aggregate_health(children, rolling_out=self._rolling_out),
            applications=tuple(ApplicationView.from_state(state) for state in children),
            rolling_out=self._rolling_out,
            current_wave=self.current_wave,
        )
