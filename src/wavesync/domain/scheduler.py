"""Wave Scheduler: drive applications through apply in sync-wave order.

Members of one wave run concurrently; the next wave starts only once every
member of the current wave is terminal (``Healthy`` or an accepted failure).
Nothing about the order of members inside a wave is guaranteed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from wavesync.domain.model import HealthStatus, RolloutOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from wavesync.domain.model import ApplicationState

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MemberResult:
    state: ApplicationState
    awaiting_manual_sync: bool = False


class WaveMember(Protocol):
    """One application as seen by the scheduler."""

    @property
    def name(self) -> str: ...

    @property
    def non_blocking(self) -> bool: ...

    async def converge(self, stop: asyncio.Event | None) -> MemberResult: ...


@dataclass(frozen=True, slots=True)
class WaveResult:
    wave: int
    applications: tuple[str, ...]
    healthy: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    accepted_failures: tuple[str, ...] = ()
    blocked: tuple[str, ...] = ()
    cancelled: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.failed and not self.blocked and not self.cancelled


@dataclass(frozen=True, slots=True)
class RolloutReport:
    outcome: RolloutOutcome
    waves: tuple[WaveResult, ...] = ()
    stopped_at_wave: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is RolloutOutcome.COMPLETED and all(
            not wave.failed for wave in self.waves
        )

    @property
    def failures(self) -> tuple[str, ...]:
        return tuple(error for wave in self.waves for error in wave.errors)


type WaveListener = Callable[[int | None], None]


def _ignore_wave(wave: int | None) -> None:
    _ = wave


@dataclass(slots=True)
class WaveScheduler:
    """Run waves in ascending order behind a health barrier.

    ``strict`` halts the rollout at the first wave with a non-accepted failure;
    otherwise failures are recorded and later waves still start. A wave with
    members that are paused or awaiting a manual sync always stops the rollout,
    because those members cannot become terminal on their own.
    """

    strict: bool = True
    on_wave: WaveListener = _ignore_wave

    async def run(
        self,
        waves: Sequence[tuple[int, Sequence[WaveMember]]],
        *,
        stop: asyncio.Event | None = None,
    ) -> RolloutReport:
        results: list[WaveResult] = []
        ordered = sorted(waves, key=lambda item: item[0])
        try:
            for wave, members in ordered:
                if stop is not None and stop.is_set():
                    log.warning("Rollout stopped before wave %s", wave)
                    return RolloutReport(RolloutOutcome.CANCELLED, tuple(results), wave)

                self.on_wave(wave)
                log.info(
                    "Starting wave %s: %s", wave, ", ".join(member.name for member in members)
                )
                result = await self._run_wave(wave, members, stop)
                results.append(result)

                if result.failed:
                    log.error(
                        "Wave %s failed: %s", wave, "; ".join(result.errors) or result.failed
                    )
                    if self.strict:
                        return RolloutReport(RolloutOutcome.HALTED, tuple(results), wave)
                if result.cancelled:
                    log.warning(
                        "Rollout stopped during wave %s; interrupted: %s",
                        wave,
                        ", ".join(result.cancelled),
                    )
                    return RolloutReport(RolloutOutcome.CANCELLED, tuple(results), wave)
                if result.blocked:
                    log.warning(
                        "Wave %s blocked on %s", wave, ", ".join(result.blocked)
                    )
                    return RolloutReport(RolloutOutcome.BLOCKED, tuple(results), wave)
                if stop is not None and stop.is_set():
                    next_wave = _next_wave(ordered, wave)
                    log.warning("Rollout stopped after wave %s", wave)
                    outcome = (
                        RolloutOutcome.CANCELLED
                        if next_wave is not None or not result.passed
                        else RolloutOutcome.COMPLETED
                    )
                    return RolloutReport(outcome, tuple(results), next_wave)
                log.info("Wave %s complete", wave)
        finally:
            self.on_wave(None)

        return RolloutReport(RolloutOutcome.COMPLETED, tuple(results))

    async def _run_wave(
        self, wave: int, members: Sequence[WaveMember], stop: asyncio.Event | None
    ) -> WaveResult:
        outcomes = await asyncio.gather(
            *(member.converge(stop) for member in members),
            return_exceptions=True,
        )

        healthy: list[str] = []
        failed: list[str] = []
        accepted: list[str] = []
        blocked: list[str] = []
        cancelled: list[str] = []
        errors: list[str] = []
        for member, outcome in zip(members, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                log.error("Unexpected error converging %s", member.name, exc_info=outcome)
                errors.append(f"{member.name}: {outcome}")
                (accepted if member.non_blocking else failed).append(member.name)
                continue

            state = outcome.state
            if state.health_status is HealthStatus.HEALTHY and not outcome.awaiting_manual_sync:
                healthy.append(member.name)
            elif state.health_status is HealthStatus.DEGRADED:
                detail = state.last_sync_result.error_detail if state.last_sync_result else None
                errors.append(f"{member.name}: {detail or 'degraded'}")
                (accepted if member.non_blocking else failed).append(member.name)
            elif outcome.awaiting_manual_sync or state.paused:
                blocked.append(member.name)
            elif stop is not None and stop.is_set():
                # interrupted between retries; the next rollout resumes it
                cancelled.append(member.name)
            else:
                errors.append(f"{member.name}: ended {state.health_status}")
                (accepted if member.non_blocking else failed).append(member.name)

        return WaveResult(
            wave=wave,
            applications=tuple(member.name for member in members),
            healthy=tuple(healthy),
            failed=tuple(failed),
            accepted_failures=tuple(accepted),
            blocked=tuple(blocked),
            cancelled=tuple(cancelled),
            errors=tuple(errors),
        )


def _next_wave(
    ordered: Sequence[tuple[int, Sequence[WaveMember]]], current: int
) -> int | None:
    for wave, _members in ordered:
        if wave > current:
            return wave
    return None
