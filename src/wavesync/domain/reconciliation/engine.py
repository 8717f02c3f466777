"""Per-application convergence loop.

One ``ApplicationReconciler`` drives a single application through

    Pending -> Comparing -> Synced | OutOfSync -> Applying
            -> Healthy | Progressing | Degraded -> Synced

with ``Suspended`` reachable through an explicit pause and ``Missing`` when the
live resource set cannot be observed. The reconciler owns exactly one
``ApplicationState``; reconcilers running side by side in a wave share nothing
but the cluster client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from wavesync.config.controller import ControllerConfig
from wavesync.domain.model import (
    ApplyError,
    ChangeKind,
    ClusterUnavailableError,
    DriftError,
    HealthStatus,
    LastSyncResult,
    ReconcilePhase,
    ResourceKey,
    SyncOutcome,
    SyncStatus,
    SyncTimeoutError,
    SyncTrigger,
)

from .backoff import backoff_delay
from .deletion import delete_application
from .diff import ComparisonResult, compare
from .health import assess_application, assess_resource
from .ordering import apply_order, prune_order

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wavesync.domain.model import Application, ApplicationState, Manifest
    from wavesync.domain.ports import ClusterClient

type Sleep = Callable[[float], Awaitable[None]]
type Clock = Callable[[], datetime]
type StateListener = Callable[[ApplicationState], None]

log = getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def _ignore_state(state: ApplicationState) -> None:
    _ = state


@dataclass(frozen=True, slots=True)
class DriftReport:
    """What one refresh observed for one application."""

    application: str
    drifted: tuple[str, ...] = ()
    healed: bool = False
    error: DriftError | None = None


@dataclass(slots=True)
class ApplicationReconciler:
    application: Application
    state: ApplicationState
    cluster: ClusterClient
    settings: ControllerConfig = field(default_factory=ControllerConfig)
    sleep: Sleep = asyncio.sleep
    clock: Clock = utcnow
    on_change: StateListener = _ignore_state

    @property
    def name(self) -> str:
        return self.application.name

    # Observation ------------------------------------------------------------

    async def observe(self, desired: tuple[Manifest, ...]) -> ComparisonResult | None:
        """Compare desired against live state and record sync and health status.

        Returns ``None`` (and marks the application ``Missing``) when the live
        resource set cannot be observed.
        """

        self._transition(ReconcilePhase.COMPARING)
        try:
            live = await self.cluster.list_owned(self.name)
        except ClusterUnavailableError as exc:
            log.warning("Live state of %s unavailable: %s", self.name, exc)
            self.state.sync_status = SyncStatus.UNKNOWN
            self.state.health_status = HealthStatus.MISSING
            self._transition(ReconcilePhase.MISSING)
            return None

        comparison = compare(desired, live)
        self.state.sync_status = comparison.sync_status
        if not self.state.paused:
            self.state.health_status = self._health_of(desired, live)
        self._transition(
            ReconcilePhase.SYNCED
            if comparison.sync_status is SyncStatus.SYNCED
            else ReconcilePhase.OUT_OF_SYNC
        )
        return comparison

    # Sync -------------------------------------------------------------------

    async def sync(
        self,
        desired: tuple[Manifest, ...],
        revision: str,
        *,
        trigger: SyncTrigger = SyncTrigger.REVISION,
        only: frozenset[ResourceKey] | None = None,
        stop: asyncio.Event | None = None,
    ) -> ApplicationState:
        """Diff, apply, wait for health and prune; retry with backoff on failure.

        ``only`` limits the cycle to the given resources (self-heal). ``stop``
        lets the current attempt finish but skips any further retry.
        """

        if self.state.paused:
            log.info("Skipping sync of paused application %s", self.name)
            self._suspend()
            return self.state

        retry = self.application.sync_policy.retry
        attempt = 0
        log.info("Syncing %s at %s (%s)", self.name, revision[:12], trigger)
        while True:
            try:
                await self._attempt(desired, only=only)
            except ApplyError as exc:
                exc.application = exc.application or self.name
                if attempt >= retry.limit:
                    exc.retries = attempt
                    self._fail(exc, revision, retries=attempt)
                    return self.state
                if stop is not None and stop.is_set():
                    self._cancel(exc, revision, retries=attempt)
                    return self.state
                delay = backoff_delay(retry, attempt)
                log.warning(
                    "Sync of %s failed (attempt %s/%s), retrying in %.1fs: %s",
                    self.name,
                    attempt + 1,
                    retry.limit + 1,
                    delay,
                    exc,
                )
                await self.sleep(delay)
                attempt += 1
                continue

            self._succeed(revision, retries=attempt)
            return self.state

    async def _attempt(
        self, desired: tuple[Manifest, ...], *, only: frozenset[ResourceKey] | None
    ) -> None:
        comparison = await self.observe(desired)
        if comparison is None:
            raise ApplyError("Live state cannot be observed", application=self.name)

        to_apply = [
            manifest
            for manifest in comparison.to_apply
            if only is None or ResourceKey.from_manifest(manifest) in only
        ]
        if to_apply:
            self._transition(ReconcilePhase.APPLYING)
            for manifest in apply_order(to_apply):
                await self._apply_one(manifest)

        await self._wait_healthy(desired)

        if self.application.sync_policy.prune:
            to_prune = [
                manifest
                for manifest in comparison.to_prune
                if only is None or ResourceKey.from_manifest(manifest) in only
            ]
            for manifest in prune_order(to_prune):
                key = ResourceKey.from_manifest(manifest)
                log.info("Pruning %s from %s", key, self.name)
                await self._call_cluster(self.cluster.delete(key), key)

        final = await self.observe(desired)
        if final is None:
            raise ApplyError("Live state cannot be observed", application=self.name)
        unpruned = final.of_kind(ChangeKind.REMOVED)
        if unpruned and not self.application.sync_policy.prune:
            log.info("%s has %s resources that require pruning", self.name, len(unpruned))
        # A resource may regress between the health wait and the final poll.
        if self.state.health_status is HealthStatus.DEGRADED:
            raise ApplyError("Resources degraded after sync", application=self.name)

    async def _apply_one(self, manifest: Manifest) -> None:
        key = ResourceKey.from_manifest(manifest)
        log.debug("Applying %s for %s", key, self.name)
        await self._call_cluster(self.cluster.apply(manifest, owner=self.name), key)

    async def _call_cluster(self, operation: Awaitable[object], key: ResourceKey) -> None:
        try:
            await operation
        except ApplyError as exc:
            exc.application = exc.application or self.name
            exc.resource = exc.resource or str(key)
            raise
        except ClusterUnavailableError as exc:
            raise ApplyError(str(exc), application=self.name, resource=str(key)) from exc

    async def _wait_healthy(self, desired: tuple[Manifest, ...]) -> None:
        polls = self.settings.max_health_polls
        for poll in range(polls):
            try:
                live = await self.cluster.list_owned(self.name)
            except ClusterUnavailableError as exc:
                raise ApplyError(str(exc), application=self.name) from exc

            health = self._health_of(desired, live)
            self.state.health_status = health
            if health is HealthStatus.HEALTHY:
                self._transition(ReconcilePhase.HEALTHY)
                return
            if health is HealthStatus.DEGRADED:
                self._transition(ReconcilePhase.DEGRADED)
                raise ApplyError(
                    "Resource degraded",
                    application=self.name,
                    resource=self._first_unhealthy(desired, live),
                )
            self._transition(ReconcilePhase.PROGRESSING)
            if poll < polls - 1:
                await self.sleep(self.settings.poll_interval)

        raise SyncTimeoutError(
            f"Not healthy within {self.settings.health_timeout:g}s "
            f"(last health {self.state.health_status})",
            application=self.name,
            resource=self._first_unhealthy(desired, live),
        )

    # Drift ------------------------------------------------------------------

    async def refresh(self, desired: tuple[Manifest, ...], revision: str) -> DriftReport:
        """Poll live state once; self-heal drift when the policy allows it.

        Drift is only reported when the desired revision has not changed since
        the last sync; a new revision is an expected change, not drift.
        """

        if self.state.paused:
            self._suspend()
            return DriftReport(application=self.name)

        comparison = await self.observe(desired)
        if comparison is None or comparison.sync_status is SyncStatus.SYNCED:
            return DriftReport(application=self.name)
        if self.state.revision != revision:
            return DriftReport(application=self.name)

        drifted = tuple(str(change.key) for change in comparison.out_of_sync)
        error = DriftError(self.name, drifted)
        policy = self.application.sync_policy
        if not (policy.self_heal and policy.automated):
            log.warning("%s; self-heal disabled, leaving it OutOfSync", error)
            return DriftReport(application=self.name, drifted=drifted, error=error)

        log.warning("%s; self-healing", error)
        only = frozenset(change.key for change in comparison.out_of_sync)
        await self.sync(desired, revision, trigger=SyncTrigger.SELF_HEAL, only=only)
        healed = self.state.sync_status is SyncStatus.SYNCED
        return DriftReport(application=self.name, drifted=drifted, healed=healed, error=error)

    # Pause / delete ---------------------------------------------------------

    def pause(self) -> None:
        self.state.paused = True
        self._suspend()

    async def resume(self, desired: tuple[Manifest, ...]) -> None:
        self.state.paused = False
        self.state.health_status = HealthStatus.UNKNOWN
        self._transition(ReconcilePhase.PENDING)
        await self.observe(desired)

    async def delete(self, *, cascade: bool = True) -> None:
        await delete_application(self.cluster, self.state, cascade=cascade)
        self.on_change(self.state)

    # State bookkeeping -------------------------------------------------------

    def _health_of(self, desired: tuple[Manifest, ...], live: list[Manifest]) -> HealthStatus:
        desired_keys = {ResourceKey.from_manifest(manifest) for manifest in desired}
        tracked = [
            manifest for manifest in live if ResourceKey.from_manifest(manifest) in desired_keys
        ]
        return assess_application(tracked, expected=len(desired_keys))

    def _first_unhealthy(self, desired: tuple[Manifest, ...], live: list[Manifest]) -> str | None:
        live_by_key = {ResourceKey.from_manifest(manifest): manifest for manifest in live}
        for manifest in apply_order(desired):
            key = ResourceKey.from_manifest(manifest)
            current = live_by_key.get(key)
            if current is None or assess_resource(current) is not HealthStatus.HEALTHY:
                return str(key)
        return None

    def _transition(self, phase: ReconcilePhase) -> None:
        if self.state.phase is not phase:
            log.debug("%s: %s -> %s", self.name, self.state.phase, phase)
            self.state.phase = phase
        self.on_change(self.state)

    def _suspend(self) -> None:
        self.state.health_status = HealthStatus.SUSPENDED
        self._transition(ReconcilePhase.SUSPENDED)

    def _succeed(self, revision: str, *, retries: int) -> None:
        self.state.revision = revision
        self.state.last_sync_result = LastSyncResult(
            revision=revision,
            timestamp=self.clock(),
            outcome=SyncOutcome.SUCCEEDED,
            retries=retries,
        )
        self._transition(
            ReconcilePhase.SYNCED
            if self.state.sync_status is SyncStatus.SYNCED
            else ReconcilePhase.HEALTHY
        )
        log.info(
            "Synced %s: sync=%s health=%s retries=%s",
            self.name,
            self.state.sync_status,
            self.state.health_status,
            retries,
        )

    def _fail(self, exc: ApplyError, revision: str, *, retries: int) -> None:
        self.state.health_status = HealthStatus.DEGRADED
        self.state.last_sync_result = LastSyncResult(
            revision=revision,
            timestamp=self.clock(),
            outcome=SyncOutcome.FAILED,
            error_detail=str(exc),
            retries=retries,
        )
        self._transition(ReconcilePhase.DEGRADED)
        log.error("Sync of %s failed after %s retries: %s", self.name, retries, exc)

    def _cancel(self, exc: ApplyError, revision: str, *, retries: int) -> None:
        self.state.last_sync_result = LastSyncResult(
            revision=revision,
            timestamp=self.clock(),
            outcome=SyncOutcome.CANCELLED,
            error_detail=str(exc),
            retries=retries,
        )
        self._transition(ReconcilePhase.OUT_OF_SYNC)
        log.warning("Stopped retrying %s after cancellation: %s", self.name, exc)
