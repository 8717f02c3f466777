"""App-of-Apps controller: the command and query surface over one root."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from wavesync.config.controller import ControllerConfig
from wavesync.domain.graph import load_desired_state
from wavesync.domain.model import (
    RESOURCES_FINALIZER,
    ApplicationState,
    ApplyError,
    ClusterUnavailableError,
    HealthStatus,
    ReconcilePhase,
    RolloutOutcome,
    SyncStatus,
    SyncTrigger,
)
from wavesync.domain.reconciliation import ApplicationReconciler, compare, delete_application
from wavesync.domain.reconciliation.engine import utcnow
from wavesync.domain.scheduler import MemberResult, WaveScheduler
from wavesync.domain.status import RootStatus, StatusAggregator

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wavesync.domain.graph import DesiredState
    from wavesync.domain.model import Application
    from wavesync.domain.ports import ClusterClient, DesiredStateSource, StateUnitOfWork
    from wavesync.domain.reconciliation import ComparisonResult, DriftReport
    from wavesync.domain.reconciliation.engine import Clock, Sleep
    from wavesync.domain.scheduler import RolloutReport

type UnitOfWorkFactory = Callable[[], StateUnitOfWork]

log = getLogger(__name__)

DEFAULT_WATCH_INTERVAL_SECONDS = 180.0


@dataclass(frozen=True, slots=True)
class PlanEntry:
    """What a rollout would do to one application, computed without side effects."""

    name: str
    sync_wave: int
    revision: str
    automated: bool
    comparison: ComparisonResult | None

    @property
    def sync_status(self) -> SyncStatus:
        if self.comparison is None:
            return SyncStatus.UNKNOWN
        return self.comparison.sync_status


@dataclass(frozen=True, slots=True)
class Plan:
    root: str
    revision: str
    entries: tuple[PlanEntry, ...] = ()
    removed: tuple[str, ...] = ()

    @property
    def waves(self) -> list[int]:
        return sorted({entry.sync_wave for entry in self.entries})


@dataclass(frozen=True, slots=True)
class RefreshReport:
    revision: str
    rollout: RolloutReport | None = None
    drift: tuple[DriftReport, ...] = ()
    removed: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DeletionReport:
    root: str
    deleted: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failed


@dataclass(slots=True)
class _Member:
    """Adapter between one reconciler and the wave scheduler."""

    reconciler: ApplicationReconciler
    desired: DesiredState
    manual: bool

    @property
    def name(self) -> str:
        return self.reconciler.name

    @property
    def non_blocking(self) -> bool:
        return self.reconciler.application.non_blocking

    async def converge(self, stop: asyncio.Event | None) -> MemberResult:
        reconciler = self.reconciler
        manifests = self.desired.manifests_for(self.name)
        revision = self.desired.revision_for(self.name)

        if reconciler.state.paused:
            reconciler.pause()
            return MemberResult(reconciler.state)

        if not (reconciler.application.sync_policy.automated or self.manual):
            await reconciler.observe(manifests)
            state = reconciler.state
            awaiting = state.sync_status is not SyncStatus.SYNCED
            if awaiting:
                log.info("%s is %s and awaiting manual sync", self.name, state.sync_status)
            return MemberResult(state, awaiting_manual_sync=awaiting)

        trigger = SyncTrigger.MANUAL if self.manual else SyncTrigger.REVISION
        state = await reconciler.sync(manifests, revision, trigger=trigger, stop=stop)
        return MemberResult(state)


@dataclass(slots=True)
class GitOpsController:
    """Drive one root application and its children against a cluster.

    Every state transition is persisted through ``unit_of_work_factory`` so
    that ``status`` queries and later runs see what the last run observed.
    """

    source: DesiredStateSource
    cluster: ClusterClient
    unit_of_work_factory: UnitOfWorkFactory
    repo_url: str
    revision: str = "HEAD"
    root_path: str = "apps/root.yaml"
    environment: str = "dev"
    settings: ControllerConfig = field(default_factory=ControllerConfig)
    sleep: Sleep = asyncio.sleep
    clock: Clock = utcnow
    _desired: DesiredState | None = field(default=None, repr=False)
    _aggregator: StatusAggregator | None = field(default=None, repr=False)

    # Desired state ------------------------------------------------------------

    async def evaluate(self) -> DesiredState:
        """Fetch, build and render the desired state; nothing is applied."""

        desired = await load_desired_state(
            self.source,
            repo_url=self.repo_url,
            revision=self.revision,
            root_path=self.root_path,
            environment=self.environment,
        )
        self._desired = desired
        if self._aggregator is None or self._aggregator.root != desired.graph.root.name:
            self._aggregator = StatusAggregator(root=desired.graph.root.name)
        return desired

    async def plan(self) -> Plan:
        """Compare every application against live state without touching it."""

        desired = await self.evaluate()
        entries: list[PlanEntry] = []
        for app in desired.graph.applications:
            comparison: ComparisonResult | None
            try:
                live = await self.cluster.list_owned(app.name)
            except ClusterUnavailableError as exc:
                log.warning("Cannot observe %s: %s", app.name, exc)
                comparison = None
            else:
                comparison = compare(desired.manifests_for(app.name), live)
            entries.append(
                PlanEntry(
                    name=app.name,
                    sync_wave=app.sync_wave,
                    revision=desired.revision_for(app.name),
                    automated=app.sync_policy.automated,
                    comparison=comparison,
                )
            )
        removed = tuple(
            state.name for state in self._orphaned_states(desired, self._load_states(desired))
        )
        return Plan(
            root=desired.graph.root.name,
            revision=desired.graph.revision,
            entries=tuple(entries),
            removed=removed,
        )

    # Commands -----------------------------------------------------------------

    async def rollout(
        self, *, manual: bool = False, stop: asyncio.Event | None = None
    ) -> RolloutReport:
        """Roll every child out in wave order behind the health barrier.

        ``manual`` also syncs applications without an automated policy.
        Re-running after a halt or cancellation resumes: already converged
        applications produce no mutations.
        """

        desired = await self.evaluate()
        return await self._rollout(desired, manual=manual, stop=stop)

    async def sync(self, name: str, *, stop: asyncio.Event | None = None) -> ApplicationState:
        """Manually sync one application regardless of its automated flag."""

        desired = await self.evaluate()
        app = desired.graph.get(name)
        reconciler = self._reconciler(app, self._state_for(desired, app))
        state = await reconciler.sync(
            desired.manifests_for(name),
            desired.revision_for(name),
            trigger=SyncTrigger.MANUAL,
            stop=stop,
        )
        self._save_root(desired)
        return state

    async def pause(self, name: str) -> ApplicationState:
        desired = await self.evaluate()
        app = desired.graph.get(name)
        reconciler = self._reconciler(app, self._state_for(desired, app))
        reconciler.pause()
        log.info("Paused %s", name)
        self._save_root(desired)
        return reconciler.state

    async def resume(self, name: str) -> ApplicationState:
        desired = await self.evaluate()
        app = desired.graph.get(name)
        reconciler = self._reconciler(app, self._state_for(desired, app))
        await reconciler.resume(desired.manifests_for(name))
        log.info("Resumed %s", name)
        self._save_root(desired)
        return reconciler.state

    async def refresh(self, *, stop: asyncio.Event | None = None) -> RefreshReport:
        """Re-evaluate the root and react to what changed.

        A new revision (or a new child) triggers an automatic rollout; at an
        unchanged revision each application is checked for drift. Children no
        longer generated by the template are deleted when the root prunes.
        """

        desired = await self.evaluate()
        states = self._load_states(desired)
        removed = await self._reconcile_removed(desired, states)

        changed = [
            app.name
            for app in desired.graph.applications
            if (state := states.get(app.name)) is None
            or state.revision != desired.revision_for(app.name)
        ]
        if changed:
            log.info("Desired state changed for %s", ", ".join(changed))
            report = await self._rollout(desired, manual=False, stop=stop)
            return RefreshReport(
                revision=desired.graph.revision, rollout=report, removed=removed
            )

        reconcilers = [
            self._reconciler(app, self._state_for(desired, app))
            for app in desired.graph.applications
        ]
        drift = await asyncio.gather(
            *(
                reconciler.refresh(
                    desired.manifests_for(reconciler.name), desired.revision_for(reconciler.name)
                )
                for reconciler in reconcilers
            )
        )
        self._save_root(desired)
        return RefreshReport(revision=desired.graph.revision, drift=tuple(drift), removed=removed)

    async def watch(
        self,
        stop: asyncio.Event,
        *,
        interval: float = DEFAULT_WATCH_INTERVAL_SECONDS,
        max_cycles: int | None = None,
    ) -> list[RefreshReport]:
        """Refresh repeatedly until ``stop`` is set."""

        reports: list[RefreshReport] = []
        while not stop.is_set():
            reports.append(await self.refresh(stop=stop))
            if max_cycles is not None and len(reports) >= max_cycles:
                break
            await self._pause_until(stop, interval)
        return reports

    async def delete_root(self, *, cascade: bool = True) -> DeletionReport:
        """Delete every child in reverse wave order, then the root itself.

        The root's finalizer is only removed once every child is gone; a child
        whose resources survive keeps its own finalizer and state so the call
        can be retried.
        """

        desired = await self.evaluate()
        root_name = desired.graph.root.name
        states = self._load_states(desired)
        root_state = states.pop(root_name, None) or self._new_root_state(desired)
        root_state.deleting = True
        root_state.phase = ReconcilePhase.DELETING
        self._save(root_state)

        by_wave: dict[int, list[ApplicationState]] = {}
        for state in states.values():
            by_wave.setdefault(state.sync_wave, []).append(state)

        deleted: list[str] = []
        failed: list[str] = []
        errors: list[str] = []
        for wave in sorted(by_wave, reverse=True):
            members = sorted(by_wave[wave], key=lambda state: state.name)
            log.info("Deleting wave %s: %s", wave, ", ".join(state.name for state in members))
            outcomes = await asyncio.gather(
                *(self._delete_child(state, cascade=cascade) for state in members),
                return_exceptions=True,
            )
            for state, outcome in zip(members, outcomes, strict=True):
                if isinstance(outcome, ApplyError):
                    failed.append(state.name)
                    errors.append(str(outcome))
                    self._save(state)
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    deleted.append(state.name)

        if failed:
            log.error("Root %s keeps its finalizer: %s", root_name, "; ".join(errors))
            return DeletionReport(
                root=root_name, deleted=tuple(deleted), failed=tuple(failed), errors=tuple(errors)
            )

        if RESOURCES_FINALIZER in root_state.finalizers:
            root_state.finalizers.remove(RESOURCES_FINALIZER)
        self._forget(root_name)
        log.info("Deleted root %s with %s children", root_name, len(deleted))
        return DeletionReport(root=root_name, deleted=tuple(deleted))

    async def root_status(self) -> RootStatus:
        desired = self._desired or await self.evaluate()
        aggregator = self._require_aggregator()
        with self.unit_of_work_factory() as uow:
            states = uow.repositories.applications.list_for_root(desired.graph.root.name)
        return aggregator.summarize(states)

    # Internals ----------------------------------------------------------------

    async def _rollout(
        self, desired: DesiredState, *, manual: bool, stop: asyncio.Event | None
    ) -> RolloutReport:
        aggregator = self._require_aggregator()
        states = self._load_states(desired)
        await self._reconcile_removed(desired, states)

        waves = [
            (
                wave,
                [
                    _Member(
                        reconciler=self._reconciler(app, self._state_for(desired, app)),
                        desired=desired,
                        manual=manual,
                    )
                    for app in members
                ],
            )
            for wave, members in desired.graph.waves()
        ]
        scheduler = WaveScheduler(strict=self.settings.strict, on_wave=aggregator.wave_started)

        aggregator.begin_rollout()
        self._save_root(desired)
        try:
            report = await scheduler.run(waves, stop=stop)
        finally:
            aggregator.end_rollout()
            self._save_root(desired)

        if report.outcome is RolloutOutcome.COMPLETED:
            log.info("Rollout of %s completed", desired.graph.root.name)
        else:
            log.warning(
                "Rollout of %s %s at wave %s",
                desired.graph.root.name,
                report.outcome.lower(),
                report.stopped_at_wave,
            )
        return report

    async def _reconcile_removed(
        self, desired: DesiredState, states: dict[str, ApplicationState]
    ) -> tuple[str, ...]:
        orphans = self._orphaned_states(desired, states)
        if not orphans:
            return ()
        if not desired.graph.root.sync_policy.prune:
            for state in orphans:
                log.warning("%s is no longer generated by the root; prune disabled", state.name)
                state.sync_status = SyncStatus.OUT_OF_SYNC
                self._save(state)
            return ()

        removed: list[str] = []
        for state in sorted(orphans, key=lambda state: (-state.sync_wave, state.name)):
            log.info("Pruning child %s removed from the root template", state.name)
            try:
                await self._delete_child(state, cascade=True)
            except ApplyError as exc:
                log.error("Cannot prune child %s: %s", state.name, exc)
                self._save(state)
                continue
            states.pop(state.name, None)
            removed.append(state.name)
        return tuple(removed)

    async def _delete_child(self, state: ApplicationState, *, cascade: bool) -> None:
        await delete_application(self.cluster, state, cascade=cascade)
        self._forget(state.name)

    def _orphaned_states(
        self, desired: DesiredState, states: dict[str, ApplicationState]
    ) -> list[ApplicationState]:
        root = desired.graph.root.name
        return [
            state
            for name, state in states.items()
            if name != root and name not in desired.graph
        ]

    def _reconciler(self, app: Application, state: ApplicationState) -> ApplicationReconciler:
        return ApplicationReconciler(
            application=app,
            state=state,
            cluster=self.cluster,
            settings=self.settings,
            sleep=self.sleep,
            clock=self.clock,
            on_change=self._save,
        )

    def _state_for(self, desired: DesiredState, app: Application) -> ApplicationState:
        with self.unit_of_work_factory() as uow:
            state = uow.repositories.applications.get(app.name)
        if state is None:
            state = ApplicationState(name=app.name, root=desired.graph.root.name)
        state.sync_wave = app.sync_wave
        state.non_blocking = app.non_blocking
        return state

    def _load_states(self, desired: DesiredState) -> dict[str, ApplicationState]:
        with self.unit_of_work_factory() as uow:
            states = uow.repositories.applications.list_for_root(desired.graph.root.name)
        return {state.name: state for state in states}

    def _new_root_state(self, desired: DesiredState) -> ApplicationState:
        root = desired.graph.root.name
        return ApplicationState(name=root, root=root, revision=desired.graph.revision)

    def _save_root(self, desired: DesiredState) -> None:
        aggregator = self._require_aggregator()
        root = desired.graph.root.name
        with self.unit_of_work_factory() as uow:
            repository = uow.repositories.applications
            state = repository.get(root) or self._new_root_state(desired)
            summary = aggregator.summarize(repository.list_for_root(root))
            state.revision = desired.graph.revision
            state.sync_status = summary.sync_status
            state.health_status = summary.health_status
            state.phase = (
                ReconcilePhase.PROGRESSING
                if summary.rolling_out
                else _phase_for(summary.health_status, summary.sync_status)
            )
            repository.save(state)
            uow.commit()

    def _save(self, state: ApplicationState) -> None:
        with self.unit_of_work_factory() as uow:
            uow.repositories.applications.save(state)
            uow.commit()

    def _forget(self, name: str) -> None:
        with self.unit_of_work_factory() as uow:
            uow.repositories.applications.delete(name)
            uow.commit()

    def _require_aggregator(self) -> StatusAggregator:
        if self._aggregator is None:
            raise RuntimeError("Controller has not evaluated its root yet")
        return self._aggregator

    async def _pause_until(self, stop: asyncio.Event, interval: float) -> None:
        sleeper = asyncio.ensure_future(_awaitable(self.sleep(interval)))
        stopper = asyncio.ensure_future(stop.wait())
        _done, pending = await asyncio.wait(
            {sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


async def _awaitable(operation: Awaitable[None]) -> None:
    await operation


def _phase_for(health: HealthStatus, sync: SyncStatus) -> ReconcilePhase:
    if health is HealthStatus.DEGRADED:
        return ReconcilePhase.DEGRADED
    if health is HealthStatus.HEALTHY:
        return ReconcilePhase.SYNCED if sync is SyncStatus.SYNCED else ReconcilePhase.OUT_OF_SYNC
    if health is HealthStatus.SUSPENDED:
        return ReconcilePhase.SUSPENDED
    if health is HealthStatus.MISSING:
        return ReconcilePhase.MISSING
    return ReconcilePhase.PROGRESSING
