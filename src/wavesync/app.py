"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from wavesync.adapters.source import FilesystemSource, HttpSource
from wavesync.adapters.sqlalchemy import SqlAlchemyCluster, SqlAlchemyStateUnitOfWork, startup
from wavesync.adapters.sqlalchemy.unit_of_work import is_started
from wavesync.config import get_controller_config, get_source_config
from wavesync.domain.controller import DEFAULT_WATCH_INTERVAL_SECONDS, GitOpsController

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wavesync.config import ControllerConfig, SourceConfig
    from wavesync.domain.controller import (
        DeletionReport,
        Plan,
        RefreshReport,
        UnitOfWorkFactory,
    )
    from wavesync.domain.model import ApplicationState
    from wavesync.domain.ports import ClusterClient, DesiredStateSource
    from wavesync.domain.scheduler import RolloutReport
    from wavesync.domain.status import RootStatus

log = getLogger(__name__)


def build_source(config: SourceConfig) -> DesiredStateSource:
    if config.is_remote:
        return HttpSource(resilience=config.resilience())
    return FilesystemSource(Path(config.location).expanduser())


def build_controller(
    *,
    environment: str | None = None,
    source_config: SourceConfig | None = None,
    settings: ControllerConfig | None = None,
    source: DesiredStateSource | None = None,
    cluster: ClusterClient | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> GitOpsController:
    """Wire the controller from configuration, defaulting to the SQL backends."""

    effective_source_config = source_config or get_source_config(environment=environment)
    if (unit_of_work_factory is None or cluster is None) and not is_started():
        startup()
    controller = GitOpsController(
        source=source or build_source(effective_source_config),
        cluster=cluster or SqlAlchemyCluster(),
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyStateUnitOfWork,
        repo_url=effective_source_config.repo_url,
        revision=effective_source_config.revision,
        root_path=effective_source_config.root_path,
        environment=environment or effective_source_config.environment,
        settings=settings or get_controller_config(),
    )
    log.info(
        "Controller for %s (%s) at %s, environment %s",
        controller.repo_url,
        effective_source_config.location,
        controller.revision,
        controller.environment,
    )
    return controller


async def _closing_source[T](controller: GitOpsController, operation: Awaitable[T]) -> T:
    # The HTTP client is bound to the loop it was opened on.
    try:
        return await operation
    finally:
        if isinstance(controller.source, HttpSource):
            await controller.source.aclose()


def _run[T](controller: GitOpsController, operation: Awaitable[T]) -> T:
    return asyncio.run(_closing_source(controller, operation))


def _run_until_interrupted[T](
    controller: GitOpsController, operation: Callable[[asyncio.Event], Awaitable[T]]
) -> T:
    """Run ``operation`` with a stop event that SIGINT sets instead of aborting."""

    async def runner() -> T:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, _request_stop, stop)
        try:
            return await operation(stop)
        finally:
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signal.SIGINT)

    return _run(controller, runner())


def _request_stop(stop: asyncio.Event) -> None:
    if not stop.is_set():
        log.warning("Interrupt received; finishing in-flight applies and stopping")
    stop.set()


def plan_rollout(*, controller: GitOpsController) -> Plan:
    return _run(controller, controller.plan())


def run_rollout(*, controller: GitOpsController, manual: bool = False) -> RolloutReport:
    return _run_until_interrupted(
        controller, lambda stop: controller.rollout(manual=manual, stop=stop)
    )


def sync_application(*, controller: GitOpsController, name: str) -> ApplicationState:
    return _run_until_interrupted(controller, lambda stop: controller.sync(name, stop=stop))


def pause_application(*, controller: GitOpsController, name: str) -> ApplicationState:
    return _run(controller, controller.pause(name))


def resume_application(*, controller: GitOpsController, name: str) -> ApplicationState:
    return _run(controller, controller.resume(name))


def refresh_root(*, controller: GitOpsController) -> RefreshReport:
    return _run_until_interrupted(controller, lambda stop: controller.refresh(stop=stop))


def watch_root(
    *,
    controller: GitOpsController,
    interval: float = DEFAULT_WATCH_INTERVAL_SECONDS,
    max_cycles: int | None = None,
) -> list[RefreshReport]:
    return _run_until_interrupted(
        controller,
        lambda stop: controller.watch(stop, interval=interval, max_cycles=max_cycles),
    )


def root_status(*, controller: GitOpsController) -> RootStatus:
    return _run(controller, controller.root_status())


def delete_root(*, controller: GitOpsController, cascade: bool = True) -> DeletionReport:
    return _run(controller, controller.delete_root(cascade=cascade))
