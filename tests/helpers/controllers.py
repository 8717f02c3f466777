"""Controller wiring over in-memory adapters."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wavesync.adapters.memory import InMemoryCluster, InMemoryStateStore
from wavesync.config import ControllerConfig
from wavesync.domain.controller import GitOpsController

from tests.helpers.sources import REPO_URL, ROOT_PATH, DictSource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from wavesync.domain.model import ApplicationState


@dataclass(slots=True)
class RecordingSleep:
    """Async ``sleep`` stand-in that records every delay and only yields."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


FAST_SETTINGS = ControllerConfig(poll_interval=1.0, health_timeout=3.0, strict=True)


@dataclass(slots=True)
class Harness:
    source: DictSource
    cluster: InMemoryCluster
    store: InMemoryStateStore
    sleep: RecordingSleep
    controller: GitOpsController

    def state(self, name: str) -> ApplicationState:
        return self.store.states[name]


def make_harness(
    files: Mapping[str, str],
    *,
    settings: ControllerConfig = FAST_SETTINGS,
    cluster: InMemoryCluster | None = None,
    environment: str = "dev",
) -> Harness:
    source = DictSource(files=dict(files))
    effective_cluster = cluster or InMemoryCluster()
    store = InMemoryStateStore()
    sleep = RecordingSleep()
    controller = GitOpsController(
        source=source,
        cluster=effective_cluster,
        unit_of_work_factory=store.unit_of_work,
        repo_url=REPO_URL,
        root_path=ROOT_PATH,
        environment=environment,
        settings=settings,
        sleep=sleep,
    )
    return Harness(
        source=source,
        cluster=effective_cluster,
        store=store,
        sleep=sleep,
        controller=controller,
    )
