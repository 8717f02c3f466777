"""In-memory adapters for dry runs, tests and failure injection."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from itertools import count
from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from wavesync.domain.model import (
    ApplyError,
    ClusterUnavailableError,
    ResourceKey,
)
from wavesync.domain.model.resources import owner_of, with_owner
from wavesync.domain.ports.unit_of_work import StateRepositories

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from wavesync.domain.model import ApplicationState, Manifest
    from wavesync.domain.ports import ApplicationStateRepository, ClusterClient, StateUnitOfWork

log = getLogger(__name__)

type ApplyHook = Callable[[ResourceKey, str], Awaitable[None]]
type OperationKind = Literal["apply", "delete"]


@dataclass(frozen=True, slots=True)
class ClusterOperation:
    seq: int
    kind: OperationKind
    owner: str | None
    key: ResourceKey


@dataclass(slots=True)
class InMemoryCluster:
    """Dictionary-backed cluster honouring the ownership label.

    Server-owned fields (``status``, ``metadata.uid``/``resourceVersion``/
    ``generation``) are kept across applies so a re-apply of unchanged desired
    state compares equal. ``mutate`` and ``set_status`` simulate out-of-band
    changes and are not counted as mutations.
    """

    resources: dict[ResourceKey, Manifest] = field(default_factory=dict)
    on_apply: ApplyHook | None = None
    unavailable: bool = False
    operations: list[ClusterOperation] = field(default_factory=list)
    _failures: dict[str, int | None] = field(default_factory=dict)
    _stuck: set[ResourceKey] = field(default_factory=set)
    _seq: count[int] = field(default_factory=count)

    @property
    def mutations(self) -> int:
        return len(self.operations)

    # Port ---------------------------------------------------------------------

    async def list_owned(self, owner: str) -> list[Manifest]:
        self._check_available()
        return [
            copy.deepcopy(manifest)
            for _key, manifest in sorted(self.resources.items())
            if owner_of(manifest) == owner
        ]

    async def get(self, key: ResourceKey) -> Manifest | None:
        self._check_available()
        manifest = self.resources.get(key)
        return copy.deepcopy(manifest) if manifest is not None else None

    async def apply(self, manifest: Manifest, *, owner: str) -> Manifest:
        self._check_available()
        key = ResourceKey.from_manifest(manifest)
        if self.on_apply is not None:
            await self.on_apply(key, owner)
        self._maybe_fail(owner, key)

        stored = with_owner(manifest, owner)
        stored.pop("status", None)
        existing = self.resources.get(key)
        metadata = stored["metadata"]
        if existing is None:
            metadata["uid"] = f"uid-{next(self._seq)}"
            metadata["generation"] = 1
        else:
            previous = existing.get("metadata") or {}
            metadata["uid"] = previous.get("uid")
            metadata["generation"] = int(previous.get("generation", 0)) + 1
            if "status" in existing:
                stored["status"] = copy.deepcopy(existing["status"])
        metadata["resourceVersion"] = str(next(self._seq))
        self.resources[key] = stored
        self._record("apply", owner, key)
        log.debug("Applied %s for %s", key, owner)
        return copy.deepcopy(stored)

    async def delete(self, key: ResourceKey) -> None:
        self._check_available()
        manifest = self.resources.get(key)
        if manifest is None:
            return
        self._record("delete", owner_of(manifest), key)
        if key in self._stuck:
            log.debug("Deletion of %s accepted but the resource remains", key)
            return
        del self.resources[key]

    # Simulation helpers -------------------------------------------------------

    def fail_applies(self, owner: str, times: int | None = None) -> None:
        """Reject applies for ``owner``: ``times`` times, or always when ``None``."""

        self._failures[owner] = times

    def clear_failures(self, owner: str | None = None) -> None:
        if owner is None:
            self._failures.clear()
        else:
            self._failures.pop(owner, None)

    def block_deletion(self, key: ResourceKey) -> None:
        self._stuck.add(key)

    def unblock_deletion(self, key: ResourceKey) -> None:
        self._stuck.discard(key)

    def mutate(self, key: ResourceKey, change: Callable[[Manifest], None]) -> None:
        change(self.resources[key])

    def set_status(self, key: ResourceKey, status: dict[str, Any] | None) -> None:
        if status is None:
            self.resources[key].pop("status", None)
        else:
            self.resources[key]["status"] = copy.deepcopy(status)

    def owned_keys(self, owner: str) -> list[ResourceKey]:
        return sorted(
            key for key, manifest in self.resources.items() if owner_of(manifest) == owner
        )

    def _check_available(self) -> None:
        if self.unavailable:
            raise ClusterUnavailableError("In-memory cluster marked unavailable")

    def _maybe_fail(self, owner: str, key: ResourceKey) -> None:
        if owner not in self._failures:
            return
        remaining = self._failures[owner]
        if remaining is not None:
            if remaining <= 0:
                del self._failures[owner]
                return
            self._failures[owner] = remaining - 1
        raise ApplyError("Injected apply failure", application=owner, resource=str(key))

    def _record(self, kind: OperationKind, owner: str | None, key: ResourceKey) -> None:
        self.operations.append(
            ClusterOperation(seq=len(self.operations), kind=kind, owner=owner, key=key)
        )


class InMemoryApplicationStateRepository:
    """Stores copies so callers cannot mutate persisted state without ``save``."""

    def __init__(self, states: dict[str, ApplicationState]) -> None:
        self._states = states
        self.touched: set[str] = set()

    def get(self, name: str) -> ApplicationState | None:
        state = self._states.get(name)
        return copy.deepcopy(state) if state is not None else None

    def list_for_root(self, root: str) -> list[ApplicationState]:
        return [
            copy.deepcopy(state)
            for _name, state in sorted(self._states.items())
            if state.root == root
        ]

    def save(self, state: ApplicationState) -> None:
        self._states[state.name] = copy.deepcopy(state)
        self.touched.add(state.name)

    def delete(self, name: str) -> None:
        self._states.pop(name, None)
        self.touched.add(name)


@dataclass(slots=True)
class InMemoryStateStore:
    """Committed application states shared by every unit of work."""

    states: dict[str, ApplicationState] = field(default_factory=dict)

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)


class InMemoryUnitOfWork:
    """Stages changes in a working copy and publishes them on ``commit``."""

    def __init__(self, store: InMemoryStateStore) -> None:
        self._store = store
        self._working: dict[str, ApplicationState] | None = None
        self._repository: InMemoryApplicationStateRepository | None = None
        self.committed = False

    def __enter__(self) -> InMemoryUnitOfWork:
        self._working = copy.deepcopy(self._store.states)
        self._repository = InMemoryApplicationStateRepository(self._working)
        self.committed = False
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self._working = None
        self._repository = None
        return False

    @property
    def repositories(self) -> StateRepositories:
        if self._repository is None:
            raise RuntimeError("Unit of work used outside its context")
        return StateRepositories(applications=self._repository)

    def commit(self) -> None:
        if self._working is None or self._repository is None:
            raise RuntimeError("Unit of work used outside its context")
        for name in self._repository.touched:
            if name in self._working:
                self._store.states[name] = copy.deepcopy(self._working[name])
            else:
                self._store.states.pop(name, None)
        self._repository.touched.clear()
        self.committed = True

    def rollback(self) -> None:
        if self._working is not None and self._repository is not None:
            self._working.clear()
            self._working.update(copy.deepcopy(self._store.states))
            self._repository.touched.clear()


if TYPE_CHECKING:
    _cluster_check: ClusterClient = InMemoryCluster()
    _repository_check: ApplicationStateRepository = InMemoryApplicationStateRepository({})
    _uow_check: StateUnitOfWork = InMemoryUnitOfWork(InMemoryStateStore())
