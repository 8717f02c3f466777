"""Ports for persisting application state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from wavesync.domain.model import ApplicationState


@runtime_checkable
class ApplicationStateRepository(Protocol):
    """Persistence contract for the live application set and its statuses."""

    def get(self, name: str) -> ApplicationState | None: ...

    def list_for_root(self, root: str) -> list[ApplicationState]: ...

    def save(self, state: ApplicationState) -> None: ...

    def delete(self, name: str) -> None: ...
