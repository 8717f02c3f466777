"""Port for the declarative-state backend (a Kubernetes-style cluster API)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from wavesync.domain.model import Manifest, ResourceKey


@runtime_checkable
class ClusterClient(Protocol):
    """CRUD over typed resources plus an ownership-scoped poll.

    Implementations raise ``ClusterUnavailableError`` when live state cannot be
    observed and ``ApplyError`` when a write is rejected.
    """

    async def list_owned(self, owner: str) -> list[Manifest]: ...

    async def get(self, key: ResourceKey) -> Manifest | None: ...

    async def apply(self, manifest: Manifest, *, owner: str) -> Manifest: ...

    async def delete(self, key: ResourceKey) -> None: ...
