"""Port for the version-controlled desired-state tree."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from wavesync.domain.model import SourceRef


@runtime_checkable
class DesiredStateSource(Protocol):
    """Read-only access to a repository at an immutable revision.

    ``resolve_revision`` turns a symbolic revision (``HEAD``, a branch) into the
    immutable snapshot identifier every later call is made against. Paths are
    ``/``-separated and relative to the repository root.
    """

    async def resolve_revision(self, repo_url: str, revision: str) -> str: ...

    async def list_files(self, ref: SourceRef) -> tuple[str, ...]: ...

    async def read_file(self, ref: SourceRef) -> str: ...
