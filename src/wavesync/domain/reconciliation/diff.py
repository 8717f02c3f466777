"""Diff desired manifests against live state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from wavesync.domain.model import ChangeKind, ResourceKey, SyncStatus
from wavesync.domain.model.resources import comparable

from .ordering import apply_order, prune_order

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wavesync.domain.model import Manifest


@dataclass(frozen=True, slots=True)
class ResourceChange:
    key: ResourceKey
    change: ChangeKind
    desired: Manifest | None = None
    live: Manifest | None = None


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    """Per-resource classification of one application."""

    changes: tuple[ResourceChange, ...] = ()

    def of_kind(self, *kinds: ChangeKind) -> tuple[ResourceChange, ...]:
        return tuple(change for change in self.changes if change.change in kinds)

    @property
    def to_apply(self) -> list[Manifest]:
        """Added and modified resources in apply order."""

        return apply_order(
            change.desired
            for change in self.of_kind(ChangeKind.ADDED, ChangeKind.MODIFIED)
            if change.desired is not None
        )

    @property
    def to_prune(self) -> list[Manifest]:
        """Live resources no longer desired, in prune (reverse apply) order."""

        return prune_order(
            change.live for change in self.of_kind(ChangeKind.REMOVED) if change.live is not None
        )

    @property
    def out_of_sync(self) -> tuple[ResourceChange, ...]:
        return self.of_kind(ChangeKind.ADDED, ChangeKind.MODIFIED, ChangeKind.REMOVED)

    @property
    def sync_status(self) -> SyncStatus:
        return SyncStatus.OUT_OF_SYNC if self.out_of_sync else SyncStatus.SYNCED


def compare(desired: Iterable[Manifest], live: Iterable[Manifest]) -> ComparisonResult:
    """Classify every desired and live resource.

    Backend-owned fields (``status``, ``metadata.uid``, the tracking label...)
    are ignored, so re-comparing after a successful apply yields only
    ``Unchanged`` entries.
    """

    live_by_key = {ResourceKey.from_manifest(manifest): manifest for manifest in live}
    changes: list[ResourceChange] = []
    seen: set[ResourceKey] = set()

    for manifest in desired:
        key = ResourceKey.from_manifest(manifest)
        seen.add(key)
        current = live_by_key.get(key)
        if current is None:
            changes.append(ResourceChange(key=key, change=ChangeKind.ADDED, desired=manifest))
        elif comparable(current) != comparable(manifest):
            changes.append(
                ResourceChange(key=key, change=ChangeKind.MODIFIED, desired=manifest, live=current)
            )
        else:
            changes.append(
                ResourceChange(key=key, change=ChangeKind.UNCHANGED, desired=manifest, live=current)
            )

    for key in sorted(set(live_by_key) - seen):
        changes.append(ResourceChange(key=key, change=ChangeKind.REMOVED, live=live_by_key[key]))

    return ComparisonResult(changes=tuple(changes))
