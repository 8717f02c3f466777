"""Finalizer-guarded deletion of an application's owned resources."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from wavesync.domain.model import (
    RESOURCES_FINALIZER,
    ApplyError,
    ClusterUnavailableError,
    ReconcilePhase,
    ResourceKey,
)

from .ordering import prune_order

if TYPE_CHECKING:
    from wavesync.domain.model import ApplicationState
    from wavesync.domain.ports import ClusterClient

log = getLogger(__name__)


async def delete_application(
    cluster: ClusterClient, state: ApplicationState, *, cascade: bool = True
) -> None:
    """Delete everything ``state`` owns, then clear its finalizer.

    With ``cascade`` disabled the owned resources are orphaned explicitly and
    only the finalizer is removed. The finalizer stays in place if any owned
    resource survives, so a failed deletion can simply be retried.
    """

    state.deleting = True
    state.phase = ReconcilePhase.DELETING

    if cascade and RESOURCES_FINALIZER in state.finalizers:
        try:
            live = await cluster.list_owned(state.name)
            for manifest in prune_order(live):
                key = ResourceKey.from_manifest(manifest)
                log.info("Deleting %s owned by %s", key, state.name)
                await cluster.delete(key)
            remaining = await cluster.list_owned(state.name)
        except ClusterUnavailableError as exc:
            raise ApplyError(
                f"Cannot confirm deletion: {exc}", application=state.name
            ) from exc
        except ApplyError as exc:
            exc.application = exc.application or state.name
            raise
        if remaining:
            first = ResourceKey.from_manifest(remaining[0])
            raise ApplyError(
                f"{len(remaining)} owned resources still present after deletion",
                application=state.name,
                resource=str(first),
            )
    elif not cascade:
        log.warning("Orphaning resources owned by %s", state.name)

    if RESOURCES_FINALIZER in state.finalizers:
        state.finalizers.remove(RESOURCES_FINALIZER)
    log.info("Removed finalizer from %s", state.name)
