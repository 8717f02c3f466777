"""Application Graph Builder.

``build_application_graph`` is a pure function of the root template text, the
overlay text and the root revision: it performs no I/O and never consults live
cluster state, so re-running it after a cancelled rollout reproduces the same
graph.

Merge precedence for each candidate, lowest first:

1. built-in defaults (``CandidateModel`` field defaults)
2. template ``defaults``
3. template ``applications.<id>``
4. overlay ``defaults``
5. overlay ``applications.<id>``
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from wavesync.domain.model import (
    Application,
    ConfigError,
    ConflictError,
    Destination,
    RetrySpec,
    SourceRef,
    SyncPolicy,
)

from .graph import ApplicationGraph, RootApplication
from .merge import merge_layers
from .template import CandidateModel, OverlayDocument, RootTemplateDocument, SyncPolicyModel
from .yaml_loader import load_document

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)


def build_application_graph(
    template_text: str,
    overlay_text: str | None,
    *,
    repo_url: str,
    revision: str,
    root_path: str,
    overlay_name: str,
) -> ApplicationGraph:
    """Expand ``template_text`` + ``overlay_text`` into the application graph.

    Raises ``ConfigError`` for malformed documents or overlay entries naming an
    unknown candidate, and ``ConflictError`` for duplicate names or two
    applications sharing a destination namespace.
    """

    template = _parse(RootTemplateDocument, template_text, origin=root_path)
    overlay = (
        _parse(OverlayDocument, overlay_text, origin=f"overlay {overlay_name}")
        if overlay_text is not None
        else OverlayDocument()
    )

    unknown = sorted(set(overlay.applications) - set(template.applications))
    if unknown:
        raise ConfigError(
            f"Overlay {overlay_name!r} references unknown applications: {', '.join(unknown)}"
        )

    root = RootApplication(
        name=template.name,
        source=SourceRef(repo_url=repo_url, revision=revision, path=root_path),
        destination=Destination(
            server=template.destination.server,
            namespace=template.destination.namespace,
        ),
        overlay=overlay_name,
        sync_policy=_sync_policy(template.sync_policy),
    )

    applications: list[Application] = []
    for candidate_id in sorted(template.applications):
        merged = merge_layers(
            template.defaults,
            template.applications[candidate_id],
            overlay.defaults,
            overlay.applications.get(candidate_id),
        )
        candidate = _validate_candidate(candidate_id, merged)
        if not candidate.enabled:
            log.debug("Skipping disabled application %s", candidate_id)
            continue
        applications.append(
            Application(
                name=candidate.name or candidate_id,
                source=SourceRef(
                    repo_url=candidate.repo_url or repo_url,
                    revision=candidate.target_revision or revision,
                    path=candidate.path,
                ),
                destination=Destination(server=candidate.server, namespace=candidate.namespace),
                sync_wave=candidate.sync_wave,
                sync_policy=_sync_policy(candidate.sync_policy),
                parameters=dict(sorted(candidate.parameters.items())),
                non_blocking=candidate.non_blocking,
            )
        )

    _check_conflicts(root, applications)
    return ApplicationGraph(root=root, revision=revision, applications=tuple(applications))


def _parse[TModel: (RootTemplateDocument, OverlayDocument)](
    model: type[TModel], text: str, *, origin: str
) -> TModel:
    document = load_document(text, origin=origin)
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ConfigError(f"Expected a mapping at the top of {origin}")
    try:
        return model.model_validate(document)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {origin}: {exc}") from exc


def _validate_candidate(candidate_id: str, merged: Mapping[str, Any]) -> CandidateModel:
    try:
        return CandidateModel.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid application {candidate_id!r}: {exc}") from exc


def _sync_policy(model: SyncPolicyModel) -> SyncPolicy:
    return SyncPolicy(
        automated=model.automated,
        prune=model.prune,
        self_heal=model.self_heal,
        retry=RetrySpec(
            limit=model.retry.limit,
            backoff_base=model.retry.backoff.duration,
            backoff_factor=model.retry.backoff.factor,
            backoff_max_duration=model.retry.backoff.max_duration,
        ),
    )


def _check_conflicts(root: RootApplication, applications: list[Application]) -> None:
    seen_names: set[str] = {root.name}
    owners: dict[tuple[str, str], str] = {}
    for app in applications:
        if app.name in seen_names:
            raise ConflictError(f"Duplicate application name: {app.name}")
        seen_names.add(app.name)

        destination = (app.destination.server, app.destination.namespace)
        owner = owners.get(destination)
        if owner is not None:
            raise ConflictError(
                f"Applications {owner} and {app.name} both own destination {app.destination}"
            )
        owners[destination] = app.name
