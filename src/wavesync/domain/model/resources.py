"""Kubernetes-style resource manifests and their identities."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Final

type Manifest = dict[str, Any]

TRACKING_LABEL: Final[str] = "app.kubernetes.io/instance"
SYNC_WAVE_ANNOTATION: Final[str] = "argocd.argoproj.io/sync-wave"

# Fields written by the backend; never part of desired state.
_SERVER_METADATA_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "uid",
        "resourceVersion",
        "generation",
        "creationTimestamp",
        "managedFields",
        "selfLink",
    }
)

CLUSTER_SCOPED_KINDS: Final[frozenset[str]] = frozenset(
    {
        "Namespace",
        "StorageClass",
        "PersistentVolume",
        "CustomResourceDefinition",
        "ClusterRole",
        "ClusterRoleBinding",
        "PodSecurityPolicy",
        "APIService",
        "PriorityClass",
        "MutatingWebhookConfiguration",
        "ValidatingWebhookConfiguration",
    }
)


@dataclass(frozen=True, slots=True, order=True)
class ResourceKey:
    """Identity of one live resource: ``group/kind/namespace/name``."""

    group: str
    kind: str
    namespace: str
    name: str

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> ResourceKey:
        api_version = str(manifest.get("apiVersion", ""))
        group = api_version.rpartition("/")[0] if "/" in api_version else ""
        metadata = manifest.get("metadata") or {}
        return cls(
            group=group,
            kind=str(manifest.get("kind", "")),
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata.get("name", "")),
        )

    def __str__(self) -> str:
        return f"{self.group}/{self.kind}/{self.namespace}/{self.name}"


def owner_of(manifest: Manifest) -> str | None:
    labels = (manifest.get("metadata") or {}).get("labels") or {}
    owner = labels.get(TRACKING_LABEL)
    return str(owner) if owner is not None else None


def with_owner(manifest: Manifest, owner: str) -> Manifest:
    """Return a deep copy of ``manifest`` labelled as owned by ``owner``."""

    tracked = copy.deepcopy(manifest)
    metadata = tracked.setdefault("metadata", {})
    labels = metadata.setdefault("labels", {})
    labels[TRACKING_LABEL] = owner
    return tracked


def resource_wave(manifest: Manifest) -> int:
    annotations = (manifest.get("metadata") or {}).get("annotations") or {}
    raw = annotations.get(SYNC_WAVE_ANNOTATION)
    if raw is None:
        return 0
    try:
        return int(str(raw).strip())
    except ValueError:
        return 0


def comparable(manifest: Manifest) -> Manifest:
    """Strip backend-owned fields so desired and live manifests can be compared."""

    stripped = copy.deepcopy(manifest)
    stripped.pop("status", None)
    metadata = stripped.get("metadata")
    if isinstance(metadata, dict):
        for field_name in _SERVER_METADATA_FIELDS:
            metadata.pop(field_name, None)
        labels = metadata.get("labels")
        if isinstance(labels, dict):
            labels.pop(TRACKING_LABEL, None)
            if not labels:
                metadata.pop("labels")
        annotations = metadata.get("annotations")
        if isinstance(annotations, dict) and not annotations:
            metadata.pop("annotations")
    return stripped
