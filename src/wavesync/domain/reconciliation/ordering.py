"""Intra-application apply ordering.

Resources are applied by their own sync-wave annotation first, then by kind
(namespaces before anything that lives in them, RBAC and config before the
workloads that consume them), then by name. Pruning walks the same order
backwards.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from wavesync.domain.model import ResourceKey
from wavesync.domain.model.resources import resource_wave

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wavesync.domain.model import Manifest

KIND_ORDER: Final[tuple[str, ...]] = (
    "Namespace",
    "NetworkPolicy",
    "ResourceQuota",
    "LimitRange",
    "PodSecurityPolicy",
    "PodDisruptionBudget",
    "ServiceAccount",
    "Secret",
    "SecretList",
    "ConfigMap",
    "StorageClass",
    "PersistentVolume",
    "PersistentVolumeClaim",
    "CustomResourceDefinition",
    "ClusterRole",
    "ClusterRoleList",
    "ClusterRoleBinding",
    "ClusterRoleBindingList",
    "Role",
    "RoleList",
    "RoleBinding",
    "RoleBindingList",
    "Service",
    "DaemonSet",
    "Pod",
    "ReplicationController",
    "ReplicaSet",
    "Deployment",
    "HorizontalPodAutoscaler",
    "StatefulSet",
    "Job",
    "CronJob",
    "IngressClass",
    "Ingress",
    "APIService",
)
_KIND_INDEX: Final[dict[str, int]] = {kind: index for index, kind in enumerate(KIND_ORDER)}
# Custom resources go after every built-in kind.
_UNKNOWN_KIND: Final[int] = len(KIND_ORDER)


def sort_key(manifest: Manifest) -> tuple[int, int, str, str, str]:
    key = ResourceKey.from_manifest(manifest)
    return (
        resource_wave(manifest),
        _KIND_INDEX.get(key.kind, _UNKNOWN_KIND),
        key.kind,
        key.namespace,
        key.name,
    )


def apply_order(manifests: Iterable[Manifest]) -> list[Manifest]:
    return sorted(manifests, key=sort_key)


def prune_order(manifests: Iterable[Manifest]) -> list[Manifest]:
    return sorted(manifests, key=sort_key, reverse=True)
