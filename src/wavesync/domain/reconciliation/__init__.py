"""Reconciliation Engine: per-application diff, apply, heal and delete.

Layered flow for one application:
1) diff rendered manifests against the live resources it owns
2) apply added/modified resources in dependency order
3) wait for health, bounded by the health timeout
4) prune resources no longer desired (only with ``prune``, always last)
5) on failure retry with exponential backoff, then report ``Degraded``
"""

from __future__ import annotations

from .backoff import backoff_delay, backoff_schedule
from .deletion import delete_application
from .diff import ComparisonResult, ResourceChange, compare
from .engine import ApplicationReconciler, DriftReport
from .health import assess_application, assess_resource
from .ordering import KIND_ORDER, apply_order, prune_order

__all__ = [
    "KIND_ORDER",
    "ApplicationReconciler",
    "ComparisonResult",
    "DriftReport",
    "ResourceChange",
    "apply_order",
    "assess_application",
    "assess_resource",
    "backoff_delay",
    "backoff_schedule",
    "compare",
    "delete_application",
    "prune_order",
]
