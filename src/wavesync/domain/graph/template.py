"""Pydantic schema for root templates, overlays and resolved candidates.

Keys follow the ArgoCD Application spelling (``repoURL``, ``syncWave``,
``selfHeal``...) so values files can be lifted from an existing App-of-Apps
chart. Unknown keys are rejected rather than ignored: a typo in an overlay
must fail graph construction instead of silently keeping the template value.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: object) -> float:
    """Parse ``5s``/``3m``/``1h``/``250ms`` or a bare number of seconds."""

    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        if value < 0:
            raise ValueError(f"Duration must be non-negative: {value!r}")
        return float(value)
    match = _DURATION.match(str(value))
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _UNIT_SECONDS[unit]


class TemplateModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class BackoffModel(TemplateModel):
    duration: float = 5.0
    factor: float = Field(default=2.0, ge=1.0)
    max_duration: float = Field(default=180.0, alias="maxDuration")

    @field_validator("duration", "max_duration", mode="before")
    @classmethod
    def _parse_duration(cls, value: object) -> float:
        return parse_duration(value)


class RetryModel(TemplateModel):
    limit: int = Field(default=5, ge=0)
    backoff: BackoffModel = Field(default_factory=BackoffModel)


class SyncPolicyModel(TemplateModel):
    automated: bool = False
    prune: bool = False
    self_heal: bool = Field(default=False, alias="selfHeal")
    retry: RetryModel = Field(default_factory=RetryModel)


class DestinationModel(TemplateModel):
    server: str = "https://kubernetes.default.svc"
    namespace: str = "argocd"


class CandidateModel(TemplateModel):
    """One fully merged candidate application, ready to become a graph node."""

    name: str | None = None
    enabled: bool = True
    repo_url: str | None = Field(default=None, alias="repoURL")
    target_revision: str | None = Field(default=None, alias="targetRevision")
    path: str
    server: str = "https://kubernetes.default.svc"
    namespace: str
    sync_wave: int = Field(default=0, alias="syncWave")
    sync_policy: SyncPolicyModel = Field(default_factory=SyncPolicyModel, alias="syncPolicy")
    non_blocking: bool = Field(default=False, alias="nonBlocking")
    parameters: dict[str, str] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def _stringify_parameters(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        stringified: dict[str, str] = {}
        for key, item in value.items():
            if isinstance(item, bool):
                stringified[str(key)] = "true" if item else "false"
            elif isinstance(item, dict | list):
                raise ValueError(f"Parameter {key!r} must be a scalar")
            else:
                stringified[str(key)] = "" if item is None else str(item)
        return stringified

    @field_validator("path")
    @classmethod
    def _relative_path(cls, value: str) -> str:
        normalized = value.strip().strip("/")
        if not normalized or ".." in normalized.split("/"):
            raise ValueError(f"Invalid application path: {value!r}")
        return normalized


class RootTemplateDocument(TemplateModel):
    """Top-level shape of the root template.

    ``defaults`` and each entry of ``applications`` stay raw mappings here;
    they are merged with the overlay before ``CandidateModel`` validates them.
    """

    name: str = "root"
    destination: DestinationModel = Field(default_factory=DestinationModel)
    sync_policy: SyncPolicyModel = Field(default_factory=SyncPolicyModel, alias="syncPolicy")
    defaults: dict[str, Any] = Field(default_factory=dict)
    applications: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("applications", mode="before")
    @classmethod
    def _empty_entries(cls, value: object) -> object:
        if isinstance(value, dict):
            return {key: {} if item is None else item for key, item in value.items()}
        return value


class OverlayDocument(TemplateModel):
    defaults: dict[str, Any] = Field(default_factory=dict)
    applications: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("applications", mode="before")
    @classmethod
    def _empty_entries(cls, value: object) -> object:
        if isinstance(value, dict):
            return {key: {} if item is None else item for key, item in value.items()}
        return value
