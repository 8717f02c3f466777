"""Error taxonomy shared by graph construction and reconciliation."""

from __future__ import annotations


class WavesyncError(Exception):
    """Base class for every error raised by the controller core."""


class ConfigError(WavesyncError):
    """Malformed or unresolvable template, overlay, or rendered manifest."""


class ConflictError(WavesyncError):
    """Two applications resolve to the same name or destination."""


class SourceError(WavesyncError):
    """The desired-state source cannot list or fetch a path."""


class UnknownApplicationError(WavesyncError, KeyError):
    """A command names an application that is not part of the graph."""

    def __str__(self) -> str:
        return f"Unknown application: {self.args[0]}" if self.args else "Unknown application"


class ClusterUnavailableError(WavesyncError):
    """The live state for a destination cannot be observed."""


class ApplyError(WavesyncError):
    """Applying desired state to the cluster failed.

    ``application`` and ``resource`` identify what failed; ``retries`` is set
    once the retry budget has been spent so operators see how hard we tried.
    """

    def __init__(
        self,
        message: str,
        *,
        application: str | None = None,
        resource: str | None = None,
        retries: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.application = application
        self.resource = resource
        self.retries = retries

    def __str__(self) -> str:
        parts: list[str] = []
        if self.application:
            parts.append(f"application={self.application}")
        if self.resource:
            parts.append(f"resource={self.resource}")
        if self.retries is not None:
            parts.append(f"retries={self.retries}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class SyncTimeoutError(ApplyError):
    """An application did not become healthy within the health timeout."""


class DriftError(WavesyncError):
    """Live state diverged from desired state without a revision change."""

    def __init__(self, application: str, resources: tuple[str, ...]) -> None:
        super().__init__(f"Drift detected in {application}: {', '.join(resources)}")
        self.application = application
        self.resources = resources
