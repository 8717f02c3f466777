"""Expanded application graph produced from one root template."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import groupby
from typing import TYPE_CHECKING

from wavesync.domain.model import UnknownApplicationError

if TYPE_CHECKING:
    from wavesync.domain.model import Application, Destination, Manifest, SourceRef, SyncPolicy


@dataclass(frozen=True, slots=True)
class RootApplication:
    """The App-of-Apps entry point for one environment."""

    name: str
    source: SourceRef
    destination: Destination
    overlay: str
    sync_policy: SyncPolicy


@dataclass(frozen=True, slots=True)
class ApplicationGraph:
    """Applications that should exist, sorted by ``(sync_wave, name)``.

    Equality is structural, so two graphs built from the same revision and
    overlay compare equal.
    """

    root: RootApplication
    revision: str
    applications: tuple[Application, ...] = ()

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.applications, key=lambda app: (app.sync_wave, app.name)))
        object.__setattr__(self, "applications", ordered)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(app.name for app in self.applications)

    def get(self, name: str) -> Application:
        for app in self.applications:
            if app.name == name:
                return app
        raise UnknownApplicationError(name)

    def __contains__(self, name: object) -> bool:
        return any(app.name == name for app in self.applications)

    def waves(self) -> list[tuple[int, tuple[Application, ...]]]:
        """Group applications by sync wave in ascending wave order."""

        return [
            (wave, tuple(members))
            for wave, members in groupby(self.applications, key=lambda app: app.sync_wave)
        ]


@dataclass(frozen=True, slots=True)
class RenderedApplication:
    """Manifests of one application at the immutable revision they came from."""

    revision: str
    manifests: tuple[Manifest, ...] = ()


@dataclass(frozen=True, slots=True)
class DesiredState:
    """A graph together with every application's rendered manifests."""

    graph: ApplicationGraph
    rendered: dict[str, RenderedApplication] = field(default_factory=dict)

    def manifests_for(self, name: str) -> tuple[Manifest, ...]:
        return self._rendered_for(name).manifests

    def revision_for(self, name: str) -> str:
        return self._rendered_for(name).revision

    def _rendered_for(self, name: str) -> RenderedApplication:
        if name not in self.graph:
            raise UnknownApplicationError(name)
        rendered = self.rendered.get(name)
        if rendered is None:
            return RenderedApplication(revision=self.graph.revision)
        return rendered
