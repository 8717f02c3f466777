"""Application Graph Builder: root template + overlay -> application graph."""

from __future__ import annotations

from .builder import build_application_graph
from .graph import ApplicationGraph, DesiredState, RenderedApplication, RootApplication
from .loader import load_desired_state, load_graph, overlay_path
from .merge import deep_merge, merge_layers
from .render import render_application, render_graph, substitute_parameters
from .template import parse_duration

__all__ = [
    "ApplicationGraph",
    "DesiredState",
    "RenderedApplication",
    "RootApplication",
    "build_application_graph",
    "deep_merge",
    "load_desired_state",
    "load_graph",
    "merge_layers",
    "overlay_path",
    "parse_duration",
    "render_application",
    "render_graph",
    "substitute_parameters",
]
