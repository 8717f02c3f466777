"""Desired-state source adapters."""

from __future__ import annotations

from .filesystem import FilesystemSource
from .http import HttpSource, repository_slug

__all__ = ["FilesystemSource", "HttpSource", "repository_slug"]
