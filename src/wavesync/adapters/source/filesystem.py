"""Desired-state source backed by a local checkout."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from wavesync.domain.model import SourceError

if TYPE_CHECKING:
    from wavesync.domain.model import SourceRef
    from wavesync.domain.ports import DesiredStateSource

log = getLogger(__name__)

_DIGEST = re.compile(r"^[0-9a-f]{64}$")


@dataclass(slots=True)
class FilesystemSource:
    """Serve files from ``root``; the revision is a digest of the whole tree.

    Symbolic revisions (``HEAD``, branch names) resolve to the current digest.
    A concrete digest only resolves while the tree still has that content.
    Hidden files and directories are ignored.
    """

    root: Path

    async def resolve_revision(self, repo_url: str, revision: str) -> str:
        digest = self.tree_digest()
        if _DIGEST.match(revision) and revision != digest:
            raise SourceError(
                f"Revision {revision[:12]} of {repo_url} is not available in {self.root}"
            )
        log.debug("Resolved %s of %s to %s", revision, self.root, digest[:12])
        return digest

    async def list_files(self, ref: SourceRef) -> tuple[str, ...]:
        target = self._resolve(ref.path)
        if target.is_file():
            return (self._relative(target),)
        if not target.is_dir():
            raise SourceError(f"Path {ref.path!r} not found in {self.root}")
        return tuple(sorted(self._relative(path) for path in self._walk(target)))

    async def read_file(self, ref: SourceRef) -> str:
        target = self._resolve(ref.path)
        if not target.is_file():
            raise SourceError(f"File {ref.path!r} not found in {self.root}")
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceError(f"Cannot read {ref.path!r}: {exc}") from exc

    def tree_digest(self) -> str:
        if not self.root.is_dir():
            raise SourceError(f"Source directory {self.root} does not exist")
        digest = hashlib.sha256()
        for path in sorted(self._walk(self.root), key=self._relative):
            digest.update(self._relative(path).encode("utf-8"))
            digest.update(b"\0")
            digest.update(path.read_bytes())
            digest.update(b"\0")
        return digest.hexdigest()

    def _walk(self, directory: Path) -> list[Path]:
        files: list[Path] = []
        for path in directory.rglob("*"):
            relative = path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if path.is_file():
                files.append(path)
        return files

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path.strip("/")).resolve()
        if target != root and root not in target.parents:
            raise SourceError(f"Path {path!r} escapes the source root")
        return target

    def _relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.root.resolve()).as_posix()


if TYPE_CHECKING:
    _source_check: DesiredStateSource = FilesystemSource(Path())
