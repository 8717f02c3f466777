"""Where controller state and the HTTP cache live on disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool, optional_env_var

APP_DIR_NAME: Final[str] = "wavesync"
STATE_DB_FILENAME: Final[str] = "state.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local state directory.

    The SQLite state database holds application state and, for the SQL-backed
    cluster, the live resources. The HTTP cache sits next to it.
    """

    state_dir: Path
    state_db_filename: str = STATE_DB_FILENAME
    http_cache_filename: str = HTTP_CACHE_FILENAME

    def file_path(self, filename: str, *, ensure: bool = True) -> Path:
        directory = self.state_dir.expanduser().resolve()
        if ensure:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def database_path(self, *, ensure: bool = True) -> Path:
        return self.file_path(self.state_db_filename, ensure=ensure)

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self.file_path(self.http_cache_filename, ensure=ensure)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def _default_state_dir() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        base = Path(local) if local else Path.home() / "AppData" / "Local"
    else:
        xdg_state = os.getenv("XDG_STATE_HOME")
        base = Path(xdg_state) if xdg_state else Path.home() / ".local" / "state"
    return base / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    configured = optional_env_var("WAVESYNC_STATE_DIR", "")
    return StorageConfig(state_dir=Path(configured) if configured else _default_state_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the state directory."""

    echo = env_bool("WAVESYNC_SQL_ECHO", False)
    uri = optional_env_var("DATABASE_URI", "")
    if uri:
        return DatabaseConfig(uri=uri, echo=echo)
    path = (storage or get_storage_config()).database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}", echo=echo)
