from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from wavesync.config import (
    ConfigurationError,
    StorageConfig,
    get_database_config,
    get_storage_config,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_storage_config_uses_env_state_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("WAVESYNC_STATE_DIR", str(tmp_path / "state"))

    config = get_storage_config()

    assert config.database_path() == (tmp_path / "state" / "state.db").resolve()
    assert (tmp_path / "state").is_dir()
    assert config.http_cache_path(ensure=False).name == "http_cache.db"


def test_storage_config_defaults_to_xdg_state_home(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("WAVESYNC_STATE_DIR", raising=False)
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))

    config = get_storage_config()

    assert config.database_path(ensure=False) == (tmp_path / "wavesync" / "state.db").resolve()
    assert not (tmp_path / "wavesync").exists()


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/wavesync")
    monkeypatch.setenv("WAVESYNC_SQL_ECHO", "true")

    config = get_database_config()

    assert config.uri == "postgresql+psycopg://db/wavesync"
    assert config.echo is True


def test_database_uri_defaults_to_sqlite_in_state_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.delenv("WAVESYNC_SQL_ECHO", raising=False)
    storage = StorageConfig(state_dir=tmp_path)

    config = get_database_config(storage=storage)

    assert config.uri == f"sqlite+pysqlite:///{tmp_path.resolve() / 'state.db'}"
    assert config.echo is False


def test_invalid_echo_flag_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WAVESYNC_SQL_ECHO", "loud")

    with pytest.raises(ConfigurationError, match="WAVESYNC_SQL_ECHO"):
        get_database_config()
