from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from wavesync.config import MissingConfigurationError
from wavesync.ui import cli as cli_module

from tests.helpers.controllers import Harness, make_harness
from tests.helpers.sources import gitops_tree

if TYPE_CHECKING:
    from wavesync.domain.controller import GitOpsController

WAVES = {"infra": -1, "api": 0}


@pytest.fixture
def harness(monkeypatch: pytest.MonkeyPatch) -> Harness:
    files = gitops_tree(WAVES)
    files.update(
        {
            path.replace("/dev.yaml", "/prod.yaml"): text
            for path, text in files.items()
            if path.endswith("overlays/dev.yaml")
        }
    )
    harnesses: dict[str, Harness] = {}
    shared = make_harness(files)

    def fake_build_controller(*, environment: str | None = None) -> GitOpsController:
        if environment is None:
            return shared.controller
        if environment not in harnesses:
            harnesses[environment] = make_harness(files, environment=environment)
        return harnesses[environment].controller

    monkeypatch.setattr(cli_module, "build_controller", fake_build_controller)
    monkeypatch.setattr(cli_module, "load_dotenv", lambda: None)
    return shared


def _run(argv: list[str]) -> int | str | None:
    with pytest.raises(SystemExit) as exc:
        cli_module.main(argv)
    return exc.value.code


def test_rollout_exits_zero_when_every_wave_is_healthy(harness: Harness) -> None:
    assert _run(["rollout"]) == 0
    assert len(harness.cluster.owned_keys("api")) == 1


def test_rollout_exits_one_when_an_application_degrades(harness: Harness) -> None:
    harness.cluster.fail_applies("infra")
    assert _run(["rollout"]) == 1
    assert harness.cluster.owned_keys("api") == []


def test_production_rollout_requires_confirmation(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = harness
    monkeypatch.setattr("sys.stdin", io.StringIO("no\n"))

    assert _run(["--env", "prod", "rollout"]) == 1


def test_production_rollout_proceeds_after_confirmation(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = harness
    monkeypatch.setattr("sys.stdin", io.StringIO("yes\n"))

    assert _run(["--env", "prod", "rollout"]) == 0
    assert _run(["--env", "prod", "rollout", "--yes"]) == 0


def test_plan_prints_pending_changes(harness: Harness, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(["plan"]) == 0

    out = capsys.readouterr().out
    assert "root @ rev-1" in out
    assert "infra" in out
    assert "Added" in out
    assert "/ConfigMap/api/api-config" in out
    assert harness.cluster.mutations == 0


def test_status_prints_root_and_children(
    harness: Harness, capsys: pytest.CaptureFixture[str]
) -> None:
    _ = harness
    _run(["rollout"])
    capsys.readouterr()

    assert _run(["status"]) == 0

    out = capsys.readouterr().out
    assert "root: Synced / Healthy" in out
    assert "Succeeded" in out


def test_pause_and_resume(harness: Harness, capsys: pytest.CaptureFixture[str]) -> None:
    _run(["rollout"])
    assert _run(["pause", "api"]) == 0
    assert harness.state("api").paused is True
    capsys.readouterr()

    _run(["status"])
    assert "paused" in capsys.readouterr().out

    assert _run(["resume", "api"]) == 0
    assert harness.state("api").paused is False


def test_sync_of_unknown_application_is_a_usage_error(harness: Harness) -> None:
    _ = harness
    assert _run(["sync", "billing"]) == 2


def test_sync_exits_one_when_the_application_degrades(harness: Harness) -> None:
    harness.cluster.fail_applies("api")

    assert _run(["sync", "api"]) == 1


def test_refresh_and_watch(harness: Harness) -> None:
    assert _run(["refresh"]) == 0
    assert _run(["watch", "--interval", "0", "--max-cycles", "1"]) == 0
    assert harness.state("root").revision == "rev-1"


def test_negative_watch_interval_is_rejected(harness: Harness) -> None:
    _ = harness
    assert _run(["watch", "--interval", "-5"]) == 2


def test_delete_requires_confirmation(harness: Harness, monkeypatch: pytest.MonkeyPatch) -> None:
    _run(["rollout"])
    monkeypatch.setattr("sys.stdin", io.StringIO(""))

    assert _run(["delete"]) == 1
    assert len(harness.cluster.owned_keys("api")) == 1

    assert _run(["delete", "--yes"]) == 0
    assert harness.cluster.resources == {}
    assert harness.store.states == {}


def test_missing_configuration_exits_two(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_build_controller(**_: object) -> GitOpsController:
        raise MissingConfigurationError("Missing configuration for: WAVESYNC_SOURCE")

    monkeypatch.setattr(cli_module, "build_controller", failing_build_controller)
    monkeypatch.setattr(cli_module, "load_dotenv", lambda: None)

    assert _run(["status"]) == 2


def test_unexpected_errors_exit_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_build_controller(**_: object) -> GitOpsController:
        raise RuntimeError("database on fire")

    monkeypatch.setattr(cli_module, "build_controller", broken_build_controller)
    monkeypatch.setattr(cli_module, "load_dotenv", lambda: None)

    assert _run(["plan"]) == 1


def test_a_command_is_required() -> None:
    assert _run([]) == 2


def test_production_delete_needs_the_production_phrase(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = harness
    assert _run(["--env", "prod", "rollout", "--yes"]) == 0
    monkeypatch.setattr("sys.stdin", io.StringIO("yes\n"))

    assert _run(["--env", "prod", "delete"]) == 1

    monkeypatch.setattr("sys.stdin", io.StringIO("DELETE-PRODUCTION\n"))

    assert _run(["--env", "prod", "delete"]) == 0


def test_confirm_accepts_only_the_expected_answer() -> None:
    cli_module._confirm("Go?", assume_yes=False, ask=lambda _: " YES ")  # noqa: SLF001
    cli_module._confirm("Go?", assume_yes=True, ask=lambda _: "no")  # noqa: SLF001

    with pytest.raises(cli_module.AbortedError):
        cli_module._confirm(  # noqa: SLF001
            "Delete?", assume_yes=False, expected="DELETE-PRODUCTION", ask=lambda _: "yes"
        )
