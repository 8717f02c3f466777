from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from wavesync.app import (
    build_controller,
    delete_root,
    pause_application,
    plan_rollout,
    refresh_root,
    resume_application,
    root_status,
    run_rollout,
    sync_application,
    watch_root,
)
from wavesync.config import ConfigurationError, configure_logging
from wavesync.domain.controller import DEFAULT_WATCH_INTERVAL_SECONDS
from wavesync.domain.model import (
    ConfigError,
    ConflictError,
    HealthStatus,
    UnknownApplicationError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from wavesync.domain.controller import GitOpsController, Plan
    from wavesync.domain.scheduler import RolloutReport
    from wavesync.domain.status import RootStatus

log = logging.getLogger(__name__)

PRODUCTION_ENVIRONMENTS = frozenset({"prod", "production"})
PRODUCTION_DELETE_PHRASE = "DELETE-PRODUCTION"

_USAGE_ERRORS = (ConfigError, ConflictError, ConfigurationError, UnknownApplicationError)


class AbortedError(RuntimeError):
    """The operator declined a confirmation prompt."""


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roll out App-of-Apps environments by wave")
    parser.add_argument(
        "--env",
        dest="environment",
        type=str,
        default=None,
        help="Overlay to resolve the root template with (defaults to WAVESYNC_ENVIRONMENT)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("plan", help="Show what a rollout would change, without applying")

    rollout = subparsers.add_parser("rollout", help="Roll every application out by wave")
    rollout.add_argument(
        "--manual",
        action="store_true",
        help="Also sync applications without an automated sync policy",
    )
    rollout.add_argument("--yes", action="store_true", help="Skip the production confirmation")

    subparsers.add_parser("status", help="Show root and per-application status")

    for command, description in (
        ("sync", "Manually sync one application"),
        ("pause", "Suspend reconciliation of one application"),
        ("resume", "Resume reconciliation of one application"),
    ):
        sub = subparsers.add_parser(command, help=description)
        sub.add_argument("name", type=str, help="Application name")

    subparsers.add_parser(
        "refresh", help="Re-evaluate the root: roll out new revisions or heal drift"
    )

    watch = subparsers.add_parser("watch", help="Refresh repeatedly until interrupted")
    watch.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_WATCH_INTERVAL_SECONDS,
        help="Seconds between refreshes",
    )
    watch.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many refreshes",
    )

    delete = subparsers.add_parser("delete", help="Delete the root and every child application")
    delete.add_argument(
        "--no-cascade",
        dest="cascade",
        action="store_false",
        help="Orphan live resources instead of deleting them",
    )
    delete.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    args = parser.parse_args(list(argv))
    if getattr(args, "interval", 0.0) < 0:
        parser.error("--interval must be non-negative")
    return args


def _confirm(
    prompt: str,
    *,
    assume_yes: bool,
    expected: str = "yes",
    ask: Callable[[str], str] = input,
) -> None:
    if assume_yes:
        return
    try:
        answer = ask(f"{prompt} Type '{expected}' to continue: ")
    except EOFError:
        answer = ""
    if answer.strip().lower() != expected.lower():
        raise AbortedError("Aborted by operator")


def _print_plan(plan: Plan) -> None:
    print(f"{plan.root} @ {plan.revision[:12]}")
    for entry in plan.entries:
        changes = entry.comparison.out_of_sync if entry.comparison is not None else ()
        policy = "auto" if entry.automated else "manual"
        print(
            f"  wave {entry.sync_wave:>3}  {entry.name:<30} {entry.sync_status:<10} "
            f"{policy:<6} {len(changes)} change(s)"
        )
        if entry.comparison is not None:
            for change in entry.comparison.out_of_sync:
                print(f"      {change.change:<9} {change.key}")
    for name in plan.removed:
        print(f"  removed        {name}")


def _print_status(status: RootStatus) -> None:
    wave = f" (wave {status.current_wave})" if status.current_wave is not None else ""
    print(f"{status.name}: {status.sync_status} / {status.health_status}{wave}")
    for app in status.applications:
        result = app.last_sync_result
        detail = ""
        if result is not None:
            detail = (
                f"{result.outcome} at {result.timestamp:%Y-%m-%d %H:%M:%S} "
                f"retries={result.retries}"
            )
            if result.error_detail:
                detail += f" ({result.error_detail})"
        paused = " paused" if app.paused else ""
        print(
            f"  wave {app.sync_wave:>3}  {app.name:<30} {app.sync_status:<10} "
            f"{app.health_status:<12}{paused} {detail}".rstrip()
        )


def _log_rollout(report: RolloutReport) -> None:
    for wave in report.waves:
        log.info(
            "wave %s: healthy=%s failed=%s accepted=%s blocked=%s cancelled=%s",
            wave.wave,
            ",".join(wave.healthy) or "-",
            ",".join(wave.failed) or "-",
            ",".join(wave.accepted_failures) or "-",
            ",".join(wave.blocked) or "-",
            ",".join(wave.cancelled) or "-",
        )
    for failure in report.failures:
        log.error("%s", failure)
    log.info("Rollout %s", report.outcome)


def _dispatch(args: argparse.Namespace, controller: GitOpsController) -> int:
    command = args.command
    if command == "plan":
        _print_plan(plan_rollout(controller=controller))
        return 0
    if command == "rollout":
        if controller.environment in PRODUCTION_ENVIRONMENTS:
            _confirm(f"Roll out to {controller.environment}?", assume_yes=args.yes)
        report = run_rollout(controller=controller, manual=args.manual)
        _log_rollout(report)
        return 0 if report.succeeded else 1
    if command == "status":
        _print_status(root_status(controller=controller))
        return 0
    if command == "sync":
        state = sync_application(controller=controller, name=args.name)
        log.info("%s: %s / %s", state.name, state.sync_status, state.health_status)
        return 1 if state.health_status is HealthStatus.DEGRADED else 0
    if command == "pause":
        pause_application(controller=controller, name=args.name)
        return 0
    if command == "resume":
        resume_application(controller=controller, name=args.name)
        return 0
    if command == "refresh":
        refreshed = refresh_root(controller=controller)
        if refreshed.rollout is not None:
            _log_rollout(refreshed.rollout)
            return 0 if refreshed.rollout.succeeded else 1
        for drift in refreshed.drift:
            if drift.drifted:
                log.info(
                    "%s drifted (%s), healed=%s",
                    drift.application,
                    len(drift.drifted),
                    drift.healed,
                )
        return 0
    if command == "watch":
        watch_root(controller=controller, interval=args.interval, max_cycles=args.max_cycles)
        return 0
    if command == "delete":
        _confirm(
            f"Delete the root of {controller.environment} and all of its applications?",
            assume_yes=args.yes,
            expected=(
                PRODUCTION_DELETE_PHRASE
                if controller.environment in PRODUCTION_ENVIRONMENTS
                else "yes"
            ),
        )
        deletion = delete_root(controller=controller, cascade=args.cascade)
        for error in deletion.errors:
            log.error("%s", error)
        return 0 if deletion.complete else 1
    raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        controller = build_controller(environment=parsed_args.environment)
        code = _dispatch(parsed_args, controller)
    except _USAGE_ERRORS:
        log.exception("Configuration error")
        sys.exit(2)
    except AbortedError as exc:
        log.warning("%s", exc)
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)

    sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully outside a running rollout."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
