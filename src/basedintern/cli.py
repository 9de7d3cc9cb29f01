from __future__ import annotations

import argparse
import json
import logging
import os
from datetime import UTC, datetime

from pydantic import ValidationError

from basedintern.config import Settings
from basedintern.domain.state import PersistedState
from basedintern.domain.state_migration import migrate, schema_version_of
from basedintern.errors import ConfigurationError, CorruptStateError, InstanceLockedError
from basedintern.logging_utils import setup_logging
from basedintern.services.process_lock import single_instance_lock
from basedintern.services.state_store import JsonStateStore
from basedintern.services.tick_runner import build_tick_runner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="basedintern",
        epilog="All settings come from environment variables (or a local .env file).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the agent loop")
    run_parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    run_parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Stop after this many ticks (default: run until interrupted)",
    )

    state_parser = subparsers.add_parser("state", help="Inspect or upgrade the state file")
    state_sub = state_parser.add_subparsers(dest="state_command", required=True)
    state_sub.add_parser("show", help="Print the state record migrated to the current schema")
    state_sub.add_parser("migrate", help="Rewrite the state file at the current schema version")
    return parser


def run_agent(settings: Settings, *, once: bool, max_ticks: int | None) -> int:
    if max_ticks is not None and max_ticks < 1:
        print("max-ticks must be >= 1")
        return 2
    if once:
        max_ticks = 1

    try:
        runner = build_tick_runner(settings)
    except ConfigurationError as exc:
        print(f"configuration error: {exc}")
        return 2

    logger.info(
        "runtime_prepared",
        extra={
            "extra": {
                "state_path": settings.state_path,
                "dry_run": settings.dry_run,
                "trading_enabled": settings.trading_enabled,
                "kill_switch": settings.kill_switch,
                "social_mode": settings.social_mode,
                "pid": os.getpid(),
            }
        },
    )
    try:
        with single_instance_lock(settings.state_path):
            failures = runner.run_forever(max_ticks=max_ticks)
    except InstanceLockedError as exc:
        print(str(exc))
        return 2
    except KeyboardInterrupt:
        logger.info("agent_loop_interrupted")
        return 0
    finally:
        runner.close()
    return 1 if once and failures else 0


def run_state_show(settings: Settings) -> int:
    store = JsonStateStore(settings.state_path)
    try:
        raw = store.read_raw()
        if raw is None:
            print(f"no state file at {settings.state_path}")
            return 1
        record = migrate(raw)
        PersistedState.model_validate(record)
    except (CorruptStateError, ValidationError) as exc:
        print(f"corrupt state: {exc}")
        return 1
    print(json.dumps(record, indent=2, sort_keys=True))
    return 0


def run_state_migrate(settings: Settings) -> int:
    store = JsonStateStore(settings.state_path)
    try:
        raw = store.read_raw()
        if raw is None:
            print(f"no state file at {settings.state_path}")
            return 1
        from_version = schema_version_of(raw)
        state = store.load(datetime.now(UTC))
    except CorruptStateError as exc:
        print(f"corrupt state: {exc}")
        return 1
    store.save(state)
    print(f"state migrated from v{from_version} to v{state.schema_version}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"invalid settings: {exc}")
        return 2
    setup_logging(settings.log_level)

    if args.command == "run":
        return run_agent(settings, once=args.once, max_ticks=args.max_ticks)
    if args.state_command == "show":
        return run_state_show(settings)
    return run_state_migrate(settings)


if __name__ == "__main__":
    raise SystemExit(main())
