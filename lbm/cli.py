"""CLI entry point for lxd-backup-manager."""
from __future__ import annotations

import argparse
import contextlib
import logging
import signal
import sys

from lbm.config import ConfigError, load_job, resolve_log_level
from lbm.executor import DryRunExecutor, ExecutorError, LocalExecutor
from lbm.log import LEVELS, setup_logging
from lbm.lxc import PoolError
from lbm.models import JobConfig

log = logging.getLogger(__name__)

# Exit statuses are a single byte; larger failure counts saturate here
MAX_EXIT_CODE = 255


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit 1 rather than argparse's default 2."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


class _Terminated(SystemExit):
    pass


def _on_signal(signum, _frame):
    raise _Terminated(128 + signum)


@contextlib.contextmanager
def _cleanup_scope():
    """
    Run registered cleanups on every way out of the block.

    SIGTERM and SIGHUP are turned into SystemExit so that a terminated run
    unwinds through the ExitStack like a normal or failed one.
    """
    previous = {}
    for sig in (signal.SIGTERM, signal.SIGHUP):
        previous[sig] = signal.signal(sig, _on_signal)
    try:
        with contextlib.ExitStack() as stack:
            stack.callback(_cleanup)
            yield stack
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _cleanup() -> None:
    # Commands already handed to lxc are not rolled back; the next run's
    # delete-before-snapshot step reconciles any leftover snapshot.
    log.debug("cleanup")


def _make_executor(dry_run: bool):
    """Build the executor every component runs commands through."""
    executor = LocalExecutor()
    if dry_run:
        return DryRunExecutor(executor)
    return executor


def cmd_backup(args, config: JobConfig) -> int:
    from lbm.backup import run_backup

    executor = _make_executor(args.dry_run)
    try:
        result = run_backup(executor, config)
    except PoolError as e:
        log.critical("%s: %s", e.kind.value, e)
        return 1
    except ExecutorError as e:
        log.critical("Could not list remotes: %s", e)
        return 1
    return min(result.exit_code, MAX_EXIT_CODE)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="lbm",
        description=(
            "LXD Backup Manager: snapshot every running instance on every "
            "remote and copy it to the local endpoint"
        ),
        epilog=(
            "Exit status is 0 when every running instance was backed up, "
            "otherwise the number of instances that were not. "
            "The log level can also be set with LBM_LOG_LEVEL."
        ),
    )
    parser.add_argument("--log", "-l", metavar="LEVEL", type=str.upper,
                        help=f"Log level, one of {', '.join(LEVELS)} (default INFO)")
    parser.add_argument("--dry-run", "-n", action="store_true",
                        help="Show what would happen without making changes")
    parser.add_argument("--config", "-c", metavar="PATH",
                        help="Path to job YAML config file")
    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_job(args.config) if args.config else JobConfig()
        level = resolve_log_level(args.log, config)
    except ConfigError as e:
        print(f"Config error ({e.kind.value}): {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(level)

    try:
        with _cleanup_scope():
            rc = cmd_backup(args, config)
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        rc = 130
    sys.exit(rc)


if __name__ == "__main__":
    main()
