#!/usr/bin/env python3
"""Main entry point for mssh."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from . import __version__
from .config import (
    ConfigError,
    HostTarget,
    RunFile,
    RunOptions,
    build_targets,
    default_user,
    load_run_file,
    split_hosts,
)
from .credentials import CredentialError, resolve_auth_methods
from .dispatcher import Dispatcher, RunResult
from .presenter import ConsolePresenter, HostLogWriter

logger = logging.getLogger(__name__)

# Exit status when the run cannot even start
EXIT_USAGE = 2


@dataclass
class RunPlan:
    """A fully resolved run, ready to dispatch."""

    targets: list[HostTarget]
    commands: list[str]
    options: RunOptions
    log_dir: Path | None = None
    source_path: Path | None = None
    color: bool = True
    dashboard: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mssh",
        description="Run SSH commands on multiple machines",
    )
    parser.add_argument("commands", nargs="*", help="Commands to run, in order")
    parser.add_argument(
        "-u",
        "--user",
        help="SSH user (defaults to $MSSH_USER or the current user)",
    )
    parser.add_argument(
        "-s",
        "--server",
        action="append",
        default=[],
        help="Remote server as [user@]host[:port] (repeatable, or $MSSH_HOSTS)",
    )
    parser.add_argument(
        "-k",
        "--key",
        action="append",
        default=[],
        help="SSH private key (repeatable, or $MSSH_KEY; defaults to ssh-agent, then ~/.ssh/id_rsa)",
    )
    parser.add_argument(
        "-f",
        "--fail",
        action="store_true",
        default=None,
        help="Abort the whole run as soon as any command fails",
    )
    parser.add_argument(
        "-n",
        "--lines",
        type=int,
        help="Only show the last n lines of output for each command",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Give up on a command after this many seconds (default: wait forever)",
    )
    parser.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Print command output in color",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="YAML run file with hosts, commands and defaults",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        help="Write one log file per host under this directory",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _pick(*values):
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def build_plan(args: argparse.Namespace, env: Mapping[str, str]) -> RunPlan:
    """Layer flags, environment and run file into a RunPlan.

    Flags win over environment variables, which win over the run file.
    """
    run_file = load_run_file(args.config) if args.config else RunFile()

    hosts = args.server or split_hosts(env.get("MSSH_HOSTS")) or run_file.hosts
    if not hosts:
        raise ConfigError("At least one host is required")

    commands = args.commands or run_file.commands
    if not commands:
        raise ConfigError("At least one command is required")

    user = args.user or env.get("MSSH_USER") or run_file.user or default_user(env)

    keys: Sequence[str] = args.key or ([env["MSSH_KEY"]] if env.get("MSSH_KEY") else run_file.keys)
    auth_methods = resolve_auth_methods(keys, env=env)

    options = RunOptions(
        max_output_lines=_pick(args.lines, run_file.max_output_lines, 0),
        fail_fast=bool(_pick(args.fail, run_file.fail_fast, False)),
        timeout=_pick(args.timeout, run_file.timeout),
    )

    return RunPlan(
        targets=build_targets(hosts, user, auth_methods),
        commands=list(commands),
        options=options,
        log_dir=args.log_dir or run_file.log_dir,
        source_path=run_file.source_path,
        color=args.color,
        dashboard=args.dashboard,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        plan = build_plan(args, os.environ)
    except (FileNotFoundError, ConfigError, CredentialError) as e:
        print(f"[X] {e}", file=sys.stderr)
        return EXIT_USAGE

    logger.debug(
        "Running %d command(s) on %d host(s)", len(plan.commands), len(plan.targets)
    )

    if plan.dashboard:
        return _run_dashboard(plan)

    return _run_headless(plan)


def _run_headless(plan: RunPlan) -> int:
    """Run the dispatcher, printing outcomes as they arrive."""
    console = ConsolePresenter(color=plan.color)
    log_writer = HostLogWriter(plan.log_dir, plan.source_path) if plan.log_dir else None

    def on_outcome(outcome) -> None:
        console.on_outcome(outcome)
        if log_writer:
            log_writer.on_outcome(outcome)

    dispatcher = Dispatcher(
        plan.targets,
        plan.commands,
        plan.options,
        on_outcome=on_outcome,
        on_status=log_writer.on_status if log_writer else None,
    )

    result = asyncio.run(dispatcher.run())
    _report(console, result)
    return result.exit_status


def _run_dashboard(plan: RunPlan) -> int:
    """Run the dispatcher inside the TUI dashboard."""
    # Imported lazily so headless runs never load textual
    from .dashboard import Dashboard

    log_writer = HostLogWriter(plan.log_dir, plan.source_path) if plan.log_dir else None
    app = Dashboard(plan.targets, plan.commands, plan.options, log_writer=log_writer)
    app.run()

    if app.result is None:
        # Quit before the run finished
        return 1

    _report(ConsolePresenter(color=plan.color), app.result)
    return app.result.exit_status


def _report(console: ConsolePresenter, result: RunResult) -> None:
    if result.aborted:
        console.on_abort(result)
    else:
        console.on_summary(result)


if __name__ == "__main__":
    sys.exit(main())
