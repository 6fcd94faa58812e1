"""Console and log-file output for mssh runs."""

from __future__ import annotations

import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from .config import HostTarget
from .dispatcher import ExecutionOutcome, HostStatus, RunResult

GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"


def headline(outcome: ExecutionOutcome) -> str:
    """Describe an outcome in one line."""
    if outcome.succeeded:
        return f"[*] Execution of `{outcome.command}` on {outcome.identity} succeeded:"
    return (
        f"[X] Execution of `{outcome.command}` on {outcome.identity} failed. "
        f"Error message: {outcome.error}"
    )


class ConsolePresenter:
    """Prints each outcome as soon as it arrives."""

    def __init__(
        self,
        color: bool = True,
        stream: TextIO | None = None,
        err_stream: TextIO | None = None,
    ):
        self.color = color
        self.stream = stream or sys.stdout
        self.err_stream = err_stream or sys.stderr

    def _paint(self, text: str, color: str) -> str:
        if not self.color:
            return text
        return f"{color}{text}{RESET}"

    def on_outcome(self, outcome: ExecutionOutcome) -> None:
        print(headline(outcome), file=self.stream)
        if outcome.truncated_output:
            color = GREEN if outcome.succeeded else RED
            print(self._paint(outcome.truncated_output, color), file=self.stream)
        self.stream.flush()

    def on_abort(self, result: RunResult) -> None:
        missing = result.expected - len(result.outcomes)
        message = f"[X] Aborting: fail-fast triggered, {missing} command(s) not reported"
        print(self._paint(message, YELLOW), file=self.err_stream)

    def on_summary(self, result: RunResult) -> None:
        failed = len(result.failed)
        if failed:
            message = f"{failed} of {len(result.outcomes)} command(s) failed"
            print(self._paint(message, YELLOW), file=self.err_stream)


class HostLogWriter:
    """Appends every outcome to a per-host log file."""

    def __init__(self, log_dir: Path, source_path: Path | None = None):
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_dir = log_dir / timestamp
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # Copy the run file to the log directory
        if source_path and source_path.exists():
            shutil.copy(source_path, self.log_dir / "config.yaml")

    def path_for(self, host: HostTarget) -> Path:
        name = host.identity.replace("/", "_").replace(":", "_")
        return self.log_dir / f"{name}.log"

    def _write(self, host: HostTarget, text: str) -> None:
        with open(self.path_for(host), "a") as f:
            f.write(text + "\n")

    def on_outcome(self, outcome: ExecutionOutcome) -> None:
        lines = [f"$ {outcome.command}", headline(outcome)]
        if outcome.truncated_output:
            lines.append(outcome.truncated_output)
        self._write(outcome.host, "\n".join(lines))

    def on_status(self, host: HostTarget, status: HostStatus) -> None:
        self._write(host, f"Status: {status.value}")
