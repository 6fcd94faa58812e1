"""Concurrent multi-host command dispatch for mssh."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Protocol, Sequence

from .config import HostTarget, RunOptions
from .executor import ExecResult, RemoteExecutor
from .output import truncate

logger = logging.getLogger(__name__)


class HostStatus(Enum):
    """Progress of a single host through its command list."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class RunState(Enum):
    """State of a dispatcher run."""

    RUNNING = "running"
    ABORTING = "aborting"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ExecutionOutcome:
    """The result of one command on one host."""

    host: HostTarget
    command: str
    combined_output: str
    truncated_output: str
    succeeded: bool
    error: Exception | None = None

    @property
    def status(self) -> str:
        return "succeeded" if self.succeeded else "failed"

    @property
    def identity(self) -> str:
        return self.host.identity


@dataclass
class RunResult:
    """Everything a run produced."""

    expected: int
    outcomes: list[ExecutionOutcome] = field(default_factory=list)
    aborted: bool = False

    @property
    def exit_status(self) -> int:
        # Per-command failures never change the exit status; only an abort does.
        return 1 if self.aborted else 0

    @property
    def failed(self) -> list[ExecutionOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def for_host(self, host: HostTarget) -> list[ExecutionOutcome]:
        return [outcome for outcome in self.outcomes if outcome.host == host]


class Executor(Protocol):
    def execute(self, host: HostTarget, command: str) -> Awaitable[ExecResult]: ...


# Type aliases for presentation callbacks
OutcomeCallback = Callable[[ExecutionOutcome], None]
StatusCallback = Callable[[HostTarget, HostStatus], None]


class HostWorker:
    """Runs the command list on one host, one command at a time."""

    def __init__(
        self,
        host: HostTarget,
        commands: Sequence[str],
        executor: Executor,
        options: RunOptions,
    ):
        self.host = host
        self.commands = commands
        self.executor = executor
        self.options = options

    async def run(
        self,
        emit: OutcomeCallback,
        on_status: StatusCallback | None = None,
    ) -> None:
        """Execute every command in order, emitting one outcome per command."""
        self._set_status(on_status, HostStatus.RUNNING)
        all_succeeded = True

        for cmd in self.commands:
            result = await self.executor.execute(self.host, cmd)
            outcome = ExecutionOutcome(
                host=self.host,
                command=cmd,
                combined_output=result.output,
                truncated_output=truncate(result.output, self.options.max_output_lines),
                succeeded=result.succeeded,
                error=result.error,
            )
            emit(outcome)

            if not result.succeeded:
                all_succeeded = False
                if self.options.fail_fast:
                    break

        self._set_status(
            on_status, HostStatus.SUCCESS if all_succeeded else HostStatus.FAILED
        )

    def _set_status(self, on_status: StatusCallback | None, status: HostStatus) -> None:
        if on_status:
            on_status(self.host, status)


class Dispatcher:
    """Fans a command list out to every host concurrently.

    One task is started per host with no concurrency cap. Without fail-fast
    the run completes once every host has reported every command. With
    fail-fast the first failed outcome aborts the run: tasks still in flight
    on other hosts are cancelled without being drained, their sessions are
    abandoned and anything they would have reported is lost.
    """

    def __init__(
        self,
        hosts: Sequence[HostTarget],
        commands: Sequence[str],
        options: RunOptions | None = None,
        executor: Executor | None = None,
        on_outcome: OutcomeCallback | None = None,
        on_status: StatusCallback | None = None,
    ):
        if not hosts:
            raise ValueError("At least one host is required")
        if not commands:
            raise ValueError("At least one command is required")

        self.hosts = tuple(hosts)
        self.commands = tuple(commands)
        self.options = options or RunOptions()
        self.executor = executor or RemoteExecutor(timeout=self.options.timeout)
        self.on_outcome = on_outcome
        self.on_status = on_status
        self.state = RunState.RUNNING
        self._result = RunResult(expected=len(self.hosts) * len(self.commands))
        self._abort = asyncio.Event()

    def _collect(self, outcome: ExecutionOutcome) -> None:
        """Record an outcome from a worker."""
        if self.state is not RunState.RUNNING:
            # Anything reported after an abort is discarded.
            return

        self._result.outcomes.append(outcome)
        if self.on_outcome:
            self.on_outcome(outcome)

        if not outcome.succeeded:
            logger.info(
                "`%s` failed on %s: %s", outcome.command, outcome.identity, outcome.error
            )
            if self.options.fail_fast:
                logger.warning("Fail-fast: aborting run after failure on %s", outcome.identity)
                self.state = RunState.ABORTING
                self._abort.set()

    def _emit_status(self, host: HostTarget, status: HostStatus) -> None:
        if self.state is RunState.RUNNING and self.on_status:
            self.on_status(host, status)

    async def run(self) -> RunResult:
        """Run all commands on all hosts and return the collected result."""
        workers = [
            HostWorker(host, self.commands, self.executor, self.options)
            for host in self.hosts
        ]
        for host in self.hosts:
            self._emit_status(host, HostStatus.PENDING)

        # Run all hosts in parallel
        tasks = [
            asyncio.create_task(worker.run(self._collect, self._emit_status))
            for worker in workers
        ]
        abort_wait = asyncio.create_task(self._abort.wait())
        pending = set(tasks)

        try:
            while pending and not self._abort.is_set():
                done, pending = await asyncio.wait(
                    pending | {abort_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(abort_wait)
                for task in done:
                    if task is not abort_wait:
                        # Surface unexpected worker errors
                        task.result()
        finally:
            abort_wait.cancel()
            if pending:
                logger.warning("Abandoning %d running host(s)", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        if self._abort.is_set():
            self._result.aborted = True
            return self._result

        self.state = RunState.COMPLETE
        return self._result
