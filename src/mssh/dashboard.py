"""TUI Dashboard for mssh."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker

from .config import HostTarget, RunOptions
from .dispatcher import Dispatcher, ExecutionOutcome, HostStatus, RunResult
from .executor import RemoteExecutor
from .presenter import HostLogWriter

STATUS_ICONS = {
    HostStatus.PENDING: ("…", "dim"),
    HostStatus.RUNNING: ("●", "yellow"),
    HostStatus.SUCCESS: ("✔", "green"),
    HostStatus.FAILED: ("✘", "red"),
}


class HostPanel(Static):
    """A panel displaying outcomes for a single host."""

    status: reactive[HostStatus] = reactive(HostStatus.PENDING)

    def __init__(self, panel_id: str, host: HostTarget, **kwargs) -> None:
        super().__init__(id=panel_id, **kwargs)
        self.panel_id = panel_id
        self.host = host

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self.panel_id}")
        yield RichLog(
            id=f"log-{self.panel_id}",
            highlight=True,
            markup=True,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{self.host.identity}[/bold][/]"

    def watch_status(self, status: HostStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self.panel_id}", Label)
        header.update(self._get_header())

    def append_outcome(self, outcome: ExecutionOutcome) -> None:
        """Append a command outcome to this panel."""
        log = self.query_one(f"#log-{self.panel_id}", RichLog)
        log.write(f"[bold cyan]$ {escape(outcome.command)}[/bold cyan]")
        if not outcome.succeeded:
            log.write(f"[bold red]ERROR: {escape(str(outcome.error))}[/bold red]")
        if outcome.truncated_output:
            log.write(escape(outcome.truncated_output))


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    state: reactive[str] = reactive("Running...")

    def render(self) -> str:
        return f"Progress: {self.completed}/{self.total} hosts complete | {self.state} | Press 'q' to quit"


@dataclass
class HostOutcome(Message):
    """Message for a command outcome."""
    outcome: ExecutionOutcome


@dataclass
class HostStatusChange(Message):
    """Message for host status change."""
    host: HostTarget
    status: HostStatus


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    HostPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    HostPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(
        self,
        hosts: Sequence[HostTarget],
        commands: Sequence[str],
        options: RunOptions,
        log_writer: HostLogWriter | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.hosts = hosts
        self.commands = commands
        self.options = options
        self.log_writer = log_writer
        self.panels: dict[str, HostPanel] = {}
        self.result: RunResult | None = None
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        # Create panels for each host
        for i, host in enumerate(self.hosts):
            panel = HostPanel(f"host-{i}", host)
            self.panels[host.identity] = panel
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.hosts)

        # Start execution using Textual's worker system
        self._worker = self.run_worker(self._run_execution(), exclusive=True, thread=True)

    async def _run_execution(self) -> None:
        """Run the dispatcher and keep its result."""
        dispatcher = Dispatcher(
            self.hosts,
            self.commands,
            self.options,
            executor=RemoteExecutor(timeout=self.options.timeout),
            on_outcome=self._on_outcome,
            on_status=self._on_status,
        )
        self.result = await dispatcher.run()

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker == self._worker and event.state == event.worker.state.SUCCESS:
            status_bar = self.query_one("#status-bar", StatusBar)
            if self.result and self.result.aborted:
                status_bar.state = "Aborted (fail-fast)"
            else:
                status_bar.state = "Complete"

    def _on_outcome(self, outcome: ExecutionOutcome) -> None:
        """Handle an outcome from the dispatcher - posts message to main thread."""
        if self.log_writer:
            self.log_writer.on_outcome(outcome)
        self.post_message(HostOutcome(outcome))

    def _on_status(self, host: HostTarget, status: HostStatus) -> None:
        """Handle status change for a host - posts message to main thread."""
        if self.log_writer:
            self.log_writer.on_status(host, status)
        self.post_message(HostStatusChange(host, status))

    def on_host_outcome(self, message: HostOutcome) -> None:
        """Handle HostOutcome message in main thread."""
        panel = self.panels.get(message.outcome.identity)
        if panel:
            panel.append_outcome(message.outcome)

    def on_host_status_change(self, message: HostStatusChange) -> None:
        """Handle HostStatusChange message in main thread."""
        panel = self.panels.get(message.host.identity)
        if panel:
            panel.status = message.status

        # Update completed count
        if message.status in (HostStatus.SUCCESS, HostStatus.FAILED):
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.completed += 1

    async def action_quit(self) -> None:
        """Quit the application."""
        if self._worker and self._worker.is_running:
            self._worker.cancel()
        self.exit()
