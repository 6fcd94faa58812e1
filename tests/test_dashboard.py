"""Tests for the TUI dashboard."""

import pytest

from mssh.config import RunOptions
from mssh.dashboard import Dashboard, StatusBar
from mssh.dispatcher import HostStatus
from mssh.executor import ExecResult


@pytest.mark.asyncio
async def test_dashboard_runs_all_hosts(monkeypatch, make_host, fake_executor_cls) -> None:
    hosts = [make_host("a.example"), make_host("b.example")]
    executor = fake_executor_cls(
        {"b.example": ExecResult(output="", succeeded=False, error=OSError("refused"))}
    )
    monkeypatch.setattr("mssh.dashboard.RemoteExecutor", lambda timeout=None: executor)

    app = Dashboard(hosts, ["uptime"], RunOptions())
    async with app.run_test() as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()
        await pilot.pause()

        assert app.result is not None
        assert len(app.result.outcomes) == 2
        assert app.result.exit_status == 0
        assert app.panels["deploy@a.example:22"].status is HostStatus.SUCCESS
        assert app.panels["deploy@b.example:22"].status is HostStatus.FAILED
        status_bar = app.query_one("#status-bar", StatusBar)
        assert status_bar.completed == 2
        assert status_bar.state == "Complete"
