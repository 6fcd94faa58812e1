"""Tests for console and log-file presentation."""

import io
from pathlib import Path

from mssh.dispatcher import ExecutionOutcome, HostStatus, RunResult
from mssh.presenter import ConsolePresenter, HostLogWriter, headline


def make_outcome(host, succeeded=True, output="hi", error=None) -> ExecutionOutcome:
    return ExecutionOutcome(
        host=host,
        command="echo hi",
        combined_output=output + "\n",
        truncated_output=output,
        succeeded=succeeded,
        error=error,
    )


def test_headline_success(make_host) -> None:
    outcome = make_outcome(make_host("a.example"))

    assert headline(outcome) == "[*] Execution of `echo hi` on deploy@a.example:22 succeeded:"


def test_headline_failure(make_host) -> None:
    outcome = make_outcome(
        make_host("a.example"), succeeded=False, error=OSError("Connection refused")
    )

    assert headline(outcome) == (
        "[X] Execution of `echo hi` on deploy@a.example:22 failed. "
        "Error message: Connection refused"
    )


def test_console_presenter_plain(make_host) -> None:
    stream = io.StringIO()
    presenter = ConsolePresenter(color=False, stream=stream)

    presenter.on_outcome(make_outcome(make_host("a.example")))

    assert stream.getvalue().splitlines() == [
        "[*] Execution of `echo hi` on deploy@a.example:22 succeeded:",
        "hi",
    ]


def test_console_presenter_colors_failures_red(make_host) -> None:
    stream = io.StringIO()
    presenter = ConsolePresenter(color=True, stream=stream)

    presenter.on_outcome(
        make_outcome(make_host("a.example"), succeeded=False, output="oops", error="x")
    )

    assert "\033[31moops\033[0m" in stream.getvalue()


def test_console_presenter_skips_empty_output(make_host) -> None:
    stream = io.StringIO()
    presenter = ConsolePresenter(color=False, stream=stream)

    presenter.on_outcome(make_outcome(make_host("a.example"), output=""))

    assert len(stream.getvalue().splitlines()) == 1


def test_abort_and_summary_messages(make_host) -> None:
    err = io.StringIO()
    presenter = ConsolePresenter(color=False, stream=io.StringIO(), err_stream=err)
    host = make_host("a.example")

    presenter.on_summary(RunResult(expected=2, outcomes=[make_outcome(host)] * 2))
    assert err.getvalue() == ""

    failed = make_outcome(host, succeeded=False, error="x")
    presenter.on_summary(RunResult(expected=2, outcomes=[make_outcome(host), failed]))
    assert "1 of 2 command(s) failed" in err.getvalue()

    presenter.on_abort(RunResult(expected=4, outcomes=[failed], aborted=True))
    assert "[X] Aborting: fail-fast triggered, 3 command(s) not reported" in err.getvalue()


def test_host_log_writer(tmp_path: Path, make_host) -> None:
    run_file = tmp_path / "fleet.yaml"
    run_file.write_text("hosts: [a.example]\n")
    host = make_host("a.example")

    writer = HostLogWriter(tmp_path / "logs", source_path=run_file)
    writer.on_status(host, HostStatus.RUNNING)
    writer.on_outcome(make_outcome(host))

    assert (writer.log_dir / "config.yaml").read_text() == "hosts: [a.example]\n"
    log_path = writer.path_for(host)
    assert log_path.name == "deploy@a.example_22.log"
    assert log_path.read_text().splitlines() == [
        "Status: running",
        "$ echo hi",
        "[*] Execution of `echo hi` on deploy@a.example:22 succeeded:",
        "hi",
    ]
