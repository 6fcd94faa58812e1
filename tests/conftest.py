"""Shared fixtures for mssh tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import asyncssh
import pytest

from mssh.config import HostTarget
from mssh.credentials import AgentAuth, KeyFileAuth
from mssh.executor import ExecResult


class FakeExecutor:
    """Scripted stand-in for RemoteExecutor.

    ``results`` maps ``(hostname, command)`` or ``hostname`` to an ExecResult,
    an exception to raise, or an asyncio.Event to block on forever.
    """

    def __init__(self, results=None, default_output: str = "ok\n"):
        self.results = results or {}
        self.default_output = default_output
        self.calls: list[tuple[str, str]] = []
        self.cancelled: list[str] = []

    async def execute(self, host: HostTarget, command: str) -> ExecResult:
        self.calls.append((host.hostname, command))
        result = self.results.get((host.hostname, command), self.results.get(host.hostname))
        # Yield so other hosts get a chance to run
        await asyncio.sleep(0)

        if isinstance(result, asyncio.Event):
            try:
                await result.wait()
            except asyncio.CancelledError:
                self.cancelled.append(host.hostname)
                raise
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, ExecResult):
            return result
        return ExecResult(output=self.default_output, succeeded=True)


@pytest.fixture
def agent_auth() -> AgentAuth:
    return AgentAuth(socket_path="/tmp/mssh-test-agent.sock")


@pytest.fixture
def client_key() -> asyncssh.SSHKey:
    return asyncssh.generate_private_key("ssh-ed25519")


@pytest.fixture
def key_auth(client_key: asyncssh.SSHKey) -> KeyFileAuth:
    return KeyFileAuth(path=Path("/tmp/mssh-test-key"), key=client_key)


@pytest.fixture
def make_host(agent_auth: AgentAuth):
    """Build HostTargets for bare hostnames."""

    def _make(
        hostname: str, user: str = "deploy", port: int = 22, auth_methods=None
    ) -> HostTarget:
        return HostTarget(
            user=user,
            address=f"{hostname}:{port}",
            auth_methods=tuple(auth_methods or (agent_auth,)),
        )

    return _make


@pytest.fixture
def fake_executor_cls():
    return FakeExecutor


@pytest.fixture
def agent_socket(tmp_path: Path) -> Path:
    """A file standing in for an ssh-agent socket."""
    sock = tmp_path / "agent.sock"
    sock.touch()
    return sock
