"""SSH execution engine for mssh."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import asyncssh

from .config import HostTarget
from .credentials import client_key_options

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Combined output and outcome of a single remote command."""

    output: str
    succeeded: bool
    error: Exception | None = None


class RemoteExecutor:
    """Runs one command on one host over a fresh SSH connection.

    Every call opens its own connection and session and closes both before
    returning, on success and on error alike. Nothing is retried.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def execute(self, host: HostTarget, command: str) -> ExecResult:
        """Run ``command`` on ``host`` and return its combined output."""
        try:
            if self.timeout is None:
                return await self._run(host, command)
            return await asyncio.wait_for(self._run(host, command), self.timeout)
        except asyncssh.ProcessError as e:
            logger.debug("`%s` on %s exited with %s", command, host.identity, e.exit_status)
            return ExecResult(output=_text(e.stdout), succeeded=False, error=e)
        except asyncio.TimeoutError as e:
            logger.debug("`%s` on %s timed out", command, host.identity)
            if self.timeout is not None:
                e = TimeoutError(f"Timed out after {self.timeout}s")
            return ExecResult(output="", succeeded=False, error=e)
        except (asyncssh.Error, OSError) as e:
            logger.debug("`%s` on %s failed: %s", command, host.identity, e)
            return ExecResult(output="", succeeded=False, error=e)

    async def _run(self, host: HostTarget, command: str) -> ExecResult:
        logger.debug("Connecting to %s", host.identity)
        async with client_key_options(host.auth_methods) as auth_options:
            async with asyncssh.connect(
                host.hostname,
                port=host.port,
                username=host.user,
                known_hosts=None,  # Host keys are not verified
                **auth_options,
            ) as conn:
                logger.debug("Running `%s` on %s", command, host.identity)
                # Raw bytes, decoded by _text so invalid UTF-8 is replaced
                result = await conn.run(
                    command, stderr=asyncssh.STDOUT, check=True, encoding=None
                )
                return ExecResult(output=_text(result.stdout), succeeded=True)


def _text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output
