"""SSH credential resolution for mssh.

Keys are looked up in this order:

1. Key files given explicitly (``--key`` / ``MSSH_KEY`` / run file).
2. A running ssh-agent reachable through ``$SSH_AUTH_SOCK``.
3. ``~/.ssh/id_rsa``, then ``~/ssh/id_rsa``.

Resolution fails if none of the above yields a usable credential.
"""

from __future__ import annotations

import logging
import os
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence, Union

import asyncssh

logger = logging.getLogger(__name__)

DEFAULT_KEY_PATHS = (Path(".ssh") / "id_rsa", Path("ssh") / "id_rsa")


class CredentialError(Exception):
    """Raised when no usable credential can be resolved."""


@dataclass(frozen=True)
class KeyFileAuth:
    """A private key loaded from disk."""

    path: Path
    key: asyncssh.SSHKey


@dataclass(frozen=True)
class AgentAuth:
    """Keys offered by an ssh-agent listening on a UNIX socket."""

    socket_path: str


AuthMethod = Union[KeyFileAuth, AgentAuth]


def resolve_auth_methods(
    key_files: Sequence[str | Path] = (),
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> list[AuthMethod]:
    """Resolve an ordered, non-empty list of authentication methods."""
    env = os.environ if env is None else env

    if key_files:
        auths: list[AuthMethod] = load_key_files(key_files)
    elif env.get("SSH_AUTH_SOCK"):
        auths = [load_agent(env["SSH_AUTH_SOCK"])]
    else:
        auths = load_default_keys(home)

    if not auths:
        raise CredentialError("No usable credential found")
    return auths


def load_key_files(paths: Iterable[str | Path]) -> list[AuthMethod]:
    """Load every key in ``paths``; any missing or unreadable key is fatal."""
    auths: list[AuthMethod] = []
    for raw_path in paths:
        path = Path(raw_path).expanduser()
        if not path.exists():
            raise CredentialError(f"Specified key does not exist: {path}")
        auths.append(KeyFileAuth(path=path, key=_read_key(path)))
    return auths


def load_agent(socket_path: str) -> AgentAuth:
    """Use the ssh-agent at ``socket_path``."""
    if not Path(socket_path).exists():
        raise CredentialError(f"ssh-agent socket not found: {socket_path}")
    logger.debug("Using ssh-agent at %s", socket_path)
    return AgentAuth(socket_path=socket_path)


def load_default_keys(home: Path | None = None) -> list[AuthMethod]:
    """Load the first default key found under ``home``."""
    home = Path.home() if home is None else home
    for relative in DEFAULT_KEY_PATHS:
        path = home / relative
        if path.exists():
            logger.debug("Using default key %s", path)
            return [KeyFileAuth(path=path, key=_read_key(path))]
    raise CredentialError("No key specified and no default key found")


@asynccontextmanager
async def client_key_options(auths: Sequence[AuthMethod]) -> AsyncIterator[dict[str, Any]]:
    """Yield ``asyncssh.connect`` keyword arguments for ``auths``.

    Keys held by an ssh-agent are fetched up front and passed with the key
    files as one explicit ``client_keys`` list, so asyncssh never falls back
    to the default keys under ``~/.ssh``. Agent keys sign through their agent
    connection, which stays open until the block exits.
    """
    async with AsyncExitStack() as stack:
        client_keys: list[Any] = []
        for auth in auths:
            if isinstance(auth, KeyFileAuth):
                client_keys.append(auth.key)
                continue
            agent = await stack.enter_async_context(asyncssh.connect_agent(auth.socket_path))
            agent_keys = await agent.get_keys()
            logger.debug("ssh-agent at %s offered %d key(s)", auth.socket_path, len(agent_keys))
            client_keys.extend(agent_keys)

        if not client_keys:
            raise asyncssh.PermissionDenied("ssh-agent offered no keys")
        yield {"client_keys": client_keys, "agent_path": None}


def _read_key(path: Path) -> asyncssh.SSHKey:
    try:
        return asyncssh.read_private_key(path)
    except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError, OSError) as e:
        raise CredentialError(f"Error reading key {path}: {e}") from e
