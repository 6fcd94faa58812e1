"""Configuration loader for mssh."""

from __future__ import annotations

import getpass
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from .credentials import AuthMethod

DEFAULT_PORT = 22


class ConfigError(ValueError):
    """Raised when a run cannot be assembled from the given settings."""


@dataclass(frozen=True)
class RunOptions:
    """Options that shape how a run is dispatched."""

    max_output_lines: int = 0
    fail_fast: bool = False
    timeout: float | None = None


@dataclass(frozen=True)
class HostTarget:
    """A remote endpoint with the identity and credentials used to reach it."""

    user: str
    address: str
    auth_methods: tuple[AuthMethod, ...]

    @property
    def hostname(self) -> str:
        return self.address.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.address.rsplit(":", 1)[1])

    @property
    def identity(self) -> str:
        return f"{self.user}@{self.address}"


@dataclass
class RunFile:
    """Settings read from a YAML run file."""

    hosts: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    user: str | None = None
    keys: list[str] = field(default_factory=list)
    max_output_lines: int | None = None
    fail_fast: bool | None = None
    timeout: float | None = None
    log_dir: Path | None = None
    source_path: Path | None = None


def normalize_address(host: str) -> str:
    """Append the default SSH port to ``host`` unless it already has one."""
    if len(host.split(":")) == 1:
        return f"{host}:{DEFAULT_PORT}"
    return host


def parse_target(target: str, default_user: str) -> tuple[str, str]:
    """Split ``[user@]host[:port]`` into ``(user, "host:port")``."""
    target = target.strip()
    user = default_user
    if "@" in target:
        user, target = target.rsplit("@", 1)
    if not user:
        raise ConfigError(f"No user given for host '{target}'")
    if not target:
        raise ConfigError("Empty host in host list")

    address = normalize_address(target)
    hostname, port = address.rsplit(":", 1)
    if not hostname:
        raise ConfigError(f"Empty host in '{target}'")
    if not port.isdigit() or not 1 <= int(port) <= 65535:
        raise ConfigError(f"Invalid port in '{target}'")
    return user, address


def build_targets(
    hosts: Sequence[str],
    default_user: str,
    auth_methods: Sequence[AuthMethod],
) -> list[HostTarget]:
    """Resolve raw host strings into HostTargets sharing ``auth_methods``."""
    if not hosts:
        raise ConfigError("At least one host is required")
    if not auth_methods:
        raise ConfigError("At least one authentication method is required")

    auths = tuple(auth_methods)
    targets = []
    seen = set()
    for host in hosts:
        user, address = parse_target(host, default_user)
        if (user, address) in seen:
            raise ConfigError(f"Host listed more than once: {user}@{address}")
        seen.add((user, address))
        targets.append(HostTarget(user=user, address=address, auth_methods=auths))
    return targets


def split_hosts(value: str | None) -> list[str]:
    """Split a comma separated host list, as found in ``MSSH_HOSTS``."""
    if not value:
        return []
    return [host.strip() for host in value.split(",") if host.strip()]


def default_user(env: Mapping[str, str]) -> str:
    """Return ``MSSH_USER`` or the current login name."""
    user = env.get("MSSH_USER")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError) as e:
        raise ConfigError(f"Could not get current user: {e}") from e


def load_run_file(config_path: str | Path) -> RunFile:
    """Load and validate a run file from YAML."""
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    run_file = _parse_run_file(raw)
    run_file.source_path = config_path
    return run_file


def _check(name: str, value: Any, types: tuple[type, ...], expected: str) -> Any:
    """Return ``value`` if it is None or one of ``types``, else raise ConfigError."""
    if value is None:
        return value
    # bool is an int subclass but never a valid number here
    if isinstance(value, types) and (bool in types or not isinstance(value, bool)):
        return value
    raise ConfigError(f"'{name}' must be {expected}, got {value!r}")


def _check_strings(name: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{name}' must be a list of strings")
    return value


def _parse_run_file(raw: dict[str, Any]) -> RunFile:
    """Parse raw YAML data into a RunFile."""
    defaults = _check("defaults", raw.get("defaults"), (dict,), "a mapping") or {}

    command_groups = _check("command_groups", raw.get("command_groups"), (dict,), "a mapping") or {}
    for group, group_commands in command_groups.items():
        command_groups[group] = _check_strings(f"command_groups.{group}", group_commands)

    hosts = _check("hosts", raw.get("hosts"), (list,), "a list") or []
    commands = _check_strings("commands", raw.get("commands"))
    log_dir = _check("log_dir", raw.get("log_dir"), (str,), "a path")

    return RunFile(
        hosts=[str(host) for host in hosts],
        commands=resolve_commands(commands, command_groups),
        user=_check("defaults.user", defaults.get("user"), (str,), "a string"),
        keys=_check_strings("defaults.keys", defaults.get("keys")),
        max_output_lines=_check("defaults.lines", defaults.get("lines"), (int,), "an integer"),
        fail_fast=_check("defaults.fail_fast", defaults.get("fail_fast"), (bool,), "true or false"),
        timeout=_check("defaults.timeout", defaults.get("timeout"), (int, float), "a number"),
        log_dir=Path(log_dir).expanduser() if log_dir else None,
    )


def resolve_commands(
    commands_raw: list[str], command_groups: dict[str, list[str]]
) -> list[str]:
    """Resolve command group references to actual commands."""
    commands = []

    for cmd in commands_raw:
        if cmd in command_groups:
            # It's a group reference, expand it
            commands.extend(command_groups[cmd])
        else:
            # It's a direct command
            commands.append(cmd)

    return commands
