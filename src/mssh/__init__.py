"""mssh: Run SSH commands on multiple machines."""

__version__ = "0.1.0"

from .config import ConfigError, HostTarget, RunOptions, build_targets, normalize_address
from .credentials import AgentAuth, CredentialError, KeyFileAuth, resolve_auth_methods
from .dispatcher import Dispatcher, ExecutionOutcome, HostStatus, HostWorker, RunResult, RunState
from .executor import ExecResult, RemoteExecutor
from .output import truncate

__all__ = [
    "AgentAuth",
    "ConfigError",
    "CredentialError",
    "Dispatcher",
    "ExecResult",
    "ExecutionOutcome",
    "HostStatus",
    "HostTarget",
    "HostWorker",
    "KeyFileAuth",
    "RemoteExecutor",
    "RunOptions",
    "RunResult",
    "RunState",
    "build_targets",
    "normalize_address",
    "resolve_auth_methods",
    "truncate",
]
