"""Password-authenticated SSH sessions: remote commands, SCP and SFTP."""

from .config import ConnectionConfig, ServiceConfig, load_config
from .credentials import SSHCredentials
from .errors import (
    SFTPError,
    SSHAuthError,
    SSHConnectionError,
    SSHDisconnectError,
    SSHError,
    SSHExecutionError,
    SSHTransferError,
)
from .executor import TERM_UNIT_CHARS, TERM_UNIT_PIXELS, CommandResult
from .options import AlgorithmOptions, SessionCallbacks
from .session import SSHSession, open_session

__all__ = [
    "AlgorithmOptions",
    "CommandResult",
    "ConnectionConfig",
    "SFTPError",
    "SSHAuthError",
    "SSHConnectionError",
    "SSHCredentials",
    "SSHDisconnectError",
    "SSHError",
    "SSHExecutionError",
    "SSHSession",
    "SSHTransferError",
    "ServiceConfig",
    "SessionCallbacks",
    "TERM_UNIT_CHARS",
    "TERM_UNIT_PIXELS",
    "load_config",
    "open_session",
]
