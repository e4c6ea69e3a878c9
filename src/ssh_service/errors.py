"""Exceptions raised by the SSH service."""

from __future__ import annotations

from typing import Optional


class SSHError(RuntimeError):
    """Base class for every failure reported by an SSH session."""

    default_message = "Unknown SSH exception"

    def __init__(self, message: Optional[str] = None, code: int = 500) -> None:
        if message is None:
            message = self.default_message
        super().__init__(message)
        self.message = message
        self.code = code


class SSHConnectionError(SSHError):
    """Raised when an SSH connection cannot be established."""

    pass


class SSHAuthError(SSHError):
    """Raised when the server rejects the credentials or the session is unauthenticated."""

    pass


class SSHDisconnectError(SSHError):
    """Raised when the transport cannot be closed cleanly."""

    pass


class SSHExecutionError(SSHError):
    """Raised when a remote command cannot run or reports a failure.

    The message is the stderr text when the command wrote to stderr,
    otherwise the command's stdout with the exit marker removed.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class SSHTransferError(SSHError):
    """Raised when an SCP transfer fails."""

    pass


class SFTPError(SSHError):
    """Raised when an SFTP operation fails or the subsystem is not initialized."""

    pass
