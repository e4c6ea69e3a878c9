"""SSH session management built on Paramiko."""

from __future__ import annotations

import logging
import socket
from typing import Any, Callable, Dict, Mapping, Optional, Union

import paramiko
from scp import SCPClient

from .credentials import SSHCredentials
from .errors import SSHAuthError, SSHConnectionError, SSHDisconnectError
from .executor import TERM_UNIT_CHARS, CommandExecutor, CommandResult
from .options import AlgorithmOptions, SessionCallbacks
from .sftp import SFTPFacade, SftpFactory
from .transfer import ScpFactory, ScpTransfer

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, int, Optional[float]], Any]


def open_transport(host: str, port: int, timeout: Optional[float] = None) -> paramiko.Transport:
    """Open a TCP connection and wrap it in an unstarted paramiko transport."""
    sock = socket.create_connection((host, port), timeout=timeout)
    try:
        return paramiko.Transport(sock)
    except Exception:
        sock.close()
        raise


class SSHSession:
    """One password-authenticated SSH connection.

    The connection is opened on construction and closed by :meth:`disconnect`,
    on leaving a ``with`` block, or when the object is garbage collected.
    Commands, SCP transfers and SFTP calls require :meth:`auth_password` to
    have succeeded; SFTP calls additionally require :meth:`init_sftp`.
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        methods: Union[AlgorithmOptions, Mapping[str, Any], None] = None,
        callbacks: Union[SessionCallbacks, Mapping[str, Callable], None] = None,
        *,
        timeout: Optional[float] = None,
        transport_factory: Optional[TransportFactory] = None,
        sftp_factory: Optional[SftpFactory] = None,
        scp_factory: Optional[ScpFactory] = None,
    ) -> None:
        self._transport: Optional[Any] = None
        self._authenticated = False
        self._sftp: Optional[SFTPFacade] = None

        if isinstance(port, bool) or not isinstance(port, int) or port <= 0:
            raise ValueError(f"Invalid SSH port: {port!r}")
        self.host = host
        self.port = port
        self.timeout = timeout
        self._methods = AlgorithmOptions.coerce(methods)
        self._callbacks = SessionCallbacks.coerce(callbacks)
        self._transport_factory = transport_factory or open_transport
        self._sftp_factory = sftp_factory or paramiko.SFTPClient.from_transport
        self._scp_factory = scp_factory or SCPClient

        self._connect()

    def __repr__(self) -> str:
        state = "authenticated" if self._authenticated else ("connected" if self.connected else "closed")
        return f"SSHSession({self.host!r}, {self.port}) [{state}]"

    def __enter__(self) -> "SSHSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_transport", None) is not None:
            self.close()

    @property
    def connected(self) -> bool:
        return self._transport is not None

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def transport(self) -> Any:
        """The underlying transport, available once authenticated."""
        if self._transport is None or not self._authenticated:
            raise SSHAuthError("Session is not authenticated")
        return self._transport

    def _connect(self) -> None:
        logger.info("Connecting to %s:%s", self.host, self.port)
        try:
            transport = self._transport_factory(self.host, self.port, self.timeout)
        except OSError as exc:
            logger.info("Connection to %s:%s failed: %s", self.host, self.port, exc)
            raise SSHConnectionError("Failed connection to SSH server") from exc

        try:
            self._handshake(transport)
        except (paramiko.SSHException, OSError, ValueError) as exc:
            transport.close()
            logger.info("Handshake with %s:%s failed: %s", self.host, self.port, exc)
            raise SSHConnectionError("Failed connection to SSH server") from exc
        except BaseException:
            # Rejected host keys and failing host_key hooks land here.
            transport.close()
            raise

        self._transport = transport
        self._callbacks.notify_debug(f"connected to {self.host}:{self.port}")

    def _handshake(self, transport: Any) -> None:
        if self._methods is not None:
            self._methods.apply(transport.get_security_options())
        transport.start_client(timeout=self.timeout)
        if self._callbacks.host_key is not None:
            key = transport.get_remote_server_key()
            if self._callbacks.host_key(self.host, key) is False:
                raise SSHConnectionError("Failed connection to SSH server: host key rejected")

    def auth_password(self, username: str, password: str) -> None:
        """Authenticate with a plain password."""
        if self._transport is None:
            raise SSHConnectionError("Session is not connected")
        try:
            self._transport.auth_password(username, password)
        except (paramiko.SSHException, OSError) as exc:
            logger.info("Password authentication for %s@%s rejected", username, self.host)
            raise SSHAuthError("Failed authentication") from exc
        if not self._transport.is_authenticated():
            logger.info("Password authentication for %s@%s incomplete", username, self.host)
            raise SSHAuthError("Failed authentication")

        self._authenticated = True
        if self._sftp is None:
            self._sftp = SFTPFacade(self._transport, self._sftp_factory)
        logger.info("Authenticated as %s@%s", username, self.host)
        self._callbacks.notify_debug(f"authenticated as {username}")

    def disconnect(self) -> None:
        """Close the connection. Does nothing when already disconnected."""
        transport, self._transport = self._transport, None
        if transport is None:
            return
        sftp, self._sftp = self._sftp, None
        self._authenticated = False
        if sftp is not None:
            sftp.close()
        try:
            transport.close()
        except (paramiko.SSHException, OSError) as exc:
            raise SSHDisconnectError("Failed disconnection from the SSH server") from exc

        logger.info("Disconnected from %s:%s", self.host, self.port)
        self._callbacks.notify_debug(f"disconnected from {self.host}:{self.port}")
        if self._callbacks.disconnect is not None:
            self._callbacks.disconnect(self.host, self.port)

    def close(self) -> None:
        """Disconnect, logging rather than raising any failure, callbacks included."""
        try:
            self.disconnect()
        except SSHDisconnectError as exc:
            logger.warning("%s (%s:%s): %s", exc, self.host, self.port, exc.__cause__)
        except Exception:
            logger.warning("Disconnect callback failed for %s:%s", self.host, self.port, exc_info=True)

    def execute(
        self,
        command: str,
        pty: str = "",
        env: Optional[Dict[str, str]] = None,
        width: int = 80,
        height: int = 25,
        width_height_type: int = TERM_UNIT_CHARS,
        need_response: bool = True,
    ) -> Optional[CommandResult]:
        """Run ``command`` remotely; see :meth:`CommandExecutor.execute`."""
        executor = CommandExecutor(self.transport)
        return executor.execute(command, pty, env, width, height, width_height_type, need_response)

    def scp_send(self, local_file: str, remote_file: str, create_mode: int = 0o644) -> None:
        ScpTransfer(self.transport, self._scp_factory).send(local_file, remote_file, create_mode)

    def scp_recv(self, remote_file: str, local_file: str) -> None:
        ScpTransfer(self.transport, self._scp_factory).receive(remote_file, local_file)

    def _sftp_facade(self) -> SFTPFacade:
        if self._sftp is None or not self._authenticated:
            raise SSHAuthError("Session is not authenticated")
        return self._sftp

    def init_sftp(self) -> None:
        """Open the SFTP subsystem, replacing any client opened earlier."""
        self._sftp_facade().init()

    def sftp_chmod(self, filename: str, mode: int) -> None:
        self._sftp_facade().chmod(filename, mode)

    def sftp_mkdir(self, dirname: str, mode: int = 0o777, recursive: bool = False) -> None:
        self._sftp_facade().mkdir(dirname, mode, recursive)

    def sftp_rmdir(self, dirname: str) -> None:
        self._sftp_facade().rmdir(dirname)

    def sftp_unlink(self, filename: str) -> None:
        self._sftp_facade().unlink(filename)


def open_session(
    credentials: SSHCredentials,
    methods: Union[AlgorithmOptions, Mapping[str, Any], None] = None,
    callbacks: Union[SessionCallbacks, Mapping[str, Callable], None] = None,
    **factories: Any,
) -> SSHSession:
    """Connect and authenticate in one step.

    The session is disconnected again if authentication fails.
    """
    credentials.validate()
    session = SSHSession(
        credentials.host,
        credentials.port,
        methods,
        callbacks,
        timeout=credentials.timeout,
        **factories,
    )
    try:
        session.auth_password(credentials.username, credentials.password or "")
    except SSHAuthError:
        session.close()
        raise
    return session
