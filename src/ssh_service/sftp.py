"""SFTP filesystem operations bound to one session."""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Callable, Optional

import paramiko

from .errors import SFTPError

logger = logging.getLogger(__name__)

SftpFactory = Callable[[Any], Optional[Any]]

_SFTP_ERRORS = (OSError, paramiko.SSHException)


class SFTPFacade:
    """Holds the session's SFTP client and maps its failures to SFTPError.

    The client is only created by :meth:`init`; operations never open it on
    demand.
    """

    def __init__(self, transport: Any, sftp_factory: SftpFactory = paramiko.SFTPClient.from_transport) -> None:
        self._transport = transport
        self._sftp_factory = sftp_factory
        self._client: Optional[Any] = None

    @property
    def initialized(self) -> bool:
        return self._client is not None

    def init(self) -> None:
        """Open a fresh SFTP client, replacing (and closing) any previous one."""
        self.close()
        try:
            client = self._sftp_factory(self._transport)
        except _SFTP_ERRORS as exc:
            raise SFTPError("Failed to initialize the SFTP subsystem") from exc
        if client is None:
            raise SFTPError("Failed to initialize the SFTP subsystem")
        self._client = client
        logger.debug("SFTP subsystem initialized")

    def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.close()
        except _SFTP_ERRORS as exc:
            logger.warning("Failed to close SFTP client: %s", exc)

    def _get_client(self) -> Any:
        if self._client is None:
            raise SFTPError("SFTP subsystem not initialized")
        return self._client

    def chmod(self, filename: str, mode: int) -> None:
        client = self._get_client()
        logger.debug("SFTP chmod %04o %s", mode, filename)
        try:
            client.chmod(filename, mode)
        except _SFTP_ERRORS as exc:
            raise SFTPError("Access rights could not be changed") from exc

    def mkdir(self, dirname: str, mode: int = 0o777, recursive: bool = False) -> None:
        client = self._get_client()
        logger.debug("SFTP mkdir %s (mode %04o, recursive=%s)", dirname, mode, recursive)
        try:
            if recursive:
                self._make_parents(client, dirname, mode)
            client.mkdir(dirname, mode)
        except _SFTP_ERRORS as exc:
            raise SFTPError("Failed to create directory") from exc

    @staticmethod
    def _make_parents(client: Any, dirname: str, mode: int) -> None:
        parent = posixpath.dirname(posixpath.normpath(dirname))
        missing = []
        while parent and parent not in ("/", "."):
            try:
                client.stat(parent)
            except FileNotFoundError:
                missing.append(parent)
                parent = posixpath.dirname(parent)
            else:
                break
        for path in reversed(missing):
            client.mkdir(path, mode)

    def rmdir(self, dirname: str) -> None:
        client = self._get_client()
        logger.debug("SFTP rmdir %s", dirname)
        try:
            client.rmdir(dirname)
        except _SFTP_ERRORS as exc:
            raise SFTPError("Failed to remove directory") from exc

    def unlink(self, filename: str) -> None:
        client = self._get_client()
        logger.debug("SFTP unlink %s", filename)
        try:
            client.remove(filename)
        except _SFTP_ERRORS as exc:
            raise SFTPError("Failed to remove file") from exc
