"""SCP file transfer over an authenticated transport."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import paramiko
from scp import SCPClient, SCPException

from .errors import SSHTransferError

logger = logging.getLogger(__name__)

ScpFactory = Callable[[Any], Any]

_TRANSFER_ERRORS = (SCPException, paramiko.SSHException, OSError)


class ScpTransfer:
    """Copies single files to and from the remote host."""

    def __init__(self, transport: Any, scp_factory: ScpFactory = SCPClient) -> None:
        self._transport = transport
        self._scp_factory = scp_factory

    @contextmanager
    def _client(self) -> Iterator[Any]:
        scp = self._scp_factory(self._transport)
        try:
            yield scp
        finally:
            scp.close()

    def send(self, local_file: str, remote_file: str, create_mode: int = 0o644) -> None:
        logger.debug("SCP send %s -> %s (mode %04o)", local_file, remote_file, create_mode)
        try:
            with open(local_file, "rb") as handle, self._client() as scp:
                scp.putfo(handle, remote_file, mode=f"{create_mode:04o}")
        except _TRANSFER_ERRORS as exc:
            logger.debug("SCP send failed: %s", exc)
            raise SSHTransferError("Failed to send file to remote server") from exc

    def receive(self, remote_file: str, local_file: str) -> None:
        logger.debug("SCP receive %s -> %s", remote_file, local_file)
        try:
            with self._client() as scp:
                scp.get(remote_file, local_file)
        except _TRANSFER_ERRORS as exc:
            logger.debug("SCP receive failed: %s", exc)
            raise SSHTransferError("Failed to retrieve file on remote server") from exc
