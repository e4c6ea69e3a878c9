"""Remote command execution over an SSH exec channel."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import paramiko

from .errors import SSHExecutionError

logger = logging.getLogger(__name__)

TERM_UNIT_CHARS = 0
TERM_UNIT_PIXELS = 1

# The remote shell echoes the command's exit status after its own output.
RETURN_CODE_SUFFIX = ';echo "[return_code:$?]"'
RETURN_CODE_PATTERN = re.compile(r"\[return_code:(.*?)\]")

_CHUNK_SIZE = 32768
_POLL_INTERVAL = 0.01


@dataclass(frozen=True)
class CommandResult:
    command: str
    stdout: str
    stderr: str
    exit_code: Optional[int]

    @property
    def ok(self) -> bool:
        return not self.exit_code

    def __str__(self) -> str:
        return self.stdout


def parse_response(command: str, stdout: str, stderr: str) -> CommandResult:
    """Turn the captured streams of a marked command into a result.

    Any stderr output is a failure, whatever the exit status. Without an exit
    marker the output is returned untouched. A command whose own output
    contains ``[return_code:...]`` is parsed as if it were the marker.
    """
    if stderr:
        raise SSHExecutionError(stderr, stdout=stdout, stderr=stderr)

    match = RETURN_CODE_PATTERN.search(stdout)
    if match is None:
        return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_code=None)

    raw_code = match.group(1)
    marker = match.group(0)
    stdout = re.sub(re.escape(marker) + r"\r?\n", "", stdout)
    if raw_code == "":
        return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_code=None)
    try:
        exit_code: Optional[int] = int(raw_code)
    except ValueError:
        raise SSHExecutionError(stdout, stdout=stdout, stderr=stderr) from None

    if exit_code > 0:
        raise SSHExecutionError(stdout, stdout=stdout, stderr=stderr, exit_code=exit_code)
    return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_code=exit_code)


class CommandExecutor:
    """Runs commands on the exec channels of an authenticated transport."""

    def __init__(self, transport: Any) -> None:
        self._transport = transport

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
        """
        Execute a command on the remote server.

        Args:
            command: Shell command line to run
            pty: Terminal type to request, empty for no pseudo-terminal
            env: Environment variables to set before the command runs
            width: Width of the virtual terminal
            height: Height of the virtual terminal
            width_height_type: TERM_UNIT_CHARS or TERM_UNIT_PIXELS
            need_response: Wait for and check the command's output

        Returns:
            CommandResult, or None when need_response is False

        Raises:
            SSHExecutionError: the channel could not be started, the command
                wrote to stderr, or it exited with a non-zero status
        """
        if width_height_type not in (TERM_UNIT_CHARS, TERM_UNIT_PIXELS):
            raise ValueError(f"Unsupported terminal unit: {width_height_type!r}")

        logger.debug("Executing remote command: %s", command)
        channel = self._start(command + RETURN_CODE_SUFFIX, pty, env or {}, width, height, width_height_type)
        if not need_response:
            return None

        try:
            stdout, stderr = self._drain(channel)
        finally:
            channel.close()
        return parse_response(command, stdout, stderr)

    def _start(
        self,
        command: str,
        pty: str,
        env: Dict[str, str],
        width: int,
        height: int,
        width_height_type: int,
    ) -> Any:
        try:
            channel = self._transport.open_session()
            if env:
                channel.update_environment(env)
            if pty:
                if width_height_type == TERM_UNIT_PIXELS:
                    channel.get_pty(term=pty, width=0, height=0, width_pixels=width, height_pixels=height)
                else:
                    channel.get_pty(term=pty, width=width, height=height)
            channel.exec_command(command)
        except (paramiko.SSHException, OSError) as exc:
            logger.debug("Exec channel failed: %s", exc)
            raise SSHExecutionError("Failed to execute command on remote server") from exc
        return channel

    @staticmethod
    def _drain(channel: Any) -> Tuple[str, str]:
        # Both buffers are polled so a full stderr window cannot stall stdout.
        stdout_chunks = []
        stderr_chunks = []
        while True:
            # Output sent before the exit status is already buffered once it arrives.
            exited = channel.exit_status_ready()
            has_activity = False
            while channel.recv_ready():
                stdout_chunks.append(channel.recv(_CHUNK_SIZE))
                has_activity = True
            while channel.recv_stderr_ready():
                stderr_chunks.append(channel.recv_stderr(_CHUNK_SIZE))
                has_activity = True
            if exited:
                break
            if not has_activity:
                time.sleep(_POLL_INTERVAL)

        stdout_text = b"".join(stdout_chunks).decode("utf-8", errors="replace")
        stderr_text = b"".join(stderr_chunks).decode("utf-8", errors="replace")
        return stdout_text, stderr_text
