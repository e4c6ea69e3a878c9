"""SSH credential helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SSHCredentials:
    """Normalized connection payload from config or environment."""

    host: str
    username: str
    password: Optional[str] = field(default=None, repr=False)
    port: int = 22
    timeout: Optional[float] = 20

    def validate(self) -> None:
        if not self.host:
            raise ValueError("No SSH host provided")
        if not self.username:
            raise ValueError("No SSH username provided")
        if self.password is None:
            raise ValueError("Password authentication requires a password")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or self.port <= 0:
            raise ValueError(f"Invalid SSH port: {self.port!r}")
