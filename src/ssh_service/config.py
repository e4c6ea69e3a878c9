"""Configuration loading utilities for the SSH service."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .credentials import SSHCredentials
from .options import AlgorithmOptions

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/ssh_service.json")


@dataclass
class ConnectionConfig:
    """Where and how to connect."""

    host: Optional[str] = None
    port: int = 22
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    timeout: Optional[float] = 20
    # Nested algorithm preferences: kex, hostkey, client_to_server, server_to_client
    methods: Optional[Dict[str, Any]] = None


@dataclass
class ServiceConfig:
    """Top-level configuration."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ServiceConfig":
        connection_payload = payload.get("connection", {}) or {}
        # Keys starting with an underscore are comments
        connection_payload = {k: v for k, v in connection_payload.items() if not k.startswith("_")}
        return cls(
            connection=ConnectionConfig(**{**ConnectionConfig().__dict__, **connection_payload}),
        )

    def credentials(self) -> SSHCredentials:
        connection = self.connection
        credentials = SSHCredentials(
            host=connection.host or "",
            username=connection.username or "",
            password=connection.password,
            port=connection.port,
            timeout=connection.timeout,
        )
        credentials.validate()
        return credentials

    def algorithm_options(self) -> Optional[AlgorithmOptions]:
        return AlgorithmOptions.coerce(self.connection.methods)


def load_config(path: Optional[str] = None) -> ServiceConfig:
    """Load configuration from `path` or the default location.

    Without an explicit `path`, a missing default file yields the built-in
    defaults. Environment variables (higher priority than config file):
    - SSH_SERVICE_HOST: SSH host
    - SSH_SERVICE_PORT: SSH port
    - SSH_SERVICE_USERNAME: SSH username
    - SSH_SERVICE_PASSWORD: SSH password
    - SSH_SERVICE_TIMEOUT: Connect timeout in seconds
    """
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = ServiceConfig.from_dict(data)
    else:
        config = ServiceConfig()

    env_host = os.getenv("SSH_SERVICE_HOST")
    if env_host:
        config.connection.host = env_host

    env_port = os.getenv("SSH_SERVICE_PORT")
    if env_port:
        config.connection.port = int(env_port)

    env_username = os.getenv("SSH_SERVICE_USERNAME")
    if env_username:
        config.connection.username = env_username

    env_password = os.getenv("SSH_SERVICE_PASSWORD")
    if env_password:
        config.connection.password = env_password

    env_timeout = os.getenv("SSH_SERVICE_TIMEOUT")
    if env_timeout:
        config.connection.timeout = float(env_timeout)

    return config
