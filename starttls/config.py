"""
YAML configuration for STARTTLS connections.

Example file:

    connection:
      host: imap.example.com
      port: 143
      timeout: 10
    upgrade:
      protocol: imap
      discard_greeting: true

Every key of the `upgrade` section maps onto an UpgradeConfig field.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .protocol import UpgradeConfig

DEFAULT_PORTS = {
    "imap": 143,
    "pop3": 110,
    "smtp": 25,
}

_UPGRADE_KEYS = {f.name for f in fields(UpgradeConfig)}
_CONNECTION_KEYS = {"host", "port", "timeout", "server_hostname"}


@dataclass(frozen=True)
class ConnectionSettings:
    """Where to connect and how long to wait."""
    host: str
    port: int
    timeout: float | None = None
    server_hostname: str | None = None

    @property
    def tls_hostname(self) -> str:
        """Name checked against the server certificate."""
        return self.server_hostname or self.host


@dataclass(frozen=True)
class Settings:
    connection: ConnectionSettings
    upgrade: UpgradeConfig = field(default_factory=UpgradeConfig)


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ConfigError(f"Unknown '{name}' keys: {', '.join(sorted(unknown))}")
    return section


def parse_config(data: dict[str, Any]) -> Settings:
    """Build Settings from an already-parsed mapping."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    unknown = set(data) - {"connection", "upgrade"}
    if unknown:
        raise ConfigError(f"Unknown sections: {', '.join(sorted(unknown))}")

    upgrade = UpgradeConfig(**_section(data, "upgrade", _UPGRADE_KEYS))

    connection = _section(data, "connection", _CONNECTION_KEYS)
    if "host" not in connection:
        raise ConfigError("'connection.host' is required")
    port = connection.get("port", DEFAULT_PORTS.get(upgrade.protocol.lower()))
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"Invalid port: {port!r}")

    return Settings(
        connection=ConnectionSettings(
            host=str(connection["host"]),
            port=port,
            timeout=connection.get("timeout"),
            server_hostname=connection.get("server_hostname"),
        ),
        upgrade=upgrade,
    )


def load_config(path: str | Path) -> Settings:
    """Read Settings from a YAML file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return parse_config(data or {})
