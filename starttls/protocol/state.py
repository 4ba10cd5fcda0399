"""
STARTTLS negotiation state representation.

UpgradeState is immutable (frozen dataclass) so every transition of the
machine produces a new instance. UpgradeConfig is fixed before the first
resume and never changes afterwards.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto

from ..errors import ConfigError
from .grammar import get_dialect
from .io import IoRequest


_TAG_PREFIX = re.compile(r"^[A-Za-z0-9.]+$")


class Phase(Enum):
    """Negotiation phases."""

    # Nothing exchanged yet
    START = auto()

    # Reading the server greeting
    AWAIT_GREETING = auto()

    # Optional capability probe (CAPABILITY / CAPA / EHLO)
    SEND_PROBE = auto()
    AWAIT_PROBE_RESPONSE = auto()

    # The upgrade command itself
    SEND_UPGRADE_COMMAND = auto()
    AWAIT_UPGRADE_RESPONSE = auto()

    # Terminal phases
    SUCCEEDED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.SUCCEEDED, Phase.FAILED)


class FailureKind(Enum):
    """Reason codes carried by a Failure outcome."""

    TRANSPORT = "transport"
    CLOSED = "closed"
    MALFORMED = "malformed"
    REJECTED = "rejected"
    NOT_SUPPORTED = "not-supported"
    LINE_TOO_LONG = "line-too-long"
    TRAILING_DATA = "trailing-data"

    @property
    def category(self) -> str:
        """Coarse error class: "transport", "protocol" or "rejection"."""
        if self is FailureKind.TRANSPORT:
            return "transport"
        if self in (FailureKind.REJECTED, FailureKind.NOT_SUPPORTED):
            return "rejection"
        return "protocol"


@dataclass(frozen=True)
class Outcome:
    """Base class for terminal negotiation outcomes."""

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Success(Outcome):
    """The transport is ready for the TLS handshake."""
    capabilities: frozenset[str] = frozenset()
    greeting: str | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure(Outcome):
    """The negotiation failed. `line` holds the offending bytes, if any."""
    kind: FailureKind
    reason: str
    line: bytes | None = None

    @property
    def category(self) -> str:
        return self.kind.category


@dataclass(frozen=True)
class UpgradeConfig:
    """Immutable negotiation settings."""

    protocol: str = "imap"

    # Greeting handling
    discard_greeting: bool = False
    expect_greeting: bool = True

    # Capability probe before the upgrade command
    probe_capabilities: bool = False
    require_capability: bool = True

    # Command parameters
    tag_prefix: str = "a"
    client_name: str = "localhost"

    # Buffering limits
    read_chunk_size: int = 1024
    max_line_length: int = 8192

    def __post_init__(self) -> None:
        for name in ("protocol", "tag_prefix", "client_name"):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string, got {getattr(self, name)!r}")
        for name in ("discard_greeting", "expect_greeting", "probe_capabilities",
                     "require_capability"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        for name in ("read_chunk_size", "max_line_length"):
            value = getattr(self, name)
            # bool is an int subclass
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"{name} must be an integer, got {value!r}")

        try:
            get_dialect(self.protocol)
        except KeyError as exc:
            raise ConfigError(f"Unknown protocol: {self.protocol!r}") from exc
        if not _TAG_PREFIX.match(self.tag_prefix):
            raise ConfigError(f"Invalid tag prefix: {self.tag_prefix!r}")
        if not self.client_name or any(c.isspace() for c in self.client_name):
            raise ConfigError(f"Invalid client name: {self.client_name!r}")
        if self.read_chunk_size <= 0:
            raise ConfigError("read_chunk_size must be positive")
        if self.max_line_length <= 0:
            raise ConfigError("max_line_length must be positive")


@dataclass(frozen=True)
class UpgradeState:
    """
    Immutable negotiation state.

    Exactly one of `pending` and `outcome` is set once the machine has
    been started: a pending request while negotiating, an outcome once
    terminal.
    """

    config: UpgradeConfig = field(default_factory=UpgradeConfig)

    # Current phase
    phase: Phase = Phase.START

    # Bytes received but not yet consumed as a full line
    buffer: bytes = b""

    # The single outstanding request
    pending: IoRequest | None = None

    # Command tagging
    tag: str | None = None
    counter: int = 0

    # Lines consumed in the current phase
    lines: int = 0

    # Learned from the server
    capabilities: frozenset[str] = frozenset()
    greeting: str | None = None

    # Terminal value
    outcome: Outcome | None = None
