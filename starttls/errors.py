"""Error types raised by the starttls package."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol.state import Failure


class StartTlsError(Exception):
    """Base error for STARTTLS negotiation."""


class ConfigError(StartTlsError, ValueError):
    """Invalid negotiation or connection configuration."""


class MisuseError(StartTlsError, RuntimeError):
    """The coroutine was driven in a way its contract forbids."""


class CoroutineFinishedError(MisuseError):
    """resume() was called after a terminal outcome."""


class UnexpectedResultError(MisuseError):
    """resume() received a result that does not answer the pending request."""


class NegotiationError(StartTlsError):
    """The negotiation terminated with a failure outcome."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(f"STARTTLS negotiation failed ({failure.kind.value}): {failure.reason}")
        self.failure = failure
