"""
UpgradeTls - the resumable STARTTLS coroutine.

Wraps the pure StartTlsProtocol so callers hold a single object and
call resume() with the result of the previously requested I/O:

    coroutine = UpgradeTls(UpgradeConfig(discard_greeting=True))
    step = coroutine.resume()
    while isinstance(step, IoRequest):
        step = coroutine.resume(perform(step))
    outcome = step

The coroutine itself never touches a transport.
"""
from __future__ import annotations

import logging
from typing import Callable

from .protocol import (
    IoRequest,
    IoResult,
    Outcome,
    Phase,
    StartTlsProtocol,
    UpgradeConfig,
    UpgradeState,
)

_LOGGER = logging.getLogger("starttls")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _log_to_logging(level: str, message: str) -> None:
    _LOGGER.log(_LEVELS.get(level, logging.INFO), message)


class UpgradeTls:
    """
    STARTTLS coroutine that upgrades a plain stream to a secure one.

    Each resume() returns either the next IoRequest (negotiation
    continues) or an Outcome (negotiation finished). Only one request
    is ever outstanding. Resuming after an outcome raises
    CoroutineFinishedError.
    """

    def __init__(
        self,
        config: UpgradeConfig | None = None,
        logger: Callable[[str, str], None] | None = None,
    ):
        self._state = UpgradeState(config=config or UpgradeConfig())
        self._logger = logger or _log_to_logging

    # === Properties ===

    @property
    def config(self) -> UpgradeConfig:
        return self._state.config

    @property
    def state(self) -> UpgradeState:
        """Current negotiation state (read-only)."""
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def pending(self) -> IoRequest | None:
        """The request awaiting its result, if any."""
        return self._state.pending

    @property
    def outcome(self) -> Outcome | None:
        return self._state.outcome

    @property
    def is_terminated(self) -> bool:
        return self._state.phase.is_terminal

    # === Resume ===

    def resume(self, result: IoResult | None = None) -> IoRequest | Outcome:
        """
        Make the coroutine progress.

        Pass None on the first call, then the result of the request
        returned by the previous call.
        """
        new_state, logs = StartTlsProtocol.step(self._state, result)
        self._state = new_state

        for log in logs:
            self._logger(log.level, log.message)

        if new_state.pending is not None:
            return new_state.pending
        return new_state.outcome  # type: ignore[return-value]
