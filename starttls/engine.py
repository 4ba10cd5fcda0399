"""
Driving loops - run an UpgradeTls coroutine against a runtime.

The loop bridges the pure coroutine to a concrete transport:
    1. resume(None)
    2. while the result is an IoRequest: execute it exactly once with
       the runtime and resume with its result
    3. stop on the Outcome and never resume again

drive() does this with a blocking runtime, drive_async() with an
asynchronous one; the coroutine is the same in both cases. Transport
errors raised by the runtime are fed back as IoFailure, which ends the
negotiation with a transport failure. Nothing is retried.
"""
from __future__ import annotations

import logging

from .coroutine import UpgradeTls
from .errors import NegotiationError
from .protocol import Failure, IoFailure, IoRequest, IoResult, Outcome
from .transport.interface import IAsyncRuntime, IRuntime

logger = logging.getLogger(__name__)


def _transport_failure(request: IoRequest, exc: OSError) -> IoFailure:
    logger.warning(f"[Engine] {type(request).__name__} failed: {exc!r}")
    return IoFailure(f"{type(exc).__name__}: {exc}")


def _finish(outcome: Outcome, check: bool) -> Outcome:
    if isinstance(outcome, Failure):
        logger.info(f"[Engine] Negotiation failed: {outcome.kind.value}")
        if check:
            raise NegotiationError(outcome)
    else:
        logger.info("[Engine] Negotiation succeeded, transport ready for TLS")
    return outcome


def drive(coroutine: UpgradeTls, runtime: IRuntime, check: bool = False) -> Outcome:
    """
    Run `coroutine` to completion with a blocking runtime.

    Returns the outcome. With check=True a Failure raises
    NegotiationError instead.
    """
    step = coroutine.resume(None)

    while isinstance(step, IoRequest):
        result: IoResult
        try:
            result = runtime.execute(step)
        except OSError as exc:
            result = _transport_failure(step, exc)
        step = coroutine.resume(result)

    return _finish(step, check)


async def drive_async(
    coroutine: UpgradeTls,
    runtime: IAsyncRuntime,
    check: bool = False,
) -> Outcome:
    """Asynchronous counterpart of drive()."""
    step = coroutine.resume(None)

    while isinstance(step, IoRequest):
        result: IoResult
        try:
            result = await runtime.execute(step)
        except OSError as exc:
            result = _transport_failure(step, exc)
        step = coroutine.resume(result)

    return _finish(step, check)
