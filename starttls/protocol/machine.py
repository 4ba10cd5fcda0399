"""
STARTTLS negotiation state machine.

This is the negotiation logic, implemented as a pure function:
    step(state, result) -> (new_state, logs)

No I/O, no side effects. The new state carries either the single
pending I/O request the caller must perform, or the terminal outcome.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from ..errors import CoroutineFinishedError, UnexpectedResultError
from .grammar import Verdict, VerdictKind, decode_line, get_dialect, split_line
from .io import (
    IoFailure,
    IoResult,
    ReadRequest,
    ReadResult,
    WriteRequest,
    WriteResult,
)
from .state import Failure, FailureKind, Phase, Success, UpgradeState


@dataclass(frozen=True)
class Log:
    """A log message emitted by a transition."""
    level: str  # "debug", "info", "warn", "error"
    message: str


# Type alias for the step function signature
StepResult = tuple[UpgradeState, list[Log]]


class StartTlsProtocol:
    """
    Pure state machine for the STARTTLS negotiation.

    Usage:
        state = UpgradeState(config=UpgradeConfig(discard_greeting=True))
        state, logs = StartTlsProtocol.step(state, None)
        # state.pending is a ReadRequest; perform it...
        state, logs = StartTlsProtocol.step(state, ReadResult(b"* OK ready\\r\\n"))
        # etc. until state.outcome is set
    """

    @staticmethod
    def step(state: UpgradeState, result: IoResult | None) -> StepResult:
        """
        Advance the negotiation with the result of the pending request.

        `result` must be None on the first call and the answer to
        `state.pending` on every later call. Any other input raises a
        MisuseError and leaves the given state untouched.
        """
        if state.phase.is_terminal:
            raise CoroutineFinishedError(f"Negotiation already terminated ({state.phase.name})")

        if state.pending is None:
            if result is not None:
                raise UnexpectedResultError("The first resume() takes no result")
            return _handle_start(state)

        if result is None:
            raise UnexpectedResultError(f"resume() needs the result of {state.pending!r}")

        if isinstance(result, IoFailure):
            return _handle_io_failure(state, result)

        handler = _HANDLERS.get((state.phase, type(result)))
        if handler is None:
            raise UnexpectedResultError(
                f"{type(result).__name__} does not answer {type(state.pending).__name__}"
            )
        return handler(state, result)


# =============================================================================
# Transition helpers
# =============================================================================

def _fail(
    state: UpgradeState,
    kind: FailureKind,
    reason: str,
    logs: list[Log],
    line: bytes | None = None,
) -> StepResult:
    logs.append(Log("warn", f"[StartTls] Negotiation failed ({kind.value}): {reason}"))
    return (
        replace(state, phase=Phase.FAILED, pending=None, outcome=Failure(kind, reason, line)),
        logs,
    )


def _send(
    state: UpgradeState,
    phase: Phase,
    build: Callable[[str], bytes],
    logs: list[Log],
) -> StepResult:
    """Enter a SEND_* phase with a freshly tagged command."""
    counter = state.counter + 1
    tag = f"{state.config.tag_prefix}{counter}"
    data = build(tag)
    logs.append(Log("debug", f"[StartTls] Enqueue command {data!r}"))
    return (
        replace(
            state,
            phase=phase,
            tag=tag,
            counter=counter,
            lines=0,
            pending=WriteRequest(data),
        ),
        logs,
    )


def _send_probe(state: UpgradeState, logs: list[Log]) -> StepResult:
    dialect = get_dialect(state.config.protocol)
    client_name = state.config.client_name
    return _send(
        state,
        Phase.SEND_PROBE,
        lambda tag: dialect.probe_command(tag, client_name),
        logs,
    )


def _send_upgrade(state: UpgradeState, logs: list[Log], probed: bool) -> StepResult:
    dialect = get_dialect(state.config.protocol)
    if (
        state.config.require_capability
        and probed
        and not dialect.supports_upgrade(state.capabilities)
    ):
        return _fail(
            state,
            FailureKind.NOT_SUPPORTED,
            f"Server does not advertise {dialect.upgrade_capability}",
            logs,
        )
    return _send(state, Phase.SEND_UPGRADE_COMMAND, dialect.upgrade_command, logs)


def _after_greeting(state: UpgradeState, logs: list[Log]) -> StepResult:
    dialect = get_dialect(state.config.protocol)
    if state.config.probe_capabilities or dialect.requires_probe:
        return _send_probe(state, logs)
    return _send_upgrade(state, logs, probed=False)


def _classify(state: UpgradeState, text: str) -> Verdict:
    """Classify one complete line according to the current phase."""
    config = state.config
    dialect = get_dialect(config.protocol)

    if state.phase is Phase.AWAIT_GREETING:
        if config.discard_greeting:
            if dialect.greeting_continues(text):
                return Verdict.more()
            return Verdict.accept()
        return dialect.classify_greeting(text, state.lines)

    if state.phase is Phase.AWAIT_PROBE_RESPONSE:
        return dialect.classify_probe(text, state.tag or "", state.lines)

    return dialect.classify_upgrade(text, state.tag or "", state.lines)


def _drain(state: UpgradeState, logs: list[Log]) -> StepResult:
    """
    Consume every complete line in the buffer.

    Ends when a line completes or fails the phase, or when the buffer
    holds no full line; in that case a ReadRequest becomes pending.
    """
    config = state.config

    while True:
        line, rest = split_line(state.buffer)

        if line is None:
            if len(state.buffer) > config.max_line_length:
                return _fail(
                    state,
                    FailureKind.LINE_TOO_LONG,
                    f"No line terminator within {config.max_line_length} bytes",
                    logs,
                    state.buffer[:config.max_line_length],
                )
            return (replace(state, pending=ReadRequest(config.read_chunk_size)), logs)

        if len(line) > config.max_line_length:
            return _fail(
                state,
                FailureKind.LINE_TOO_LONG,
                f"Line exceeds {config.max_line_length} bytes",
                logs,
                line[:config.max_line_length],
            )

        text = decode_line(line)
        verdict = _classify(state, text)
        state = replace(
            state,
            buffer=rest,
            lines=state.lines + 1,
            capabilities=state.capabilities | verdict.capabilities,
        )

        match verdict.kind:
            case VerdictKind.MORE:
                logs.append(Log("debug", f"[StartTls] Skip line {text!r}"))

            case VerdictKind.REJECT:
                return _fail(state, FailureKind.REJECTED, verdict.reason, logs, line)

            case VerdictKind.MALFORMED:
                return _fail(state, FailureKind.MALFORMED, verdict.reason, logs, line)

            case VerdictKind.ACCEPT:
                return _ACCEPT_HANDLERS[state.phase](state, text, logs)


# =============================================================================
# Phase-specific handlers
# =============================================================================

def _handle_start(state: UpgradeState) -> StepResult:
    """START -> await the greeting, or go straight to the commands."""
    logs = [Log("debug", f"[StartTls] Starting {state.config.protocol} negotiation")]
    if state.config.expect_greeting:
        return _drain(replace(state, phase=Phase.AWAIT_GREETING, lines=0), logs)
    return _after_greeting(state, logs)


def _handle_read(state: UpgradeState, result: ReadResult) -> StepResult:
    """AWAIT_* + ReadResult -> buffer bytes and consume complete lines."""
    # Every ReadRequest asks for read_chunk_size bytes
    max_len = state.config.read_chunk_size
    if len(result.data) > max_len:
        raise UnexpectedResultError(
            f"Read returned {len(result.data)} bytes, at most {max_len} were requested"
        )

    logs: list[Log] = []
    if not result.data:
        return _fail(
            state,
            FailureKind.CLOSED,
            f"Connection closed during {state.phase.name.lower()}",
            logs,
            state.buffer or None,
        )

    logs.append(Log("debug", f"[StartTls] Received {len(result.data)} bytes"))
    return _drain(replace(state, buffer=state.buffer + result.data, pending=None), logs)


def _handle_probe_written(state: UpgradeState, result: WriteResult) -> StepResult:
    """SEND_PROBE + WriteResult -> await the capability listing."""
    return _drain(replace(state, phase=Phase.AWAIT_PROBE_RESPONSE, pending=None, lines=0), [])


def _handle_upgrade_written(state: UpgradeState, result: WriteResult) -> StepResult:
    """SEND_UPGRADE_COMMAND + WriteResult -> await the tagged status."""
    return _drain(replace(state, phase=Phase.AWAIT_UPGRADE_RESPONSE, pending=None, lines=0), [])


def _handle_io_failure(state: UpgradeState, result: IoFailure) -> StepResult:
    """Any phase + IoFailure -> transport failure."""
    return _fail(state, FailureKind.TRANSPORT, result.reason, [])


def _accept_greeting(state: UpgradeState, text: str, logs: list[Log]) -> StepResult:
    if state.config.discard_greeting:
        logs.append(Log("debug", f"[StartTls] Discard greeting line {text!r}"))
        greeting = None
    else:
        logs.append(Log("info", f"[StartTls] Greeting: {text!r}"))
        greeting = text
    return _after_greeting(replace(state, greeting=greeting), logs)


def _accept_probe(state: UpgradeState, text: str, logs: list[Log]) -> StepResult:
    capabilities = " ".join(sorted(state.capabilities))
    logs.append(Log("info", f"[StartTls] Capabilities: {capabilities}"))
    return _send_upgrade(state, logs, probed=True)


def _accept_upgrade(state: UpgradeState, text: str, logs: list[Log]) -> StepResult:
    if state.buffer:
        return _fail(
            state,
            FailureKind.TRAILING_DATA,
            f"{len(state.buffer)} plaintext bytes received after the upgrade response",
            logs,
            state.buffer,
        )
    logs.append(Log("info", f"[StartTls] Server accepted upgrade: {text!r}"))
    return (
        replace(
            state,
            phase=Phase.SUCCEEDED,
            pending=None,
            outcome=Success(capabilities=state.capabilities, greeting=state.greeting),
        ),
        logs,
    )


# =============================================================================
# Handler dispatch tables
# =============================================================================

# (phase, result type) -> handler
_HANDLERS: dict[tuple[Phase, type], Callable[[UpgradeState, IoResult], StepResult]] = {
    (Phase.AWAIT_GREETING, ReadResult): _handle_read,
    (Phase.SEND_PROBE, WriteResult): _handle_probe_written,
    (Phase.AWAIT_PROBE_RESPONSE, ReadResult): _handle_read,
    (Phase.SEND_UPGRADE_COMMAND, WriteResult): _handle_upgrade_written,
    (Phase.AWAIT_UPGRADE_RESPONSE, ReadResult): _handle_read,
}

# Await phase -> handler for its accepting line
_ACCEPT_HANDLERS: dict[Phase, Callable[[UpgradeState, str, list[Log]], StepResult]] = {
    Phase.AWAIT_GREETING: _accept_greeting,
    Phase.AWAIT_PROBE_RESPONSE: _accept_probe,
    Phase.AWAIT_UPGRADE_RESPONSE: _accept_upgrade,
}
