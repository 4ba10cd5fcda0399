"""
STARTTLS Protocol - Pure functional state machine.

This module contains the negotiation logic separated from I/O concerns.
StartTlsProtocol.step() is the core: it takes state and the result of
the previous I/O request, returns the new state (holding the next
request or the outcome) and log messages.
"""
from .io import (
    IoRequest,
    ReadRequest,
    WriteRequest,
    IoResult,
    ReadResult,
    WriteResult,
    IoFailure,
)
from .state import (
    Phase,
    FailureKind,
    Outcome,
    Success,
    Failure,
    UpgradeConfig,
    UpgradeState,
)
from .grammar import (
    Dialect,
    ImapDialect,
    Pop3Dialect,
    SmtpDialect,
    Verdict,
    VerdictKind,
    get_dialect,
    register_dialect,
    split_line,
)
from .machine import Log, StartTlsProtocol

__all__ = [
    # Requests
    "IoRequest",
    "ReadRequest",
    "WriteRequest",
    # Results
    "IoResult",
    "ReadResult",
    "WriteResult",
    "IoFailure",
    # State
    "Phase",
    "FailureKind",
    "Outcome",
    "Success",
    "Failure",
    "UpgradeConfig",
    "UpgradeState",
    # Grammar
    "Dialect",
    "ImapDialect",
    "Pop3Dialect",
    "SmtpDialect",
    "Verdict",
    "VerdictKind",
    "get_dialect",
    "register_dialect",
    "split_line",
    # Protocol
    "Log",
    "StartTlsProtocol",
]
