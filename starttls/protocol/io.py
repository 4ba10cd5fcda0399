"""
I/O requests and results exchanged with the STARTTLS state machine.

Requests are outputs of the machine: the caller performs them against
its own transport. Results are inputs fed back on the next resume.
None of these types reference a transport; they are plain data.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IoRequest:
    """Base class for all I/O requests."""
    pass


@dataclass(frozen=True)
class ReadRequest(IoRequest):
    """Read at most `max_len` bytes and report what was obtained."""
    max_len: int


@dataclass(frozen=True)
class WriteRequest(IoRequest):
    """Write `data` fully before resuming."""
    data: bytes


@dataclass(frozen=True)
class IoResult:
    """Base class for all I/O results."""
    pass


@dataclass(frozen=True)
class ReadResult(IoResult):
    """Bytes obtained for a ReadRequest. Empty means the peer closed."""
    data: bytes


@dataclass(frozen=True)
class WriteResult(IoResult):
    """Acknowledges that a WriteRequest was written completely."""
    pass


@dataclass(frozen=True)
class IoFailure(IoResult):
    """The runtime could not perform the pending request."""
    reason: str
