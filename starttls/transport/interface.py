"""
Runtime interface - executes I/O requests against a concrete transport.

The runtime is the only component touching the transport. It performs
exactly the request it is given and returns the matching result:
    ReadRequest(max_len) -> ReadResult(at most max_len bytes, b"" on EOF)
    WriteRequest(data)   -> WriteResult() once data is fully written

Transport errors (reset, timeout, OS error) are raised as OSError and
left to the driving loop.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..protocol import IoRequest, IoResult


@runtime_checkable
class IRuntime(Protocol):
    """Blocking runtime interface."""

    def execute(self, request: IoRequest) -> IoResult:
        """Perform `request` and return its result."""
        ...


@runtime_checkable
class IAsyncRuntime(Protocol):
    """Asynchronous runtime interface."""

    async def execute(self, request: IoRequest) -> IoResult:
        """Perform `request` and return its result."""
        ...
