"""
Scripted runtime - feeds canned bytes instead of touching a network.

Used by tests and dry runs. Each ReadRequest consumes the next script
entry (split when it exceeds max_len); an exhausted script reads as a
closed stream. A script entry that is an exception instance is raised
instead, to simulate transport failures.
"""
from __future__ import annotations

from collections import deque
from typing import Iterable

from ..protocol import IoRequest, IoResult, ReadRequest, ReadResult, WriteRequest, WriteResult


class ScriptedRuntime:
    """Blocking runtime replaying a fixed server script."""

    def __init__(self, script: Iterable[bytes | BaseException] = ()):
        self._script: deque[bytes | BaseException] = deque(script)
        self.requests: list[IoRequest] = []
        self.written: list[bytes] = []

    @property
    def remaining(self) -> int:
        """Number of script entries not consumed yet."""
        return len(self._script)

    @property
    def sent(self) -> bytes:
        """Everything written so far."""
        return b"".join(self.written)

    def execute(self, request: IoRequest) -> IoResult:
        self.requests.append(request)

        match request:
            case ReadRequest(max_len):
                if not self._script:
                    return ReadResult(b"")
                entry = self._script.popleft()
                if isinstance(entry, BaseException):
                    raise entry
                if len(entry) > max_len:
                    self._script.appendleft(entry[max_len:])
                    entry = entry[:max_len]
                return ReadResult(entry)

            case WriteRequest(data):
                self.written.append(data)
                return WriteResult()

        raise TypeError(f"Unsupported I/O request: {request!r}")


class AsyncScriptedRuntime(ScriptedRuntime):
    """Asynchronous flavour of ScriptedRuntime."""

    async def execute(self, request: IoRequest) -> IoResult:  # type: ignore[override]
        return ScriptedRuntime.execute(self, request)
