"""asyncio runtime over a StreamReader / StreamWriter pair."""
from __future__ import annotations

import asyncio
import logging

from ..protocol import IoRequest, IoResult, ReadRequest, ReadResult, WriteRequest, WriteResult

logger = logging.getLogger(__name__)


class StreamRuntime:
    """
    Executes requests with StreamReader.read() / StreamWriter.write().

    The streams are borrowed: the runtime never closes them.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer

    async def execute(self, request: IoRequest) -> IoResult:
        match request:
            case ReadRequest(max_len):
                data = await self._reader.read(max_len)
                logger.debug(f"[StreamRuntime] Read {len(data)} bytes")
                return ReadResult(data)

            case WriteRequest(data):
                self._writer.write(data)
                await self._writer.drain()
                logger.debug(f"[StreamRuntime] Wrote {len(data)} bytes")
                return WriteResult()

        raise TypeError(f"Unsupported I/O request: {request!r}")
