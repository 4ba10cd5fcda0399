"""Blocking runtime over a socket-like object."""
from __future__ import annotations

import logging
from typing import Protocol

from ..protocol import IoRequest, IoResult, ReadRequest, ReadResult, WriteRequest, WriteResult

logger = logging.getLogger(__name__)


class SocketLike(Protocol):
    def recv(self, bufsize: int) -> bytes: ...

    def sendall(self, data: bytes) -> None: ...


class SocketRuntime:
    """
    Executes requests with recv() / sendall().

    Works with socket.socket, ssl.SSLSocket or anything exposing the
    same two methods. The socket is borrowed: the runtime never closes it.
    """

    def __init__(self, sock: SocketLike):
        self._sock = sock

    def execute(self, request: IoRequest) -> IoResult:
        match request:
            case ReadRequest(max_len):
                data = self._sock.recv(max_len)
                logger.debug(f"[SocketRuntime] Read {len(data)} bytes")
                return ReadResult(data)

            case WriteRequest(data):
                self._sock.sendall(data)
                logger.debug(f"[SocketRuntime] Wrote {len(data)} bytes")
                return WriteResult()

        raise TypeError(f"Unsupported I/O request: {request!r}")
