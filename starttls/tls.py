"""
TLS boundary - hand the negotiated transport to the ssl module.

The coroutine only negotiates. Once it reports success these helpers
perform the actual TLS handshake with the standard library, either on a
blocking socket or on an asyncio stream.
"""
from __future__ import annotations

import asyncio
import logging
import socket
import ssl

from .coroutine import UpgradeTls
from .engine import drive, drive_async
from .protocol import UpgradeConfig
from .transport import SocketRuntime, StreamRuntime

logger = logging.getLogger(__name__)


def upgrade_socket(
    sock: socket.socket,
    server_hostname: str,
    config: UpgradeConfig | None = None,
    context: ssl.SSLContext | None = None,
) -> ssl.SSLSocket:
    """
    Negotiate STARTTLS on `sock`, then wrap it in TLS.

    Raises NegotiationError when the server does not agree to upgrade.
    The caller keeps ownership of `sock` in that case.
    """
    drive(UpgradeTls(config), SocketRuntime(sock), check=True)

    context = context or ssl.create_default_context()
    logger.info(f"Upgrading connection to {server_hostname} to TLS")
    return context.wrap_socket(sock, server_hostname=server_hostname)


def connect(
    host: str,
    port: int,
    config: UpgradeConfig | None = None,
    context: ssl.SSLContext | None = None,
    timeout: float | None = None,
    server_hostname: str | None = None,
) -> ssl.SSLSocket:
    """Open a TCP connection and upgrade it. The socket is closed on failure."""
    sock = socket.create_connection((host, port), timeout=timeout)
    try:
        return upgrade_socket(sock, server_hostname or host, config, context)
    except BaseException:
        sock.close()
        raise


async def upgrade_stream(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    server_hostname: str,
    config: UpgradeConfig | None = None,
    context: ssl.SSLContext | None = None,
) -> None:
    """
    Negotiate STARTTLS on an asyncio stream, then start TLS in place.

    Raises NegotiationError when the server does not agree to upgrade.
    """
    await drive_async(UpgradeTls(config), StreamRuntime(reader, writer), check=True)

    context = context or ssl.create_default_context()
    logger.info(f"Upgrading stream to {server_hostname} to TLS")
    await writer.start_tls(context, server_hostname=server_hostname)


async def open_connection(
    host: str,
    port: int,
    config: UpgradeConfig | None = None,
    context: ssl.SSLContext | None = None,
    server_hostname: str | None = None,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """asyncio counterpart of connect(). The writer is closed on failure."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        await upgrade_stream(reader, writer, server_hostname or host, config, context)
    except BaseException:
        writer.close()
        await writer.wait_closed()
        raise
    return reader, writer
