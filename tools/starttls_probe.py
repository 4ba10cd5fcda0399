"""
Connect to a server, negotiate STARTTLS and send one command over TLS.

Usage:
    python tools/starttls_probe.py <config.yaml>
    python tools/starttls_probe.py <host> <port> [imap|pop3|smtp]

Add --async to drive the negotiation with asyncio instead of a
blocking socket.
"""
import asyncio
import logging
import sys
from pathlib import Path

from starttls.config import ConnectionSettings, Settings, load_config
from starttls.errors import StartTlsError
from starttls.protocol import UpgradeConfig, get_dialect
from starttls.tls import connect, open_connection

# Tag for the command sent once TLS is up
_NOOP_TAG = "A"


def noop_command(upgrade: UpgradeConfig) -> bytes:
    return get_dialect(upgrade.protocol).noop_command(_NOOP_TAG)


def parse_args(args):
    use_async = "--async" in args
    args = [a for a in args if a != "--async"]

    if len(args) == 1 and Path(args[0]).suffix in (".yaml", ".yml"):
        return load_config(args[0]), use_async

    if len(args) not in (2, 3):
        print(__doc__)
        sys.exit(2)

    protocol = args[2] if len(args) == 3 else "imap"
    upgrade = UpgradeConfig(protocol=protocol, discard_greeting=True)
    connection = ConnectionSettings(host=args[0], port=int(args[1]))
    return Settings(connection=connection, upgrade=upgrade), use_async


def run_blocking(settings: Settings) -> bytes:
    conn = settings.connection
    with connect(
        conn.host,
        conn.port,
        settings.upgrade,
        timeout=conn.timeout,
        server_hostname=conn.tls_hostname,
    ) as tls:
        tls.sendall(noop_command(settings.upgrade))
        return tls.recv(1024)


async def run_async(settings: Settings) -> bytes:
    conn = settings.connection
    reader, writer = await open_connection(
        conn.host,
        conn.port,
        settings.upgrade,
        server_hostname=conn.tls_hostname,
    )
    try:
        writer.write(noop_command(settings.upgrade))
        await writer.drain()
        return await reader.read(1024)
    finally:
        writer.close()
        await writer.wait_closed()


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    settings, use_async = parse_args(sys.argv[1:])

    try:
        if use_async:
            response = asyncio.run(run_async(settings))
        else:
            response = run_blocking(settings)
    except (StartTlsError, OSError) as e:
        print(f"Upgrade failed: {e}")
        sys.exit(1)

    print(f"Response via TLS: {response!r}")


if __name__ == "__main__":
    main()
