"""Shared helpers for driving coroutines by hand in tests."""
from starttls import IoRequest, ReadRequest, ReadResult, UpgradeTls, WriteRequest, WriteResult


IMAP_GREETING = b"* OK IMAP4rev1 Service Ready\r\n"
IMAP_STARTTLS = b"a1 STARTTLS\r\n"
IMAP_OK = b"a1 OK Begin TLS negotiation now\r\n"


def run_script(coroutine: UpgradeTls, chunks):
    """
    Drive `coroutine` by hand, answering reads from `chunks` in order.

    Asserts that exactly one request is pending before every resume and
    that no chunk exceeds the requested size. Returns (outcome, writes).
    """
    chunks = list(chunks)
    writes = []
    step = coroutine.resume(None)

    while isinstance(step, IoRequest):
        assert coroutine.pending is step
        if isinstance(step, ReadRequest):
            data = chunks.pop(0) if chunks else b""
            assert len(data) <= step.max_len
            step = coroutine.resume(ReadResult(data))
        else:
            assert isinstance(step, WriteRequest)
            writes.append(step.data)
            step = coroutine.resume(WriteResult())

    assert coroutine.pending is None
    return step, writes


def fragment(data: bytes, sizes):
    """Split `data` into consecutive chunks of the given sizes (rest last)."""
    out = []
    pos = 0
    for size in sizes:
        out.append(data[pos:pos + size])
        pos += size
    if pos < len(data):
        out.append(data[pos:])
    return [c for c in out if c]
