"""
Line grammar for STARTTLS-capable protocols.

The state machine is shared by every protocol; what differs is how
lines are recognized and classified, and which commands are sent.
That part lives in a Dialect. IMAP, POP3 and SMTP dialects are
registered by default.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable


LINE_TERMINATOR = b"\n"


def split_line(buffer: bytes) -> tuple[bytes | None, bytes]:
    """
    Split the first complete line off `buffer`.

    Returns (line, rest). The line has its LF and any preceding CR
    removed. When no terminator is present, line is None and rest is
    the untouched buffer.
    """
    index = buffer.find(LINE_TERMINATOR)
    if index < 0:
        return None, buffer
    line = buffer[:index]
    if line.endswith(b"\r"):
        line = line[:-1]
    return line, buffer[index + 1:]


def decode_line(line: bytes) -> str:
    """Decode a response line for classification and diagnostics."""
    return line.decode("utf-8", errors="replace")


class VerdictKind(Enum):
    """How a single response line affects the current phase."""

    MORE = auto()       # Keep reading lines in this phase
    ACCEPT = auto()     # Phase completed successfully
    REJECT = auto()     # Server declined
    MALFORMED = auto()  # Protocol violation


@dataclass(frozen=True)
class Verdict:
    """Classification of one response line."""
    kind: VerdictKind
    reason: str = ""
    capabilities: frozenset[str] = frozenset()

    @classmethod
    def more(cls, capabilities: Iterable[str] = ()) -> Verdict:
        return cls(VerdictKind.MORE, capabilities=_caps(capabilities))

    @classmethod
    def accept(cls, capabilities: Iterable[str] = ()) -> Verdict:
        return cls(VerdictKind.ACCEPT, capabilities=_caps(capabilities))

    @classmethod
    def reject(cls, reason: str) -> Verdict:
        return cls(VerdictKind.REJECT, reason=reason)

    @classmethod
    def malformed(cls, reason: str) -> Verdict:
        return cls(VerdictKind.MALFORMED, reason=reason)


def _caps(names: Iterable[str]) -> frozenset[str]:
    return frozenset(name.upper() for name in names if name)


class Dialect(ABC):
    """
    Protocol-specific grammar plugged into the state machine.

    `index` arguments count the lines already consumed in the current
    phase, so multi-line replies can tell their first line apart.
    """

    name: str = ""

    # Capability a server advertises when it accepts the upgrade command
    upgrade_capability: str = "STARTTLS"

    # Whether the capability probe is mandatory before upgrading
    requires_probe: bool = False

    # Whether commands carry a tag echoed in the final response
    uses_tags: bool = False

    def greeting_continues(self, line: str) -> bool:
        """Syntactic check used when the greeting is discarded unread."""
        return False

    def supports_upgrade(self, capabilities: frozenset[str]) -> bool:
        return self.upgrade_capability in capabilities

    @abstractmethod
    def classify_greeting(self, line: str, index: int) -> Verdict:
        ...

    @abstractmethod
    def probe_command(self, tag: str, client_name: str) -> bytes:
        ...

    @abstractmethod
    def classify_probe(self, line: str, tag: str, index: int) -> Verdict:
        ...

    @abstractmethod
    def upgrade_command(self, tag: str) -> bytes:
        ...

    @abstractmethod
    def classify_upgrade(self, line: str, tag: str, index: int) -> Verdict:
        ...

    def noop_command(self, tag: str) -> bytes:
        """Keep-alive command, used to check the secured stream."""
        return b"NOOP\r\n"


# =============================================================================
# IMAP (RFC 3501 / RFC 9051)
# =============================================================================

_IMAP_CAPABILITY_CODE = re.compile(r"\[CAPABILITY ([^\]]*)\]", re.IGNORECASE)


def _imap_code_capabilities(text: str) -> list[str]:
    match = _IMAP_CAPABILITY_CODE.search(text)
    return match.group(1).split() if match else []


class ImapDialect(Dialect):
    """`* OK` greeting, `<tag> STARTTLS`, `<tag> OK|NO|BAD` status."""

    name = "imap"
    upgrade_capability = "STARTTLS"
    uses_tags = True

    def classify_greeting(self, line: str, index: int) -> Verdict:
        if not line.startswith("* "):
            return Verdict.malformed("greeting is not an untagged response")
        status, _, text = line[2:].partition(" ")
        status = status.upper()
        if status == "OK":
            return Verdict.accept(_imap_code_capabilities(text))
        if status == "PREAUTH":
            return Verdict.reject("server greeted with PREAUTH; STARTTLS is only valid before authentication")
        if status == "BYE":
            return Verdict.reject(f"server closed the session: {text}")
        return Verdict.malformed(f"unexpected greeting status {status!r}")

    def probe_command(self, tag: str, client_name: str) -> bytes:
        return f"{tag} CAPABILITY\r\n".encode("ascii")

    def classify_probe(self, line: str, tag: str, index: int) -> Verdict:
        return self._classify_tagged(line, tag)

    def upgrade_command(self, tag: str) -> bytes:
        return f"{tag} STARTTLS\r\n".encode("ascii")

    def noop_command(self, tag: str) -> bytes:
        return f"{tag} NOOP\r\n".encode("ascii")

    def classify_upgrade(self, line: str, tag: str, index: int) -> Verdict:
        return self._classify_tagged(line, tag)

    def _classify_tagged(self, line: str, tag: str) -> Verdict:
        if line.startswith("* "):
            kind, _, text = line[2:].partition(" ")
            kind = kind.upper()
            if kind == "BYE":
                return Verdict.reject(f"server closed the session: {text}")
            if kind == "CAPABILITY":
                return Verdict.more(text.split())
            # Other untagged data is allowed before the tagged status
            return Verdict.more()
        if line.startswith("+"):
            return Verdict.malformed("unexpected continuation request")

        parts = line.split(" ", 2)
        if len(parts) < 2:
            return Verdict.malformed("incomplete status line")
        got, status = parts[0], parts[1].upper()
        text = parts[2] if len(parts) > 2 else ""
        if got != tag:
            return Verdict.malformed(f"unexpected tag {got!r} (expected {tag!r})")
        if status == "OK":
            return Verdict.accept(_imap_code_capabilities(text))
        if status in ("NO", "BAD"):
            return Verdict.reject(f"{status} {text}".rstrip())
        return Verdict.malformed(f"unexpected status {status!r}")


# =============================================================================
# POP3 (RFC 1939 / RFC 2449 / RFC 2595)
# =============================================================================

def _pop3_status(line: str) -> str | None:
    for status in ("+OK", "-ERR"):
        if line == status or line.startswith(status + " "):
            return status
    return None


class Pop3Dialect(Dialect):
    """`+OK` greeting, `STLS`, `+OK|-ERR` status. Probe with CAPA."""

    name = "pop3"
    upgrade_capability = "STLS"

    def classify_greeting(self, line: str, index: int) -> Verdict:
        return self._classify_status(line)

    def probe_command(self, tag: str, client_name: str) -> bytes:
        return b"CAPA\r\n"

    def classify_probe(self, line: str, tag: str, index: int) -> Verdict:
        if index == 0:
            verdict = self._classify_status(line)
            if verdict.kind is VerdictKind.ACCEPT:
                # Status line only opens the capability listing
                return Verdict.more()
            return verdict
        if line == ".":
            return Verdict.accept()
        if line.startswith("."):
            line = line[1:]
        return Verdict.more(line.split()[:1])

    def upgrade_command(self, tag: str) -> bytes:
        return b"STLS\r\n"

    def classify_upgrade(self, line: str, tag: str, index: int) -> Verdict:
        return self._classify_status(line)

    def _classify_status(self, line: str) -> Verdict:
        status = _pop3_status(line)
        if status == "+OK":
            return Verdict.accept()
        if status == "-ERR":
            return Verdict.reject(line)
        return Verdict.malformed("expected +OK or -ERR")


# =============================================================================
# SMTP (RFC 5321 / RFC 3207)
# =============================================================================

_SMTP_REPLY = re.compile(r"^([2-5][0-9][0-9])([ -]|$)(.*)$")


class SmtpDialect(Dialect):
    """`220` greeting, `EHLO` probe, `STARTTLS`, `220` go-ahead."""

    name = "smtp"
    upgrade_capability = "STARTTLS"
    requires_probe = True

    def greeting_continues(self, line: str) -> bool:
        return len(line) > 3 and line[:3].isdigit() and line[3] == "-"

    def classify_greeting(self, line: str, index: int) -> Verdict:
        return self._classify_reply(line, "220")

    def probe_command(self, tag: str, client_name: str) -> bytes:
        return f"EHLO {client_name}\r\n".encode("ascii")

    def classify_probe(self, line: str, tag: str, index: int) -> Verdict:
        verdict = self._classify_reply(line, "250")
        if index == 0 or verdict.kind not in (VerdictKind.MORE, VerdictKind.ACCEPT):
            # First line of the EHLO reply carries the server domain
            return verdict
        keyword = line[4:].split()[:1]
        return Verdict(verdict.kind, capabilities=_caps(keyword))

    def upgrade_command(self, tag: str) -> bytes:
        return b"STARTTLS\r\n"

    def classify_upgrade(self, line: str, tag: str, index: int) -> Verdict:
        return self._classify_reply(line, "220")

    def _classify_reply(self, line: str, expected: str) -> Verdict:
        match = _SMTP_REPLY.match(line)
        if match is None:
            return Verdict.malformed("not an SMTP reply line")
        code, separator, _ = match.groups()
        if code != expected:
            return Verdict.reject(line)
        if separator == "-":
            return Verdict.more()
        return Verdict.accept()


# =============================================================================
# Registry
# =============================================================================

_DIALECTS: dict[str, Dialect] = {}


def register_dialect(dialect: Dialect) -> None:
    """Make a dialect available by name to UpgradeConfig.protocol."""
    if not dialect.name:
        raise ValueError("Dialect must have a name")
    _DIALECTS[dialect.name.lower()] = dialect


def get_dialect(name: str) -> Dialect:
    """Look up a registered dialect. Raises KeyError for unknown names."""
    return _DIALECTS[name.lower()]


for _dialect in (ImapDialect(), Pop3Dialect(), SmtpDialect()):
    register_dialect(_dialect)
