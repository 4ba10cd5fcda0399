"""Tests for line buffering and the protocol dialects."""
import pytest

from starttls import ConfigError, UpgradeConfig
from starttls.protocol import (
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


class TestSplitLine:
    """split_line() extracts one complete line."""

    def test_crlf(self):
        assert split_line(b"* OK ready\r\nrest") == (b"* OK ready", b"rest")

    def test_lf_only(self):
        assert split_line(b"* OK ready\nrest") == (b"* OK ready", b"rest")

    def test_no_terminator(self):
        assert split_line(b"* OK rea") == (None, b"* OK rea")

    def test_empty(self):
        assert split_line(b"") == (None, b"")

    def test_empty_line(self):
        assert split_line(b"\r\n") == (b"", b"")

    def test_only_first_line(self):
        """Later lines stay in the remainder."""
        line, rest = split_line(b"one\r\ntwo\r\n")
        assert line == b"one"
        assert rest == b"two\r\n"

    def test_lone_cr_is_not_a_terminator(self):
        assert split_line(b"one\rtwo") == (None, b"one\rtwo")


class TestVerdict:
    """Verdict constructors."""

    def test_capabilities_are_upper_cased(self):
        verdict = Verdict.more(["imap4rev1", "StartTLS", ""])
        assert verdict.kind == VerdictKind.MORE
        assert verdict.capabilities == frozenset({"IMAP4REV1", "STARTTLS"})

    def test_reject_keeps_reason(self):
        verdict = Verdict.reject("NO thanks")
        assert verdict.kind == VerdictKind.REJECT
        assert verdict.reason == "NO thanks"


class TestImapDialect:
    """IMAP grammar."""

    dialect = ImapDialect()

    def test_commands(self):
        assert self.dialect.upgrade_command("a1") == b"a1 STARTTLS\r\n"
        assert self.dialect.probe_command("a7", "localhost") == b"a7 CAPABILITY\r\n"

    @pytest.mark.parametrize("line, kind", [
        ("* OK IMAP4rev1 Service Ready", VerdictKind.ACCEPT),
        ("* ok lower case", VerdictKind.ACCEPT),
        ("* PREAUTH welcome", VerdictKind.REJECT),
        ("* BYE", VerdictKind.REJECT),
        ("* NO huh", VerdictKind.MALFORMED),
        ("OK missing star", VerdictKind.MALFORMED),
        ("", VerdictKind.MALFORMED),
    ])
    def test_greeting(self, line, kind):
        assert self.dialect.classify_greeting(line, 0).kind == kind

    def test_greeting_capability_code(self):
        verdict = self.dialect.classify_greeting("* OK [CAPABILITY IMAP4rev1 STARTTLS] hi", 0)
        assert verdict.capabilities == frozenset({"IMAP4REV1", "STARTTLS"})

    @pytest.mark.parametrize("line, kind", [
        ("a1 OK done", VerdictKind.ACCEPT),
        ("a1 NO nope", VerdictKind.REJECT),
        ("a1 BAD syntax", VerdictKind.REJECT),
        ("* CAPABILITY IMAP4rev1", VerdictKind.MORE),
        ("* 3 EXISTS", VerdictKind.MORE),
        ("* BYE", VerdictKind.REJECT),
        ("b1 OK done", VerdictKind.MALFORMED),
        ("a1", VerdictKind.MALFORMED),
        ("+ ready", VerdictKind.MALFORMED),
    ])
    def test_tagged_response(self, line, kind):
        assert self.dialect.classify_upgrade(line, "a1", 0).kind == kind

    def test_tag_is_case_sensitive(self):
        assert self.dialect.classify_upgrade("A1 OK done", "a1", 0).kind == VerdictKind.MALFORMED


class TestPop3Dialect:
    """POP3 grammar."""

    dialect = Pop3Dialect()

    def test_commands(self):
        assert self.dialect.upgrade_command("a1") == b"STLS\r\n"
        assert self.dialect.probe_command("a1", "localhost") == b"CAPA\r\n"
        assert self.dialect.upgrade_capability == "STLS"

    @pytest.mark.parametrize("line, kind", [
        ("+OK POP3 server ready", VerdictKind.ACCEPT),
        ("+OK", VerdictKind.ACCEPT),
        ("-ERR go away", VerdictKind.REJECT),
        ("+OKAY", VerdictKind.MALFORMED),
        ("* OK", VerdictKind.MALFORMED),
    ])
    def test_status(self, line, kind):
        assert self.dialect.classify_greeting(line, 0).kind == kind
        assert self.dialect.classify_upgrade(line, "", 0).kind == kind

    def test_capa_listing(self):
        """Status line opens, lines list capabilities, dot closes."""
        assert self.dialect.classify_probe("+OK list follows", "", 0).kind == VerdictKind.MORE
        verdict = self.dialect.classify_probe("SASL PLAIN LOGIN", "", 1)
        assert verdict.kind == VerdictKind.MORE
        assert verdict.capabilities == frozenset({"SASL"})
        assert self.dialect.classify_probe(".", "", 2).kind == VerdictKind.ACCEPT

    def test_capa_dot_stuffing(self):
        verdict = self.dialect.classify_probe("..X-DOTTED", "", 1)
        assert verdict.capabilities == frozenset({".X-DOTTED"})

    def test_capa_error(self):
        assert self.dialect.classify_probe("-ERR no CAPA", "", 0).kind == VerdictKind.REJECT


class TestSmtpDialect:
    """SMTP grammar."""

    dialect = SmtpDialect()

    def test_commands(self):
        assert self.dialect.upgrade_command("a1") == b"STARTTLS\r\n"
        assert self.dialect.probe_command("a1", "client.example.org") == b"EHLO client.example.org\r\n"
        assert self.dialect.requires_probe

    @pytest.mark.parametrize("line, kind", [
        ("220 mail.example.com ESMTP", VerdictKind.ACCEPT),
        ("220", VerdictKind.ACCEPT),
        ("220-first of many", VerdictKind.MORE),
        ("554 no service", VerdictKind.REJECT),
        ("421-busy", VerdictKind.REJECT),
        ("22 short", VerdictKind.MALFORMED),
        ("hello", VerdictKind.MALFORMED),
        ("220x", VerdictKind.MALFORMED),
    ])
    def test_greeting(self, line, kind):
        assert self.dialect.classify_greeting(line, 0).kind == kind

    def test_greeting_continues(self):
        assert self.dialect.greeting_continues("220-more")
        assert self.dialect.greeting_continues("554-more")
        assert not self.dialect.greeting_continues("220 done")
        assert not self.dialect.greeting_continues("garbage")

    def test_ehlo_reply(self):
        """The first line is the server domain, later ones are keywords."""
        first = self.dialect.classify_probe("250-mail.example.com Hello", "", 0)
        assert first.kind == VerdictKind.MORE
        assert first.capabilities == frozenset()

        middle = self.dialect.classify_probe("250-STARTTLS", "", 1)
        assert middle.kind == VerdictKind.MORE
        assert middle.capabilities == frozenset({"STARTTLS"})

        last = self.dialect.classify_probe("250 SIZE 35882577", "", 2)
        assert last.kind == VerdictKind.ACCEPT
        assert last.capabilities == frozenset({"SIZE"})

    def test_ehlo_rejected(self):
        assert self.dialect.classify_probe("502 not implemented", "", 0).kind == VerdictKind.REJECT

    @pytest.mark.parametrize("line, kind", [
        ("220 2.0.0 Ready to start TLS", VerdictKind.ACCEPT),
        ("454 4.7.0 TLS not available", VerdictKind.REJECT),
        ("501 syntax error", VerdictKind.REJECT),
    ])
    def test_upgrade_reply(self, line, kind):
        assert self.dialect.classify_upgrade(line, "", 0).kind == kind


class _LmtpDialect(SmtpDialect):
    name = "lmtp-test"


class TestRegistry:
    """Dialect lookup by name."""

    def test_builtin_dialects(self):
        assert isinstance(get_dialect("imap"), ImapDialect)
        assert isinstance(get_dialect("pop3"), Pop3Dialect)
        assert isinstance(get_dialect("smtp"), SmtpDialect)

    def test_lookup_is_case_insensitive(self):
        assert get_dialect("IMAP") is get_dialect("imap")

    def test_unknown_dialect(self):
        with pytest.raises(KeyError):
            get_dialect("nntp")

    def test_register_dialect(self):
        """A registered dialect becomes a valid protocol name."""
        register_dialect(_LmtpDialect())
        assert UpgradeConfig(protocol="lmtp-test").protocol == "lmtp-test"

    def test_register_requires_name(self):
        class Nameless(ImapDialect):
            name = ""

        with pytest.raises(ValueError):
            register_dialect(Nameless())

    def test_dialect_is_abstract(self):
        with pytest.raises(TypeError):
            Dialect()  # type: ignore[abstract]


class TestNoopCommand:
    """Keep-alive command sent once TLS is up."""

    @pytest.mark.parametrize("protocol, command", [
        ("imap", b"A NOOP\r\n"),
        ("pop3", b"NOOP\r\n"),
        ("smtp", b"NOOP\r\n"),
    ])
    def test_builtin_dialects(self, protocol, command):
        assert get_dialect(protocol).noop_command("A") == command

    def test_imap_uses_tag(self):
        assert ImapDialect().noop_command("x9") == b"x9 NOOP\r\n"

    def test_registered_dialect_default(self):
        """A dialect that does not override it sends a plain NOOP."""
        register_dialect(_LmtpDialect())
        assert get_dialect("LMTP-TEST").noop_command("A") == b"NOOP\r\n"

    def test_command_line_tool_follows_dialect(self):
        """Protocol names resolve through the registry, in any case."""
        from tools.starttls_probe import noop_command

        register_dialect(_LmtpDialect())
        assert noop_command(UpgradeConfig(protocol="IMAP")) == b"A NOOP\r\n"
        assert noop_command(UpgradeConfig(protocol="lmtp-test")) == b"NOOP\r\n"


class TestUpgradeConfig:
    """Configuration validation."""

    def test_defaults(self):
        config = UpgradeConfig()
        assert config.protocol == "imap"
        assert config.discard_greeting is False
        assert config.expect_greeting is True
        assert config.probe_capabilities is False
        assert config.tag_prefix == "a"

    @pytest.mark.parametrize("kwargs", [
        {"protocol": "nntp"},
        {"tag_prefix": ""},
        {"tag_prefix": "a b"},
        {"tag_prefix": "+"},
        {"client_name": ""},
        {"client_name": "two words"},
        {"read_chunk_size": 0},
        {"max_line_length": -1},
        {"read_chunk_size": "10"},
        {"max_line_length": 8192.0},
        {"read_chunk_size": True},
        {"discard_greeting": "false"},
        {"require_capability": 1},
        {"protocol": None},
        {"tag_prefix": 7},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigError):
            UpgradeConfig(**kwargs)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            UpgradeConfig(protocol="nntp")

    def test_frozen(self):
        config = UpgradeConfig()
        with pytest.raises(AttributeError):
            config.discard_greeting = True  # type: ignore[misc]
