"""Tests for FETCH response parsing and conversion into messages."""

from datetime import datetime, timedelta, timezone

import pytest

from quill.core import (
    Address,
    AddressParseError,
    BinaryPart,
    FetchConversionError,
    HeaderDecodeError,
    Message,
    MessageFlags,
    TextHtmlPart,
    TextPlainPart,
)
from quill.imap import (
    Fetch,
    FetchAddress,
    FetchEnvelope,
    FetchParseError,
    parse_fetch_response,
    parse_internal_date,
)

ENVELOPE = (
    b'ENVELOPE ("Mon, 15 Jan 2024 10:30:00 +0100" "=?utf-8?q?Caf=C3=A9?= plans" '
    b'(("Alice" NIL "alice" "x.com")) (("Alice" NIL "alice" "x.com")) NIL '
    b'((NIL NIL "bob" "x.com")) ((NIL NIL "carol" "x.com")(NIL NIL "dave" "x.com")) NIL '
    b'"<parent@x.com>" "<msg-1@x.com>")'
)


def _response(body: bytes) -> list:
    """Lines as returned by aioimaplib for a FETCH with a body literal."""
    return [
        b'3 FETCH (FLAGS (\\Seen \\Answered) INTERNALDATE "15-Jan-2024 10:30:00 +0100" '
        + ENVELOPE
        + b" BODY[] {"
        + str(len(body)).encode()
        + b"}",
        bytearray(body),
        b")",
        b"FETCH completed.",
    ]


class TestParseFetchResponse:
    """Tests for parse_fetch_response."""

    def test_full_response(self, raw_email):
        """Flags, date, envelope and body literal are extracted."""
        [fetch] = parse_fetch_response(_response(raw_email))

        assert fetch.message == 3
        assert fetch.flags == ["\\Seen", "\\Answered"]
        assert fetch.internal_date == datetime(2024, 1, 15, 10, 30, tzinfo=timezone(timedelta(hours=1)))
        assert fetch.body == raw_email

        envelope = fetch.envelope
        assert envelope.subject == b"=?utf-8?q?Caf=C3=A9?= plans"
        assert envelope.from_ == [FetchAddress(name=b"Alice", mailbox=b"alice", host=b"x.com")]
        assert envelope.reply_to is None
        assert envelope.to == [FetchAddress(mailbox=b"bob", host=b"x.com")]
        assert [a.mailbox for a in envelope.cc] == [b"carol", b"dave"]
        assert envelope.bcc is None
        assert envelope.in_reply_to == b"<parent@x.com>"
        assert envelope.message_id == b"<msg-1@x.com>"

    def test_several_messages(self):
        """Each "N FETCH" response gives one result, in order."""
        lines = [
            b"1 FETCH (UID 10 FLAGS ())",
            b"2 FETCH (UID 11 FLAGS (\\Flagged))",
            b"FETCH completed.",
        ]
        fetches = parse_fetch_response(lines)

        assert [(f.message, f.uid, f.flags) for f in fetches] == [
            (1, 10, []),
            (2, 11, ["\\Flagged"]),
        ]

    def test_literal_inside_envelope(self):
        """Envelope strings may be sent as literals too."""
        lines = [
            b'5 FETCH (ENVELOPE (NIL {11}',
            bytearray(b'Hello (you)'),
            b" NIL NIL NIL NIL NIL NIL NIL NIL))",
        ]
        [fetch] = parse_fetch_response(lines)

        assert fetch.envelope.subject == b"Hello (you)"
        assert fetch.envelope.from_ is None

    def test_quoted_escapes(self):
        """Backslash escapes in quoted strings are resolved."""
        lines = [b'1 FETCH (ENVELOPE (NIL "say \\"hi\\" \\\\o/" NIL NIL NIL NIL NIL NIL NIL NIL))']

        assert parse_fetch_response(lines)[0].envelope.subject == b'say "hi" \\o/'

    def test_truncated_response(self):
        """A response cut in the middle is an error."""
        with pytest.raises(FetchParseError):
            parse_fetch_response([b"1 FETCH (FLAGS (\\Seen)"])

    def test_bad_envelope(self):
        """An envelope without its ten fields is an error."""
        with pytest.raises(FetchParseError):
            parse_fetch_response([b'1 FETCH (ENVELOPE ("date" "subject"))'])

    def test_status_lines_skipped(self):
        """Lines that are not FETCH responses are ignored."""
        assert parse_fetch_response([b"FETCH completed.", "Success"]) == []


class TestParseInternalDate:
    """Tests for parse_internal_date."""

    def test_space_padded_day(self):
        """Single-digit days may be padded with a space."""
        assert parse_internal_date(" 7-Jul-1996 02:44:25 -0700") == datetime(
            1996, 7, 7, 2, 44, 25, tzinfo=timezone(timedelta(hours=-7))
        )

    def test_invalid(self):
        """Unparsable dates are dropped."""
        assert parse_internal_date(b"yesterday") is None
        assert parse_internal_date(None) is None


class TestFromFetch:
    """Tests for Message.from_fetch."""

    def test_full_conversion(self, sample_account, raw_email):
        """Envelope, flags, date and body parts are converted."""
        [fetch] = parse_fetch_response(_response(raw_email))
        msg = Message.from_fetch(sample_account, fetch)

        assert msg.id == 3
        assert msg.flags == MessageFlags.SEEN | MessageFlags.ANSWERED
        assert msg.subject == "Café plans"
        assert msg.from_ == [Address("alice@x.com", "Alice")]
        assert msg.reply_to is None
        assert msg.to == [Address("bob@x.com")]
        assert msg.cc == [Address("carol@x.com"), Address("dave@x.com")]
        assert msg.bcc is None
        assert msg.in_reply_to == "<parent@x.com>"
        assert msg.message_id == "<msg-1@x.com>"
        assert msg.date == fetch.internal_date
        assert [type(p) for p in msg.parts] == [TextPlainPart, TextHtmlPart, BinaryPart]
        assert msg.fold_plain_text().strip() == "Plain body"

    def test_sender_preferred_over_from(self, sample_account):
        """The envelope sender is used as From when present."""
        fetch = Fetch(
            message=1,
            envelope=FetchEnvelope(
                from_=[FetchAddress(mailbox=b"alice", host=b"x.com")],
                sender=[FetchAddress(mailbox=b"list", host=b"x.com")],
            ),
            body=b"Subject: x\r\n\r\nbody",
        )

        assert Message.from_fetch(sample_account, fetch).from_ == [Address("list@x.com")]

    def test_absent_subject_is_empty(self, sample_account):
        """A NIL subject becomes ""."""
        fetch = Fetch(message=1, envelope=FetchEnvelope(), body=b"\r\nbody")

        assert Message.from_fetch(sample_account, fetch).subject == ""

    def test_missing_envelope(self, sample_account):
        """A fetch without envelope cannot be converted."""
        with pytest.raises(FetchConversionError, match="envelope"):
            Message.from_fetch(sample_account, Fetch(message=4, body=b"x"))

    def test_missing_body(self, sample_account):
        """A fetch without body cannot be converted."""
        with pytest.raises(FetchConversionError, match="body"):
            Message.from_fetch(sample_account, Fetch(message=4, envelope=FetchEnvelope()))

    def test_address_without_host(self, sample_account):
        """Incomplete addresses are reported with the field name."""
        fetch = Fetch(
            message=2,
            envelope=FetchEnvelope(to=[FetchAddress(mailbox=b"bob")]),
            body=b"\r\nbody",
        )

        with pytest.raises(AddressParseError, match='"to"'):
            Message.from_fetch(sample_account, fetch)

    def test_non_utf8_message_id(self, sample_account):
        """Message-IDs must be UTF-8."""
        fetch = Fetch(message=2, envelope=FetchEnvelope(message_id=b"<\xff@x.com>"), body=b"\r\nx")

        with pytest.raises(HeaderDecodeError, match="message id"):
            Message.from_fetch(sample_account, fetch)
