# =============================================================================
# IMAP FETCH Response Parsing
# =============================================================================
# Turns the raw lines of a FETCH response (as returned by aioimaplib) into
# Fetch objects that Message.from_fetch() can convert.
#
# aioimaplib returns a FETCH response as a mix of text lines and literals:
#
#   b'1 FETCH (FLAGS (\\Seen) INTERNALDATE "..." ENVELOPE (...) BODY[] {342}'
#   bytearray(b'<342 bytes of message>')
#   b')'
#   b'FETCH completed.'
#
# A text line ending in {N} announces that the next item is an N-byte
# literal. Literals are kept aside and the text is parsed as one
# parenthesized structure; each {N} marker pulls the next literal.
#
# Envelope strings are kept as raw bytes. Decoding (RFC 2047, UTF-8) is
# the job of the message core.
# =============================================================================

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

_FETCH_START_RE = re.compile(rb"^(\d+)\s+FETCH\s*\(", re.IGNORECASE)
_LITERAL_MARKER_RE = re.compile(rb"\{(\d+)\}\s*$")

# Keys whose value is the full message
_BODY_KEYS = ("BODY[]", "RFC822")

_INTERNALDATE_FORMAT = "%d-%b-%Y %H:%M:%S %z"


@dataclass
class FetchAddress:
    """
    One address of an IMAP ENVELOPE (RFC 3501).

    Attributes:
        name: Display name, possibly RFC 2047 encoded.
        adl: Source route (obsolete, normally None).
        mailbox: Local part.
        host: Domain.
    """
    name: bytes | None = None
    adl: bytes | None = None
    mailbox: bytes | None = None
    host: bytes | None = None


@dataclass
class FetchEnvelope:
    """IMAP ENVELOPE. Address lists are None when the server sent NIL."""
    date: bytes | None = None
    subject: bytes | None = None
    from_: list[FetchAddress] | None = None
    sender: list[FetchAddress] | None = None
    reply_to: list[FetchAddress] | None = None
    to: list[FetchAddress] | None = None
    cc: list[FetchAddress] | None = None
    bcc: list[FetchAddress] | None = None
    in_reply_to: bytes | None = None
    message_id: bytes | None = None


@dataclass
class Fetch:
    """
    Result of fetching one message.

    Attributes:
        message: Sequence number of the message in its mailbox.
        flags: Flag atoms, e.g. ["\\Seen", "\\Answered"].
        envelope: Parsed ENVELOPE, if requested.
        internal_date: INTERNALDATE, if requested.
        body: Raw RFC 5322 message, if requested.
        uid: UID of the message, if requested.
    """
    message: int
    flags: list[str] = field(default_factory=list)
    envelope: FetchEnvelope | None = None
    internal_date: datetime | None = None
    body: bytes | None = None
    uid: int | None = None


def parse_fetch_response(lines: list[Any]) -> list[Fetch]:
    """
    Parse the lines of a FETCH response.

    Args:
        lines: response.lines from an aioimaplib fetch command.

    Returns:
        One Fetch per "N FETCH (...)" response, in server order.
        Status lines ("FETCH completed.") are skipped.

    Raises:
        FetchParseError: If a FETCH response is malformed.
    """
    fetches = []
    for text, literals in _group_responses(lines):
        fetches.append(_parse_group(text, literals))
    logger.debug(f"Parsed {len(fetches)} FETCH response(s)")
    return fetches


def parse_internal_date(value: bytes | str | None) -> datetime | None:
    """Parse an INTERNALDATE such as "17-Jul-1996 02:44:25 -0700"."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    try:
        return datetime.strptime(value.strip(), _INTERNALDATE_FORMAT)
    except ValueError:
        logger.warning(f"Could not parse INTERNALDATE {value!r}")
        return None


# =============================================================================
# Grouping
# =============================================================================

def _group_responses(lines: list[Any]) -> list[tuple[bytes, deque[bytes]]]:
    """
    Split response lines into (text, literals) pairs, one per FETCH response.

    The text of a group is its text lines concatenated, literal markers
    included. Literals are queued in order of appearance.
    """
    groups: list[tuple[bytes, deque[bytes]]] = []
    text = b""
    literals: deque[bytes] = deque()
    pending_literal: int | None = None

    for item in lines:
        if isinstance(item, (bytes, bytearray)):
            data = bytes(item)
        else:
            data = str(item).encode("utf-8")

        if pending_literal is not None:
            # Announced literal: taken as-is
            literals.append(data[:pending_literal])
            pending_literal = None
            continue

        if not text:
            if not _FETCH_START_RE.match(data):
                continue
        text += data

        marker = _LITERAL_MARKER_RE.search(data)
        if marker:
            pending_literal = int(marker.group(1))
            continue

        if _is_balanced(text):
            groups.append((text, literals))
            text = b""
            literals = deque()

    if text:
        raise FetchParseError(f"truncated FETCH response: {text[:80]!r}")
    return groups


def _is_balanced(text: bytes) -> bool:
    """Check that every parenthesis outside quoted strings is closed."""
    depth = 0
    in_quote = False
    escaped = False
    for byte in text:
        char = chr(byte)
        if in_quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_quote = False
        elif char == '"':
            in_quote = True
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
    return depth <= 0


# =============================================================================
# Parsing
# =============================================================================

class _Parser:
    """
    Recursive descent parser for IMAP data items.

    Values map to Python as follows:
        NIL          -> None
        "quoted"     -> bytes
        {N} literal  -> bytes
        (a b c)      -> list
        atom         -> str
    """

    def __init__(self, text: bytes, literals: deque[bytes]) -> None:
        self.text = text
        self.literals = literals
        self.pos = 0

    def _skip_spaces(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos:self.pos + 1] in (b" ", b"\r", b"\n"):
            self.pos += 1

    def _peek(self) -> bytes:
        return self.text[self.pos:self.pos + 1]

    def at_end(self) -> bool:
        self._skip_spaces()
        return self.pos >= len(self.text)

    def value(self) -> Any:
        self._skip_spaces()
        char = self._peek()
        if not char:
            raise FetchParseError("unexpected end of FETCH response")
        if char == b"(":
            return self._list()
        if char == b'"':
            return self._quoted()
        if char == b"{":
            return self._literal()
        atom = self._atom()
        return None if atom.upper() == "NIL" else atom

    def _list(self) -> list[Any]:
        self.pos += 1  # (
        items = []
        while True:
            self._skip_spaces()
            char = self._peek()
            if not char:
                raise FetchParseError("unterminated list in FETCH response")
            if char == b")":
                self.pos += 1
                return items
            items.append(self.value())

    def _quoted(self) -> bytes:
        self.pos += 1  # opening quote
        out = bytearray()
        while self.pos < len(self.text):
            char = self.text[self.pos:self.pos + 1]
            if char == b"\\":
                out += self.text[self.pos + 1:self.pos + 2]
                self.pos += 2
            elif char == b'"':
                self.pos += 1
                return bytes(out)
            else:
                out += char
                self.pos += 1
        raise FetchParseError("unterminated quoted string in FETCH response")

    def _literal(self) -> bytes:
        end = self.text.find(b"}", self.pos)
        if end < 0:
            raise FetchParseError("malformed literal marker in FETCH response")
        size = int(self.text[self.pos + 1:end])
        self.pos = end + 1
        if not self.literals:
            raise FetchParseError(f"missing literal of {size} bytes in FETCH response")
        return self.literals.popleft()

    def _atom(self) -> str:
        start = self.pos
        brackets = 0
        while self.pos < len(self.text):
            char = self._peek()
            if char == b"[":
                brackets += 1
            elif char == b"]":
                brackets -= 1
            elif brackets == 0 and char in (b" ", b"(", b")", b"\r", b"\n"):
                break
            self.pos += 1
        if self.pos == start:
            raise FetchParseError(f"unexpected {self._peek()!r} in FETCH response")
        return self.text[start:self.pos].decode("utf-8", errors="replace")


def _parse_group(text: bytes, literals: deque[bytes]) -> Fetch:
    """Parse one "N FETCH (key value ...)" response."""
    match = _FETCH_START_RE.match(text)
    seq = int(match.group(1))

    parser = _Parser(text[match.end() - 1:], literals)
    items = parser.value()
    if len(items) % 2:
        raise FetchParseError(f"odd number of data items in FETCH response of message {seq}")

    fetch = Fetch(message=seq)
    for key, value in zip(items[::2], items[1::2]):
        if not isinstance(key, str):
            raise FetchParseError(f"invalid data item name {key!r} in message {seq}")
        name = key.upper()

        if name == "FLAGS":
            fetch.flags = [str(flag) for flag in value or []]
        elif name == "UID":
            fetch.uid = int(value)
        elif name == "INTERNALDATE":
            fetch.internal_date = parse_internal_date(value)
        elif name == "ENVELOPE":
            fetch.envelope = _parse_envelope(value, seq)
        elif name in _BODY_KEYS:
            fetch.body = value if isinstance(value, bytes) or value is None else value.encode("utf-8")
        else:
            logger.debug(f"Ignoring FETCH item {key} of message {seq}")

    return fetch


def _parse_envelope(value: Any, seq: int) -> FetchEnvelope | None:
    """
    Parse an ENVELOPE structure.

    Format: (date subject from sender reply-to to cc bcc in-reply-to message-id)
    """
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != 10:
        raise FetchParseError(f"invalid ENVELOPE in FETCH response of message {seq}")

    date, subject, from_, sender, reply_to, to, cc, bcc, in_reply_to, message_id = value
    return FetchEnvelope(
        date=_nstring(date),
        subject=_nstring(subject),
        from_=_parse_address_list(from_),
        sender=_parse_address_list(sender),
        reply_to=_parse_address_list(reply_to),
        to=_parse_address_list(to),
        cc=_parse_address_list(cc),
        bcc=_parse_address_list(bcc),
        in_reply_to=_nstring(in_reply_to),
        message_id=_nstring(message_id),
    )


def _parse_address_list(value: Any) -> list[FetchAddress] | None:
    """Parse ((name adl mailbox host) ...) into FetchAddress objects."""
    if value is None:
        return None
    addresses = []
    for entry in value:
        if not isinstance(entry, list) or len(entry) != 4:
            raise FetchParseError(f"invalid address {entry!r} in ENVELOPE")
        name, adl, mailbox, host = (_nstring(item) for item in entry)
        addresses.append(FetchAddress(name=name, adl=adl, mailbox=mailbox, host=host))
    return addresses


def _nstring(value: Any) -> bytes | None:
    if value is None or isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise FetchParseError(f"expected a string, got {value!r}")


# =============================================================================
# Exceptions
# =============================================================================

class FetchParseError(Exception):
    """Raised when a FETCH response cannot be parsed."""
    pass
