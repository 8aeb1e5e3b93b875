# =============================================================================
# Message Model
# =============================================================================
# Represents an email message. This is the most complex model in the system:
# the same logical message lives in three representations and this class is
# the hub between them:
#
#   IMAP fetch ──from_fetch──▶ Message ──to_template──▶ editable text
#                                 ▲ │                        │
#                    merge_with ──┘ │                        ▼
#                                   │  ◀──from_template── edited text
#                                   ▼
#                            into_sendable ──▶ MIME message + envelope
#
# Address headers are `list[Address] | None`. None means "absent from the
# source" and [] means "present but empty"; merging relies on the difference,
# so never collapse one into the other.
# =============================================================================

import email
import email.errors
import email.utils
import logging
import mimetypes
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from enum import IntFlag
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from quill.core.address import Address, format_addresses
from quill.core.encoding import decode_mime_words
from quill.core.errors import (
    AddressParseError,
    AttachmentError,
    BodyParseError,
    FetchConversionError,
    HeaderDecodeError,
)
from quill.core.part import (
    BinaryPart,
    Parts,
    TextHtmlPart,
    TextPlainPart,
)

if TYPE_CHECKING:
    from quill.core.account import Account
    from quill.core.template import TemplateOverride
    from quill.imap.fetch import Fetch, FetchAddress
    from quill.smtp.builder import Envelope, SendableMessage

logger = logging.getLogger(__name__)

REPLY_PREFIX = "Re:"
FORWARD_PREFIX = "Fwd:"
FORWARD_BANNER = "-------- Forwarded Message --------"

# Blank lines before the first and after the last line of text
_OUTER_BLANK_LINES_RE = re.compile(r"\A\s+\Z|\A\s*\n|\n\s*\Z")


class MessageFlags(IntFlag):
    """
    Mailbox flags of a message, stored as a bitmask.

    Standard IMAP flags (RFC 3501):
        - SEEN: Message has been read
        - ANSWERED: Message has been replied to
        - FLAGGED: User-flagged as important
        - DELETED: Marked for deletion (will be purged on EXPUNGE)
        - DRAFT: Message is a draft (not yet sent)

    The transformations never look at flags; they are carried from the fetch
    and used when appending messages to a mailbox.

    Usage:
        flags = MessageFlags.from_imap(["\\\\Seen", "\\\\Draft"])
        flags.to_imap()  # "(\\Seen \\Draft)"
    """
    NONE = 0            # No flags set
    SEEN = 1 << 0       # \\Seen
    ANSWERED = 1 << 1   # \\Answered
    FLAGGED = 1 << 2    # \\Flagged
    DELETED = 1 << 3    # \\Deleted
    DRAFT = 1 << 4      # \\Draft

    @classmethod
    def from_imap(cls, atoms: Iterable[str]) -> "MessageFlags":
        """Convert IMAP flag atoms to MessageFlags. Unknown atoms are ignored."""
        result = cls.NONE
        names = {atom.upper() for atom in atoms}
        if "\\SEEN" in names:
            result |= cls.SEEN
        if "\\ANSWERED" in names:
            result |= cls.ANSWERED
        if "\\FLAGGED" in names:
            result |= cls.FLAGGED
        if "\\DELETED" in names:
            result |= cls.DELETED
        if "\\DRAFT" in names:
            result |= cls.DRAFT
        return result

    def to_imap(self) -> str:
        """Render as an IMAP flag list, e.g. "(\\Seen \\Draft)"."""
        atoms = []
        for flag, atom in (
            (MessageFlags.SEEN, "\\Seen"),
            (MessageFlags.ANSWERED, "\\Answered"),
            (MessageFlags.FLAGGED, "\\Flagged"),
            (MessageFlags.DELETED, "\\Deleted"),
            (MessageFlags.DRAFT, "\\Draft"),
        ):
            if self & flag:
                atoms.append(atom)
        return f"({' '.join(atoms)})"


@dataclass
class Message:
    """
    Represents an email message, fetched or being drafted.

    Attributes:
        id: Sequence number assigned by the mailbox. 0 for drafts.
        flags: Mailbox flags (seen, answered, draft...).
        subject: Subject line. Never None, possibly empty.

        from_: "From" addresses.
        reply_to: "Reply-To" addresses.
        to: "To" addresses.
        cc: "Cc" addresses.
        bcc: "Bcc" addresses.
            Each list is None when the header is absent and [] when it is
            present but empty.

        in_reply_to: Message-ID this message replies to.
        message_id: RFC 5322 Message-ID (e.g. "<abc123@example.com>").
        date: Internal date of the message, timezone-aware.

        parts: Ordered body parts (plain text, HTML, attachments).
        encrypt: Whether to PGP-encrypt the message when sending.

    Example:
        >>> msg = Message(subject="Meeting", from_=[Address.parse("alice@x.com")])
        >>> msg.parts.push(TextPlainPart("Hi"))
        >>> msg.into_reply(False, bob_account).subject
        'Re: Meeting'
    """

    id: int = 0
    flags: MessageFlags = MessageFlags.NONE
    subject: str = ""

    from_: list[Address] | None = None
    reply_to: list[Address] | None = None
    to: list[Address] | None = None
    cc: list[Address] | None = None
    bcc: list[Address] | None = None

    in_reply_to: str | None = None
    message_id: str | None = None
    date: datetime | None = None

    parts: Parts = field(default_factory=Parts)
    encrypt: bool = False

    # -------------------------------------------------------------------------
    # Body access
    # -------------------------------------------------------------------------

    def attachments(self) -> list[BinaryPart]:
        """Returns the binary parts of the message, in order."""
        return self.parts.of_type(BinaryPart)

    def fold_plain_text(self) -> str:
        """Single plain text body (HTML degraded if there is no plain part)."""
        return self.parts.fold_plain_text()

    def fold_html(self) -> str:
        """Single HTML body."""
        return self.parts.fold_html()

    def fold(self, text_format: str) -> str:
        """Single body in the given format ("html" or "plain")."""
        return self.parts.fold(text_format)

    # -------------------------------------------------------------------------
    # Transformations
    # -------------------------------------------------------------------------

    def into_reply(self, reply_all: bool, account: "Account") -> "Message":
        """
        Turn this message into a reply draft, in place.

        Args:
            reply_all: Reply to every original recipient instead of only the
                       first one.
            account: The sending account.

        Returns:
            self, transformed.

        Raises:
            AddressParseError: If the account address is invalid. The message
                               is left untouched in that case.
        """
        account_addr = Address.parse(account.address())

        prev_message_id = self.message_id
        prev_sender = self.reply_to if self.reply_to is not None else self.from_

        # Threading
        self.in_reply_to = prev_message_id
        self.message_id = None

        # Recipients
        if prev_sender is None:
            self.to = None
        else:
            recipients = [addr for addr in prev_sender if addr != account_addr]
            if reply_all:
                self.to = recipients
            else:
                self.to = recipients[:1] or None

        if not reply_all:
            self.cc = None
            self.bcc = None

        self.from_ = [account_addr]

        # Subject
        if not self.subject.startswith(REPLY_PREFIX):
            self.subject = f"Re: {self.subject}"

        # Body
        date = self.date.strftime("%d %b %Y, at %H:%M") if self.date else "unknown date"
        sender = prev_sender[0].display if prev_sender else "unknown sender"
        content = f"\n\nOn {date}, {sender} wrote:\n"

        sig_delim = account.signature_delimiter.rstrip("\n")
        quoted = []
        for line in _OUTER_BLANK_LINES_RE.sub("", self.fold_plain_text()).splitlines():
            if line == sig_delim:
                break
            quoted.append((">" if line.startswith(">") else "> ") + line)
        content += "\n".join(quoted)

        self.parts = Parts([TextPlainPart(content=content)])

        logger.debug(f"Built reply to {prev_message_id} (all={reply_all})")
        return self

    def into_forward(self, account: "Account") -> "Message":
        """
        Turn this message into a forward draft, in place.

        The plain text body is replaced by a forwarded-message block; HTML
        parts and attachments are kept as they are.

        Raises:
            AddressParseError: If the account address is invalid. The message
                               is left untouched in that case.
        """
        account_addr = Address.parse(account.address())

        prev_subject = self.subject
        prev_date = self.date
        prev_from = self.reply_to if self.reply_to is not None else self.from_
        prev_to = self.to

        self.message_id = None
        self.in_reply_to = None
        self.from_ = [account_addr]
        self.to = []
        self.cc = None
        self.bcc = None

        if not self.subject.startswith(FORWARD_PREFIX):
            self.subject = f"Fwd: {self.subject}"

        lines = [f"\n\n{FORWARD_BANNER}", f"Subject: {prev_subject}"]
        if prev_date is not None:
            lines.append(f"Date: {email.utils.format_datetime(prev_date)}")
        if prev_from is not None:
            lines.append(f"From: {format_addresses(prev_from)}")
        if prev_to is not None:
            lines.append(f"To: {format_addresses(prev_to)}")
        content = "\n".join(lines) + "\n\n" + self.fold_plain_text()

        self.parts.replace_text_plain_parts_with(TextPlainPart(content=content))

        logger.debug(f"Built forward of {prev_subject!r}")
        return self

    def with_encryption(self, encrypt: bool) -> "Message":
        """Request (or cancel) PGP encryption at send time."""
        self.encrypt = encrypt
        return self

    def add_attachments(self, paths: Iterable[str]) -> "Message":
        """
        Attach files to the message.

        Paths may contain "~" and environment variables. Every file is read
        before anything is attached, so a failure leaves the message as it
        was.

        Raises:
            AttachmentError: If a path cannot be read.
        """
        new_parts = []
        for raw_path in paths:
            file_path = Path(os.path.expanduser(os.path.expandvars(raw_path)))
            if not file_path.name:
                raise AttachmentError(f"cannot get file name of attachment {raw_path!r}")

            try:
                data = file_path.read_bytes()
            except OSError as e:
                raise AttachmentError(f"cannot read attachment {raw_path!r}: {e}") from e

            content_type, _ = mimetypes.guess_type(file_path.name)
            new_parts.append(
                BinaryPart(
                    filename=file_path.name,
                    mime=content_type or "application/octet-stream",
                    content=data,
                )
            )
            logger.debug(f"Attached {file_path} ({len(data)} bytes)")

        self.parts.extend(new_parts)
        return self

    def merge_with(self, other: "Message") -> None:
        """
        Overlay another (usually freshly edited) message onto this one.

        - from/to/cc/bcc are taken from `other` when present, even if empty
        - subject is taken from `other` when non-empty
        - binary parts of `other` are appended
        - a plain text part of `other` replaces all plain text parts; same
          for HTML parts
        """
        if other.from_ is not None:
            self.from_ = other.from_
        if other.to is not None:
            self.to = other.to
        if other.cc is not None:
            self.cc = other.cc
        if other.bcc is not None:
            self.bcc = other.bcc

        if other.subject:
            self.subject = other.subject

        for part in other.parts:
            if isinstance(part, BinaryPart):
                self.parts.push(part)
            elif isinstance(part, TextPlainPart):
                self.parts.remove_all(TextPlainPart)
                self.parts.push(part)
            elif isinstance(part, TextHtmlPart):
                self.parts.remove_all(TextHtmlPart)
                self.parts.push(part)

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def to_template(
        self,
        account: "Account",
        overrides: "TemplateOverride | None" = None,
    ) -> str:
        """Render the message as an editable template (see core.template)."""
        from quill.core.template import to_template

        return to_template(self, account, overrides)

    @classmethod
    def from_template(cls, text: str) -> "Message":
        """Parse an edited template back into a message (see core.template)."""
        from quill.core.template import from_template

        return from_template(text)

    def envelope(self) -> "Envelope":
        """Build the SMTP envelope of the message (see smtp.builder)."""
        from quill.smtp.builder import build_envelope

        return build_envelope(self)

    def into_sendable(self, account: "Account") -> "SendableMessage":
        """Build the transport-ready message (see smtp.builder)."""
        from quill.smtp.builder import build_sendable

        return build_sendable(self, account)

    @classmethod
    def from_fetch(cls, account: "Account", fetch: "Fetch") -> "Message":
        """
        Build a message from an IMAP FETCH result.

        Args:
            account: Account used to decrypt PGP/MIME bodies.
            fetch: Envelope, flags, internal date and raw body of a message.

        Raises:
            FetchConversionError: If the envelope or body is missing.
            HeaderDecodeError: If a header cannot be decoded.
            AddressParseError: If an address is incomplete.
            BodyParseError: If the body cannot be parsed.
        """
        seq = fetch.message
        envelope = fetch.envelope
        if envelope is None:
            raise FetchConversionError(f"cannot get envelope of message {seq}")

        subject = ""
        if envelope.subject is not None:
            try:
                subject = decode_mime_words(envelope.subject)
            except HeaderDecodeError as e:
                raise HeaderDecodeError(f"cannot decode subject of message {seq}: {e}") from e

        sender = envelope.sender if envelope.sender is not None else envelope.from_
        from_ = _to_addresses(sender, "from", seq)
        reply_to = _to_addresses(envelope.reply_to, "reply to", seq)
        to = _to_addresses(envelope.to, "to", seq)
        cc = _to_addresses(envelope.cc, "cc", seq)
        bcc = _to_addresses(envelope.bcc, "bcc", seq)

        in_reply_to = _to_text(envelope.in_reply_to, "in reply to", seq)
        message_id = _to_text(envelope.message_id, "message id", seq)

        if fetch.body is None:
            raise FetchConversionError(f"cannot get body of message {seq}")
        try:
            parsed = email.message_from_bytes(fetch.body, policy=policy.compat32)
        except (email.errors.MessageError, ValueError) as e:
            raise BodyParseError(f"cannot parse body of message {seq}: {e}") from e
        parts = Parts.from_email(account, parsed)

        logger.debug(f"Converted message {seq} with {len(parts)} part(s)")
        return cls(
            id=seq,
            flags=MessageFlags.from_imap(fetch.flags),
            subject=subject,
            from_=from_,
            reply_to=reply_to,
            to=to,
            cc=cc,
            bcc=bcc,
            in_reply_to=in_reply_to,
            message_id=message_id,
            date=fetch.internal_date,
            parts=parts,
        )

    def __repr__(self) -> str:
        return (
            f"Message(id={self.id}, subject={self.subject!r}, "
            f"from={self.from_!r}, flags={self.flags!r})"
        )


# =============================================================================
# Fetch conversion helpers
# =============================================================================

def _to_address(addr: "FetchAddress") -> Address:
    """Convert one IMAP envelope address to an Address."""
    name = decode_mime_words(addr.name) if addr.name is not None else None
    if addr.mailbox is None:
        raise AddressParseError("cannot get address mailbox")
    if addr.host is None:
        raise AddressParseError("cannot get address host")
    mailbox = decode_mime_words(addr.mailbox)
    host = decode_mime_words(addr.host)
    return Address(email=f"{mailbox}@{host}", display_name=name or None)


def _to_addresses(addrs: "list[FetchAddress] | None", label: str, seq: int) -> list[Address] | None:
    if addrs is None:
        return None
    result = []
    for addr in addrs:
        try:
            result.append(_to_address(addr))
        except (AddressParseError, HeaderDecodeError) as e:
            raise type(e)(f'cannot parse "{label}" address {addr!r} of message {seq}: {e}') from e
    return result


def _to_text(value: bytes | None, label: str, seq: int) -> str | None:
    if value is None:
        return None
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HeaderDecodeError(f'cannot decode "{label}" of message {seq}') from e
