# =============================================================================
# Sendable Message Builder
# =============================================================================
# Converts a Message into what the SMTP transport needs:
#   - An envelope: MAIL FROM sender and RCPT TO recipients
#   - A MIME message: multipart/mixed with the folded plain text body and one
#     part per attachment
#
# When the message asks for encryption, the assembled multipart/mixed body
# is handed to the account's PGP command and wrapped as PGP/MIME (RFC 3156):
#
#   multipart/encrypted; protocol="application/pgp-encrypted"
#     ├─ application/pgp-encrypted   "Version: 1"
#     └─ application/octet-stream    <ciphertext>
# =============================================================================

import logging
import tempfile
import uuid
from dataclasses import dataclass, field
from email import policy
from email.encoders import encode_7or8bit, encode_base64
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from pathlib import Path
from typing import TYPE_CHECKING

from quill.core.errors import AttachmentError, EncryptionError, EnvelopeConstructionError

if TYPE_CHECKING:
    from quill.core import Account, Address, BinaryPart, Message

logger = logging.getLogger(__name__)

# compat32 generation with CRLF line endings, as expected on the wire
_WIRE_POLICY = policy.compat32.clone(linesep="\r\n")


@dataclass
class Envelope:
    """
    SMTP envelope of a message.

    Attributes:
        sender: MAIL FROM address (first "From" address), if any.
        recipients: RCPT TO addresses (the "To" addresses).
    """
    sender: str | None
    recipients: list[str]


@dataclass
class SendableMessage:
    """
    A message ready for the SMTP transport.

    Attributes:
        envelope: Sender and primary recipients.
        mime: The MIME message, headers included.
        copies: "Cc" and "Bcc" addresses. Bcc is never written to the
                headers, so the transport needs them separately.
    """
    envelope: Envelope
    mime: MIMEMultipart
    copies: list[str] = field(default_factory=list)

    @property
    def recipients(self) -> list[str]:
        """Every address the message must be delivered to."""
        return self.envelope.recipients + [a for a in self.copies if a not in self.envelope.recipients]

    def formatted(self) -> bytes:
        """Returns the RFC 5322 bytes of the message."""
        return self.mime.as_bytes(policy=_WIRE_POLICY)


def build_envelope(message: "Message") -> Envelope:
    """
    Build the SMTP envelope of a message.

    Raises:
        EnvelopeConstructionError: If the message has no "To" recipient.
    """
    sender = message.from_[0].email if message.from_ else None
    recipients = [addr.email for addr in message.to or []]
    if not recipients:
        raise EnvelopeConstructionError("cannot create envelope: missing destination address")
    return Envelope(sender=sender, recipients=recipients)


def build_sendable(message: "Message", account: "Account") -> SendableMessage:
    """
    Build the transport-ready form of a message.

    Args:
        message: The message to send.
        account: Sending account (PGP command, Message-ID domain).

    Returns:
        SendableMessage with envelope and MIME message.

    Raises:
        EnvelopeConstructionError: If there is no recipient.
        AttachmentError: If an attachment has an invalid MIME type.
        EncryptionError: If encryption is requested but not possible.
    """
    envelope = build_envelope(message)

    body = MIMEMultipart("mixed")
    body.attach(MIMEText(message.fold_plain_text(), "plain", "utf-8"))
    for part in message.attachments():
        body.attach(_attachment(part))

    mime = _encrypt(body, envelope.recipients[0], account) if message.encrypt else body

    # Headers
    if message.from_:
        mime["From"] = _header_addresses(message.from_)
    mime["To"] = _header_addresses(message.to or [])
    if message.reply_to:
        mime["Reply-To"] = _header_addresses(message.reply_to)
    if message.cc:
        mime["Cc"] = _header_addresses(message.cc)
    # Note: BCC is not added to headers (that's the point of BCC)
    mime["Subject"] = message.subject
    mime["Date"] = formatdate(localtime=True)
    mime["Message-ID"] = message.message_id or make_msgid(domain=account.email.split("@")[-1])
    if message.in_reply_to:
        mime["In-Reply-To"] = message.in_reply_to
    mime["X-Mailer"] = "Quill"

    copies = [addr.email for addr in (message.cc or []) + (message.bcc or [])]

    logger.info(f"Built sendable message for {', '.join(envelope.recipients)} (encrypted={message.encrypt})")
    return SendableMessage(envelope=envelope, mime=mime, copies=copies)


def _header_addresses(addresses: "list[Address]") -> str:
    return ", ".join(formataddr((addr.display_name or "", addr.email)) for addr in addresses)


def _attachment(part: "BinaryPart") -> MIMEBase:
    """Build the MIME part of an attachment, validating its media type."""
    error = f"cannot parse content type {part.mime!r} of attachment {part.filename}"
    if "/" not in part.mime:
        raise AttachmentError(error)
    content_type = policy.default.header_factory("Content-Type", part.mime)
    if content_type.defects:
        raise AttachmentError(error)

    mime_part = MIMEBase(content_type.maintype, content_type.subtype)
    mime_part.set_payload(part.content)
    encode_base64(mime_part)
    mime_part.add_header("Content-Disposition", "attachment", filename=part.filename)
    return mime_part


def _encrypt(body: MIMEMultipart, recipient: str, account: "Account") -> MIMEMultipart:
    """Encrypt a multipart body for a recipient and wrap it as PGP/MIME."""
    if not account.pgp_encrypt_cmd:
        raise EncryptionError("cannot find pgp encrypt command in config")

    # Uniquely named scratch file, removed whatever happens
    scratch = Path(tempfile.gettempdir()) / str(uuid.uuid4())
    scratch.write_bytes(body.as_bytes())
    try:
        ciphertext = account.pgp_encrypt_file(recipient, scratch)
    finally:
        scratch.unlink(missing_ok=True)

    if ciphertext is None:
        raise EncryptionError("cannot find pgp encrypt command in config")
    logger.debug(f"Encrypted multipart for {recipient} ({len(ciphertext)} chars)")

    encrypted = MIMEMultipart("encrypted", protocol="application/pgp-encrypted")
    encrypted.attach(MIMEApplication(b"Version: 1", "pgp-encrypted", _encoder=encode_7or8bit))
    encrypted.attach(MIMEApplication(ciphertext.encode("utf-8"), "octet-stream", _encoder=encode_7or8bit))
    return encrypted
