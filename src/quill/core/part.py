# =============================================================================
# Part Model
# =============================================================================
# A message body is an ordered collection of parts. We only distinguish three
# kinds of part:
#   - TextPlainPart: a text/plain body
#   - TextHtmlPart: a text/html body
#   - BinaryPart: anything else (attachments, inline images, PGP payloads)
#
# Part is a closed union. Code that inspects parts (folding, merging,
# sending) must handle all three variants; adding a variant means updating
# every one of those places.
#
# A fetched message may carry several text parts at once (e.g. a
# multipart/alternative). Folding turns them into a single string; merging
# collapses them so that the last edited text part wins.
# =============================================================================

import logging
import tempfile
import uuid
from dataclasses import dataclass
from email import policy
from email.message import Message as EmailMessage
from email.parser import Parser
from pathlib import Path
from typing import TYPE_CHECKING, Union

from quill.core.encoding import decode_mime_words, decode_payload
from quill.rendering.text import html_to_text, merge_blank_lines

if TYPE_CHECKING:
    from quill.core.account import Account

logger = logging.getLogger(__name__)


@dataclass
class TextPlainPart:
    """A text/plain body part."""
    content: str


@dataclass
class TextHtmlPart:
    """A text/html body part (raw markup)."""
    content: str


@dataclass
class BinaryPart:
    """
    A non-text part, usually an attachment.

    Attributes:
        filename: File name shown to the recipient.
        mime: Media type string, e.g. "application/pdf".
        content: Raw (transfer-decoded) bytes.
    """
    filename: str
    mime: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


Part = Union[TextPlainPart, TextHtmlPart, BinaryPart]


class Parts(list):
    """
    Ordered collection of message parts.

    Insertion order matters: folding concatenates text parts in the order
    they were added, and attachments are sent in that order.
    """

    def push(self, part: Part) -> None:
        """Append a part at the end of the collection."""
        self.append(part)

    def of_type(self, kind: type) -> list:
        """Returns all parts of the given variant, in order."""
        return [part for part in self if isinstance(part, kind)]

    def remove_all(self, kind: type) -> None:
        """Drop every part of the given variant."""
        self[:] = [part for part in self if not isinstance(part, kind)]

    def replace_text_plain_parts_with(self, part: TextPlainPart) -> None:
        """Replace all plain text parts with a single one, appended last."""
        self.remove_all(TextPlainPart)
        self.push(part)

    # -------------------------------------------------------------------------
    # Folding
    # -------------------------------------------------------------------------

    def fold_plain_text(self) -> str:
        """
        Fold all plain text parts into one string body.

        Parts are joined with a blank line. When there is no plain text part
        the HTML parts are used instead and degraded to sanitized text.

        Plain parts are returned exactly as written. Blank-line, tab and
        space-run normalization applies to the HTML fallback only, so the
        spacing a user typed survives a reply or a template.
        """
        plain = []
        html = []
        for part in self:
            if isinstance(part, TextPlainPart):
                plain.append(part.content)
            elif isinstance(part, TextHtmlPart):
                html.append(part.content)
            elif isinstance(part, BinaryPart):
                continue

        if plain:
            return "\n\n".join(plain)
        if html:
            return html_to_text("\n\n".join(html))
        return ""

    def fold_html(self) -> str:
        """Fold all HTML parts into one string body, markup kept."""
        html = [part.content for part in self.of_type(TextHtmlPart)]
        return merge_blank_lines("\n\n".join(html))

    def fold(self, text_format: str) -> str:
        """Fold text parts into one body: "html" for markup, else plain."""
        if text_format == "html":
            return self.fold_html()
        return self.fold_plain_text()

    # -------------------------------------------------------------------------
    # Conversion from a parsed MIME tree
    # -------------------------------------------------------------------------

    @classmethod
    def from_email(cls, account: "Account", parsed: EmailMessage) -> "Parts":
        """
        Build parts from a message parsed by the standard library.

        Args:
            account: Account used to decrypt multipart/encrypted subtrees.
            parsed: Parsed MIME entity (compat32 policy).

        Raises:
            EncryptionError: If a configured decrypt command fails.
        """
        parts = cls()
        parts._collect(account, parsed)
        return parts

    def _collect(self, account: "Account", entity: EmailMessage) -> None:
        content_type = entity.get_content_type()

        if content_type == "multipart/encrypted":
            decrypted = _decrypt_entity(account, entity)
            if decrypted is not None:
                self._collect(account, decrypted)
                return

        if entity.is_multipart():
            for sub in entity.get_payload():
                self._collect(account, sub)
            return

        disposition = str(entity.get("Content-Disposition", "")).lower()
        if "attachment" in disposition:
            self.push(_binary_part(entity))
        elif content_type == "text/plain":
            self.push(TextPlainPart(content=decode_payload(entity)))
        elif content_type == "text/html":
            self.push(TextHtmlPart(content=decode_payload(entity)))
        else:
            self.push(_binary_part(entity))


def _binary_part(entity: EmailMessage) -> BinaryPart:
    content_type = entity.get_content_type()
    filename = entity.get_filename()
    if filename:
        filename = decode_mime_words(filename)
    else:
        ext = content_type.split("/")[-1] if "/" in content_type else "bin"
        filename = f"attachment.{ext}"

    payload = entity.get_payload(decode=True)
    if not isinstance(payload, bytes):
        payload = b""

    return BinaryPart(filename=filename, mime=content_type, content=payload)


def _decrypt_entity(account: "Account", entity: EmailMessage) -> EmailMessage | None:
    """
    Decrypt a PGP/MIME entity with the account's decrypt command.

    Returns None when the account has no decrypt command or the entity does
    not have the expected control part + payload layout.
    """
    if not account.pgp_decrypt_cmd:
        logger.debug("No PGP decrypt command configured, keeping encrypted parts")
        return None

    subparts = entity.get_payload()
    if not isinstance(subparts, list) or len(subparts) < 2:
        return None

    ciphertext = subparts[1].get_payload(decode=True)
    if not isinstance(ciphertext, bytes):
        return None

    scratch = Path(tempfile.gettempdir()) / str(uuid.uuid4())
    scratch.write_bytes(ciphertext)
    try:
        plaintext = account.pgp_decrypt_file(scratch)
    finally:
        scratch.unlink(missing_ok=True)

    if plaintext is None:
        return None

    return Parser(policy=policy.compat32).parsestr(plaintext)
