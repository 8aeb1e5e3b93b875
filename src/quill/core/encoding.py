# =============================================================================
# Header and Payload Decoding
# =============================================================================
# Small helpers shared by fetch conversion and MIME part extraction:
#   - RFC 2047 encoded-word decoding ("=?utf-8?q?Caf=C3=A9?=" -> "Café")
#   - Charset-aware decoding of leaf part payloads
#
# Unlike a display-only client we never fall back to the raw value when a
# header is malformed: the failure is reported to the caller.
# =============================================================================

import email.errors
import email.header
import re
from email.message import Message as EmailMessage

from quill.core.errors import HeaderDecodeError

_SURROGATE_RE = re.compile(r"[\udc80-\udcff]")


def decode_mime_words(value: str | bytes) -> str:
    """
    Decode a possibly RFC 2047 encoded header value.

    Args:
        value: Header text, or raw bytes as delivered by IMAP envelopes.

    Returns:
        The decoded text.

    Raises:
        HeaderDecodeError: If the bytes are not UTF-8 or an encoded word
                           cannot be decoded.
    """
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise HeaderDecodeError(f"header value {value!r} is not valid UTF-8") from e

    try:
        return str(email.header.make_header(email.header.decode_header(value)))
    except (email.errors.HeaderParseError, UnicodeDecodeError, LookupError) as e:
        raise HeaderDecodeError(f"cannot decode header value {value!r}: {e}") from e


def decode_payload(part: EmailMessage) -> str:
    """Decode a leaf text part to a string using its declared charset."""
    payload = part.get_payload(decode=True)
    if isinstance(payload, bytes):
        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")
    return str(payload) if payload else ""


def is_text(value: str) -> bool:
    """False when undecodable bytes were smuggled in as lone surrogates."""
    return _SURROGATE_RE.search(value) is None


def ensure_text(value: str, label: str) -> str:
    """
    Check that a raw string holds real text.

    Text read with errors="surrogateescape" carries undecodable bytes as
    lone surrogates; those values are rejected here. Check values before
    the email package renders them, since it replaces such bytes with
    U+FFFD.

    Raises:
        HeaderDecodeError: If the value contains undecodable bytes.
    """
    if not is_text(value):
        raise HeaderDecodeError(f"{label} is not valid UTF-8 text: {value!r}")
    return value
