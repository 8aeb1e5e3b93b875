# =============================================================================
# Message Templates
# =============================================================================
# A template is the flat, human-editable text form of a draft that gets
# handed to the user's editor:
#
#   Content-Type: text/plain; charset=utf-8
#   In-Reply-To: <abc@example.com>          (only for replies)
#   From: Bob <bob@x.com>
#   To: alice@x.com
#   Cc: carol@x.com                         (only when present)
#   Bcc: dave@x.com                         (only when present)
#   Subject: Re: Meeting
#
#   Body text...
#
#   --
#   Signature
#
# The header order and separators are relied upon by editor integrations and
# must not change.
#
# Parsing goes the other way with the standard library mail parser. The
# result is a partial message meant to be merged into the original draft
# with Message.merge_with().
# =============================================================================

import email.errors
import logging
import re
from dataclasses import dataclass
from email import policy
from email.parser import Parser
from typing import TYPE_CHECKING

from quill.core.address import format_addresses, parse_addresses
from quill.core.encoding import ensure_text, is_text
from quill.core.errors import (
    AddressParseError,
    BodyParseError,
    HeaderDecodeError,
    TemplateParseError,
)
from quill.core.message import Message
from quill.core.part import Parts, TextPlainPart

if TYPE_CHECKING:
    from quill.core.account import Account

logger = logging.getLogger(__name__)

CONTENT_TYPE_LINE = "Content-Type: text/plain; charset=utf-8"

_FOLDING_RE = re.compile(r"\r?\n[ \t]+")


@dataclass
class TemplateOverride:
    """
    Values replacing the message's own when rendering a template.

    Every field is optional; None means "use the message's value".

    Attributes:
        subject: Subject line.
        from_: "From" addresses, already formatted.
        to: "To" addresses, already formatted.
        cc: "Cc" addresses, already formatted.
        bcc: "Bcc" addresses, already formatted.
        body: Body text replacing the folded plain text body.
        signature: Signature replacing the account's one.
    """
    subject: str | None = None
    from_: list[str] | None = None
    to: list[str] | None = None
    cc: list[str] | None = None
    bcc: list[str] | None = None
    body: str | None = None
    signature: str | None = None


def to_template(
    message: Message,
    account: "Account",
    overrides: TemplateOverride | None = None,
) -> str:
    """
    Render a message as an editable template.

    Args:
        message: The draft to render.
        account: Sending account (default "From" and signature).
        overrides: Explicit values taking precedence over the message.

    Returns:
        The template text, always ending with a newline.
    """
    opts = overrides or TemplateOverride()
    tpl = CONTENT_TYPE_LINE + "\n"

    if message.in_reply_to is not None:
        tpl += f"In-Reply-To: {message.in_reply_to}\n"

    # From
    if opts.from_ is not None:
        from_ = ", ".join(opts.from_)
    elif message.from_ is not None:
        from_ = format_addresses(message.from_)
    else:
        from_ = account.address()
    tpl += f"From: {from_}\n"

    # To
    if opts.to is not None:
        to = ", ".join(opts.to)
    elif message.to is not None:
        to = format_addresses(message.to)
    else:
        to = ""
    tpl += f"To: {to}\n"

    # Cc & Bcc, only when present
    cc = _override_or_addresses(opts.cc, message.cc)
    if cc is not None:
        tpl += f"Cc: {cc}\n"
    bcc = _override_or_addresses(opts.bcc, message.bcc)
    if bcc is not None:
        tpl += f"Bcc: {bcc}\n"

    subject = opts.subject if opts.subject is not None else message.subject
    tpl += f"Subject: {subject}\n"

    # Headers <=> body separator
    tpl += "\n"

    tpl += opts.body if opts.body is not None else message.fold_plain_text()

    signature = opts.signature if opts.signature is not None else account.sig
    if signature is not None:
        tpl += "\n\n" + signature

    tpl += "\n"

    logger.debug(f"Template: {tpl!r}")
    return tpl


def from_template(text: str) -> Message:
    """
    Parse a template into a (partial) message.

    Known headers are Message-Id, In-Reply-To, Subject, From, To, Reply-To,
    Cc and Bcc; anything else is ignored. The body becomes a single plain
    text part.

    Raises:
        TemplateParseError: If the text has no header/body structure, a
                            header value is not valid text, or an address
                            list cannot be parsed. The error names the header.
    """
    logger.info("Building message from template")

    try:
        parsed = Parser(policy=policy.compat32).parsestr(text)
    except (email.errors.MessageError, ValueError) as e:
        raise TemplateParseError(f"cannot parse template: {e}") from e

    msg = Message()

    # raw_items() gives the source text; items() would turn undecodable
    # bytes into U+FFFD before they can be checked
    for key, raw_value in parsed.raw_items():
        value = _FOLDING_RE.sub(" ", raw_value).strip()
        logger.debug(f"Header {key!r}: {value!r}")

        try:
            ensure_text(value, f"header {key!r}")
        except HeaderDecodeError as e:
            raise TemplateParseError(
                f"cannot decode value {value!r} from header {key!r}", header=key, value=value
            ) from e

        name = key.lower()
        if name == "message-id":
            msg.message_id = value
        elif name == "in-reply-to":
            msg.in_reply_to = value
        elif name == "subject":
            msg.subject = value
        elif name in ("from", "to", "reply-to", "cc", "bcc"):
            try:
                addresses = parse_addresses(value)
            except AddressParseError as e:
                raise TemplateParseError(
                    f"cannot parse header {key!r}: {e}", header=key, value=value
                ) from e
            if name == "from":
                msg.from_ = addresses
            elif name == "to":
                msg.to = addresses
            elif name == "reply-to":
                msg.reply_to = addresses
            elif name == "cc":
                msg.cc = addresses
            else:
                msg.bcc = addresses

    try:
        body = _raw_body(parsed, text)
    except (BodyParseError, HeaderDecodeError) as e:
        raise TemplateParseError(f"cannot get raw body from template: {e}") from e

    msg.parts = Parts([TextPlainPart(content=body)])

    logger.info("Built message from template")
    return msg


def _raw_body(parsed, source: str) -> str:
    body = parsed.get_payload()
    if not isinstance(body, str):
        raise BodyParseError("body is not a single text part")
    # Header values are checked already, so undecodable bytes left in the
    # source belong to the body
    if not is_text(source):
        raise BodyParseError("cannot decode body: not valid UTF-8 text")
    return body


def _override_or_addresses(override: list[str] | None, addresses) -> str | None:
    if override is not None:
        return ", ".join(override)
    if addresses is not None:
        return format_addresses(addresses)
    return None
