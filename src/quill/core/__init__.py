# =============================================================================
# Quill Core Module
# =============================================================================
# The message core: pure Python models and transformations with no network
# access. The core models are:
#   - Account: The sending identity (address, signature, PGP commands)
#   - Address: A mailbox address with optional display name
#   - Part / Parts: Plain text, HTML and binary body parts
#   - Message: An email message, fetched or drafted
#   - TemplateOverride: Explicit values for template rendering
# =============================================================================

from quill.core.account import DEFAULT_SIG_DELIM, Account
from quill.core.address import Address, format_addresses, parse_addresses
from quill.core.errors import (
    AddressParseError,
    AttachmentError,
    BodyParseError,
    EncryptionError,
    EnvelopeConstructionError,
    FetchConversionError,
    HeaderDecodeError,
    QuillError,
    TemplateParseError,
)
from quill.core.message import Message, MessageFlags
from quill.core.part import BinaryPart, Part, Parts, TextHtmlPart, TextPlainPart
from quill.core.template import TemplateOverride, from_template, to_template

__all__ = [
    "Account",
    "DEFAULT_SIG_DELIM",
    "Address",
    "format_addresses",
    "parse_addresses",
    "Message",
    "MessageFlags",
    "Part",
    "Parts",
    "TextPlainPart",
    "TextHtmlPart",
    "BinaryPart",
    "TemplateOverride",
    "to_template",
    "from_template",
    # Errors
    "QuillError",
    "AddressParseError",
    "HeaderDecodeError",
    "BodyParseError",
    "FetchConversionError",
    "EnvelopeConstructionError",
    "AttachmentError",
    "EncryptionError",
    "TemplateParseError",
]
