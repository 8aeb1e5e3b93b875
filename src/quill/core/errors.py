# =============================================================================
# Core Exceptions
# =============================================================================
# Every failure raised by the message core derives from QuillError, so callers
# (the CLI, the transport glue) can catch the whole family in one place.
#
# Errors are always raised with a message naming the offending field, header,
# attachment or command, and chained to the underlying cause with
# `raise ... from e`.
# =============================================================================


class QuillError(Exception):
    """Base exception for the message core."""
    pass


class AddressParseError(QuillError):
    """Raised when a mailbox address string cannot be parsed."""
    pass


class HeaderDecodeError(QuillError):
    """Raised when a header value is not valid text or badly MIME-encoded."""
    pass


class BodyParseError(QuillError):
    """Raised when raw message data has no usable header/body structure."""
    pass


class FetchConversionError(QuillError):
    """Raised when a mailbox fetch result lacks its envelope or body."""
    pass


class EnvelopeConstructionError(QuillError):
    """Raised when no valid sender/recipient combination can be built."""
    pass


class AttachmentError(QuillError):
    """Raised when an attachment cannot be read or has an invalid MIME type."""
    pass


class EncryptionError(QuillError):
    """Raised when no PGP command is configured or the command fails."""
    pass


class TemplateParseError(QuillError):
    """
    Raised when an edited template cannot be turned back into a message.

    Attributes:
        header: Name of the offending header, or None for body failures.
        value: Raw value of the offending header, if any.
    """

    def __init__(self, message: str, header: str | None = None, value: str | None = None) -> None:
        super().__init__(message)
        self.header = header
        self.value = value
