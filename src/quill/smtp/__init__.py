# =============================================================================
# SMTP Module
# =============================================================================
# Handles sending emails via SMTP (Simple Mail Transfer Protocol).
#
# Features:
#   - Sendable message building (envelope, multipart body, attachments)
#   - PGP/MIME encryption through an external command
#   - Connection with SSL/STARTTLS and delivery
# =============================================================================

from quill.smtp.builder import (
    Envelope,
    SendableMessage,
    build_envelope,
    build_sendable,
)
from quill.smtp.client import (
    SMTPClient,
    SMTPError,
    SMTPConnectionError,
    SMTPAuthenticationError,
    SendError,
)

__all__ = [
    "Envelope",
    "SendableMessage",
    "build_envelope",
    "build_sendable",
    "SMTPClient",
    "SMTPError",
    "SMTPConnectionError",
    "SMTPAuthenticationError",
    "SendError",
]
