# =============================================================================
# IMAP Module
# =============================================================================
# Handles IMAP (Internet Message Access Protocol) operations:
#   - Connecting to IMAP servers with SSL/STARTTLS
#   - Fetching a message and parsing the FETCH response
#   - Appending messages to a folder with flags
#
# This module uses aioimaplib for async IMAP operations.
# =============================================================================

from quill.imap.client import (
    IMAPClient,
    IMAPError,
    IMAPConnectionError,
    IMAPAuthenticationError,
)
from quill.imap.fetch import (
    Fetch,
    FetchAddress,
    FetchEnvelope,
    FetchParseError,
    parse_fetch_response,
    parse_internal_date,
)

__all__ = [
    # Client
    "IMAPClient",
    "IMAPError",
    "IMAPConnectionError",
    "IMAPAuthenticationError",
    # Fetch
    "Fetch",
    "FetchAddress",
    "FetchEnvelope",
    "FetchParseError",
    "parse_fetch_response",
    "parse_internal_date",
]
