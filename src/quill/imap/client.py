# =============================================================================
# IMAP Transport
# =============================================================================
# The two mailbox operations the client needs, on top of aioimaplib:
#   - fetch_message(): flags, internal date, envelope and body of one message
#   - append_message(): store raw bytes with flags (sent copies, drafts)
#
#   async with IMAPClient(account) as imap:
#       fetch = await imap.fetch_message("INBOX", 42)
#
# FETCH responses are parsed by imap.fetch; turning them into a Message is
# the job of Message.from_fetch().
# =============================================================================

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from aioimaplib import aioimaplib

from quill.imap.fetch import Fetch, parse_fetch_response

if TYPE_CHECKING:
    from quill.core import Account, MessageFlags

logger = logging.getLogger(__name__)

# Data items requested when reading a message
FETCH_ITEMS = "(FLAGS INTERNALDATE ENVELOPE BODY[])"

_EXISTS_RE = re.compile(r"(\d+)\s+EXISTS", re.IGNORECASE)


def quote_mailbox(name: str) -> str:
    """
    Quote a mailbox name for use as an IMAP command argument.

    Names made of plain atom characters are sent as-is; anything else is
    sent as a quoted string with backslashes and quotes escaped:
        INBOX       -> INBOX
        Sent Items  -> "Sent Items"
    """
    if name and not any(c in name for c in ' "\\(){}[]%*'):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class IMAPClient:
    """
    One authenticated IMAP session for an account.

    Usage:
        >>> async with IMAPClient(account) as imap:
        ...     fetch = await imap.fetch_message("INBOX", 42)
        >>> message = Message.from_fetch(account, fetch)
    """

    # Seconds before a stalled IMAP command is abandoned
    TIMEOUT = 30

    def __init__(self, account: "Account") -> None:
        self.account = account
        self.selected: str | None = None
        self._imap: aioimaplib.IMAP4_SSL | aioimaplib.IMAP4 | None = None

    async def __aenter__(self) -> "IMAPClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._imap is not None

    # =========================================================================
    # Session
    # =========================================================================

    async def open(self) -> None:
        """
        Connect, upgrade to TLS if configured, and log in.

        Raises:
            IMAPConnectionError: The server cannot be reached or lacks STARTTLS.
            IMAPAuthenticationError: No keyring password, or login refused.
        """
        host, port = self.account.imap_host, self.account.imap_port
        password = self.account.password()
        if not password:
            raise IMAPAuthenticationError(
                f"no keyring password for {self.account.email} "
                f"(service {self.account.keyring_service})"
            )

        # "ssl" wraps the socket from the start (993), otherwise STARTTLS (143)
        if self.account.imap_security == "ssl":
            imap = aioimaplib.IMAP4_SSL(host=host, port=port, timeout=self.TIMEOUT)
        else:
            imap = aioimaplib.IMAP4(host=host, port=port, timeout=self.TIMEOUT)

        logger.info(f"Opening IMAP session with {host}:{port}")
        try:
            await imap.wait_hello_from_server()
            if self.account.imap_security == "starttls":
                if not imap.has_capability("STARTTLS"):
                    raise IMAPConnectionError(f"{host} does not offer STARTTLS")
                await imap.starttls()
        except (asyncio.TimeoutError, OSError) as e:
            raise IMAPConnectionError(f"cannot reach IMAP server {host}:{port}: {e}") from e

        response = await imap.login(self.account.email, password)
        if response.result != "OK":
            raise IMAPAuthenticationError(
                f"IMAP login refused for {self.account.email}: {response.lines}"
            )

        self._imap = imap
        logger.debug(f"IMAP session ready for {self.account.email}")

    async def close(self) -> None:
        """Log out, ignoring a server that already hung up."""
        imap, self._imap = self._imap, None
        self.selected = None
        if imap is None:
            return
        try:
            await imap.logout()
        except (aioimaplib.Abort, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"IMAP LOGOUT failed: {e}")

    def _require_open(self) -> None:
        if self._imap is None:
            raise IMAPError("IMAP session is not open")

    # =========================================================================
    # Mailboxes
    # =========================================================================

    async def select(self, mailbox: str) -> int:
        """
        Select a mailbox.

        Returns:
            Number of messages in the mailbox.

        Raises:
            IMAPError: The mailbox cannot be selected.
        """
        self._require_open()
        response = await self._imap.select(quote_mailbox(mailbox))
        if response.result != "OK":
            raise IMAPError(f"cannot select mailbox {mailbox!r}: {response.lines}")

        exists = 0
        for line in response.lines:
            if isinstance(line, (bytes, bytearray)):
                line = bytes(line).decode("utf-8", errors="replace")
            match = _EXISTS_RE.search(line)
            if match:
                exists = int(match.group(1))

        self.selected = mailbox
        logger.debug(f"Selected {mailbox} ({exists} messages)")
        return exists

    async def fetch_message(self, mailbox: str, seq: int) -> Fetch:
        """
        Fetch one message by sequence number.

        Raises:
            IMAPError: The command fails or no such message exists.
            FetchParseError: The server response is malformed.
        """
        if self.selected != mailbox:
            await self.select(mailbox)

        logger.info(f"Fetching message {seq} of {mailbox}")
        response = await self._imap.fetch(str(seq), FETCH_ITEMS)
        if response.result != "OK":
            raise IMAPError(f"cannot fetch message {seq} of {mailbox}: {response.lines}")

        for fetch in parse_fetch_response(response.lines):
            if fetch.message == seq:
                return fetch
        raise IMAPError(f"no message {seq} in {mailbox}")

    async def append_message(self, mailbox: str, raw: bytes, flags: "MessageFlags") -> None:
        """
        Store a raw RFC 5322 message in a mailbox with the given flags.

        Raises:
            IMAPError: The server refuses the message.
        """
        self._require_open()
        logger.info(f"Appending {len(raw)} bytes to {mailbox} with flags {flags.to_imap()}")
        response = await self._imap.append(raw, mailbox=quote_mailbox(mailbox), flags=flags.to_imap())
        if response.result != "OK":
            raise IMAPError(f"cannot append message to {mailbox!r}: {response.lines}")


# =============================================================================
# Exceptions
# =============================================================================

class IMAPError(Exception):
    """Base exception for IMAP operations."""
    pass


class IMAPConnectionError(IMAPError):
    """Raised when unable to connect to IMAP server."""
    pass


class IMAPAuthenticationError(IMAPError):
    """Raised when IMAP authentication fails."""
    pass
