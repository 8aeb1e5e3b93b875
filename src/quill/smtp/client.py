# =============================================================================
# SMTP Transport
# =============================================================================
# Delivers SendableMessage objects (see smtp.builder) with aiosmtplib.
#
# A session is opened and closed around each send:
#
#   async with SMTPClient(account) as smtp:
#       message_id = await smtp.send(sendable)
#
# Security follows account.smtp_security: "ssl" wraps the socket from the
# start (port 465), "starttls" upgrades a plain session (port 587).
# The password comes from the system keyring, see Account.password().
# =============================================================================

import logging
from typing import TYPE_CHECKING

import aiosmtplib

if TYPE_CHECKING:
    from quill.core import Account
    from quill.smtp.builder import SendableMessage

logger = logging.getLogger(__name__)


class SMTPClient:
    """
    One authenticated SMTP session for an account.

    Usage:
        >>> async with SMTPClient(account) as smtp:
        ...     await smtp.send(message.into_sendable(account))
    """

    # Seconds before a stalled SMTP command is abandoned
    TIMEOUT = 30

    def __init__(self, account: "Account") -> None:
        self.account = account
        self._smtp: aiosmtplib.SMTP | None = None

    async def __aenter__(self) -> "SMTPClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._smtp is not None and self._smtp.is_connected

    async def open(self) -> None:
        """
        Connect and log in.

        Raises:
            SMTPConnectionError: The server cannot be reached.
            SMTPAuthenticationError: No keyring password, or login refused.
        """
        host, port = self.account.smtp_host, self.account.smtp_port
        password = self.account.password()
        if not password:
            raise SMTPAuthenticationError(
                f"no keyring password for {self.account.email} "
                f"(service {self.account.keyring_service})"
            )

        smtp = aiosmtplib.SMTP(
            hostname=host,
            port=port,
            use_tls=self.account.smtp_security == "ssl",
            start_tls=self.account.smtp_security == "starttls",
            timeout=self.TIMEOUT,
        )

        logger.info(f"Opening SMTP session with {host}:{port}")
        try:
            await smtp.connect()
        except (aiosmtplib.SMTPException, OSError) as e:
            raise SMTPConnectionError(f"cannot reach SMTP server {host}:{port}: {e}") from e

        try:
            await smtp.login(self.account.email, password)
        except aiosmtplib.SMTPException as e:
            smtp.close()
            raise SMTPAuthenticationError(f"SMTP login refused for {self.account.email}: {e}") from e

        self._smtp = smtp
        logger.debug(f"SMTP session ready for {self.account.email}")

    async def close(self) -> None:
        """End the session, ignoring a server that already hung up."""
        smtp, self._smtp = self._smtp, None
        if smtp is None or not smtp.is_connected:
            return
        try:
            await smtp.quit()
        except aiosmtplib.SMTPException as e:
            logger.warning(f"SMTP QUIT failed: {e}")

    async def send(self, sendable: "SendableMessage") -> str:
        """
        Deliver a message to all of its recipients, copies included.

        Returns:
            The Message-ID header of the delivered message.

        Raises:
            SendError: The session is closed or the server rejected the message.
        """
        if not self.is_open:
            raise SendError("SMTP session is not open")

        recipients = sendable.recipients
        sender = sendable.envelope.sender or self.account.email
        logger.info(f"Delivering message from {sender} to {len(recipients)} recipient(s)")
        try:
            await self._smtp.send_message(sendable.mime, sender=sender, recipients=recipients)
        except aiosmtplib.SMTPException as e:
            raise SendError(f"delivery failed: {e}") from e

        return sendable.mime["Message-ID"]


# =============================================================================
# Exceptions
# =============================================================================

class SMTPError(Exception):
    """Base exception for SMTP operations."""
    pass


class SMTPConnectionError(SMTPError):
    """Raised when unable to connect to SMTP server."""
    pass


class SMTPAuthenticationError(SMTPError):
    """Raised when SMTP authentication fails."""
    pass


class SendError(SMTPError):
    """Raised when email sending fails."""
    pass
