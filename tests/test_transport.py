"""Tests for the IMAP and SMTP adapters that need no server."""

import asyncio

import pytest

from quill.core import MessageFlags
from quill.imap import IMAPAuthenticationError, IMAPClient, IMAPError
from quill.imap.client import quote_mailbox
from quill.smtp import SendError, SMTPAuthenticationError, SMTPClient, build_sendable


@pytest.fixture
def no_password(monkeypatch):
    """Keyring without any stored password."""
    monkeypatch.setattr("quill.core.account.keyring.get_password", lambda service, user: None)


class TestQuoteMailbox:
    """Tests for mailbox name quoting."""

    @pytest.mark.parametrize("name, quoted", [
        ("INBOX", "INBOX"),
        ("Sent", "Sent"),
        ("Sent Items", '"Sent Items"'),
        ('My "Stuff"', '"My \\"Stuff\\""'),
        ("", '""'),
    ])
    def test_quoting(self, name, quoted):
        """Atoms pass through, anything else is a quoted string."""
        assert quote_mailbox(name) == quoted


class TestIMAPClient:
    """Tests for IMAPClient outside a session."""

    def test_missing_password(self, sample_account, no_password):
        """No keyring entry fails before connecting."""
        with pytest.raises(IMAPAuthenticationError, match="quill:test"):
            asyncio.run(IMAPClient(sample_account).open())

    def test_append_requires_session(self, sample_account):
        """Appending without open() is refused."""
        client = IMAPClient(sample_account)

        assert not client.is_open
        with pytest.raises(IMAPError, match="not open"):
            asyncio.run(client.append_message("Sent", b"Subject: x\r\n\r\n", MessageFlags.SEEN))

    def test_close_without_session(self, sample_account):
        """Closing a client that never opened is a no-op."""
        asyncio.run(IMAPClient(sample_account).close())


class TestSMTPClient:
    """Tests for SMTPClient outside a session."""

    def test_missing_password(self, sample_account, no_password):
        """No keyring entry fails before connecting."""
        with pytest.raises(SMTPAuthenticationError, match="bob@x.com"):
            asyncio.run(SMTPClient(sample_account).open())

    def test_send_requires_session(self, sample_account, sample_message):
        """Sending without open() is refused."""
        sendable = build_sendable(sample_message, sample_account)

        with pytest.raises(SendError, match="not open"):
            asyncio.run(SMTPClient(sample_account).send(sendable))
