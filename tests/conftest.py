# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the Quill test suite.
# =============================================================================

import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from quill.core import Account, Address, Message, MessageFlags, Parts, TextHtmlPart, TextPlainPart


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_account():
    """Create a sample Account for testing (no display name)."""
    return Account(
        name="test",
        email="bob@x.com",
        imap_host="imap.x.com",
        imap_port=993,
        imap_security="ssl",
        smtp_host="smtp.x.com",
        smtp_port=587,
        smtp_security="starttls",
    )


@pytest.fixture
def named_account():
    """Create an Account with a display name and a signature."""
    return Account(
        name="work",
        email="bob@x.com",
        display_name="Bob Builder",
        signature="Bob\nx.com",
    )


@pytest.fixture
def alice():
    return Address(email="alice@x.com", display_name="Alice")


@pytest.fixture
def sample_message(alice):
    """Create a fetched-like Message for testing."""
    return Message(
        id=7,
        flags=MessageFlags.SEEN,
        subject="Meeting",
        from_=[alice],
        to=[Address(email="bob@x.com")],
        cc=[Address(email="carol@x.com")],
        bcc=[Address(email="dave@x.com")],
        message_id="<meeting-1@x.com>",
        date=datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone(timedelta(hours=1))),
        parts=Parts([TextPlainPart(content="Hi")]),
    )


@pytest.fixture
def html_message(alice):
    """Create an HTML-only Message for testing."""
    return Message(
        subject="Newsletter",
        from_=[alice],
        to=[Address(email="bob@x.com")],
        parts=Parts([TextHtmlPart(content="<p>Hi</p><p>There</p>")]),
    )


@pytest.fixture
def sample_html_email():
    """An HTML-only notification with styles and scripts."""
    return """
    <html>
      <head>
        <title>Build report</title>
        <style>td { font-family: monospace; color: #333; }</style>
      </head>
      <body>
        <h2>Nightly build failed</h2>
        <p>Pipeline <b>main</b> broke at step <i>test</i> &amp; was stopped.</p>
        <table>
          <tr><td>Duration</td><td>4m 12s</td></tr>
        </table>
        <script>track("open");</script>
      </body>
    </html>
    """


@pytest.fixture
def raw_email():
    """A multipart/mixed message as fetched from a server."""
    return (
        b"From: Alice <alice@x.com>\r\n"
        b"To: bob@x.com\r\n"
        b"Subject: Report\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="XYZ"\r\n'
        b"\r\n"
        b"--XYZ\r\n"
        b'Content-Type: multipart/alternative; boundary="ALT"\r\n'
        b"\r\n"
        b"--ALT\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Plain body\r\n"
        b"--ALT\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>HTML body</p>\r\n"
        b"--ALT--\r\n"
        b"--XYZ\r\n"
        b"Content-Type: application/pdf\r\n"
        b'Content-Disposition: attachment; filename="report.pdf"\r\n'
        b"Content-Transfer-Encoding: base64\r\n"
        b"\r\n"
        b"JVBERi0xLjQ=\r\n"
        b"--XYZ--\r\n"
    )
