# =============================================================================
# Account Model
# =============================================================================
# Represents the user's sending identity and server configuration:
#   - Own address and display name (used as "From" on replies/forwards)
#   - Signature and signature delimiter (used by templates and quoting)
#   - External PGP commands (encryption on send, decryption on read)
#   - IMAP and SMTP connection details
#
# IMPORTANT: Passwords are NOT stored here. They are retrieved from the system
# keyring at runtime using the 'keyring' library.
# =============================================================================

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

import keyring

from quill.core.errors import EncryptionError

logger = logging.getLogger(__name__)

# Delimiter placed between a message body and its signature (RFC 3676)
DEFAULT_SIG_DELIM = "-- \n"

# Characters that force a display name to be quoted in an address
_SPECIALS_RE = re.compile(r'[()<>\[\]:;@\\,."]')


@dataclass
class Account:
    """
    Represents an email account.

    Attributes:
        name: Unique identifier for this account (e.g., "personal").
              Used as the key in config files and for keyring lookups.
        email: The email address associated with this account.
        display_name: The name shown in the "From" field. Optional.

        signature: Raw signature text, without delimiter.
        signature_delimiter: Line separating body and signature. Quoting a
                             message for a reply stops at this line.

        pgp_encrypt_cmd: Command encrypting a file for a recipient. Called
                         as `<cmd> <recipient> <path>`, must print the
                         armored ciphertext on stdout.
        pgp_decrypt_cmd: Command decrypting a file. Called as `<cmd> <path>`,
                         must print the plaintext MIME entity on stdout.

        imap_host / imap_port / imap_security: IMAP server settings.
        smtp_host / smtp_port / smtp_security: SMTP server settings.
        sent_folder: Mailbox receiving a copy of sent messages.
        draft_folder: Mailbox for remote drafts.

    Example:
        >>> account = Account(name="work", email="bob@x.com", display_name="Bob")
        >>> account.address()
        'Bob <bob@x.com>'
    """

    # Account identification
    name: str
    email: str
    display_name: str = ""

    # Composition
    signature: str | None = None
    signature_delimiter: str = DEFAULT_SIG_DELIM

    # PGP (external commands)
    pgp_encrypt_cmd: str | None = None
    pgp_decrypt_cmd: str | None = None

    # IMAP configuration (for receiving emails)
    imap_host: str = ""
    imap_port: int = 993                # Default to SSL port
    imap_security: str = "ssl"          # "ssl" or "starttls"

    # SMTP configuration (for sending emails)
    smtp_host: str = ""
    smtp_port: int = 587                # Default to STARTTLS port
    smtp_security: str = "starttls"     # "ssl" or "starttls"

    # Mailboxes
    sent_folder: str = "Sent"
    draft_folder: str = "Drafts"

    def address(self) -> str:
        """
        Returns the account's own address as a string.

        The display name is quoted when it contains special characters:
            - "bob@x.com"
            - "Bob <bob@x.com>"
            - '"Doe, Bob" <bob@x.com>'
        """
        if not self.display_name:
            return self.email
        if _SPECIALS_RE.search(self.display_name):
            return f'"{self.display_name}" <{self.email}>'
        return f"{self.display_name} <{self.email}>"

    @property
    def sig(self) -> str | None:
        """Returns the signature prefixed by its delimiter, if any."""
        if self.signature is None:
            return None
        return f"{self.signature_delimiter}{self.signature}"

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage:
            keyring get quill:personal user@example.com
        """
        return f"quill:{self.name}"

    def password(self) -> str | None:
        """Look up the account password in the system keyring."""
        return keyring.get_password(self.keyring_service, self.email)

    # -------------------------------------------------------------------------
    # PGP commands
    # -------------------------------------------------------------------------

    def pgp_encrypt_file(self, recipient: str, path: Path) -> str | None:
        """
        Encrypt a file for a recipient with the configured command.

        Returns:
            The encrypted payload, or None if no command is configured.

        Raises:
            EncryptionError: If the command cannot be run or fails.
        """
        if not self.pgp_encrypt_cmd:
            return None
        return _run_pgp_command(self.pgp_encrypt_cmd, [recipient, str(path)])

    def pgp_decrypt_file(self, path: Path) -> str | None:
        """
        Decrypt a file with the configured command.

        Returns:
            The decrypted content, or None if no command is configured.

        Raises:
            EncryptionError: If the command cannot be run or fails.
        """
        if not self.pgp_decrypt_cmd:
            return None
        return _run_pgp_command(self.pgp_decrypt_cmd, [str(path)])

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    def __repr__(self) -> str:
        return (
            f"Account(name={self.name!r}, email={self.email!r}, "
            f"imap={self.imap_host}:{self.imap_port}, "
            f"smtp={self.smtp_host}:{self.smtp_port})"
        )


def _run_pgp_command(cmd: str, args: list[str]) -> str:
    argv = shlex.split(cmd) + args
    logger.debug(f"Running PGP command: {argv}")
    try:
        result = subprocess.run(argv, capture_output=True, text=True, check=True)
    except OSError as e:
        raise EncryptionError(f"cannot run PGP command {cmd!r}: {e}") from e
    except subprocess.CalledProcessError as e:
        raise EncryptionError(
            f"PGP command {cmd!r} failed with status {e.returncode}: {e.stderr.strip()}"
        ) from e
    return result.stdout
