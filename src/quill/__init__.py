# =============================================================================
# Quill: A Terminal Email Client
# =============================================================================
#
# Quill reads, writes, replies to and forwards email from the terminal,
# through editable plain text templates.
#
# Features:
#   - IMAP fetch and SMTP send with SSL/STARTTLS
#   - Reply, Reply All, Forward
#   - Attachments and PGP/MIME encryption through external commands
#   - XDG Base Directory compliant
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "quill"

# Main entry point - this is what gets called by the 'quill' command
from quill.app import main

__all__ = ["main", "__version__", "__app_name__"]
