# =============================================================================
# Quill Command Line Application
# =============================================================================
# Wires the message core to the IMAP/SMTP transports.
#
# Commands:
#   - read:    Fetch a message and print its folded body
#   - write:   New message
#   - reply:   Reply (or reply all) to a fetched message
#   - forward: Forward a fetched message
#
# write/reply/forward work in two steps, so that any editor can be used:
#   1. Without --edited, the draft is printed as an editable template.
#   2. With --edited FILE, the edited template is merged into the draft,
#      which is then sent and stored in the Sent folder.
# =============================================================================

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from quill import __version__, __app_name__
from quill.config import TEXT_FORMATS, Config, ConfigError, print_paths
from quill.core import Account, Message, MessageFlags, QuillError
from quill.imap import FetchParseError, IMAPClient, IMAPError
from quill.smtp import SendableMessage, SMTPClient, SMTPError

logger = logging.getLogger(__name__)

# Format of log lines when --debug is given
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# =============================================================================
# Transport Helpers
# =============================================================================

async def fetch_message(account: Account, mailbox: str, seq: int) -> Message:
    """Fetch one message over IMAP and convert it."""
    async with IMAPClient(account) as imap:
        fetch = await imap.fetch_message(mailbox, seq)
    return Message.from_fetch(account, fetch)


async def send_message(account: Account, sendable: SendableMessage) -> str:
    """
    Send a message over SMTP, then store a copy in the Sent folder.

    Returns:
        Message-ID of the sent message.
    """
    async with SMTPClient(account) as smtp:
        message_id = await smtp.send(sendable)

    async with IMAPClient(account) as imap:
        await imap.append_message(account.sent_folder, sendable.formatted(), MessageFlags.SEEN)

    logger.info(f"Sent {message_id}, copy stored in {account.sent_folder}")
    return message_id


# =============================================================================
# Commands
# =============================================================================

def cmd_read(args: argparse.Namespace, config: Config, account: Account) -> int:
    """Print the folded body of a message."""
    message = asyncio.run(fetch_message(account, args.mailbox, args.seq))
    print(message.fold(args.format or config.text_format))
    return 0


def cmd_write(args: argparse.Namespace, config: Config, account: Account) -> int:
    """Template or send a new message."""
    return _template_or_send(args, account, Message())


def cmd_reply(args: argparse.Namespace, config: Config, account: Account) -> int:
    """Template or send a reply."""
    message = asyncio.run(fetch_message(account, args.mailbox, args.seq))
    return _template_or_send(args, account, message.into_reply(args.all, account))


def cmd_forward(args: argparse.Namespace, config: Config, account: Account) -> int:
    """Template or send a forward."""
    message = asyncio.run(fetch_message(account, args.mailbox, args.seq))
    return _template_or_send(args, account, message.into_forward(account))


def _template_or_send(args: argparse.Namespace, account: Account, draft: Message) -> int:
    if args.edited is None:
        print(draft.to_template(account))
        return 0

    draft.merge_with(Message.from_template(args.edited.read_text(encoding="utf-8", errors="surrogateescape")))
    draft.add_attachments(args.attach).with_encryption(args.encrypt)
    sendable = draft.into_sendable(account)

    if args.dry_run:
        sys.stdout.write(sendable.formatted().decode("utf-8", errors="replace"))
        return 0

    message_id = asyncio.run(send_message(account, sendable))
    print(f"Message successfully sent ({message_id})")
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="Quill: read, write, reply to and forward email from the terminal",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    parser.add_argument(
        "-a", "--account",
        help="Account to use (default: general.default_account)",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    # Sending options shared by write/reply/forward
    sending = argparse.ArgumentParser(add_help=False)
    sending.add_argument(
        "--edited",
        type=Path,
        metavar="FILE",
        help="Edited template to send (without it, the template is printed)",
    )
    sending.add_argument(
        "--attach",
        action="append",
        default=[],
        metavar="PATH",
        help="Attach a file (repeatable)",
    )
    sending.add_argument(
        "--encrypt",
        action="store_true",
        help="Encrypt the message with the account's PGP command",
    )
    sending.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the formatted message instead of sending it",
    )

    fetched = argparse.ArgumentParser(add_help=False)
    fetched.add_argument("seq", type=int, help="Sequence number of the message")
    fetched.add_argument("--mailbox", default="INBOX", help="Mailbox (default: INBOX)")

    read = commands.add_parser("read", parents=[fetched], help="Print the body of a message")
    read.add_argument("--format", choices=TEXT_FORMATS, help="Body format (default: general.text_format)")
    read.set_defaults(handler=cmd_read)

    write = commands.add_parser("write", parents=[sending], help="Write a new message")
    write.set_defaults(handler=cmd_write)

    reply = commands.add_parser("reply", parents=[fetched, sending], help="Reply to a message")
    reply.add_argument("--all", action="store_true", help="Reply to all recipients")
    reply.set_defaults(handler=cmd_reply)

    forward = commands.add_parser("forward", parents=[fetched, sending], help="Forward a message")
    forward.set_defaults(handler=cmd_forward)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for Quill.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --version)
        3. Loads configuration and selects the account
        4. Runs the command

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format=LOG_FORMAT,
    )

    if args.paths:
        print_paths()
        return 0

    if args.command is None:
        print("No command given (try --help)", file=sys.stderr)
        return 2

    try:
        config = Config.load(args.config)
        account = config.get_account(args.account)
        return args.handler(args, config, account)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    except (QuillError, FetchParseError, IMAPError, SMTPError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
