"""Tests for the command line entry point (no network involved)."""

import pytest

from quill.app import main, parse_args

CONFIG_TOML = """
[general]
default_account = "work"

[accounts.work]
email = "bob@x.com"
display_name = "Bob"
signature = "Bob"
"""


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestParseArgs:
    """Tests for argument parsing."""

    def test_reply_options(self):
        """Fetched-message and sending options are combined."""
        args = parse_args(["reply", "42", "--all", "--attach", "a.txt", "--attach", "b.txt", "--encrypt"])

        assert args.command == "reply"
        assert args.seq == 42
        assert args.mailbox == "INBOX"
        assert args.all is True
        assert args.attach == ["a.txt", "b.txt"]
        assert args.encrypt is True
        assert args.edited is None

    def test_read_format(self):
        """read only accepts known formats."""
        assert parse_args(["read", "1", "--format", "html"]).format == "html"

        with pytest.raises(SystemExit):
            parse_args(["read", "1", "--format", "rtf"])


class TestMain:
    """Tests for main()."""

    def test_no_command(self, config_file):
        """Running without a command is a usage error."""
        assert main(["--config", str(config_file)]) == 2

    def test_write_prints_template(self, config_file, capsys):
        """Without --edited, write prints a new-message template."""
        assert main(["--config", str(config_file), "write"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("Content-Type: text/plain; charset=utf-8\nFrom: Bob <bob@x.com>\nTo: \n")
        assert out.endswith("\n\n-- \nBob\n\n")

    def test_write_dry_run(self, config_file, temp_dir, capsys):
        """With --edited and --dry-run, the built message is printed."""
        edited = temp_dir / "draft.eml"
        edited.write_text("From: Bob <bob@x.com>\nTo: alice@x.com\nSubject: Lunch\n\nNoon?\n")
        attachment = temp_dir / "menu.txt"
        attachment.write_text("soup")

        code = main([
            "--config", str(config_file),
            "write", "--edited", str(edited), "--attach", str(attachment), "--dry-run",
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "Subject: Lunch" in out
        assert "To: alice@x.com" in out
        assert 'filename="menu.txt"' in out

    def test_unknown_account(self, config_file, capsys):
        """Config errors are reported with exit code 1."""
        assert main(["--config", str(config_file), "--account", "nobody", "write"]) == 1
        assert "nobody" in capsys.readouterr().err

    def test_send_without_recipient(self, config_file, temp_dir, capsys):
        """Core errors are reported with exit code 1."""
        edited = temp_dir / "draft.eml"
        edited.write_text("To: \nSubject: Nobody\n\nHello\n")

        code = main(["--config", str(config_file), "write", "--edited", str(edited), "--dry-run"])

        assert code == 1
        assert "destination" in capsys.readouterr().err
