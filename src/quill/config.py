# =============================================================================
# Configuration
# =============================================================================
# A single TOML file, read with tomllib and written with tomli_w:
#
#   $XDG_CONFIG_HOME/quill/config.toml   (default: ~/.config/quill/)
#
#   [general]
#   default_account = "work"
#   text_format = "plain"
#
#   [accounts.work]
#   email = "bob@x.com"
#   display_name = "Bob"
#   smtp_host = "smtp.x.com"
#
# Passwords never appear in this file: they live in the system keyring under
# the service "quill:<account name>".
# =============================================================================

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from quill.core import Account

logger = logging.getLogger(__name__)

# Settings accepted in an [accounts.<name>] table; the name is the table key
_ACCOUNT_KEYS = frozenset(f.name for f in dataclasses.fields(Account)) - {"name"}


# =============================================================================
# XDG Paths
# =============================================================================

APP_NAME = "quill"

# Fold formats accepted by general.text_format
TEXT_FORMATS = ("plain", "html")


def get_xdg_config_home() -> Path:
    """Directory holding config.toml, honouring $XDG_CONFIG_HOME."""
    root = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(root) / APP_NAME


def ensure_directories() -> Path:
    """Create the config directory when missing and return it."""
    config_dir = get_xdg_config_home()
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


# =============================================================================
# Config
# =============================================================================

@dataclass
class Config:
    """
    Preferences and accounts read from config.toml.

    Attributes:
        default_account: Account used when --account is not given.
        text_format: Fold format used to display bodies ("plain" or "html").
        accounts: Configured accounts keyed by their table name.

    Usage:
        >>> config = Config.load()
        >>> config.get_account("work").address()
        'Bob <bob@x.com>'
    """
    default_account: str = ""
    text_format: str = "plain"
    accounts: dict[str, Account] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Location of config.toml."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Account Selection
    # -------------------------------------------------------------------------

    def get_account(self, name: str | None = None) -> Account:
        """
        Return the named account, or the default one.

        Falls back to the first configured account when no default is set.

        Raises:
            ConfigError: If the account does not exist.
        """
        if not self.accounts:
            raise ConfigError(f"No account configured in {self.config_file_path()}")

        name = name or self.default_account
        if not name:
            return next(iter(self.accounts.values()))

        try:
            return self.accounts[name]
        except KeyError:
            raise ConfigError(f"Unknown account '{name}'") from None

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Read config.toml, or `path` when given.

        A missing file is not an error: it yields an empty Config.

        Raises:
            ConfigError: The file is not valid TOML or holds invalid settings.
        """
        config_path = path or cls.config_file_path()
        if not config_path.exists():
            logger.debug(f"No config file at {config_path}")
            return cls()

        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{config_path}: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """Write the configuration to `path` or to the XDG config file."""
        if path is None:
            path = ensure_directories() / "config.toml"

        path.write_text(tomli_w.dumps(self._to_dict()), encoding="utf-8")
        logger.info(f"Configuration saved to {path}")

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a Config from parsed TOML, validating as it goes."""
        general = data.get("general", {})
        config = cls(
            default_account=general.get("default_account", ""),
            text_format=general.get("text_format", "plain"),
        )
        if config.text_format not in TEXT_FORMATS:
            raise ConfigError(
                f"Invalid text_format '{config.text_format}' "
                f"(expected one of: {', '.join(TEXT_FORMATS)})"
            )

        # Each [accounts.<name>] table maps onto Account fields; unset keys
        # keep the Account defaults
        for name, table in data.get("accounts", {}).items():
            if not table.get("email"):
                raise ConfigError(f"Account '{name}' has no email address")
            unknown = set(table) - _ACCOUNT_KEYS
            if unknown:
                logger.warning(f"Ignoring unknown keys in account '{name}': {', '.join(sorted(unknown))}")
            settings = {key: value for key, value in table.items() if key in _ACCOUNT_KEYS}
            config.accounts[name] = Account(name=name, **settings)

        if config.default_account and config.default_account not in config.accounts:
            raise ConfigError(f"Default account '{config.default_account}' is not configured")

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Inverse of _from_dict.

        Unset optional settings are dropped since TOML has no null value.
        """
        accounts = {}
        for name, account in self.accounts.items():
            accounts[name] = {
                key: getattr(account, key)
                for key in sorted(_ACCOUNT_KEYS)
                if getattr(account, key) is not None
            }

        return {
            "general": {
                "default_account": self.default_account,
                "text_format": self.text_format,
            },
            "accounts": accounts,
        }


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised for unreadable or inconsistent configuration."""


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """Show where configuration is looked up (quill --paths)."""
    print(f"Config directory: {get_xdg_config_home()}")
    print(f"Config file:      {Config.config_file_path()}")
