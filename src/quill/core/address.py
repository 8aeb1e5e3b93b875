# =============================================================================
# Address Model
# =============================================================================
# A mailbox address with an optional display name, e.g.:
#
#   Alice Smith <alice@example.com>
#   alice@example.com
#
# The grammar itself is not ours: strings are split with email.utils and the
# addr-spec is validated by email.headerregistry.Address, which also renders
# the canonical string form (quoting display names that contain specials).
# =============================================================================

import email.errors
import email.headerregistry
import email.utils
from dataclasses import dataclass

from quill.core.errors import AddressParseError


@dataclass(frozen=True)
class Address:
    """
    Represents a single mailbox address.

    Two addresses are equal only if both the display name and the email
    match, so "Alice <a@x.com>" and "a@x.com" are different values.

    Attributes:
        email: The addr-spec, e.g. "alice@example.com".
        display_name: Optional human name, e.g. "Alice Smith".

    Example:
        >>> addr = Address.parse("Alice Smith <alice@example.com>")
        >>> addr.display_name
        'Alice Smith'
        >>> str(addr)
        'Alice Smith <alice@example.com>'
    """
    email: str
    display_name: str | None = None

    @classmethod
    def parse(cls, raw: str) -> "Address":
        """
        Parse a single address string.

        Args:
            raw: Address such as "Name <user@host>" or "user@host".

        Returns:
            The parsed Address.

        Raises:
            AddressParseError: If the string is not a valid mailbox.
        """
        name, addr_spec = email.utils.parseaddr(raw.strip())
        return cls._from_pair(name, addr_spec, raw)

    @classmethod
    def _from_pair(cls, name: str, addr_spec: str, raw: str) -> "Address":
        local, _, domain = addr_spec.rpartition("@")
        if not local or not domain:
            raise AddressParseError(f"cannot parse address {raw!r}")

        try:
            parsed = email.headerregistry.Address(display_name=name, addr_spec=addr_spec)
        except (ValueError, IndexError, email.errors.HeaderParseError) as e:
            raise AddressParseError(f"cannot parse address {raw!r}: {e}") from e

        return cls(email=parsed.addr_spec, display_name=parsed.display_name or None)

    @property
    def display(self) -> str:
        """Returns the display name if there is one, else the email."""
        return self.display_name or self.email

    def __str__(self) -> str:
        return str(
            email.headerregistry.Address(
                display_name=self.display_name or "",
                addr_spec=self.email,
            )
        )


def parse_addresses(raw: str) -> list[Address]:
    """
    Parse a comma-separated address list.

    Commas inside quoted display names ("Doe, Jane" <jane@x.com>) do not
    split. Blank entries are skipped, so an empty header value gives an
    empty list (the header is present but lists nobody).

    Raises:
        AddressParseError: If any entry fails to parse.
    """
    # Trailing separators would make getaddresses() count a missing entry
    value = raw.rstrip(", \t\r\n")

    addresses = []
    for name, addr_spec in email.utils.getaddresses([value]):
        if not name and not addr_spec:
            continue
        addresses.append(Address._from_pair(name, addr_spec, raw))

    # getaddresses() reports a malformed list as a single empty pair
    if value.strip(" \t\r\n,") and not addresses:
        raise AddressParseError(f"cannot parse addresses {raw!r}")
    return addresses


def format_addresses(addresses: list[Address]) -> str:
    """Render addresses as a comma-separated header value."""
    return ", ".join(str(addr) for addr in addresses)
