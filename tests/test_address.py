"""Tests for the Address model and address list helpers."""

import pytest

from quill.core import Address, AddressParseError, format_addresses, parse_addresses


class TestAddressParse:
    """Tests for Address.parse."""

    def test_bare_email(self):
        """A bare addr-spec has no display name."""
        addr = Address.parse("alice@x.com")

        assert addr.email == "alice@x.com"
        assert addr.display_name is None

    def test_name_and_email(self):
        """Display name and email are split."""
        addr = Address.parse("Alice Smith <alice@x.com>")

        assert addr.email == "alice@x.com"
        assert addr.display_name == "Alice Smith"

    def test_surrounding_whitespace_ignored(self):
        """Leading and trailing whitespace is not part of the address."""
        assert Address.parse("  alice@x.com  ") == Address(email="alice@x.com")

    def test_quoted_display_name(self):
        """Quoted display names may contain specials."""
        addr = Address.parse('"Smith, Alice" <alice@x.com>')

        assert addr.display_name == "Smith, Alice"

    @pytest.mark.parametrize("raw", ["", "alice", "Alice <>", "@x.com", "alice@"])
    def test_invalid_addresses(self, raw):
        """Strings without a local part and domain are rejected."""
        with pytest.raises(AddressParseError):
            Address.parse(raw)


class TestAddressString:
    """Tests for the string form of addresses."""

    @pytest.mark.parametrize(
        "raw",
        [
            "alice@x.com",
            "Alice <alice@x.com>",
            '"Smith, Alice" <alice@x.com>',
        ],
    )
    def test_round_trip(self, raw):
        """Parsing the string form gives back the same address."""
        addr = Address.parse(raw)

        assert str(addr) == raw
        assert Address.parse(str(addr)) == addr

    def test_display_falls_back_to_email(self):
        """display is the name when there is one, else the email."""
        assert Address(email="a@x.com", display_name="A").display == "A"
        assert Address(email="a@x.com").display == "a@x.com"

    def test_equality_is_by_full_value(self):
        """A named address differs from the bare one."""
        assert Address(email="a@x.com", display_name="A") != Address(email="a@x.com")


class TestAddressLists:
    """Tests for parse_addresses and format_addresses."""

    def test_parse_comma_separated(self):
        """Entries are parsed in order."""
        addrs = parse_addresses("alice@x.com, Bob <bob@x.com>")

        assert addrs == [
            Address(email="alice@x.com"),
            Address(email="bob@x.com", display_name="Bob"),
        ]

    def test_parse_empty_value(self):
        """An empty header value gives an empty list."""
        assert parse_addresses("") == []
        assert parse_addresses("  ") == []

    def test_parse_quoted_comma(self):
        """A comma inside a quoted display name does not split the list."""
        addrs = parse_addresses('"Doe, Jane" <jane@x.com>, bob@x.com')

        assert addrs == [
            Address(email="jane@x.com", display_name="Doe, Jane"),
            Address(email="bob@x.com"),
        ]

    def test_parse_blank_entries_skipped(self):
        """Stray separators do not produce addresses."""
        assert parse_addresses("alice@x.com,") == [Address(email="alice@x.com")]

    def test_parse_invalid_entry(self):
        """One bad entry fails the whole list."""
        with pytest.raises(AddressParseError):
            parse_addresses("alice@x.com, nope")

    def test_format(self):
        """Addresses are joined with a comma and a space."""
        addrs = [Address(email="alice@x.com"), Address(email="bob@x.com", display_name="Bob")]

        assert format_addresses(addrs) == "alice@x.com, Bob <bob@x.com>"
        assert parse_addresses(format_addresses(addrs)) == addrs
