"""Tests for client, person and party reference generation."""

import pytest

from practice.clients.reference_generator import (
    alpha_from_name,
    generate_client_ref,
    generate_person_ref,
    is_valid_client_ref,
    is_valid_person_ref,
    next_suffix_letter,
    party_ref,
    portfolio_from_ref,
)


# =============================================================================
# NAME LETTER
# =============================================================================

class TestAlphaFromName:
    """First significant letter of a client name."""

    @pytest.mark.parametrize("name,expected", [
        ("Acme Widgets Ltd", "A"),
        ("The Acme Ltd", "A"),
        ("Mr John Smith", "J"),
        ("123 Homes", "H"),
        ("a b c", "B"),
    ])
    def test_letters(self, name, expected):
        assert alpha_from_name(name) == expected

    def test_empty_name_gives_x(self):
        """Blank names fall back to X."""
        assert alpha_from_name("") == "X"
        assert alpha_from_name(None) == "X"
        assert alpha_from_name("12345") == "X"


# =============================================================================
# CLIENT REFS
# =============================================================================

class TestClientRefs:
    """Client references are {portfolio}{ALPHA}{NNN}."""

    def test_first_ref_in_portfolio(self):
        assert generate_client_ref(3, "123 Homes", []) == "3H001"

    def test_continues_from_highest(self):
        """Numbering continues from the highest ref, gaps are not reused."""
        existing = ["1A001", "1A003", "1B004", "2A009"]
        assert generate_client_ref(1, "Apex Ltd", existing) == "1A004"

    def test_other_portfolios_ignored(self):
        assert generate_client_ref(2, "Beta Ltd", ["1B007"]) == "2B001"

    def test_two_digit_portfolio(self):
        ref = generate_client_ref(10, "Zed Ltd", ["10Z001"])
        assert ref == "10Z002"
        assert portfolio_from_ref(ref) == 10

    def test_validation(self):
        assert is_valid_client_ref("1A001")
        assert not is_valid_client_ref("1a001")
        assert not is_valid_client_ref("A001")
        assert not is_valid_client_ref("1A01")
        assert not is_valid_client_ref(None)

    def test_portfolio_from_invalid_ref(self):
        assert portfolio_from_ref("nonsense") is None


# =============================================================================
# PERSON AND PARTY REFS
# =============================================================================

class TestPersonAndPartyRefs:
    """Person refs and party suffix letters."""

    def test_person_ref_lowest_free(self):
        assert generate_person_ref([]) == "P001"
        assert generate_person_ref(["P001", "P003"]) == "P002"
        assert is_valid_person_ref("P002")

    def test_suffix_letters(self):
        assert next_suffix_letter([]) == "A"
        assert next_suffix_letter(["A", "C"]) == "B"

    def test_suffix_after_z(self):
        assert next_suffix_letter(list("ABCDEFGHIJKLMNOPQRSTUVWXYZ")) == "AA"

    def test_party_ref(self):
        assert party_ref("1A001", "B") == "1A001B"
