# =============================================================================
# tests/test_phone.py - Phone Normalization Tests
# =============================================================================

import pytest

from lib.phone import normalize_phone, phone_lookup_candidates, to_domestic


class TestNormalizePhone:
    """Tests for normalize_phone with the default country code."""

    @pytest.mark.parametrize("raw", [
        "+821012345678",
        "+82 10-1234-5678",
        "821012345678",
        "01012345678",
        "010-1234-5678",
        "1012345678",
    ])
    def test_forms_of_the_same_number_agree(self, raw):
        """Every common spelling normalizes to the same international form."""
        assert normalize_phone(raw) == "+821012345678"

    def test_short_input_returned_unchanged(self):
        assert normalize_phone("12345") == "12345"

    def test_short_number_with_country_prefix_is_treated_as_domestic(self):
        """'82' followed by too few digits is not an international number."""
        assert normalize_phone("8212345678") == "+828212345678"

    def test_other_country_code(self):
        assert normalize_phone("07911123456", country_code="44") == "+447911123456"

    def test_empty_string(self):
        assert normalize_phone("") == ""

    @pytest.mark.parametrize("raw", [
        "010-1234-5678",
        "+82 10 1234 5678",
        "031-123-4567",
        "1012345678",
        "12345",
    ])
    def test_normalizing_twice_changes_nothing(self, raw):
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


class TestDomesticForm:
    """Tests for the login fallback form."""

    @pytest.mark.parametrize("domestic", [
        "010-1234-5678",
        "01012345678",
        "02-123-4567",
        "031-1234-5678",
        "0101234567",
    ])
    def test_domestic_round_trip_keeps_digits(self, domestic):
        digits = "".join(ch for ch in domestic if ch.isdigit())
        assert to_domestic(normalize_phone(domestic)) == digits

    def test_to_domestic(self):
        assert to_domestic("+821012345678") == "01012345678"

    def test_to_domestic_foreign_number(self):
        assert to_domestic("+15551234567") is None

    def test_lookup_candidates_international_first(self):
        assert phone_lookup_candidates("+821012345678") == ["+821012345678", "01012345678"]

    def test_lookup_candidates_without_domestic_form(self):
        assert phone_lookup_candidates("+15551234567") == ["+15551234567"]
