"""
Unit tests for field grammars and canonical forms.
"""
import math

import pytest

from garagebook.lib.validation import (
    normalize_email,
    normalize_phone,
    normalize_plate,
    normalize_postcode,
    validate_coordinates,
)


class TestPlate:
    """Vehicle registration plates."""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["AB12CDE", "ab12 cde", " AB12 CDE ", "Ab12cDe"])
    def test_accepts_and_canonicalizes(self, raw):
        assert normalize_plate(raw) == "AB12CDE"

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["ABCDEFG", "AB1 CD", "A123BCD", "AB12CD", "AB12CDEF"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError, match="not a valid registration"):
            normalize_plate(raw)

    @pytest.mark.unit
    def test_rejects_more_than_one_space(self):
        with pytest.raises(ValueError, match="at most one space"):
            normalize_plate("AB 12 CDE")

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["ab12  cde", "AB12\t\tCDE", "AB12 \tCDE"])
    def test_rejects_run_of_interior_whitespace(self, raw):
        with pytest.raises(ValueError, match="at most one space"):
            normalize_plate(raw)

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_rejects_empty(self, raw):
        with pytest.raises(ValueError, match="required"):
            normalize_plate(raw)


class TestPostcode:
    """UK postcodes."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ME1 1AA", "ME1 1AA"),
            ("me11aa", "ME1 1AA"),
            ("SW1A 1AA", "SW1A 1AA"),
            ("ec1a1bb", "EC1A 1BB"),
            ("M1 1AE", "M1 1AE"),
            ("B33 8TH", "B33 8TH"),
        ],
    )
    def test_canonical_form(self, raw, expected):
        assert normalize_postcode(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["", "12345", "ME1", "ME1 AAA", "1ME 1AA"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError, match="not a valid postcode"):
            normalize_postcode(raw)


class TestPhone:
    """UK phone numbers."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("07123456789", "07123456789"),
            ("07123 456 789", "07123456789"),
            ("(01634) 123-456", "01634123456"),
            ("+447123456789", "07123456789"),
            ("+44 7123 456789", "07123456789"),
        ],
    )
    def test_canonical_domestic_form(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["12345", "7123456789", "+1555123456", "07abc456789"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError, match="not a valid UK phone number"):
            normalize_phone(raw)


class TestEmail:

    @pytest.mark.unit
    def test_lowercases(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["alice", "alice@", "@example.com", "alice@example"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError, match="not a valid email"):
            normalize_email(raw)


class TestCoordinates:

    @pytest.mark.unit
    def test_both_absent(self):
        assert validate_coordinates(None, None) == (None, None)

    @pytest.mark.unit
    def test_both_present(self):
        assert validate_coordinates(51.38, 0.52) == (51.38, 0.52)

    @pytest.mark.unit
    @pytest.mark.parametrize("lat,lng", [(51.38, None), (None, 0.52)])
    def test_must_be_paired(self, lat, lng):
        with pytest.raises(ValueError, match="together"):
            validate_coordinates(lat, lng)

    @pytest.mark.unit
    @pytest.mark.parametrize("lat,lng", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0)])
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValueError, match="out of range"):
            validate_coordinates(lat, lng)

    @pytest.mark.unit
    def test_rejects_nan(self):
        with pytest.raises(ValueError, match="finite"):
            validate_coordinates(math.nan, 0.0)
