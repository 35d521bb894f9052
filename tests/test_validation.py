"""Test suite for validation utilities.

Tests verify location input, coordinate, and phone number validation functions.
"""
import pytest

from src.utils.validation import validate_coordinates, validate_location_input, validate_phone_number


class TestValidateLocationInput:
    """Tests for the proximity search location box."""

    @pytest.mark.parametrize("text", ["Bondi", "2000", "Parramatta NSW 2150", "  Newtown  "])
    def test_valid(self, text):
        valid, msg = validate_location_input(text)
        assert valid is True
        assert msg == "Valid location"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty(self, text):
        valid, msg = validate_location_input(text)
        assert valid is False
        assert msg == "Enter a suburb or postcode"

    @pytest.mark.parametrize("text", ["200", "20001"])
    def test_postcode_length(self, text):
        valid, msg = validate_location_input(text)
        assert valid is False
        assert msg == "Postcodes must be 4 digits"

    def test_too_short(self):
        valid, msg = validate_location_input("Ry")
        assert valid is False
        assert "at least 3 characters" in msg


class TestValidateCoordinates:
    """Tests for coordinate validation."""

    def test_valid_coordinates(self):
        valid, msg = validate_coordinates(-33.8688, 151.2093)
        assert valid is True
        assert msg == "Valid coordinates"

    def test_zero_zero_is_valid(self):
        valid, _ = validate_coordinates(0, 0)
        assert valid is True

    def test_boundaries(self):
        assert validate_coordinates(90, 180)[0] is True
        assert validate_coordinates(-90, -180)[0] is True

    def test_latitude_out_of_range(self):
        valid, msg = validate_coordinates(91, 151)
        assert valid is False
        assert "Latitude" in msg

    def test_longitude_out_of_range(self):
        valid, msg = validate_coordinates(-33, -181)
        assert valid is False
        assert "Longitude" in msg

    def test_non_numeric(self):
        valid, msg = validate_coordinates("-33.8", 151.2)
        assert valid is False
        assert "numeric" in msg

    def test_booleans_rejected(self):
        assert validate_coordinates(True, 151.2)[0] is False

    def test_nan_rejected(self):
        valid, msg = validate_coordinates(float("nan"), 151.2)
        assert valid is False
        assert "NaN" in msg


class TestValidatePhoneNumber:
    """Tests for Australian phone number validation."""

    @pytest.mark.parametrize(
        "phone",
        ["02 9876 5432", "(02) 9876-5432", "0412 345 678", "+61 2 9876 5432", "1300 123 456", "13 12 34"],
    )
    def test_valid(self, phone):
        valid, msg = validate_phone_number(phone)
        assert valid is True, phone
        assert msg == "Valid phone number"

    def test_empty_is_optional(self):
        valid, msg = validate_phone_number("")
        assert valid is True
        assert "optional" in msg

    @pytest.mark.parametrize("phone", ["9876 5432", "12345", "2 9876 54321"])
    def test_invalid(self, phone):
        valid, msg = validate_phone_number(phone)
        assert valid is False
        assert "10 digits" in msg
