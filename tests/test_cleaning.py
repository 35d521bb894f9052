"""Test suite for directory record normalization.

Tests verify API field mapping, text cleanup, program type normalization,
coordinate validation and the data-quality summary.
"""
import numpy as np
import pandas as pd
import pytest

from src.directory.models import DIRECTORY_COLUMNS
from src.utils.cleaning import (
    normalize_directory_records,
    normalize_program_type,
    safe_numeric_conversion,
    validate_and_clean_coordinates,
    validate_directory_data,
)


@pytest.fixture
def api_records():
    return [
        {
            "website": "sydney-heart-rehab",
            "service_name": "  Sydney Heart Rehab ",
            "street_address": "1 Example Street, Sydney NSW 2000",
            "lat": "-33.87",
            "lng": "151.21",
            "phone_number": "0298765432",
            "email": "info@example.org",
            "program_type": "public",
        },
        {
            "website": "mobile-outreach",
            "service_name": "Mobile Cardiac Outreach",
            "lat": "",
            "lng": None,
            "program_type": "PRIVATE",
        },
        {
            "website": "",
            "service_name": "Bad Coordinates Clinic",
            "lat": 95,
            "lng": 151,
            "program_type": "Community",
        },
    ]


class TestNormalizeDirectoryRecords:
    """Tests for turning API records into the canonical dataset."""

    def test_columns_and_index(self, api_records):
        result = normalize_directory_records(api_records)

        assert list(result.columns) == DIRECTORY_COLUMNS
        assert isinstance(result.index, pd.RangeIndex)
        assert list(result.index) == [0, 1, 2], "Record keys follow original order"

    def test_text_is_trimmed_and_missing_is_blank(self, api_records):
        result = normalize_directory_records(api_records)

        assert result.loc[0, "Service Name"] == "Sydney Heart Rehab"
        assert result.loc[1, "Street Address"] == "", "Missing fields become empty strings"
        assert result.loc[1, "Email"] == ""

    def test_program_type_normalized(self, api_records):
        result = normalize_directory_records(api_records)

        assert list(result["Program Type"]) == ["Public", "Private", "Community"]

    def test_coordinates(self, api_records):
        result = normalize_directory_records(api_records)

        assert result.loc[0, "Latitude"] == pytest.approx(-33.87)
        assert result.loc[0, "Longitude"] == pytest.approx(151.21)
        assert pd.isna(result.loc[1, "Latitude"]) and pd.isna(result.loc[1, "Longitude"])
        assert pd.isna(result.loc[2, "Latitude"]) and pd.isna(result.loc[2, "Longitude"]), "Out of range pair is dropped"

    def test_accepts_dataset_column_names(self, directory_df):
        result = normalize_directory_records(directory_df)

        assert list(result["Service Name"]) == list(directory_df["Service Name"])
        assert result["Latitude"].isna().sum() == 1

    def test_does_not_modify_input(self, directory_df):
        before = directory_df.copy()

        normalize_directory_records(directory_df)

        pd.testing.assert_frame_equal(directory_df, before)

    def test_empty_input(self):
        result = normalize_directory_records([])

        assert result.empty
        assert list(result.columns) == DIRECTORY_COLUMNS


class TestCoordinates:
    def test_zero_zero_is_kept(self):
        result = validate_and_clean_coordinates(pd.DataFrame({"Latitude": [0], "Longitude": [0]}))

        assert result.loc[0, "Latitude"] == 0.0
        assert result.loc[0, "Longitude"] == 0.0

    def test_partial_pair_blanked_on_both_sides(self):
        result = validate_and_clean_coordinates(pd.DataFrame({"Latitude": ["-33.9"], "Longitude": ["abc"]}))

        assert pd.isna(result.loc[0, "Latitude"])
        assert pd.isna(result.loc[0, "Longitude"])

    def test_longitude_out_of_range(self):
        result = validate_and_clean_coordinates(pd.DataFrame({"Latitude": [-33.9], "Longitude": [181.0]}))

        assert result["Latitude"].isna().all()

    def test_missing_columns_added(self):
        result = validate_and_clean_coordinates(pd.DataFrame({"Service Name": ["A"]}))

        assert result["Latitude"].isna().all()
        assert result["Longitude"].isna().all()


class TestSafeNumericConversion:
    @pytest.mark.parametrize(
        "value, expected",
        [("  12.5 ", 12.5), (7, 7.0), ("-33.8688", -33.8688)],
    )
    def test_numbers(self, value, expected):
        assert safe_numeric_conversion(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "   ", "abc", None, float("inf"), np.nan])
    def test_junk_returns_default(self, value):
        assert safe_numeric_conversion(value, default=-1.0) == -1.0


class TestNormalizeProgramType:
    @pytest.mark.parametrize("value", ["public", "PUBLIC", " Public "])
    def test_public(self, value):
        assert normalize_program_type(value) == "Public"

    def test_private(self):
        assert normalize_program_type("private") == "Private"

    def test_unknown_passes_through(self):
        assert normalize_program_type("Community Health") == "Community Health"

    def test_missing(self):
        assert normalize_program_type(None) == ""
        assert normalize_program_type(np.nan) == ""


class TestValidateDirectoryData:
    def test_summary(self, directory_df):
        report = validate_directory_data(directory_df)

        assert report["total_records"] == 6
        assert report["with_coordinates"] == 5
        assert report["missing_coordinates"] == 1
        assert report["unknown_program_type"] == 0
        assert report["warnings"] == ["1 services have no usable map position"]

    def test_counts_quality_problems(self, api_records):
        report = validate_directory_data(normalize_directory_records(api_records))

        assert report["with_coordinates"] == 1
        assert report["unknown_program_type"] == 1
        assert report["missing_website"] == 1
        assert len(report["warnings"]) == 3

    def test_invalid_phone_numbers_counted(self, directory_df):
        df = directory_df.copy()
        df.loc[1, "Phone Number"] = "9876 5432"
        df.loc[2, "Phone Number"] = ""

        report = validate_directory_data(df)

        assert report["invalid_phone_number"] == 1, "Blank numbers are optional"
        assert "1 services have a phone number that is not a valid Australian number" in report["warnings"]

    def test_empty(self):
        report = validate_directory_data(pd.DataFrame())

        assert report["total_records"] == 0
        assert report["warnings"] == ["Directory dataset is empty"]
