"""Test suite for shared I/O utilities module.

Tests verify that:
- File format detection works from filenames and buffer content
- JSON bytes detection works properly
- Universal data loader handles all input types
"""
import json
from io import BytesIO
from pathlib import Path

import pandas as pd
import pytest

from src.data.io_utils import detect_file_format, load_dataframe, looks_like_json_bytes

RECORDS = [
    {"service_name": "Sydney Heart Rehab", "lat": -33.87, "lng": 151.21, "program_type": "Public"},
    {"service_name": "Bondi Heart Health", "lat": -33.8915, "lng": 151.2767, "program_type": "Public"},
]


def test_looks_like_json_bytes_array():
    buffer = BytesIO(b'  [{"a": 1}]')
    assert looks_like_json_bytes(buffer) is True
    # Verify buffer position is reset
    assert buffer.tell() == 0


def test_looks_like_json_bytes_with_bom():
    assert looks_like_json_bytes(BytesIO(b'\xef\xbb\xbf{"error": "x"}')) is True


def test_looks_like_json_bytes_csv():
    assert looks_like_json_bytes(BytesIO(b"service_name,lat,lng\nA,1,2\n")) is False


def test_looks_like_json_bytes_empty():
    assert looks_like_json_bytes(BytesIO(b"")) is False


@pytest.mark.parametrize(
    "filename, expected",
    [("stores.json", "json"), ("STORES.CSV", "csv"), ("snapshot.parquet", "parquet"), ("stores.xlsx", None)],
)
def test_detect_file_format_from_name(filename, expected):
    assert detect_file_format(filename) == expected


def test_detect_file_format_from_buffer():
    assert detect_file_format(buffer=BytesIO(b"PAR1\x00\x00")) == "parquet"
    assert detect_file_format(buffer=BytesIO(json.dumps(RECORDS).encode())) == "json"
    assert detect_file_format(buffer=BytesIO(b"service_name,lat\nA,1\n")) == "csv"


def test_filename_takes_precedence_over_content():
    assert detect_file_format("export.csv", BytesIO(b"[1, 2]")) == "csv"


def test_detect_file_format_nothing_to_go_on():
    assert detect_file_format() is None


def test_load_dataframe_passthrough_strips_columns():
    df = pd.DataFrame({" service_name ": ["A"]})

    result = load_dataframe(df)

    assert list(result.columns) == ["service_name"]
    assert list(df.columns) == [" service_name "], "Input is not modified"


def test_load_dataframe_json_bytes():
    result = load_dataframe(json.dumps(RECORDS).encode("utf-8"))

    assert len(result) == 2
    assert result.loc[1, "service_name"] == "Bondi Heart Health"


def test_load_dataframe_csv_keeps_text():
    data = b"service_name,lat,lng,phone_number\nSydney Heart Rehab,-33.87,151.21,0298765432\nOutreach,,,\n"

    result = load_dataframe(BytesIO(data), filename="stores.csv")

    assert result.loc[0, "phone_number"] == "0298765432", "Leading zero survives"
    assert result.loc[1, "lat"] == ""


def test_load_dataframe_json_file(tmp_path):
    path = tmp_path / "stores.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")

    result = load_dataframe(path)

    assert list(result["service_name"]) == ["Sydney Heart Rehab", "Bondi Heart Health"]


def test_load_dataframe_csv_path_as_string(tmp_path):
    path = tmp_path / "stores.csv"
    pd.DataFrame(RECORDS).to_csv(path, index=False)

    result = load_dataframe(str(path))

    assert len(result) == 2


def test_load_dataframe_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_dataframe(tmp_path / "missing.json")


def test_load_dataframe_unsupported_extension(tmp_path):
    path = tmp_path / "stores.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported file type"):
        load_dataframe(path)


def test_load_dataframe_unreadable_bytes():
    with pytest.raises(ValueError, match="Could not read data as") as excinfo:
        load_dataframe(b"[not json", filename="stores.json")

    assert excinfo.value.__cause__ is not None, "Parser error is chained"


def test_load_dataframe_unknown_type():
    with pytest.raises(TypeError):
        load_dataframe(12345)


def test_load_dataframe_accepts_path_objects(tmp_path):
    path = Path(tmp_path) / "stores.json"
    path.write_text("[]", encoding="utf-8")

    assert load_dataframe(path).empty
