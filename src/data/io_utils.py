"""
Shared I/O utilities for loading directory datasets and detecting formats.

Key Functions:
- detect_file_format: Determine file format from filename or bytes
- load_dataframe: Universal data loader supporting multiple input types

Supported Formats:
- JSON (.json) - An array of records, the directory API's own format
- CSV (.csv) - Text-based exports
- Parquet (.parquet) - Columnar format for local snapshots
- In-memory buffers (BytesIO, bytes, memoryview, bytearray)
- pandas DataFrames (pass-through with column normalization)
"""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

PARQUET_MAGIC = b"PAR1"


def looks_like_json_bytes(buffer: BytesIO) -> bool:
    """Quick heuristic: JSON arrays/objects start with '[' or '{' after whitespace."""
    try:
        buffer.seek(0)
        head = buffer.read(64)
        buffer.seek(0)
    except Exception:
        return False
    stripped = head.lstrip()
    if stripped.startswith(b"\xef\xbb\xbf"):
        stripped = stripped[3:].lstrip()
    return stripped[:1] in (b"[", b"{")


def detect_file_format(filename: Optional[str] = None, buffer: Optional[BytesIO] = None) -> Optional[str]:
    """Detect file format from filename extension or buffer content.

    Args:
        filename: Optional filename to check for extension
        buffer: Optional BytesIO buffer to inspect

    Returns:
        'json', 'csv', 'parquet', or None
    """
    if filename:
        fname_lower = filename.lower()
        for suffix in ("json", "csv", "parquet"):
            if fname_lower.endswith(f".{suffix}"):
                return suffix

    if buffer is not None:
        buffer.seek(0)
        head = buffer.read(4)
        buffer.seek(0)
        if head == PARQUET_MAGIC:
            return "parquet"
        if looks_like_json_bytes(buffer):
            return "json"
        return "csv"

    return None


def _read(source: Union[Path, BytesIO], format_type: Optional[str]) -> pd.DataFrame:
    if format_type == "json":
        return pd.read_json(source, orient="records", dtype=False)
    if format_type == "parquet":
        return pd.read_parquet(source)
    if format_type == "csv":
        return pd.read_csv(source, dtype=str, keep_default_na=False)
    raise ValueError(f"Unsupported file type: {format_type}")


def load_dataframe(
    raw_input: Union[Path, str, BytesIO, bytes, pd.DataFrame, Any],
    *,
    filename: Optional[str] = None,
) -> pd.DataFrame:
    """Universal data loader supporting multiple input types and formats.

    Args:
        raw_input: Data source (file path, buffer, or DataFrame)
        filename: Optional filename for logging and format detection

    Returns:
        pd.DataFrame with normalized column names (whitespace stripped)

    Raises:
        FileNotFoundError: If file path doesn't exist
        TypeError: If input type is not supported
        ValueError: If the data cannot be read in the detected format
    """
    if isinstance(raw_input, pd.DataFrame):
        logger.info("Processing DataFrame with %d rows (source: %s)", len(raw_input), filename or "unknown")
        df = raw_input.copy()
        df.columns = df.columns.astype(str).str.strip()
        return df

    elif isinstance(raw_input, (Path, str)):
        raw_path = Path(raw_input)
        if not raw_path.exists():
            raise FileNotFoundError(f"File not found: {raw_path}")

        logger.info("Loading data from %s", raw_path)
        format_type = detect_file_format(raw_path.name)
        if format_type is None:
            raise ValueError(f"Unsupported file type: {raw_path.suffix}")
        df = _read(raw_path, format_type)
        df.columns = df.columns.astype(str).str.strip()
        return df

    else:
        logger.info("Loading data from memory (source: %s)", filename or "response body")

        if isinstance(raw_input, BytesIO):
            buffer = raw_input
        elif isinstance(raw_input, (bytes, bytearray, memoryview)):
            buffer = BytesIO(bytes(raw_input))
        else:
            raise TypeError(f"Cannot convert {type(raw_input)} to BytesIO")

        format_type = detect_file_format(filename, buffer)
        buffer.seek(0)
        try:
            df = _read(buffer, format_type)
        except Exception as e:
            raise ValueError(f"Could not read data as {format_type}. Filename hint: {filename}. Error: {e}") from e

        df.columns = df.columns.astype(str).str.strip()
        return df


__all__ = [
    "detect_file_format",
    "load_dataframe",
    "looks_like_json_bytes",
]
