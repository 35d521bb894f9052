"""Directory record normalization and data-quality checks."""
import logging
from typing import Any, Dict, Iterable, Mapping, Union

import numpy as np
import pandas as pd

from src.directory.models import (
    DIRECTORY_COLUMNS,
    EMAIL,
    LATITUDE,
    LONGITUDE,
    PHONE_NUMBER,
    PROGRAM_TYPE,
    SERVICE_NAME,
    STREET_ADDRESS,
    WEBSITE,
    Facet,
    valid_position_mask,
)
from src.utils.validation import validate_phone_number

logger = logging.getLogger(__name__)

# Field names used by the directory API, mapped to dataset columns
RAW_FIELD_MAPPING = {
    "website": WEBSITE,
    "service_name": SERVICE_NAME,
    "street_address": STREET_ADDRESS,
    "lat": LATITUDE,
    "lng": LONGITUDE,
    "phone_number": PHONE_NUMBER,
    "email": EMAIL,
    "program_type": PROGRAM_TYPE,
}

TEXT_COLUMNS = (WEBSITE, SERVICE_NAME, STREET_ADDRESS, PHONE_NUMBER, EMAIL, PROGRAM_TYPE)

PROGRAM_TYPE_MAPPING = {
    "PUBLIC": Facet.PUBLIC.value,
    "PRIVATE": Facet.PRIVATE.value,
}


def safe_numeric_conversion(value: Any, default: float = np.nan) -> float:
    """Convert ``value`` to float, returning ``default`` for blanks and junk."""
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if np.isfinite(result) else default


def validate_and_clean_coordinates(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce Latitude/Longitude to floats and blank out unusable pairs.

    Empty strings and non-numeric values become NaN. A pair where either
    value is missing or out of range is set to NaN on both sides, so the
    record stays searchable by keyword but never reaches a map or distance.
    """
    df = df.copy()
    for col in (LATITUDE, LONGITUDE):
        if col not in df.columns:
            df[col] = np.nan
        df[col] = df[col].map(safe_numeric_conversion).astype(float)

    invalid = ~valid_position_mask(df)
    dropped = int((invalid & (df[LATITUDE].notna() | df[LONGITUDE].notna())).sum())
    if dropped:
        logger.warning(f"Discarding {dropped} out-of-range or partial coordinate pairs")
    df.loc[invalid, [LATITUDE, LONGITUDE]] = np.nan
    return df


def _clean_text(series: pd.Series) -> pd.Series:
    cleaned = series.astype(str).str.strip()
    return cleaned.replace(["nan", "None", "NaN", "null"], "").fillna("")


def normalize_program_type(value: Any) -> str:
    """Map any case variant of public/private to the canonical label."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return ""
    text = str(value).strip()
    return PROGRAM_TYPE_MAPPING.get(text.upper(), text)


def normalize_directory_records(
    raw: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
) -> pd.DataFrame:
    """Turn raw directory records into the canonical dataset.

    Accepts the API's list of objects or a DataFrame with either the API
    field names or the dataset column names. The result has exactly the
    directory columns, a fresh RangeIndex that serves as record keys, and
    original record order.
    """
    df = raw.copy() if isinstance(raw, pd.DataFrame) else pd.DataFrame(list(raw))
    df.columns = [str(col).strip() for col in df.columns]
    df = df.rename(columns={k: v for k, v in RAW_FIELD_MAPPING.items() if k in df.columns})

    for col in DIRECTORY_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan if col in (LATITUDE, LONGITUDE) else ""

    df = df[DIRECTORY_COLUMNS].reset_index(drop=True)

    for col in TEXT_COLUMNS:
        df[col] = _clean_text(df[col])
    df[PROGRAM_TYPE] = df[PROGRAM_TYPE].map(normalize_program_type)

    df = validate_and_clean_coordinates(df)
    logger.info(f"Normalized {len(df)} directory records")
    return df


def _count_invalid_phone_numbers(df: pd.DataFrame) -> int:
    if PHONE_NUMBER not in df.columns:
        return 0
    phones = df[PHONE_NUMBER].fillna("").astype(str)
    return int(sum(not validate_phone_number(phone)[0] for phone in phones))


def validate_directory_data(df: pd.DataFrame) -> Dict[str, Any]:
    """Summarize dataset quality for the page's data-quality expander.

    Returns:
        Dictionary with totals, missing-coordinate and unknown-ownership counts
        and a list of human-readable warnings.
    """
    if df is None or df.empty:
        return {
            "total_records": 0,
            "with_coordinates": 0,
            "missing_coordinates": 0,
            "unknown_program_type": 0,
            "missing_service_name": 0,
            "missing_website": 0,
            "invalid_phone_number": 0,
            "warnings": ["Directory dataset is empty"],
        }

    total = len(df)
    with_coordinates = int(valid_position_mask(df).sum())
    known_types = {Facet.PUBLIC.value, Facet.PRIVATE.value}
    unknown_program_type = int((~df[PROGRAM_TYPE].isin(known_types)).sum()) if PROGRAM_TYPE in df.columns else total
    missing_name = int((df[SERVICE_NAME].fillna("") == "").sum()) if SERVICE_NAME in df.columns else total
    missing_website = int((df[WEBSITE].fillna("") == "").sum()) if WEBSITE in df.columns else total
    invalid_phone = _count_invalid_phone_numbers(df)

    warnings = []
    if with_coordinates < total:
        warnings.append(f"{total - with_coordinates} services have no usable map position")
    if unknown_program_type:
        warnings.append(f"{unknown_program_type} services have an unknown program type")
    if missing_name:
        warnings.append(f"{missing_name} services are missing a service name")
    if missing_website:
        warnings.append(f"{missing_website} services have no service page")
    if invalid_phone:
        warnings.append(f"{invalid_phone} services have a phone number that is not a valid Australian number")

    return {
        "total_records": total,
        "with_coordinates": with_coordinates,
        "missing_coordinates": total - with_coordinates,
        "unknown_program_type": unknown_program_type,
        "missing_service_name": missing_name,
        "missing_website": missing_website,
        "invalid_phone_number": invalid_phone,
        "warnings": warnings,
    }
