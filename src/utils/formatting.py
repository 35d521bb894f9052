"""Display helpers for service cards and the Streamlit error handler."""
import math
from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st

from src.directory.models import ProviderRecord

ADDRESS_PLACEHOLDER = "Address not available"
PHONE_PLACEHOLDER = "Phone not available"
EMAIL_PLACEHOLDER = "Email not available"
NAME_PLACEHOLDER = "Unknown Service"


def format_phone_number(phone: Any) -> Optional[str]:
    """
    Format an Australian phone number for display.

    Handles landlines ("02 9876 5432"), mobiles ("0412 345 678"), 1300/1800
    numbers ("1300 123 456"), 13 numbers ("13 12 34") and +61 prefixes.
    Numbers stored as floats by spreadsheet exports are accepted.

    Args:
        phone: Phone number as float, int, or string

    Returns:
        Formatted phone string, the original text if it cannot be recognized,
        or None when empty
    """
    if phone is None or (isinstance(phone, float) and math.isnan(phone)):
        return None

    if isinstance(phone, float):
        phone = str(int(phone))
    text = str(phone).strip()
    if not text:
        return None

    digits = "".join(filter(str.isdigit, text))
    if digits.startswith("61") and len(digits) == 11:
        digits = "0" + digits[2:]
    elif len(digits) == 9 and digits[0] in "23478":
        # Leading zero lost in a numeric column
        digits = "0" + digits

    if len(digits) == 10 and digits.startswith(("13", "18")):
        return f"{digits[:4]} {digits[4:7]} {digits[7:]}"
    if len(digits) == 10 and digits.startswith("04"):
        return f"{digits[:4]} {digits[4:7]} {digits[7:]}"
    if len(digits) == 10 and digits.startswith("0"):
        return f"{digits[:2]} {digits[2:6]} {digits[6:]}"
    if len(digits) == 6 and digits.startswith("13"):
        return f"{digits[:2]} {digits[2:4]} {digits[4:]}"
    return text


def format_distance(distance_km: Optional[float]) -> Optional[str]:
    """Return e.g. "12.3 km away", or None when there is no finite distance."""
    if distance_km is None:
        return None
    try:
        value = float(distance_km)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return f"{value:.1f} km away"


def list_window_start(total: int, page_size: int, current_start: int = 0, target_index: Optional[int] = None) -> int:
    """First row of the list page to render.

    With a ``target_index`` the page containing that row is chosen, which is
    how a marker click brings its row into view. Otherwise the current page is
    kept, clamped to the length of the list.
    """
    if total <= 0 or page_size <= 0:
        return 0
    if target_index is not None and 0 <= target_index < total:
        return (target_index // page_size) * page_size
    last_start = ((total - 1) // page_size) * page_size
    return min(max(current_start, 0), last_start)


def service_card_fields(record: ProviderRecord) -> Dict[str, Optional[str]]:
    """Display strings for one service card, with placeholders for missing fields."""
    return {
        "name": record.service_name or NAME_PLACEHOLDER,
        "program_type": record.program_type or None,
        "address": record.street_address or ADDRESS_PLACEHOLDER,
        "phone": format_phone_number(record.phone_number) or PHONE_PLACEHOLDER,
        "email": record.email or EMAIL_PLACEHOLDER,
        "distance": format_distance(record.distance_km),
        "link": record.service_path,
    }


def hover_text(row: pd.Series) -> str:
    """Marker hover label."""
    name = row.get("Service Name") or NAME_PLACEHOLDER
    address = row.get("Street Address") or ADDRESS_PLACEHOLDER
    return f"{name}<br>{address}"


def handle_streamlit_error(error: Exception, context: str = "operation") -> None:
    err = str(error)
    if "geocod" in err.lower():
        st.error(
            (
                "❌ **Location Error**: Unable to find the suburb or postcode you entered. "
                "Please check the spelling and try again."
            )
        )
    elif "network" in err.lower() or "connection" in err.lower():
        st.error("❌ **Network Error**: Unable to reach the directory service. Please check your internet connection.")
    elif "timeout" in err.lower() or "timed out" in err.lower():
        st.error("❌ **Timeout Error**: The directory service is taking too long to respond. Please try again.")
    elif "file" in err.lower() or "not found" in err.lower() or "directory data" in err.lower():
        st.error("❌ **Data Error**: The services directory could not be loaded. Please try again later.")
    else:
        st.error(f"❌ **Error during {context}**: {err}")

    st.exception(error)
