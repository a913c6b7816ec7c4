"""Shared validation utilities"""

import math
import re
from typing import Any, Optional

DAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
DAY_LABELS = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}
MAX_SLOTS_PER_DAY = 3

TIME_PATTERN = re.compile(r"[0-9]{2}:[0-9]{2}")


def is_valid_time_slot(start: Any, end: Any) -> bool:
    """
    Check a single availability slot.

    Both ends must be zero-padded HH:MM strings and start must sort before end.
    Lexicographic order equals chronological order for this format.
    """
    if not isinstance(start, str) or not isinstance(end, str):
        return False
    if not TIME_PATTERN.fullmatch(start) or not TIME_PATTERN.fullmatch(end):
        return False
    return start < end


def validate_availability(availability: dict[str, list[dict[str, Any]]]) -> dict[str, list[dict[str, str]]]:
    """
    Validate a weekly availability map and return it with all seven days present.

    Args:
        availability: Mapping of day key (mon..sun) to a list of {"start", "end"} slots

    Returns:
        Normalized mapping with every day key in order and slot order preserved

    Raises:
        ValueError: If a day key is unknown, a day has more than 3 slots,
            or a slot is malformed or not increasing
    """
    unknown = [day for day in availability if day not in DAY_KEYS]
    if unknown:
        raise ValueError(f"Unknown day: {unknown[0]}")

    normalized: dict[str, list[dict[str, str]]] = {}
    for day in DAY_KEYS:
        slots = availability.get(day) or []
        if len(slots) > MAX_SLOTS_PER_DAY:
            raise ValueError(
                f"{DAY_LABELS[day]} has more than {MAX_SLOTS_PER_DAY} time slots"
            )
        for slot in slots:
            if not is_valid_time_slot(slot.get("start"), slot.get("end")):
                raise ValueError(f"Check the time slots for {DAY_LABELS[day]}")
        # Overlapping slots within a day are accepted as-is
        normalized[day] = [{"start": slot["start"], "end": slot["end"]} for slot in slots]

    return normalized


def empty_availability() -> dict[str, list[dict[str, str]]]:
    return {day: [] for day in DAY_KEYS}


def read_availability(stored: Optional[dict]) -> dict[str, list[dict[str, str]]]:
    """Fill missing days of a stored availability map with empty lists"""
    stored = stored or {}
    return {day: list(stored.get(day) or []) for day in DAY_KEYS}


def validate_fee_range(price_min: Optional[float], price_max: Optional[float]) -> None:
    """
    Validate a session fee range.

    Raises:
        ValueError: If either bound is not finite, is negative, or the minimum exceeds the maximum
    """
    for value in (price_min, price_max):
        if value is not None and not math.isfinite(value):
            raise ValueError("Fees must be finite numbers")
        if value is not None and value < 0:
            raise ValueError("Fees cannot be negative")

    if price_min is not None and price_max is not None and price_min > price_max:
        raise ValueError("minimum cannot exceed maximum")


def validate_not_blank(value: Optional[str], field: str) -> str:
    """Strip a required text field and reject empty values"""
    if value is None or not value.strip():
        raise ValueError(f"{field} is required")
    return value.strip()


def safe_next_path(next_path: Optional[str], prefix: str, default: str) -> str:
    """
    Return a post-login destination that stays inside this site.

    Only relative paths under `prefix` are accepted; anything else falls back to `default`.
    """
    if not next_path or next_path.startswith("//"):
        return default
    if next_path != prefix and not next_path.startswith(f"{prefix}/") and not next_path.startswith(
        f"{prefix}?"
    ):
        return default
    return next_path
