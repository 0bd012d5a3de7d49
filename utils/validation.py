import re
from datetime import datetime, timedelta
from typing import Dict, Tuple

from flask import current_app

from models.status import BookingStatus
from utils.slots import is_aligned
from utils.timeutils import as_utc, parse_iso

# Pragmatic check: local part, "@", domain with a dot. Not RFC 5322.
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NAME_MIN_LEN = 2
NAME_MAX_LEN = 120
EMAIL_MAX_LEN = 254

BOOKING_FIELDS = ("slot_start", "customer_name", "customer_email", "status")
RANGE_FIELDS = ("start_date", "end_date")

_DEFAULTS = {
    "BOOKING_SLOT_MINUTES": 30,
    "BUSINESS_START_HOUR": 9,
    "BUSINESS_END_HOUR": 18,
    "MAX_RANGE_DAYS": 31,
}


def _cfg(name: str):
    # outside an app context (plain unit use) the defaults apply
    try:
        return current_app.config.get(name, _DEFAULTS[name])
    except RuntimeError:
        return _DEFAULTS[name]


def slot_duration_ms() -> int:
    return int(_cfg("BOOKING_SLOT_MINUTES")) * 60 * 1000


def business_window_ms() -> Tuple[int, int]:
    hour = 60 * 60 * 1000
    return int(_cfg("BUSINESS_START_HOUR")) * hour, int(_cfg("BUSINESS_END_HOUR")) * hour


def _coerce_datetime(value):
    # OverflowError: the value only leaves datetime's year range once shifted to UTC
    try:
        if isinstance(value, datetime):
            return as_utc(value)
        if isinstance(value, str) and value.strip():
            return parse_iso(value.strip())
    except (ValueError, OverflowError):
        return None
    return None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def check_name(name) -> str:
    if not isinstance(name, str):
        return '"customer_name" must be a string'
    name = name.strip()
    if len(name) < NAME_MIN_LEN:
        return f'"customer_name" must be at least {NAME_MIN_LEN} characters long'
    if len(name) > NAME_MAX_LEN:
        return f'"customer_name" must be at most {NAME_MAX_LEN} characters long'
    return None


def check_email(email) -> str:
    if not isinstance(email, str):
        return '"customer_email" must be a string'
    email = normalize_email(email)
    if len(email) > EMAIL_MAX_LEN:
        return f'"customer_email" must be at most {EMAIL_MAX_LEN} characters long'
    if not EMAIL_RE.match(email):
        return '"customer_email" must be a valid email'
    return None


def check_slot_start(value) -> str:
    if not isinstance(value, datetime):
        return '"slot_start" must be a valid date'
    if not is_aligned(value, slot_duration_ms()):
        minutes = slot_duration_ms() // 60000
        return f'"slot_start" must be aligned to {minutes}-minute slot boundaries (UTC)'
    return None


def check_status(value) -> str:
    if value not in BookingStatus.values():
        return '"status" must be one of: ' + ", ".join(BookingStatus.values())
    return None


def validate_booking_input(data) -> Tuple[dict, Dict[str, str]]:
    """
    Validate a create-booking payload.

    Returns (cleaned, errors). ``errors`` maps every failing field to its
    message so the caller can report them all at once; ``cleaned`` is only
    meaningful when ``errors`` is empty.
    """
    if not isinstance(data, dict):
        return {}, {"body": "JSON object expected"}

    errors: Dict[str, str] = {}

    for key in data:
        if key not in BOOKING_FIELDS:
            errors[key] = f'"{key}" is not an allowed field'

    slot_start = _coerce_datetime(data.get("slot_start"))
    if "slot_start" not in data:
        errors["slot_start"] = '"slot_start" is required'
    else:
        msg = check_slot_start(slot_start)
        if msg:
            errors["slot_start"] = msg

    for field, check in (("customer_name", check_name), ("customer_email", check_email)):
        if field not in data:
            errors[field] = f'"{field}" is required'
            continue
        msg = check(data[field])
        if msg:
            errors[field] = msg

    status = data.get("status")
    if status is not None:
        msg = check_status(status)
        if msg:
            errors["status"] = msg
        elif status != BookingStatus.PENDING.value:
            errors["status"] = '"status" must be "pending" when creating a booking'

    if errors:
        return {}, errors

    return {
        "slot_start": slot_start,
        "customer_name": data["customer_name"].strip(),
        "customer_email": normalize_email(data["customer_email"]),
    }, errors


def validate_range_query(args) -> Tuple[dict, Dict[str, str]]:
    errors: Dict[str, str] = {}

    for key in args:
        if key not in RANGE_FIELDS:
            errors[key] = f'"{key}" is not an allowed parameter'

    cleaned = {}
    for field in RANGE_FIELDS:
        value = _coerce_datetime(args.get(field))
        if value is None:
            errors[field] = f'"{field}" must be a valid date'
        cleaned[field] = value

    start, end = cleaned["start_date"], cleaned["end_date"]
    if start is not None and end is not None:
        max_days = int(_cfg("MAX_RANGE_DAYS"))
        if start > end:
            errors["start_date"] = '"start_date" must be before or equal to "end_date"'
        elif end - start > timedelta(days=max_days):
            errors["end_date"] = f"Date range cannot exceed {max_days} days"

    if errors:
        return {}, errors
    return cleaned, errors
