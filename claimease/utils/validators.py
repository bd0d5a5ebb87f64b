# claimease/utils/validators.py
"""Field-level validation helpers shared by services and request schemas."""

import calendar
import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from claimease.core.exceptions import ValidationFailedError

PHONE_PATTERN = re.compile(r"^\d{10}$")
EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")

_MARKUP_PATTERN = re.compile(r"<[^>]*>|javascript:|on\w+\s*=", re.IGNORECASE)


# ===================
# Dates
# ===================

def add_years(start: date, years: int) -> date:
    """Add calendar years; 29 February rolls forward to 1 March in common years."""
    target_year = start.year + years
    if start.month == 2 and start.day == 29 and not calendar.isleap(target_year):
        return date(target_year, 3, 1)
    return start.replace(year=target_year)


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


# ===================
# Amounts
# ===================

def is_valid_amount(value: Optional[float], minimum: Optional[float] = None) -> bool:
    """A finite number, at least ``minimum`` when given and positive otherwise."""
    if value is None or isinstance(value, bool) or not math.isfinite(value):
        return False
    return value > 0 if minimum is None else value >= minimum


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded away from zero."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


# ===================
# Text
# ===================

def is_plain_text(value: str) -> bool:
    """False if the value carries markup tags or inline script patterns."""
    return not _MARKUP_PATTERN.search(value or "")


def is_valid_phone(value: Optional[str]) -> bool:
    return bool(value) and bool(PHONE_PATTERN.match(value))


def is_valid_user_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


# ===================
# Error collection
# ===================

class FieldErrors:
    """Accumulates ``{field, message}`` pairs and raises them together."""

    def __init__(self):
        self.errors: List[Dict[str, str]] = []

    def add(self, field: str, message: str):
        self.errors.append({"field": field, "message": message})

    def check(self, condition: bool, field: str, message: str):
        if not condition:
            self.add(field, message)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def raise_if_any(self):
        if self.errors:
            raise ValidationFailedError(self.errors)


def normalize_field_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Convert any supported error entry shape to ``{field, message}``.

    Accepted shapes:
        {"param": ..., "msg": ...}      request-schema errors
        {"field": ..., "message": ...}  domain errors
        {"loc": [...], "msg": ...}      raw pydantic errors
        {"path": ..., "msg": ...}       legacy validator output
    """
    normalized = []
    for entry in errors or []:
        if not isinstance(entry, dict):
            continue
        if "loc" in entry:
            loc = [str(part) for part in entry["loc"] if part not in ("body", "query", "path", "form")]
            field = ".".join(loc)
        else:
            field = entry.get("field") or entry.get("param") or entry.get("path") or ""
        message = entry.get("message") or entry.get("msg") or ""
        normalized.append({"field": str(field), "message": str(message)})
    return normalized
