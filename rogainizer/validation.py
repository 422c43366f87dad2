"""Input parsing and cross-entity checks that run before any mutation."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from .errors import MembershipError, ValidationError


def _to_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings; booleans and blanks are not numbers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str) and value.strip():
        try:
            num = float(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    return num


def parse_id(value: Any, label: str) -> int:
    num = _to_number(value)
    if num is None or not num.is_integer() or num <= 0:
        raise ValidationError(f"invalid {label} id")
    return int(num)


def normalize_score(value: Any) -> Optional[float]:
    """Return the score as a number, or None when it is not finite and >= 0."""
    num = _to_number(value)
    if num is None or num < 0:
        return None
    return num


def parse_year(value: Any) -> int:
    num = _to_number(value)
    if num is None or not num.is_integer() or num <= 0:
        raise ValidationError("year must be a positive integer")
    return int(num)


def parse_duration(value: Any) -> float:
    num = _to_number(value)
    if num is None or num < 0:
        raise ValidationError("duration must be a finite non-negative number")
    return num


def parse_date(value: Any) -> date:
    """Accept ``YYYY-MM-DD``, ignoring any time component that follows."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("date must be in YYYY-MM-DD format") from None


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def require_fields(payload: dict, names: Iterable[str], message: str) -> None:
    if any(is_blank(payload.get(name)) for name in names):
        raise ValidationError(message)


def _allowed(values: List[str]) -> str:
    return ", ".join(values) or "(none configured)"


def validate_selections(
    courses: List[str],
    categories: List[str],
    course: Any,
    category: Any,
) -> Optional[MembershipError]:
    """Check a team's course, then its category, against the event's sets.

    Returns the first violation found, or None.
    """
    if course not in courses:
        return MembershipError(f"course must be one of the event courses: {_allowed(courses)}")
    if category not in categories:
        return MembershipError(f"category must be one of the event categories: {_allowed(categories)}")
    return None
