# lotbook/dates.py
"""Expiry dates as YYYYMMDD integers: building, validating and formatting keys."""
from __future__ import annotations

import calendar
import re

from .models import ExpiryDate

MIN_YEAR = 2000
MAX_YEAR = 2100

_SPLIT = re.compile(r"[\s/.\-]+")


def to_key(day: int, month: int, year: int) -> ExpiryDate:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    last = calendar.monthrange(year, month)[1]
    if not 1 <= day <= last:
        raise ValueError(f"day must be between 1 and {last} for {month:02d}/{year}")
    return year * 10000 + month * 100 + day


def split_key(key: ExpiryDate):
    return key % 100, (key // 100) % 100, key // 10000


def is_valid_key(key: ExpiryDate) -> bool:
    if isinstance(key, bool) or not isinstance(key, int):
        return False
    day, month, year = split_key(key)
    try:
        to_key(day, month, year)
    except ValueError:
        return False
    return True


def parse_date(text: str) -> ExpiryDate:
    """Accepts 'DD MM YYYY', 'DD/MM/YYYY' or a bare YYYYMMDD key."""
    raw = text.strip()
    if raw.isdigit() and len(raw) == 8:
        key = int(raw)
        if not is_valid_key(key):
            raise ValueError(f"invalid date: {text!r}")
        return key
    parts = [p for p in _SPLIT.split(raw) if p]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"expected DD MM YYYY, got {text!r}")
    day, month, year = (int(p) for p in parts)
    return to_key(day, month, year)


def format_key(key: ExpiryDate) -> str:
    day, month, year = split_key(key)
    return f"{day:02d}/{month:02d}/{year:04d}"
