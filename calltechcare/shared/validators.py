"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD, returning None for empty or malformed input"""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def normalize_code(code: Optional[str]) -> str:
    """Promo and discount codes are compared trimmed and upper-cased"""
    return (code or "").strip().upper()
