# treeofhope/helpers.py
"""
Small parsing helpers shared by the services.

This module provides:
- slugify_title: campaign slug derivation used by Bridge pre-build
- is_uuid: distinguish row ids from slugs
- clean_str / parse_bool / parse_date: tolerant request-field parsing
- to_cents: convert money-like inputs ("$1,234", "2.5k") to integer cents
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

SLUG_MAX_LEN = 50

_NON_WORD_RE = re.compile(r"[^\w\s-]")
_WS_RE = re.compile(r"\s+")

_TRUTHY = {"1", "true", "yes", "on", "y"}


def slugify_title(title: str) -> str:
    """
    "Help Sam!" -> "help-sam"

    Lowercase, drop anything that is not a word char, whitespace or hyphen,
    turn whitespace runs into single hyphens, cut to 50 chars.
    Uniqueness is not guaranteed here.
    """
    s = _NON_WORD_RE.sub("", (title or "").lower())
    s = _WS_RE.sub("-", s)
    return s[:SLUG_MAX_LEN]


def is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def clean_str(value: Any, max_len: Optional[int] = None) -> str:
    s = "" if value is None else str(value).strip()
    return s[:max_len] if max_len else s


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def parse_date(value: Any) -> Optional[date]:
    """ISO date (or datetime) string -> date; None on empty. Raises ValueError on junk."""
    s = clean_str(value)
    if not s:
        return None
    if "T" in s:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    return date.fromisoformat(s)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


# Accepts "$1,234" / "1234.56" / "2k" / "1.5M"
_MONEY_RE = re.compile(
    r"""
    ^\s*
    \$?\s*
    (?P<num>
        (?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?
        |
        \.\d+
    )
    \s*(?P<suffix>[KkMm])?
    \s*$
    """,
    re.VERBOSE,
)

_SUFFIX_MULT = {"k": Decimal("1000"), "m": Decimal("1000000")}


def to_cents(val: Any) -> int:
    """
    Return integer cents from a money-like dollar value.
    Raises ValueError for anything that is not a non-negative amount.
    """
    if isinstance(val, bool) or val is None:
        raise ValueError(f"not a money amount: {val!r}")
    if isinstance(val, (int, float, Decimal)):
        d = Decimal(str(val))
    else:
        m = _MONEY_RE.match(str(val))
        if not m:
            raise ValueError(f"not a money amount: {val!r}")
        try:
            d = Decimal(m.group("num").replace(",", ""))
        except InvalidOperation as e:
            raise ValueError(f"not a money amount: {val!r}") from e
        suffix = (m.group("suffix") or "").lower()
        if suffix:
            d *= _SUFFIX_MULT[suffix]

    if d < 0:
        raise ValueError("amount must be >= 0")
    return int((d * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
