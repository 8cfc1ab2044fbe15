# formatting.py
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

NA = "N/A"
NONE_TEXT = "None"

_CENTS = Decimal("0.01")


# -------------------------
# DATES
# -------------------------
def to_date(x) -> date | None:
    """date / datetime / pandas Timestamp / ISO string -> date (None if unparsable)."""
    if x is None:
        return None
    # NaN / pandas NaT compare unequal to themselves; pandas NA refuses bool()
    try:
        if x != x:
            return None
    except TypeError:
        return None
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    try:
        return date.fromisoformat(str(x).strip()[:10])
    except ValueError:
        return None


def format_date(x) -> str:
    """MM/DD/YYYY, independent of the process locale."""
    d = to_date(x)
    if d is None:
        return NA
    return f"{d.month:02d}/{d.day:02d}/{d.year:04d}"


# -------------------------
# NUMBERS
# -------------------------
def round_cents(x) -> Decimal:
    """Round half-up on the decimal representation (499.999 -> 500.00, 2.675 -> 2.68)."""
    try:
        d = Decimal(str(x if x is not None else 0))
    except InvalidOperation:
        return Decimal("0.00")
    if not d.is_finite():
        return Decimal("0.00")
    return d.quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_money(x, currency: str = "$") -> str:
    value = round_cents(x)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency}{abs(value):,.2f}"


def format_percent(x) -> str:
    return f"{round_cents(x):.2f}%"


# -------------------------
# TEXT
# -------------------------
def text_or(value, sentinel: str = NA) -> str:
    if value is None:
        return sentinel
    s = str(value).strip()
    return s if s else sentinel
