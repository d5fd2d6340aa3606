"""
Money helpers - exact decimal amounts, discounts and locale-aware parsing.

Amounts are kept as Decimal end to end. Free-text values coming from the
budget forms use Brazilian formatting ("R$ 1.234,56"), so string parsing
treats "." as a thousands separator and "," as the decimal separator.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")

_THOUSANDS_ONLY = re.compile(r"^\d{1,3}(\.\d{3})+$")
_CURRENCY_NOISE = re.compile(r"[\sR$ ]", re.IGNORECASE)


def net(gross: Decimal, discount: Decimal) -> Decimal:
    """Gross minus discount, floored at zero."""
    return max(gross - discount, ZERO)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Return `percent`% of `amount`."""
    return amount * percent / HUNDRED


# Amounts of 10^19 and up are typos; huge exponents overflow decimal arithmetic
_MAX_EXPONENT = 18


def _in_range(value: Decimal) -> bool:
    return value.is_finite() and (value.is_zero() or value.adjusted() <= _MAX_EXPONENT)


def parse_amount(raw) -> tuple[Decimal, bool]:
    """
    Coerce a loosely-typed value into a Decimal.

    Returns (value, ok). `ok` is False when the value was present but could
    not be parsed; the value is then 0. None and "" are treated as absent
    and return (0, True).
    """
    if raw is None:
        return ZERO, True
    if isinstance(raw, bool):
        # bool is an int subclass; a checkbox value is never an amount
        return ZERO, False
    if isinstance(raw, Decimal):
        return (raw, True) if _in_range(raw) else (ZERO, False)
    if isinstance(raw, (int, float)):
        # ints convert exactly; floats go through repr to avoid binary noise
        value = Decimal(raw) if isinstance(raw, int) else Decimal(str(raw))
        return (value, True) if _in_range(value) else (ZERO, False)
    if not isinstance(raw, str):
        return ZERO, False

    text = _CURRENCY_NOISE.sub("", raw)
    if text == "":
        return ZERO, True

    negative = text.startswith("-")
    if negative:
        text = text[1:]

    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif _THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")

    try:
        value = Decimal(text)
    except InvalidOperation:
        return ZERO, False
    if not _in_range(value):
        return ZERO, False
    return (-value if negative else value), True


def parse_percent(raw, default: Optional[Decimal] = None) -> tuple[Optional[Decimal], bool]:
    """Parse a percentage; absent values return `default`."""
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        return default, True
    if isinstance(raw, str):
        raw = raw.replace("%", "")
    return parse_amount(raw)


def clamp_percent(value: Decimal) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    return min(max(value, ZERO), HUNDRED)
