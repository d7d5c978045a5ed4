"""Monetary values for orderdesk.

Amounts are ``decimal.Decimal`` in the currency's major unit (e.g. 150.50 EGP)
everywhere inside the model. Display strings such as ``"150 EGP"`` are only
accepted at the data boundary and are normalized with ``parse_price``.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from .config import CURRENCY

ZERO = Decimal("0")

# Keep digits and the decimal point; everything else is display decoration
_STRIP_RE = re.compile(r"[^0-9.]")
_LEADING_NUMBER_RE = re.compile(r"^\d*(?:\.\d+)?")
# str() of a very large or very small Decimal, e.g. "1E-7" or "1.5E+3"
_DECIMAL_EXPONENT_RE = re.compile(r"^\d+(?:\.\d+)?E[+-]\d+$")


def parse_price(value: Any) -> Decimal:
    """
    Normalize a price to a Decimal.

    Strings are stripped of every character except digits and ".", then the
    leading numeric portion is parsed ("1.5.2" -> 1.5). Numbers pass through,
    and so does a Decimal's own exponent form ("1E-7"), so that a parsed
    value always parses back to itself.
    Anything unparsable (None, "", "N/A", NaN) becomes 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO

    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return result if result.is_finite() else ZERO

    if _DECIMAL_EXPONENT_RE.match(str(value)):
        return Decimal(str(value))

    text = _STRIP_RE.sub("", str(value))
    number = _LEADING_NUMBER_RE.match(text).group(0)
    if not number:
        return ZERO
    try:
        return Decimal(number)
    except InvalidOperation:
        return ZERO


def non_negative(value: Any) -> Decimal:
    """Parse a staff-entered amount and floor it at zero."""
    if isinstance(value, str) and value.strip().startswith("-"):
        return ZERO
    amount = parse_price(value)
    return amount if amount > ZERO else ZERO


def money_to_str(amount: Decimal) -> str:
    """Serialize an amount for JSON storage."""
    return format(amount, "f")


def format_currency(amount: Any, currency: str = CURRENCY) -> str:
    """Format an amount for display, e.g. 'EGP 1,250.00'."""
    value = parse_price(amount)
    return f"{currency} {value.quantize(Decimal('0.01')):,}"
