"""Amount parsing shared by filters, whale classification and aggregates."""

import math
import re
from decimal import Decimal

_GROUPING = re.compile(r"[,_'\s]")
_LEADING_DIGITS = re.compile(r"^\d+")


def parse_amount(value) -> int:
    """
    Return the non-negative integer magnitude of an amount.

    Grouping separators are stripped from strings and the leading run of
    digits is parsed, so "1,234,567" is 1234567 and "15.9" is 15. Anything
    unparseable, negative or non-finite is 0. Never raises.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        return value if value >= 0 else 0

    if isinstance(value, (float, Decimal)):
        try:
            if not math.isfinite(value) or value < 0:
                return 0
            return int(value)
        except (ValueError, OverflowError, ArithmeticError):
            return 0

    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")

    if not isinstance(value, str):
        return 0

    match = _LEADING_DIGITS.match(_GROUPING.sub("", value))
    return int(match.group()) if match else 0
