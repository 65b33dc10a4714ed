"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

_SYMBOLS = re.compile(r"[$€£¥₩]")
_CODE_SUFFIX = re.compile(r"^(?P<number>.*?)\s*(?P<code>[A-Za-z]{3})$")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles "123.45", "$123.45", "-$123.45", "1,234.56" and the accounting
    form "(123.45)" for negatives.

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    text = _SYMBOLS.sub("", text).replace(",", "").strip()

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def parse_money(money_str: str) -> tuple[Decimal, Optional[str]]:
    """Parse an amount with an optional trailing ISO code, e.g. "100.50 EUR".

    Returns:
        Tuple of (amount, currency code or None)
    """
    match = _CODE_SUFFIX.match(money_str.strip()) if money_str else None
    if match and match.group("number"):
        return parse_amount(match.group("number")), match.group("code").upper()
    return parse_amount(money_str), None
