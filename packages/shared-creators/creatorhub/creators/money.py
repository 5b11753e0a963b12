"""Currency parsing for marketplace amounts.

Amounts arrive as decimal strings (``{"amount": "123.45", "currency": "USD"}``)
and are stored as integer minor units. Parsing uses ``Decimal`` so repeated
runs never drift.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

SUPPORTED_CURRENCY = "USD"

_CENT = Decimal("0.01")


def parse_amount_cents(amount: str | int | None) -> int | None:
    """Convert a decimal amount string to integer cents.

    Args:
        amount: Amount such as ``"123.45"``; ``1,234.50`` style separators
            are accepted.

    Returns:
        Integer cents, or None if the amount cannot be parsed.

    Examples:
        >>> parse_amount_cents("123.45")
        12345
        >>> parse_amount_cents("0.005")
        1
        >>> parse_amount_cents("abc") is None
        True
    """
    if amount is None or isinstance(amount, bool):
        return None
    if isinstance(amount, int):
        return amount * 100
    if not isinstance(amount, str):
        return None

    text = amount.strip().replace(",", "")
    if not text:
        return None

    try:
        value = Decimal(text)
    except InvalidOperation:
        return None

    if not value.is_finite():
        return None

    cents = value.quantize(_CENT, rounding=ROUND_HALF_UP) * 100
    return int(cents)


def parse_money_cents(money: Any, currency: str = SUPPORTED_CURRENCY) -> int | None:
    """Parse a ``{"amount", "currency"}`` object into cents.

    Only amounts in the expected currency are accepted.
    """
    if not isinstance(money, dict):
        return None
    if money.get("currency") != currency:
        return None
    return parse_amount_cents(money.get("amount"))
