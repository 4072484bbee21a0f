from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from partyledger.money import Money


AMOUNT_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)?$")


def parse_amount(text: str, exponent: int = 2) -> Money:
    """
    Parse a display amount into minor units.

    Accepted forms:
    - 12
    - 12.5 / 12.50
    - 12,50
    - 1 234,50 (spaces as thousand separators)
    """
    cleaned = text.strip().replace(" ", "").replace("\u00a0", "")
    if not AMOUNT_RE.match(cleaned):
        raise ValueError(f"Not an amount: {text!r}")
    try:
        value = Decimal(cleaned.replace(",", "."))
    except InvalidOperation as exc:
        raise ValueError(f"Not an amount: {text!r}") from exc
    return Money.from_decimal(value, exponent)


def format_money(money: Money, currency: str, exponent: int = 2) -> str:
    value = money.to_decimal(exponent)
    return f"{value:,.{exponent}f} {currency}"
