# formatters.py
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Optional

CURRENCY_SYMBOLS = {"usd": "$"}


def format_price(cents: int, currency: str = "usd") -> str:
    """1234, "usd" -> "$12.34"; 1234, "eur" -> "12.34 EUR"."""
    if not isinstance(cents, int):
        return ""
    amount = (Decimal(cents) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    currency = (currency or "usd").lower()
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{amount:,}"
    return f"{amount:,} {currency.upper()}"


def mask_email(email: Optional[str]) -> Optional[str]:
    """Keep the first two characters of the local part and the full domain."""
    if not email:
        return None
    local, sep, domain = email.partition("@")
    masked = local[:2] + "****"
    return f"{masked}@{domain}" if sep else masked


def format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M UTC")
