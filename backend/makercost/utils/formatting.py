"""
Money and number formatting for display.

Amounts are kept at full float precision everywhere else; rounding to a
currency's minor unit only happens here.
"""
import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from makercost.schemas.pricing import Currency

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "NIS": "₪",
    "CAD": "C$",
    "AUD": "A$",
    "JPY": "¥",
    "CHF": "CHF ",
    "CNY": "¥",
    "INR": "₹",
    "BRL": "R$",
    "MXN": "$",
    "KRW": "₩",
    "SEK": "kr ",
    "NOK": "kr ",
}

# Currencies without a minor unit in everyday use
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}

CurrencyLike = Union[Currency, str]


def _code(currency: CurrencyLike) -> str:
    return currency.value if isinstance(currency, Currency) else str(currency).upper()


def get_currency_symbol(currency: CurrencyLike) -> str:
    """Get the currency symbol for a given currency code (falls back to $)"""
    return CURRENCY_SYMBOLS.get(_code(currency), "$").strip()


def minor_unit_digits(currency: CurrencyLike) -> int:
    return 0 if _code(currency) in ZERO_DECIMAL_CURRENCIES else 2


def round_money(amount: float, currency: CurrencyLike = Currency.USD) -> Decimal:
    """Round half-up to the currency's minor unit"""
    digits = minor_unit_digits(currency)
    quantum = Decimal(1).scaleb(-digits)
    return Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP)


def _format(amount: float, currency: CurrencyLike, digits: int) -> str:
    code = _code(currency)
    symbol = CURRENCY_SYMBOLS.get(code, "$")
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.{digits}f}"


def format_currency(amount: float, currency: CurrencyLike = Currency.USD) -> str:
    """
    Format an amount with its currency symbol and minor-unit precision.
    Example: 1234.567, USD -> "$1,234.57"
    """
    return _format(amount, currency, minor_unit_digits(currency))


def format_currency_whole(amount: float, currency: CurrencyLike = Currency.USD) -> str:
    """Format an amount rounded to whole currency units. Example: 1234.5 -> "$1,235" """
    return _format(amount, currency, 0)


def format_percentage(value: float) -> str:
    return f"{Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}%"


def format_number_for_display(value: Optional[float]) -> str:
    """Format a number with thousands separators and at most 2 decimals"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    rounded = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{rounded:,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def parse_formatted_number(value: Optional[str]) -> Optional[float]:
    """Parse a formatted number string back to a number, None if it is not one"""
    if not value:
        return None
    cleaned = value.replace(",", "").strip()
    if not _NUMBER_RE.match(cleaned):
        return None
    return float(cleaned)
