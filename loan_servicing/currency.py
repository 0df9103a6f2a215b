"""
Currency Module

Currency codes with their minor-unit exponents. Amounts throughout the system
are integer counts of minor units; this module only validates codes and
renders amounts for display. It never converts between currencies.
"""

from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .exceptions import UnsupportedCurrencyError


class Currency(Enum):
    """Currency codes with minor-unit precision info"""
    TRY = ("TRY", 2)  # Turkish Lira
    EUR = ("EUR", 2)  # Euro
    USD = ("USD", 2)  # US Dollar
    LEU = ("LEU", 2)  # Romanian Leu
    JPY = ("JPY", 0)  # Japanese Yen, no minor unit

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its code"""
        try:
            return cls[code.upper()]
        except (KeyError, AttributeError):
            raise UnsupportedCurrencyError(f"Unsupported currency code: {code!r}")


def validate_currency_code(code: str, supported: Optional[Iterable[str]] = None) -> str:
    """
    Normalize and validate a currency code

    Args:
        code: Currency code as supplied by the caller
        supported: Optional allow-list of codes (e.g. from configuration)

    Returns:
        The upper-cased currency code

    Raises:
        UnsupportedCurrencyError: If the code is unknown or not allowed
    """
    currency = Currency.from_code(code)
    if supported is not None and currency.code not in {c.upper() for c in supported}:
        raise UnsupportedCurrencyError(f"Currency {currency.code} is not enabled")
    return currency.code


def format_minor_units(amount: int, code: str) -> str:
    """Format an integer minor-unit amount for display, e.g. 166600 TRY -> 'TRY 1,666.00'"""
    currency = Currency.from_code(code)
    if currency.precision == 0:
        return f"{currency.code} {amount:,d}"
    major = Decimal(amount).scaleb(-currency.precision)
    return f"{currency.code} {major:,.{currency.precision}f}"
