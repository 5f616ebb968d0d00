"""
Locale-aware number formatting for widget results.

Locale and currency come from configuration (DASHBOARD_LOCALE /
DASHBOARD_CURRENCY). Rounding is half away from zero.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .config import DEFAULT_CURRENCY, DEFAULT_LOCALE, Settings


@dataclass(frozen=True)
class LocaleSpec:
    group_sep: str
    decimal_sep: str
    currency_pattern: str   # "{symbol}" and "{amount}" placeholders


LOCALES: dict[str, LocaleSpec] = {
    "pt_BR": LocaleSpec(group_sep=".", decimal_sep=",", currency_pattern="{symbol} {amount}"),
    "en_US": LocaleSpec(group_sep=",", decimal_sep=".", currency_pattern="{symbol}{amount}"),
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "BRL": "R$",
    "USD": "$",
    "EUR": "€",
}

# Display formats stored on variables and calculations
FORMAT_NUMBER = "number"
FORMAT_CURRENCY = "currency"
FORMAT_PERCENTAGE = "percentage"


def _to_decimal(value, digits: int) -> Decimal:
    try:
        num = float(value)
    except (TypeError, ValueError):
        num = 0.0
    if not math.isfinite(num):
        num = 0.0
    quantum = Decimal(1).scaleb(-digits)
    try:
        rounded = Decimal(repr(num)).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # beyond context precision; already integral at that magnitude
        rounded = Decimal(repr(num))
    return rounded if rounded != 0 else abs(rounded)


class NumberFormatter:
    """Formats numbers, money and ratios for one locale/currency pair."""

    def __init__(self, locale: str = DEFAULT_LOCALE, currency: str = DEFAULT_CURRENCY):
        self.locale = locale if locale in LOCALES else DEFAULT_LOCALE
        self.currency = currency
        self._spec = LOCALES[self.locale]
        self._symbol = CURRENCY_SYMBOLS.get(currency, currency)

    @classmethod
    def from_settings(cls, settings: Settings) -> "NumberFormatter":
        return cls(locale=settings.locale, currency=settings.currency)

    def _render(self, value, min_digits: int, max_digits: int) -> tuple[str, str]:
        """Return (sign, grouped digits) for value."""
        d = _to_decimal(value, max_digits)
        sign = "-" if d < 0 else ""
        int_part, _, frac = f"{abs(d):f}".partition(".")
        frac = frac.rstrip("0").ljust(min_digits, "0")
        grouped = f"{int(int_part):,}".replace(",", self._spec.group_sep)
        if frac:
            grouped = f"{grouped}{self._spec.decimal_sep}{frac}"
        return sign, grouped

    def currency_fmt(self, value) -> str:
        sign, amount = self._render(value, 2, 2)
        return sign + self._spec.currency_pattern.format(symbol=self._symbol, amount=amount)

    def number_fmt(self, value, max_fraction_digits: int = 3) -> str:
        sign, amount = self._render(value, 0, max_fraction_digits)
        return sign + amount

    @staticmethod
    def percent_fmt(value) -> str:
        # Ratio in, one decimal out; no locale grouping.
        try:
            scaled = float(value) * 100
        except (TypeError, ValueError):
            scaled = 0.0
        return f"{_to_decimal(scaled, 1):f}%"

    def format(self, value, fmt: Optional[str], max_fraction_digits: int = 3) -> str:
        """Format by a stored display format ('number' | 'currency' | 'percentage')."""
        if fmt == FORMAT_CURRENCY:
            return self.currency_fmt(value)
        if fmt == FORMAT_PERCENTAGE:
            return self.percent_fmt(value)
        return self.number_fmt(value, max_fraction_digits)
