"""Locale formatting for settlement periods and amounts.

Uses babel; the locale comes from the LOCALE setting (default: pl_PL) and the
currency is derived from the locale's territory.

Example:
    >>> from src.services.locale_service import format_period_label
    >>> format_period_label(date(2024, 1, 1), date(2024, 3, 31), locale="en_US")
    'January - March 2024'
"""

import logging
from datetime import date
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import format_date
from babel.numbers import (
    format_currency as babel_format_currency,
)
from babel.numbers import (
    get_territory_currencies,
)

from src.config.settings import settings

logger = logging.getLogger(__name__)

# Fallback if the LOCALE setting is not a locale babel knows
DEFAULT_LOCALE = "pl_PL"
DEFAULT_CURRENCY = "PLN"

# Standalone month name, e.g. "styczeń 2024" rather than the genitive "stycznia"
MONTH_YEAR_FORMAT = "LLLL yyyy"
MONTH_FORMAT = "LLLL"


def _get_locale() -> str:
    """Get the configured locale with validation and fallback."""
    locale_str = settings.locale
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid LOCALE '{locale_str}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    """Derive currency code from locale territory (e.g. 'pl_PL' -> 'PLN')."""
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Could not derive currency from locale '{locale_str}': {e}")

    return DEFAULT_CURRENCY


LOCALE = _get_locale()
CURRENCY = _get_currency_from_locale(LOCALE)


def format_period_label(period_start: date, period_end: date, locale: str | None = None) -> str:
    """Human readable label of a settlement period by calendar month.

    Args:
        period_start: First day of the period
        period_end: Last day of the period
        locale: Babel locale (default: configured LOCALE)

    Returns:
        "January 2024", "January - March 2024" or "December 2023 - January 2024"
    """
    locale = locale or LOCALE

    if (period_start.year, period_start.month) == (period_end.year, period_end.month):
        return format_date(period_start, MONTH_YEAR_FORMAT, locale=locale)

    if period_start.year == period_end.year:
        start_label = format_date(period_start, MONTH_FORMAT, locale=locale)
    else:
        start_label = format_date(period_start, MONTH_YEAR_FORMAT, locale=locale)
    end_label = format_date(period_end, MONTH_YEAR_FORMAT, locale=locale)
    return f"{start_label} - {end_label}"


def format_amount(amount: Decimal, locale: str | None = None, currency: str | None = None) -> str:
    """Format a money amount with the locale's currency, e.g. '310,00 zł'."""
    locale = locale or LOCALE
    currency = currency or (CURRENCY if locale == LOCALE else _get_currency_from_locale(locale))
    return babel_format_currency(amount, currency, locale=locale)


__all__ = [
    "CURRENCY",
    "LOCALE",
    "format_amount",
    "format_period_label",
]
