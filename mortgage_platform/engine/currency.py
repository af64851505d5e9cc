"""
Currency Support for the Mortgage Engine.
=========================================

Mortgages can be quoted in soles (PEN) or US dollars (USD). A property listed
in one currency may be simulated in the other, and regulatory thresholds
(NCMV bands, government bonus caps) are always expressed in the base
currency, so amounts move between currencies at a few well-defined points.

This module provides:

- Currency definitions with display conventions
- An exchange-rate provider with a fixed USD/PEN rate, or any injected
  ``rate(from, to)`` lookup
- A converter that rounds converted amounts to the target currency's
  precision (ROUND_HALF_UP)

Market data fetching is out of scope; rates come from configuration or from
the injected lookup.

Examples
--------
>>> provider = ExchangeRateProvider(usd_to_pen=Decimal("3.75"))
>>> converter = CurrencyConverter(provider)
>>> converter.convert(Decimal("100000"), Currency.USD, Currency.PEN)
Decimal('375000.00')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Union

import pandas as pd

from .errors import InvalidInputError

logger = logging.getLogger("MORTGAGE.Currency")

Number = Union[int, float, Decimal]
RateLookup = Callable[["Currency", "Currency"], Number]

DEFAULT_USD_TO_PEN = Decimal("3.75")


# =============================================================================
# Currency Definitions
# =============================================================================

class Currency(str, Enum):
    """
    Supported ISO 4217 currency codes.

    Attributes
    ----------
    PEN : str
        Peruvian Sol, the base currency for regulatory thresholds.
    USD : str
        United States Dollar.
    """

    PEN = "PEN"
    USD = "USD"


@dataclass(frozen=True)
class CurrencySpec:
    """
    Display and rounding conventions for one currency.

    Parameters
    ----------
    code : Currency
        ISO 4217 currency code
    name : str
        Full currency name
    symbol : str
        Currency symbol (e.g. 'S/', '$')
    decimal_places : int
        Standard decimal places
    """

    code: Currency
    name: str
    symbol: str
    decimal_places: int = 2

    def round_amount(self, amount: Number) -> Decimal:
        """
        Round amount to the currency's standard precision.

        Parameters
        ----------
        amount : Number
            Amount to round

        Returns
        -------
        Decimal
            Rounded amount with proper precision
        """
        quantize_str = f"0.{'0' * self.decimal_places}" if self.decimal_places > 0 else "1"
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


CURRENCY_SPECS: Dict[Currency, CurrencySpec] = {
    Currency.PEN: CurrencySpec(code=Currency.PEN, name="Peruvian Sol", symbol="S/"),
    Currency.USD: CurrencySpec(code=Currency.USD, name="United States Dollar", symbol="$"),
}


# =============================================================================
# Exchange Rates
# =============================================================================

@dataclass(frozen=True)
class ExchangeRate:
    """
    Exchange rate between two currencies.

    ``amount_in_quote = amount_in_base * rate``.

    Parameters
    ----------
    base_currency : Currency
        Currency converted from
    quote_currency : Currency
        Currency converted to
    rate : Decimal
        Units of quote currency per unit of base currency
    source : str
        Rate source identifier
    """

    base_currency: Currency
    quote_currency: Currency
    rate: Decimal
    source: str = "fixed"

    @property
    def pair(self) -> str:
        """Return currency pair string (e.g., 'USD/PEN')."""
        return f"{self.base_currency.value}/{self.quote_currency.value}"

    def invert(self) -> "ExchangeRate":
        """Return the rate with currencies swapped and the value inverted."""
        if self.rate == 0:
            raise InvalidInputError(f"Cannot invert a zero exchange rate for {self.pair}")
        return ExchangeRate(
            base_currency=self.quote_currency,
            quote_currency=self.base_currency,
            rate=Decimal(1) / self.rate,
            source=self.source,
        )


class ExchangeRateProvider:
    """
    Exchange rate source for PEN/USD conversions.

    By default a single fixed USD->PEN rate is used, inverted for PEN->USD.
    A custom ``rate_lookup(from_currency, to_currency)`` callable can be
    injected to source rates elsewhere; identity pairs never consult it.

    Parameters
    ----------
    usd_to_pen : Number
        Soles per US dollar.
    rate_lookup : Optional[RateLookup]
        External rate lookup, used instead of the fixed rate when given.

    Examples
    --------
    >>> provider = ExchangeRateProvider(usd_to_pen=3.80)
    >>> provider.get_rate(Currency.PEN, Currency.USD).rate
    """

    def __init__(
        self,
        usd_to_pen: Number = DEFAULT_USD_TO_PEN,
        rate_lookup: Optional[RateLookup] = None,
    ) -> None:
        self.usd_to_pen = usd_to_pen if isinstance(usd_to_pen, Decimal) else Decimal(str(usd_to_pen))
        if self.usd_to_pen <= 0:
            raise InvalidInputError(f"USD/PEN rate must be positive, got {usd_to_pen}")
        self.rate_lookup = rate_lookup

    def get_rate(self, from_currency: Currency, to_currency: Currency) -> ExchangeRate:
        """
        Get the exchange rate between two currencies.

        Parameters
        ----------
        from_currency : Currency
            Source currency
        to_currency : Currency
            Target currency

        Returns
        -------
        ExchangeRate
            Exchange rate object

        Raises
        ------
        InvalidInputError
            If the injected lookup returns a non-positive rate.
        """
        from_currency = parse_currency(from_currency)
        to_currency = parse_currency(to_currency)

        if from_currency == to_currency:
            return ExchangeRate(from_currency, to_currency, Decimal(1), source="identity")

        if self.rate_lookup is not None:
            value = self.rate_lookup(from_currency, to_currency)
            rate = value if isinstance(value, Decimal) else Decimal(str(value))
            if rate <= 0:
                raise InvalidInputError(
                    f"Exchange rate for {from_currency.value}/{to_currency.value} must be positive, got {rate}"
                )
            return ExchangeRate(from_currency, to_currency, rate, source="lookup")

        usd_pen = ExchangeRate(Currency.USD, Currency.PEN, self.usd_to_pen)
        if from_currency == Currency.USD:
            return usd_pen
        return usd_pen.invert()


# =============================================================================
# Currency Conversion
# =============================================================================

class CurrencyConverter:
    """
    Converts amounts between currencies with target-currency rounding.

    Parameters
    ----------
    rate_provider : ExchangeRateProvider
        Source for exchange rates

    Examples
    --------
    >>> converter = CurrencyConverter(ExchangeRateProvider())
    >>> converter.convert(Decimal("375000"), Currency.PEN, Currency.USD)
    Decimal('100000.00')
    """

    def __init__(self, rate_provider: Optional[ExchangeRateProvider] = None) -> None:
        self.rate_provider = rate_provider or ExchangeRateProvider()

    def get_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Return the numeric rate used to convert ``from_currency`` into ``to_currency``."""
        return self.rate_provider.get_rate(from_currency, to_currency).rate

    def convert(self, amount: Number, from_currency: Currency, to_currency: Currency) -> Decimal:
        """
        Convert amount between currencies.

        Parameters
        ----------
        amount : Number
            Amount to convert
        from_currency : Currency
            Source currency
        to_currency : Currency
            Target currency

        Returns
        -------
        Decimal
            Converted amount rounded to the target currency's precision
        """
        to_currency = parse_currency(to_currency)
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        converted = value * self.get_rate(from_currency, to_currency)
        result = CURRENCY_SPECS[to_currency].round_amount(converted)
        if parse_currency(from_currency) != to_currency:
            logger.debug("Converted %s %s -> %s %s", value, from_currency, result, to_currency.value)
        return result

    def convert_frame(
        self,
        frame: pd.DataFrame,
        from_currency: Currency,
        to_currency: Currency,
        amount_columns: Sequence[str],
    ) -> pd.DataFrame:
        """
        Convert DataFrame amount columns to the target currency.

        Returns a copy with ``<column>_<CODE>`` columns added for each
        converted column.
        """
        to_currency = parse_currency(to_currency)
        rate = float(self.get_rate(from_currency, to_currency))
        decimals = CURRENCY_SPECS[to_currency].decimal_places

        result = frame.copy()
        for col in amount_columns:
            result[f"{col}_{to_currency.value}"] = (result[col].astype(float) * rate).round(decimals)

        result.attrs["converted_from"] = parse_currency(from_currency).value
        result.attrs["converted_to"] = to_currency.value
        return result


# =============================================================================
# Utility Functions
# =============================================================================

def parse_currency(value: Union[str, Currency]) -> Currency:
    """
    Parse string or Currency to Currency enum.

    Raises
    ------
    InvalidInputError
        If currency code is not recognized
    """
    if isinstance(value, Currency):
        return value

    code = str(value).upper().strip()
    try:
        return Currency(code)
    except ValueError:
        raise InvalidInputError(f"Unknown currency code: {code}") from None


def alternate_currency(currency: Union[str, Currency]) -> Currency:
    """The other supported currency (PEN <-> USD)."""
    return Currency.USD if parse_currency(currency) == Currency.PEN else Currency.PEN


def currency_symbol(currency: Union[str, Currency]) -> str:
    """Display symbol for a currency."""
    return CURRENCY_SPECS[parse_currency(currency)].symbol


def format_amount(
    amount: Number,
    currency: Union[str, Currency],
    include_symbol: bool = True,
    thousands_sep: str = ",",
) -> str:
    """
    Format amount with currency conventions.

    Parameters
    ----------
    amount : Number
        Amount to format
    currency : Union[str, Currency]
        Currency for formatting rules
    include_symbol : bool
        Include currency symbol
    thousands_sep : str
        Thousands separator

    Returns
    -------
    str
        Formatted amount string, e.g. ``'S/ 1,234.50'``
    """
    spec = CURRENCY_SPECS[parse_currency(currency)]
    rounded = spec.round_amount(amount)

    formatted = f"{rounded:,.{spec.decimal_places}f}"
    if thousands_sep != ",":
        formatted = formatted.replace(",", thousands_sep)

    if include_symbol:
        return f"{spec.symbol} {formatted}"
    return formatted
