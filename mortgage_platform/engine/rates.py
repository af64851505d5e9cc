"""
Interest Rate Conversion
========================

Converts quoted annual rates into the effective monthly rate used by the
French-method schedule.

Two quoting conventions are supported:

- **TEA** (effective annual rate): already compounded, used as-is.
- **TNA** (nominal annual rate): compounded ``m`` times per year according
  to the capitalization frequency, ``TEA = (1 + TNA/m)^m - 1``.

The monthly rate is then ``TEM = (1 + TEA)^(1/12) - 1``.

Rates are quoted to users as percentages (``9.5`` meaning 9.5%). They must be
divided by 100 *before* any exponentiation; :func:`normalize_percentage` is the
single entry point for that step and every public pipeline goes through it.

All arithmetic here is float64. Nothing is rounded: rounding happens only when
a value is stored as a monetary amount.

Example
-------
>>> monthly = annual_percentage_to_monthly(9.0, InterestRateType.NOMINAL, Capitalization.MONTHLY)
>>> round(monthly, 6)
0.0075
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Union

from .errors import InvalidInputError

logger = logging.getLogger("MORTGAGE.Rates")

Number = Union[int, float, Decimal]

MONTHS_PER_YEAR = 12


class InterestRateType(str, Enum):
    """
    How an annual rate is quoted.

    Attributes
    ----------
    NOMINAL : str
        TNA, compounded according to a :class:`Capitalization` frequency.
    EFFECTIVE : str
        TEA, already effective.
    """

    NOMINAL = "NOMINAL"
    EFFECTIVE = "EFFECTIVE"


class Capitalization(str, Enum):
    """
    Capitalization tiers for nominal rates.

    Each tier maps to a compounding-periods-per-year constant in
    :data:`CAPITALIZATION_PERIODS`. ``TRIMESTERLY`` (4) and ``QUARTERLY`` (3)
    are kept as distinct named tiers with the counts bank policies use; the
    names are labels, not a claim about standard finance vocabulary.
    """

    DAILY = "DAILY"
    FORTNIGHTLY = "FORTNIGHTLY"
    MONTHLY = "MONTHLY"
    BIMONTHLY = "BIMONTHLY"
    TRIMESTERLY = "TRIMESTERLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    YEARLY = "YEARLY"


CAPITALIZATION_PERIODS: Dict[Capitalization, int] = {
    Capitalization.DAILY: 360,
    Capitalization.FORTNIGHTLY: 24,
    Capitalization.MONTHLY: 12,
    Capitalization.BIMONTHLY: 6,
    Capitalization.TRIMESTERLY: 4,
    Capitalization.QUARTERLY: 3,
    Capitalization.SEMIANNUAL: 2,
    Capitalization.YEARLY: 1,
}

DEFAULT_CAPITALIZATION_PERIODS = 12


def capitalization_periods(frequency: Optional[Capitalization]) -> int:
    """
    Return compounding periods per year for a capitalization tier.

    Parameters
    ----------
    frequency : Optional[Capitalization]
        Capitalization tier. ``None`` falls back to monthly compounding.

    Returns
    -------
    int
        Periods per year.
    """
    if frequency is None:
        return DEFAULT_CAPITALIZATION_PERIODS
    return CAPITALIZATION_PERIODS[Capitalization(frequency)]


def normalize_percentage(rate_pct: Number) -> float:
    """
    Convert a percentage quote into a decimal fraction (``9.5`` -> ``0.095``).

    Parameters
    ----------
    rate_pct : Number
        Rate expressed as a percentage.

    Returns
    -------
    float
        Rate as a fraction.

    Raises
    ------
    InvalidInputError
        If the value is not finite.
    """
    value = float(rate_pct)
    if not math.isfinite(value):
        raise InvalidInputError(f"Rate must be a finite number, got {rate_pct!r}")
    return value / 100.0


def to_effective_annual(
    rate: float,
    kind: Optional[InterestRateType] = InterestRateType.EFFECTIVE,
    frequency: Optional[Capitalization] = None,
) -> float:
    """
    Convert an annual rate (as a fraction) to an effective annual rate.

    Parameters
    ----------
    rate : float
        Annual rate as a decimal fraction (already normalized).
    kind : Optional[InterestRateType]
        Quoting convention. ``None`` is treated as EFFECTIVE.
    frequency : Optional[Capitalization]
        Capitalization tier for nominal rates (default monthly).

    Returns
    -------
    float
        Effective annual rate as a fraction. Identity for EFFECTIVE input.
    """
    if kind is None or InterestRateType(kind) == InterestRateType.EFFECTIVE:
        return rate

    periods = capitalization_periods(frequency)
    effective = (1.0 + rate / periods) ** periods - 1.0
    logger.debug("TNA %.10f compounded %d/yr -> TEA %.10f", rate, periods, effective)
    return effective


def to_monthly_rate(effective_annual: float) -> float:
    """
    Convert an effective annual rate to the equivalent effective monthly rate.

    Parameters
    ----------
    effective_annual : float
        TEA as a fraction.

    Returns
    -------
    float
        TEM as a fraction: ``(1 + TEA)^(1/12) - 1``.
    """
    if effective_annual <= -1.0:
        raise InvalidInputError(
            f"Effective annual rate must be greater than -100%, got {effective_annual}"
        )
    return math.expm1(math.log1p(effective_annual) / MONTHS_PER_YEAR)


def annualize_monthly_rate(monthly_rate: float) -> float:
    """Compound a monthly rate up to an effective annual rate."""
    return (1.0 + monthly_rate) ** MONTHS_PER_YEAR - 1.0


def annual_percentage_to_monthly(
    rate_pct: Number,
    kind: Optional[InterestRateType] = InterestRateType.EFFECTIVE,
    frequency: Optional[Capitalization] = None,
) -> float:
    """
    Full pipeline from a quoted annual percentage to the monthly rate.

    Parameters
    ----------
    rate_pct : Number
        Annual rate as a percentage (e.g. ``9.5``).
    kind : Optional[InterestRateType]
        NOMINAL or EFFECTIVE quote.
    frequency : Optional[Capitalization]
        Capitalization tier for nominal quotes.

    Returns
    -------
    float
        Effective monthly rate as a fraction.
    """
    annual = normalize_percentage(rate_pct)
    effective = to_effective_annual(annual, kind, frequency)
    monthly = to_monthly_rate(effective)
    logger.debug("Annual %s%% (%s) -> TEM %.12f", rate_pct, kind, monthly)
    return monthly
