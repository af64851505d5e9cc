"""
French-Method Schedule Generation
=================================

Builds the period-by-period amortization table for a constant-installment
(French) mortgage.

The installment is the standard annuity payment::

    PMT = P * r * (1 + r)^n / ((1 + r)^n - 1)

falling back to ``P / n`` when ``r == 0``. Each period then splits the
installment into interest (``balance * r``) and principal. The final period
absorbs the rounding residue so the closing balance is exactly zero.

Monetary values are ``Decimal`` quantized to cents (ROUND_HALF_UP) as they are
stored into an :class:`AmortizationPeriod`. The carried balance is the stored
closing balance, so the opening balance of period ``k+1`` always equals the
closing balance of period ``k`` and principal portions sum to the original
principal.

Insurance
---------
- **Life insurance**: ``balance * life_insurance_rate``, floored at zero.
- **Property insurance**: ``balance * property_insurance_rate`` when a rate is
  given, otherwise the fixed periodic amount.
- **Disgravamen** (mortality cover): ``balance * disgravamen_rate``. When
  ``disgravamen_in_installment`` is set, the installment is derived from
  ``r + disgravamen_rate`` and the premium is carried inside it; otherwise it
  is an extra outflow on top of the installment.

Example
-------
>>> schedule = generate_schedule(Decimal("100000"), 0.0075, 240)
>>> schedule[0].installment
Decimal('899.73')
>>> schedule[-1].closing_balance
Decimal('0.00')
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from .errors import InvalidInputError, NumericDegenerateError
from .rates import Capitalization, InterestRateType, MONTHS_PER_YEAR, annual_percentage_to_monthly

logger = logging.getLogger("MORTGAGE.Schedule")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MIN_TERM_YEARS = 1
MAX_TERM_YEARS = 30

Number = Union[int, float, Decimal]


def to_money(value: Number) -> Decimal:
    """Quantize a value to cents using ROUND_HALF_UP."""
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Convert a number to Decimal without rounding (``None`` passes through)."""
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def rate_to_decimal(value: float) -> Decimal:
    """Decimal form of a float rate (shortest repr), for multiplying Decimal balances."""
    return Decimal(repr(float(value)))


class PeriodKind(str, Enum):
    """
    Tag describing how a period was amortized.

    Attributes
    ----------
    ORDINARY : str
        Regular French-method installment.
    TOTAL_GRACE : str
        Nothing paid toward the loan; interest capitalizes.
    PARTIAL_GRACE : str
        Interest-only installment; balance unchanged.
    """

    ORDINARY = "ORDINARY"
    TOTAL_GRACE = "TOTAL_GRACE"
    PARTIAL_GRACE = "PARTIAL_GRACE"


@dataclass(frozen=True)
class InsuranceParameters:
    """
    Per-period insurance add-ons.

    Parameters
    ----------
    life_insurance_rate : Decimal
        Monthly rate applied to the opening balance (>= 0).
    property_insurance_amount : Optional[Decimal]
        Fixed periodic property/risk premium.
    property_insurance_rate : Optional[Decimal]
        Monthly rate applied to the opening balance. Takes precedence over the
        fixed amount when present and positive.
    disgravamen_rate : Decimal
        Monthly mortality-insurance rate applied to the opening balance (>= 0).
    disgravamen_in_installment : bool
        Whether the disgravamen premium is embedded in the installment.
    """

    life_insurance_rate: Decimal = ZERO
    property_insurance_amount: Optional[Decimal] = None
    property_insurance_rate: Optional[Decimal] = None
    disgravamen_rate: Decimal = ZERO
    disgravamen_in_installment: bool = True

    def __post_init__(self) -> None:
        for name in (
            "life_insurance_rate",
            "property_insurance_amount",
            "property_insurance_rate",
            "disgravamen_rate",
        ):
            value = to_decimal(getattr(self, name))
            if value is not None and value < 0:
                raise InvalidInputError(f"{name} cannot be negative, got {value}")
            object.__setattr__(self, name, value)
        if self.life_insurance_rate is None:
            object.__setattr__(self, "life_insurance_rate", ZERO)
        if self.disgravamen_rate is None:
            object.__setattr__(self, "disgravamen_rate", ZERO)

    @property
    def uses_property_rate(self) -> bool:
        """True when property insurance is charged on the balance."""
        return self.property_insurance_rate is not None and self.property_insurance_rate > 0

    @property
    def installment_rate_addon(self) -> float:
        """Rate added to the monthly interest rate when deriving the installment."""
        if self.disgravamen_in_installment:
            return float(self.disgravamen_rate)
        return 0.0

    def life_insurance_for(self, balance: Decimal) -> Decimal:
        """Life insurance charge on an opening balance."""
        return max(to_money(balance * self.life_insurance_rate), ZERO)

    def property_insurance_for(self, balance: Decimal) -> Decimal:
        """Property insurance charge on an opening balance."""
        if self.uses_property_rate:
            return to_money(balance * self.property_insurance_rate)
        if self.property_insurance_amount is None:
            return ZERO
        return to_money(self.property_insurance_amount)

    def disgravamen_for(self, balance: Decimal) -> Decimal:
        """Disgravamen charge on an opening balance."""
        return max(to_money(balance * self.disgravamen_rate), ZERO)


@dataclass(frozen=True)
class LoanParameters:
    """
    Immutable inputs for one schedule calculation.

    Parameters
    ----------
    principal : Decimal
        Amount to amortize (> 0).
    annual_rate : Decimal
        Annual rate as a percentage, in (0, 100].
    term_years : int
        Loan term in years, 1-30.
    rate_type : InterestRateType
        Whether ``annual_rate`` is nominal or effective.
    capitalization : Optional[Capitalization]
        Compounding tier for nominal rates.
    insurance : InsuranceParameters
        Insurance add-ons.
    """

    principal: Decimal
    annual_rate: Decimal
    term_years: int
    rate_type: InterestRateType = InterestRateType.EFFECTIVE
    capitalization: Optional[Capitalization] = None
    insurance: InsuranceParameters = field(default_factory=InsuranceParameters)

    def __post_init__(self) -> None:
        object.__setattr__(self, "principal", to_decimal(self.principal))
        object.__setattr__(self, "annual_rate", to_decimal(self.annual_rate))

        if self.principal is None or self.principal <= 0:
            raise InvalidInputError(f"Principal must be positive, got {self.principal}")
        if self.annual_rate is None or not (0 < self.annual_rate <= 100):
            raise InvalidInputError(
                f"Annual rate must be in (0, 100] percent, got {self.annual_rate}"
            )
        if isinstance(self.term_years, bool) or not isinstance(self.term_years, int):
            raise InvalidInputError(f"Term must be a whole number of years, got {self.term_years!r}")
        if not (MIN_TERM_YEARS <= self.term_years <= MAX_TERM_YEARS):
            raise InvalidInputError(
                f"Term must be between {MIN_TERM_YEARS} and {MAX_TERM_YEARS} years, "
                f"got {self.term_years}"
            )

    @property
    def total_periods(self) -> int:
        """Number of monthly periods."""
        return self.term_years * MONTHS_PER_YEAR

    @property
    def monthly_rate(self) -> float:
        """Effective monthly rate as a fraction."""
        return annual_percentage_to_monthly(self.annual_rate, self.rate_type, self.capitalization)


@dataclass(frozen=True)
class AmortizationPeriod:
    """
    One row of the amortization table.

    Attributes
    ----------
    period : int
        Period index, 1-based and contiguous.
    opening_balance : Decimal
        Balance at the start of the period.
    installment : Decimal
        Scheduled installment (interest + principal, plus disgravamen when
        embedded).
    interest : Decimal
        Interest accrued on the opening balance.
    principal : Decimal
        Principal repaid in the period.
    closing_balance : Decimal
        Balance at the end of the period.
    life_insurance : Decimal
        Life insurance charge.
    property_insurance : Decimal
        Property/risk insurance charge.
    disgravamen : Decimal
        Disgravamen (mortality) insurance charge.
    total_payment : Decimal
        Total period outflow for the borrower.
    kind : PeriodKind
        ORDINARY, TOTAL_GRACE or PARTIAL_GRACE.
    payment_date : Optional[date]
        Due date, when the schedule was anchored to a first payment date.
    """

    period: int
    opening_balance: Decimal
    installment: Decimal
    interest: Decimal
    principal: Decimal
    closing_balance: Decimal
    life_insurance: Decimal
    property_insurance: Decimal
    disgravamen: Decimal
    total_payment: Decimal
    kind: PeriodKind = PeriodKind.ORDINARY
    payment_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the period as a plain dictionary."""
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class ScheduleTotals:
    """Aggregated sums over a schedule."""

    periods: int
    total_paid: Decimal
    total_installments: Decimal
    total_interest: Decimal
    total_principal: Decimal
    total_life_insurance: Decimal
    total_property_insurance: Decimal
    total_disgravamen: Decimal


def payment_date_for(first_payment_date: Optional[date], period: int) -> Optional[date]:
    """
    Return the due date of ``period`` given the first due date.

    Month arithmetic uses ``pd.DateOffset`` so month-end dates clamp
    correctly (Jan 31 -> Feb 28/29).
    """
    if first_payment_date is None:
        return None
    return (pd.Timestamp(first_payment_date) + pd.DateOffset(months=period - 1)).date()


def calculate_installment(principal: Number, monthly_rate: float, total_periods: int) -> Decimal:
    """
    Constant French-method installment.

    Parameters
    ----------
    principal : Number
        Amount to amortize.
    monthly_rate : float
        Periodic rate as a fraction.
    total_periods : int
        Number of installments.

    Returns
    -------
    Decimal
        Installment rounded to cents.

    Raises
    ------
    InvalidInputError
        If ``total_periods`` is not positive.
    NumericDegenerateError
        If the annuity factor is not finite.
    """
    if total_periods <= 0:
        raise InvalidInputError(f"Number of periods must be positive, got {total_periods}")

    pv = float(principal)
    if monthly_rate == 0:
        logger.debug("Zero rate: straight-line installment over %d periods", total_periods)
        return to_money(Decimal(str(pv)) / total_periods)

    growth = math.pow(1.0 + monthly_rate, total_periods)
    denominator = growth - 1.0
    if denominator == 0 or not math.isfinite(growth):
        if abs(monthly_rate) < 1e-12:
            return to_money(Decimal(str(pv)) / total_periods)
        raise NumericDegenerateError(
            f"Annuity factor undefined for rate {monthly_rate} over {total_periods} periods"
        )

    payment = pv * monthly_rate * growth / denominator
    logger.debug("Installment %.6f for PV=%.2f r=%.12f n=%d", payment, pv, monthly_rate, total_periods)
    return to_money(payment)


def amortize(
    opening_balance: Decimal,
    monthly_rate: float,
    first_period: int,
    last_period: int,
    insurance: Optional[InsuranceParameters] = None,
    first_payment_date: Optional[date] = None,
) -> List[AmortizationPeriod]:
    """
    Amortize a balance to zero over periods ``first_period..last_period``.

    A fresh constant installment is computed for the remaining period count.
    Used both for ordinary schedules and for re-amortizing after a grace
    window.

    Parameters
    ----------
    opening_balance : Decimal
        Balance at the start of ``first_period``.
    monthly_rate : float
        Periodic interest rate as a fraction.
    first_period : int
        Index of the first period produced.
    last_period : int
        Index of the final period (inclusive).
    insurance : Optional[InsuranceParameters]
        Insurance add-ons (none when omitted).
    first_payment_date : Optional[date]
        Due date of period 1, used to date every produced period.

    Returns
    -------
    List[AmortizationPeriod]
        ORDINARY periods whose final closing balance is zero.
    """
    insurance = insurance or InsuranceParameters()
    count = last_period - first_period + 1
    balance = to_money(opening_balance)
    embedded = insurance.disgravamen_in_installment

    installment = calculate_installment(balance, monthly_rate + insurance.installment_rate_addon, count)
    r = rate_to_decimal(monthly_rate)

    periods: List[AmortizationPeriod] = []
    for number in range(first_period, last_period + 1):
        interest = to_money(balance * r)
        disgravamen = insurance.disgravamen_for(balance)
        life = insurance.life_insurance_for(balance)
        prop = insurance.property_insurance_for(balance)

        carried = interest + disgravamen if embedded else interest
        payment = installment
        principal = payment - carried

        # last period (or an early payoff from rounding) clears the balance
        if number == last_period or principal > balance:
            principal = balance
            payment = principal + carried

        closing = balance - principal
        outflow = payment + life + prop
        if not embedded:
            outflow += disgravamen

        periods.append(
            AmortizationPeriod(
                period=number,
                opening_balance=balance,
                installment=to_money(payment),
                interest=interest,
                principal=to_money(principal),
                closing_balance=to_money(closing),
                life_insurance=life,
                property_insurance=prop,
                disgravamen=disgravamen,
                total_payment=to_money(outflow),
                kind=PeriodKind.ORDINARY,
                payment_date=payment_date_for(first_payment_date, number),
            )
        )
        balance = to_money(closing)

    return periods


def generate_schedule(
    principal: Number,
    monthly_rate: float,
    total_periods: int,
    insurance: Optional[InsuranceParameters] = None,
    first_payment_date: Optional[date] = None,
) -> List[AmortizationPeriod]:
    """
    Generate a complete ordinary French-method schedule.

    Parameters
    ----------
    principal : Number
        Amount financed (> 0).
    monthly_rate : float
        Effective monthly rate as a fraction (not a percentage).
    total_periods : int
        Number of monthly periods.
    insurance : Optional[InsuranceParameters]
        Insurance add-ons.
    first_payment_date : Optional[date]
        Due date of the first installment.

    Returns
    -------
    List[AmortizationPeriod]
        Periods ``1..total_periods``.
    """
    amount = to_decimal(principal)
    if amount is None or amount <= 0:
        raise InvalidInputError(f"Principal must be positive, got {principal}")
    if total_periods <= 0:
        raise InvalidInputError(f"Number of periods must be positive, got {total_periods}")
    if not math.isfinite(monthly_rate) or monthly_rate < 0:
        raise InvalidInputError(f"Monthly rate must be a non-negative fraction, got {monthly_rate}")

    logger.debug(
        "Generating %d-period schedule for %s at TEM %.10f", total_periods, amount, monthly_rate
    )
    return amortize(amount, monthly_rate, 1, total_periods, insurance, first_payment_date)


def generate_schedule_for(
    params: LoanParameters, first_payment_date: Optional[date] = None
) -> List[AmortizationPeriod]:
    """Generate the ordinary schedule described by a :class:`LoanParameters`."""
    return generate_schedule(
        params.principal,
        params.monthly_rate,
        params.total_periods,
        params.insurance,
        first_payment_date,
    )


def summarize_schedule(schedule: Sequence[AmortizationPeriod]) -> ScheduleTotals:
    """
    Sum the monetary columns of a schedule.

    Parameters
    ----------
    schedule : Sequence[AmortizationPeriod]
        Schedule to aggregate.

    Returns
    -------
    ScheduleTotals
        Column totals.
    """
    def total(attr: str) -> Decimal:
        return sum((getattr(p, attr) for p in schedule), ZERO)

    return ScheduleTotals(
        periods=len(schedule),
        total_paid=total("total_payment"),
        total_installments=total("installment"),
        total_interest=total("interest"),
        total_principal=total("principal"),
        total_life_insurance=total("life_insurance"),
        total_property_insurance=total("property_insurance"),
        total_disgravamen=total("disgravamen"),
    )


def first_ordinary_period(schedule: Sequence[AmortizationPeriod]) -> Optional[AmortizationPeriod]:
    """Return the first ORDINARY period, or ``None`` for an empty schedule."""
    for period in schedule:
        if period.kind == PeriodKind.ORDINARY:
            return period
    return schedule[-1] if schedule else None


def schedule_to_frame(schedule: Sequence[AmortizationPeriod]) -> pd.DataFrame:
    """
    Return the schedule as a DataFrame, one row per period.

    Monetary columns are converted to float for display and analysis; the
    period records remain the authoritative Decimal values.
    """
    columns = [
        "period",
        "payment_date",
        "kind",
        "opening_balance",
        "installment",
        "interest",
        "principal",
        "closing_balance",
        "life_insurance",
        "property_insurance",
        "disgravamen",
        "total_payment",
    ]
    if not schedule:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame([p.to_dict() for p in schedule])[columns]
    money_cols = columns[3:]
    df[money_cols] = df[money_cols].astype(float)
    return df.set_index("period")
