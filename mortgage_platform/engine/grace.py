"""
Grace Period Application
========================

Rewrites the leading periods of an ordinary schedule according to a grace
policy, then re-amortizes the remaining balance over the remaining periods.

- **PARTIAL** grace: the borrower pays interest only. Principal portion is
  zero and the balance does not move.
- **TOTAL** grace: the borrower pays no installment. Interest accrues and is
  capitalized, so the balance grows period over period.

The grace window always starts from the original principal (the opening
balance of period 1), not from the ordinary schedule's amortized balances.
After the window a fresh constant installment is computed on the closing
balance of the last grace period. Insurance charges are recomputed against
that balance at every period.

The input schedule is never mutated; a new list is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

from .errors import InvalidInputError
from .schedule import (
    AmortizationPeriod,
    InsuranceParameters,
    PeriodKind,
    ZERO,
    amortize,
    payment_date_for,
    rate_to_decimal,
    to_money,
)

logger = logging.getLogger("MORTGAGE.Grace")

MAX_GRACE_PERIODS = 60


class GraceType(str, Enum):
    """
    Grace policy kinds.

    Attributes
    ----------
    NONE : str
        No grace; the ordinary schedule is kept.
    PARTIAL : str
        Interest-only installments during the window.
    TOTAL : str
        No installments during the window; interest capitalizes.
    """

    NONE = "NONE"
    PARTIAL = "PARTIAL"
    TOTAL = "TOTAL"


@dataclass(frozen=True)
class GracePolicy:
    """
    Grace configuration.

    Parameters
    ----------
    kind : GraceType
        Grace kind.
    duration : int
        Number of grace periods, 0-60.
    """

    kind: GraceType = GraceType.NONE
    duration: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", GraceType(self.kind))
        if isinstance(self.duration, bool) or not isinstance(self.duration, int):
            raise InvalidInputError(f"Grace duration must be an integer, got {self.duration!r}")
        if not (0 <= self.duration <= MAX_GRACE_PERIODS):
            raise InvalidInputError(
                f"Grace duration must be between 0 and {MAX_GRACE_PERIODS} periods, "
                f"got {self.duration}"
            )

    @property
    def is_active(self) -> bool:
        """True when the policy changes the schedule."""
        return self.kind != GraceType.NONE and self.duration > 0

    @classmethod
    def none(cls) -> "GracePolicy":
        """Policy with no grace."""
        return cls(GraceType.NONE, 0)


def _grace_period(
    number: int,
    balance: Decimal,
    kind: GraceType,
    r: Decimal,
    insurance: InsuranceParameters,
    payment_date,
) -> AmortizationPeriod:
    interest = to_money(balance * r)
    disgravamen = insurance.disgravamen_for(balance)
    life = insurance.life_insurance_for(balance)
    prop = insurance.property_insurance_for(balance)
    embedded = insurance.disgravamen_in_installment

    # embedded disgravamen behaves like extra interest
    carried = interest + disgravamen if embedded else interest

    if kind == GraceType.TOTAL:
        installment = ZERO
        closing = balance + carried
        period_kind = PeriodKind.TOTAL_GRACE
    else:
        installment = carried
        closing = balance
        period_kind = PeriodKind.PARTIAL_GRACE

    outflow = installment + life + prop
    if not embedded:
        outflow += disgravamen

    return AmortizationPeriod(
        period=number,
        opening_balance=balance,
        installment=to_money(installment),
        interest=interest,
        principal=ZERO,
        closing_balance=to_money(closing),
        life_insurance=life,
        property_insurance=prop,
        disgravamen=disgravamen,
        total_payment=to_money(outflow),
        kind=period_kind,
        payment_date=payment_date,
    )


def apply_grace_period(
    schedule: Sequence[AmortizationPeriod],
    policy: GracePolicy,
    monthly_rate: float,
    insurance: Optional[InsuranceParameters] = None,
) -> List[AmortizationPeriod]:
    """
    Produce a new schedule with the grace policy applied.

    Parameters
    ----------
    schedule : Sequence[AmortizationPeriod]
        Ordinary schedule from :func:`engine.schedule.generate_schedule`.
    policy : GracePolicy
        Grace kind and duration.
    monthly_rate : float
        Effective monthly rate as a fraction.
    insurance : Optional[InsuranceParameters]
        Insurance add-ons used to recompute charges.

    Returns
    -------
    List[AmortizationPeriod]
        Grace periods ``1..duration`` followed by re-amortized ORDINARY
        periods ``duration+1..N``. A copy of the input when the policy is
        inactive.

    Raises
    ------
    InvalidInputError
        If the grace window leaves no period to amortize the balance.
    """
    if not policy.is_active or not schedule:
        return list(schedule)

    total_periods = len(schedule)
    if policy.duration >= total_periods:
        raise InvalidInputError(
            f"Grace duration ({policy.duration}) must be shorter than the loan term "
            f"({total_periods} periods)"
        )

    insurance = insurance or InsuranceParameters()
    r = rate_to_decimal(monthly_rate)
    first_date = schedule[0].payment_date

    logger.debug("Applying %s grace for %d of %d periods", policy.kind.value, policy.duration, total_periods)

    balance = schedule[0].opening_balance
    result: List[AmortizationPeriod] = []
    for number in range(1, policy.duration + 1):
        period = _grace_period(
            number,
            balance,
            policy.kind,
            r,
            insurance,
            payment_date_for(first_date, number),
        )
        result.append(period)
        balance = period.closing_balance

    logger.debug("Re-amortizing %s over %d periods", balance, total_periods - policy.duration)
    result.extend(
        amortize(
            balance,
            monthly_rate,
            policy.duration + 1,
            total_periods,
            insurance,
            first_date,
        )
    )
    return result
