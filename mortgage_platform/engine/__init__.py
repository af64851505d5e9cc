"""
Mortgage Simulation Engine
==========================

This package provides the computation core for mortgage loan simulation. A
simulation runs the following steps:

1. **Rate Conversion**: Normalize a quoted nominal or effective annual rate to
   the effective monthly rate.
2. **Policy Evaluation**: Check down payment, financing ceiling, NCMV
   eligibility and coherence; compute government and good-payer bonuses.
3. **Schedule Generation**: Build the French-method amortization table with
   per-period insurance charges.
4. **Grace Application**: Rewrite the leading periods for partial or total
   grace and re-amortize the remainder.
5. **Indicators**: Compute NPV, IRR and TCEA from the final cash flows.

The main entry point is :class:`SimulationOrchestrator`, which accepts a
:class:`SimulationRequest` and returns a :class:`SimulationResult`.

Example
-------
>>> from mortgage_platform.engine import SimulationOrchestrator, SimulationRequest
>>> result = SimulationOrchestrator().run(SimulationRequest(
...     property_price=Decimal("244600"),
...     down_payment=Decimal("18345"),
...     annual_rate=Decimal("9"),
...     term_years=20,
... ))
>>> print(result.to_frame().head())

See Also
--------
rates.annual_percentage_to_monthly : Quoted annual percentage to monthly rate.
schedule.generate_schedule : French-method schedule.
grace.apply_grace_period : Grace-period rewriting.
indicators.IndicatorCalculator : NPV/IRR/TCEA.
policy.BankPolicy : Lending rules.
"""

from __future__ import annotations

from .currency import Currency, CurrencyConverter, ExchangeRateProvider
from .errors import (
    InvalidInputError,
    NumericDegenerateError,
    PolicyViolationError,
    SimulationError,
)
from .grace import GracePolicy, GraceType, apply_grace_period
from .indicators import FinancialIndicators, IndicatorCalculator, irr, npv, tcea
from .policy import BankPolicy, BonusType, PriceBand
from .rates import (
    Capitalization,
    InterestRateType,
    annual_percentage_to_monthly,
    to_effective_annual,
    to_monthly_rate,
)
from .schedule import (
    AmortizationPeriod,
    InsuranceParameters,
    LoanParameters,
    PeriodKind,
    generate_schedule,
    schedule_to_frame,
)
from .simulation import (
    SimulationDefaults,
    SimulationOrchestrator,
    SimulationRequest,
    SimulationResult,
)

__all__ = [
    "AmortizationPeriod",
    "BankPolicy",
    "BonusType",
    "Capitalization",
    "Currency",
    "CurrencyConverter",
    "ExchangeRateProvider",
    "FinancialIndicators",
    "GracePolicy",
    "GraceType",
    "IndicatorCalculator",
    "InsuranceParameters",
    "InterestRateType",
    "InvalidInputError",
    "LoanParameters",
    "NumericDegenerateError",
    "PeriodKind",
    "PolicyViolationError",
    "PriceBand",
    "SimulationDefaults",
    "SimulationError",
    "SimulationOrchestrator",
    "SimulationRequest",
    "SimulationResult",
    "annual_percentage_to_monthly",
    "apply_grace_period",
    "generate_schedule",
    "irr",
    "npv",
    "schedule_to_frame",
    "tcea",
    "to_effective_annual",
    "to_monthly_rate",
]
