"""
Financial Indicators
====================

Regulatory indicators derived from a generated schedule:

1. **NPV** (VAN) at a given annual discount rate.
2. **IRR** (TIR) of the loan cash-flow stream.
3. **TCEA**, the annualized effective cost including capitalized fees and
   insurance.

Sign Convention
---------------
All indicators take the borrower's point of view. The disbursed amount is an
inflow at t=0 and every period outflow (installment plus insurance) is
negative::

    CF = [CF0, -outflow_1, ..., -outflow_N]
    NPV = CF0 - sum(outflow_t / (1 + r)^t)

A positive NPV means the loan is cheaper than the opportunity (discount) rate.

Root Finding
------------
IRR and TCEA solve ``sum(CF_t / (1 + r)^t) = 0`` for the monthly rate with
Newton-Raphson (``scipy.optimize.newton`` with the analytic derivative),
seeded at 1% per month and bounded by an iteration cap. A near-zero
derivative stops the iteration instead of dividing by zero. When Newton does
not converge and the root is bracketed, ``scipy.optimize.brentq`` refines it;
this fallback is logged. Otherwise the best Newton estimate is returned.

The monthly root is annualized as ``(1 + r)^12 - 1`` and reported as a
percentage with 8 decimal places, finer than the cent precision of NPV,
because small rate differences compound over long terms.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, Union

import numpy as np
from scipy.optimize import brentq, newton

from .errors import NumericDegenerateError
from .rates import InterestRateType, annual_percentage_to_monthly, annualize_monthly_rate
from .schedule import AmortizationPeriod, ZERO, to_money

logger = logging.getLogger("MORTGAGE.Indicators")

Number = Union[int, float, Decimal]

RATE_QUANTUM = Decimal("0.00000001")

DEFAULT_INITIAL_GUESS = 0.01
DEFAULT_TOLERANCE = 1e-12
DEFAULT_MAX_ITERATIONS = 200

# brentq bracket for the monthly rate: -50% .. +100% per month
_BRACKET = (-0.5, 1.0)


@dataclass(frozen=True)
class RootResult:
    """
    Outcome of a monthly-rate root search.

    Attributes
    ----------
    monthly_rate : float
        Monthly rate that zeroes the cash-flow present value.
    iterations : int
        Solver iterations used.
    converged : bool
        Whether the solver met its tolerance.
    method : str
        ``"newton"`` or ``"brentq"``.
    """

    monthly_rate: float
    iterations: int
    converged: bool
    method: str

    @property
    def annual_rate(self) -> float:
        """Effective annual rate implied by the monthly root."""
        return annualize_monthly_rate(self.monthly_rate)


@dataclass(frozen=True)
class FinancialIndicators:
    """
    NPV / IRR / TCEA triple for one simulation.

    Attributes
    ----------
    npv : Decimal
        Net present value in currency units (signed).
    irr : Decimal
        Annualized internal rate of return, percent.
    tcea : Decimal
        Annualized total effective cost, percent.
    discount_rate : Decimal
        Annual discount rate (percent) used for the NPV.
    """

    npv: Decimal
    irr: Decimal
    tcea: Decimal
    discount_rate: Decimal


def _outflows(schedule: Sequence[AmortizationPeriod]) -> np.ndarray:
    return np.array([float(p.total_payment) for p in schedule], dtype=float)


def cash_flow_vector(cash_flow_0: Number, schedule: Sequence[AmortizationPeriod]) -> np.ndarray:
    """
    Build the signed borrower cash-flow vector ``[CF0, -outflow_1, ..., -outflow_N]``.
    """
    return np.concatenate(([float(cash_flow_0)], -_outflows(schedule)))


def present_value(cash_flows: np.ndarray, monthly_rate: float) -> float:
    """Sum of ``CF_t / (1 + r)^t`` for t = 0..N."""
    t = np.arange(cash_flows.size, dtype=float)
    with np.errstate(all="ignore"):
        return float(np.sum(cash_flows / np.power(1.0 + monthly_rate, t)))


def present_value_derivative(cash_flows: np.ndarray, monthly_rate: float) -> float:
    """Derivative of :func:`present_value` with respect to the rate."""
    t = np.arange(cash_flows.size, dtype=float)
    with np.errstate(all="ignore"):
        return float(np.sum(-t * cash_flows / np.power(1.0 + monthly_rate, t + 1.0)))


def solve_monthly_rate(
    cash_flows: np.ndarray,
    initial_guess: float = DEFAULT_INITIAL_GUESS,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> RootResult:
    """
    Find the monthly rate at which the cash flows have zero present value.

    Parameters
    ----------
    cash_flows : np.ndarray
        Signed cash flows, index = period.
    initial_guess : float
        Newton seed (monthly rate).
    tolerance : float
        Absolute step-size tolerance.
    max_iterations : int
        Iteration cap for each solver.

    Returns
    -------
    RootResult
        Root with convergence metadata. ``converged`` is False when the best
        available estimate is returned.

    Raises
    ------
    NumericDegenerateError
        If the cash flows never change sign (no rate of return exists) or no
        finite estimate can be produced.
    """
    nonzero = cash_flows[cash_flows != 0]
    if nonzero.size == 0 or np.all(nonzero > 0) or np.all(nonzero < 0):
        raise NumericDegenerateError("Cash flows do not change sign; no rate of return exists")

    def f(r: float) -> float:
        return present_value(cash_flows, r)

    def fprime(r: float) -> float:
        return present_value_derivative(cash_flows, r)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        root, info = newton(
            f,
            initial_guess,
            fprime=fprime,
            tol=tolerance,
            maxiter=max_iterations,
            full_output=True,
            disp=False,
        )
    root = float(root)

    if info.converged and math.isfinite(root) and root > -1.0:
        logger.debug("Newton converged to %.12f in %d iterations", root, info.iterations)
        return RootResult(root, info.iterations, True, "newton")

    for w in caught:
        logger.debug("Newton warning: %s", w.message)

    lo, hi = _BRACKET
    f_lo, f_hi = f(lo), f(hi)
    if math.isfinite(f_lo) and math.isfinite(f_hi) and f_lo * f_hi < 0:
        logger.warning(
            "Newton did not converge after %d iterations (last %.6g); refining with brentq",
            info.iterations,
            root,
        )
        bracketed, result = brentq(
            f,
            lo,
            hi,
            xtol=tolerance,
            maxiter=max(max_iterations, DEFAULT_MAX_ITERATIONS),
            full_output=True,
            disp=False,
        )
        return RootResult(float(bracketed), result.iterations, bool(result.converged), "brentq")

    if math.isfinite(root) and root > -1.0:
        logger.warning(
            "Newton did not converge after %d iterations; returning best estimate %.12f",
            info.iterations,
            root,
        )
        return RootResult(root, info.iterations, False, "newton")

    raise NumericDegenerateError(f"Rate search produced no finite estimate (last value {root})")


def _to_percentage(annual_rate: float) -> Decimal:
    return (Decimal(repr(annual_rate)) * 100).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def npv(
    cash_flow_0: Number,
    schedule: Sequence[AmortizationPeriod],
    annual_discount_rate: Number,
) -> Decimal:
    """
    Net present value of the loan from the borrower's side.

    Parameters
    ----------
    cash_flow_0 : Number
        Amount received at t=0.
    schedule : Sequence[AmortizationPeriod]
        Period outflows.
    annual_discount_rate : Number
        Effective annual discount rate as a percentage (e.g. ``10``).

    Returns
    -------
    Decimal
        ``CF0 - sum(outflow_t / (1 + r_m)^t)``, rounded to cents.
    """
    monthly = annual_percentage_to_monthly(annual_discount_rate, InterestRateType.EFFECTIVE)
    outflows = _outflows(schedule)
    t = np.arange(1, outflows.size + 1, dtype=float)
    discounted = float(np.sum(outflows / np.power(1.0 + monthly, t)))

    value = Decimal(str(cash_flow_0)) - Decimal(repr(discounted))
    logger.debug("NPV at %s%% (TEM %.10f): %s", annual_discount_rate, monthly, value)
    return to_money(value)


def irr(
    cash_flow_0: Number,
    schedule: Sequence[AmortizationPeriod],
    initial_guess: float = DEFAULT_INITIAL_GUESS,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Decimal:
    """
    Annualized internal rate of return, in percent.

    Parameters
    ----------
    cash_flow_0 : Number
        Amount received at t=0.
    schedule : Sequence[AmortizationPeriod]
        Period outflows.
    initial_guess, tolerance, max_iterations
        Solver settings, see :func:`solve_monthly_rate`.

    Returns
    -------
    Decimal
        ``((1 + r_m)^12 - 1) * 100`` with 8 decimal places.
    """
    result = solve_monthly_rate(
        cash_flow_vector(cash_flow_0, schedule), initial_guess, tolerance, max_iterations
    )
    value = _to_percentage(result.annual_rate)
    logger.debug("IRR: %s%% (monthly %.12f, %s)", value, result.monthly_rate, result.method)
    return value


def tcea(
    loan_amount: Number,
    schedule: Sequence[AmortizationPeriod],
    capitalized_costs: Number = ZERO,
    initial_guess: float = DEFAULT_INITIAL_GUESS,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Decimal:
    """
    Total effective annual cost (TCEA), in percent.

    The initial costs are already capitalized into ``loan_amount`` (they are
    amortized by the schedule), so they are not subtracted from the t=0 flow.

    Parameters
    ----------
    loan_amount : Number
        Loan amount including capitalized fees.
    schedule : Sequence[AmortizationPeriod]
        Period outflows (installment plus insurance).
    capitalized_costs : Number
        Fees included in ``loan_amount``; informational.
    initial_guess, tolerance, max_iterations
        Solver settings, see :func:`solve_monthly_rate`.

    Returns
    -------
    Decimal
        Annualized cost rate with 8 decimal places.
    """
    logger.debug("TCEA on loan amount %s (capitalized costs %s)", loan_amount, capitalized_costs)
    result = solve_monthly_rate(
        cash_flow_vector(loan_amount, schedule), initial_guess, tolerance, max_iterations
    )
    value = _to_percentage(result.annual_rate)
    logger.debug("TCEA: %s%% (%s, converged=%s)", value, result.method, result.converged)
    return value


class IndicatorCalculator:
    """
    Computes the indicator triple with a fixed solver configuration.

    Parameters
    ----------
    initial_guess : float
        Newton seed for the monthly rate.
    tolerance : float
        Step-size tolerance.
    max_iterations : int
        Iteration cap.

    Example
    -------
    >>> calc = IndicatorCalculator()
    >>> indicators = calc.calculate(Decimal("100000"), schedule, Decimal("10"))
    >>> indicators.tcea
    """

    def __init__(
        self,
        initial_guess: float = DEFAULT_INITIAL_GUESS,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self.initial_guess = initial_guess
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    def calculate(
        self,
        loan_amount: Number,
        schedule: Sequence[AmortizationPeriod],
        discount_rate: Number,
        capitalized_costs: Optional[Number] = None,
    ) -> FinancialIndicators:
        """
        Compute NPV, IRR and TCEA for a schedule.

        Parameters
        ----------
        loan_amount : Number
            Amount disbursed at t=0 (fees capitalized).
        schedule : Sequence[AmortizationPeriod]
            Final schedule (grace already applied).
        discount_rate : Number
            Annual discount rate for NPV, percent.
        capitalized_costs : Optional[Number]
            Fees included in ``loan_amount``.

        Returns
        -------
        FinancialIndicators
            The indicator triple.
        """
        solver = dict(
            initial_guess=self.initial_guess,
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
        )
        result = FinancialIndicators(
            npv=npv(loan_amount, schedule, discount_rate),
            irr=irr(loan_amount, schedule, **solver),
            tcea=tcea(loan_amount, schedule, capitalized_costs or ZERO, **solver),
            discount_rate=Decimal(str(discount_rate)),
        )
        logger.info(
            "Indicators - NPV: %s, IRR: %s%%, TCEA: %s%%", result.npv, result.irr, result.tcea
        )
        return result
