"""
Engine Exceptions
=================

All engine errors derive from :class:`SimulationError` so callers can catch
every failure of a simulation with a single handler. Three kinds are raised:

- :class:`InvalidInputError` for malformed parameters, raised before any
  computation starts.
- :class:`PolicyViolationError` for bank-policy or program-rule rejections.
  These carry the computed threshold and the shortfall/excess amount.
- :class:`NumericDegenerateError` for numerical breakdowns with no safe
  fallback.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class SimulationError(Exception):
    """
    Base exception for mortgage simulation failures.
    """

    pass


class InvalidInputError(SimulationError, ValueError):
    """
    Raised when an input parameter is out of its allowed domain.

    Examples: non-positive principal, a term outside 1-30 years or a
    grace duration outside 0-60 periods.
    """

    pass


class PolicyViolationError(SimulationError):
    """
    Raised when a loan request breaks a bank-policy or program rule.

    Attributes
    ----------
    rule : str
        Short identifier of the rule that failed (e.g. ``"min_down_payment"``).
    threshold : Optional[Decimal]
        The computed limit the request was compared against.
    actual : Optional[Decimal]
        The value supplied by the request.
    difference : Optional[Decimal]
        Shortfall (below a minimum) or excess (above a maximum), always
        non-negative.
    """

    def __init__(
        self,
        message: str,
        rule: str = "policy",
        threshold: Optional[Decimal] = None,
        actual: Optional[Decimal] = None,
        difference: Optional[Decimal] = None,
    ) -> None:
        super().__init__(message)
        self.rule = rule
        self.threshold = threshold
        self.actual = actual
        self.difference = difference


class NumericDegenerateError(SimulationError):
    """
    Raised when a calculation cannot produce a finite result.

    Zero-rate annuities and slow root-finding are handled locally; this is
    only raised when no usable estimate exists.
    """

    pass
