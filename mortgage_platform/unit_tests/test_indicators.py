"""
Financial Indicator Tests
=========================

Tests for NPV, IRR and TCEA over generated schedules:
- Borrower sign convention
- NPV at the IRR is zero
- Root finding, fallback and degenerate cash flows
"""

import sys
from decimal import Decimal
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from engine.errors import NumericDegenerateError
from engine.indicators import (
    FinancialIndicators,
    IndicatorCalculator,
    RootResult,
    cash_flow_vector,
    irr,
    npv,
    present_value,
    solve_monthly_rate,
    tcea,
)
from engine.schedule import InsuranceParameters, generate_schedule

PRINCIPAL = Decimal("100000")


@pytest.fixture
def schedule():
    """100,000 at TEM 0.75% over 240 months, no insurance."""
    return generate_schedule(PRINCIPAL, 0.0075, 240)


# =============================================================================
# Cash Flows
# =============================================================================

class TestCashFlows:
    """Tests for the signed cash-flow vector."""

    def test_borrower_signs(self, schedule):
        """
        Verify CF0 is an inflow and every period is an outflow.
        """
        flows = cash_flow_vector(PRINCIPAL, schedule)

        assert flows.shape == (241,)
        assert flows[0] == pytest.approx(100000.0)
        assert flows[1] == pytest.approx(-899.73)
        assert np.all(flows[1:] < 0)

    def test_present_value_at_zero_rate(self):
        """
        Verify PV at r=0 is the plain sum.
        """
        assert present_value(np.array([100.0, -60.0, -50.0]), 0.0) == pytest.approx(-10.0)


# =============================================================================
# NPV
# =============================================================================

class TestNPV:
    """Tests for the net present value."""

    def test_positive_when_discount_rate_exceeds_loan_rate(self, schedule):
        """
        Verify the loan is worth taking against a 10% opportunity rate.
        """
        assert npv(PRINCIPAL, schedule, 10) > 0

    def test_negative_when_discount_rate_below_loan_rate(self, schedule):
        """
        Verify the loan costs more than a 5% opportunity rate.
        """
        assert npv(PRINCIPAL, schedule, 5) < 0

    def test_zero_discount_rate(self, schedule):
        """
        Verify NPV at 0% is principal minus everything paid.
        """
        total_paid = sum(p.total_payment for p in schedule)
        assert abs(npv(PRINCIPAL, schedule, 0) - (PRINCIPAL - total_paid)) <= Decimal("0.01")

    def test_rounded_to_cents(self, schedule):
        """
        Verify NPV is a cent-quantized Decimal.
        """
        value = npv(PRINCIPAL, schedule, 10)
        assert isinstance(value, Decimal)
        assert value == value.quantize(Decimal("0.01"))


# =============================================================================
# IRR / TCEA
# =============================================================================

class TestIRR:
    """Tests for the internal rate of return."""

    def test_recovers_loan_rate(self, schedule):
        """
        Verify IRR of a plain schedule is the annualized contract rate.
        """
        expected = ((1 + 0.0075) ** 12 - 1) * 100
        assert float(irr(PRINCIPAL, schedule)) == pytest.approx(expected, abs=0.01)

    def test_npv_at_irr_is_zero(self, schedule):
        """
        Verify discounting at the IRR gives an NPV within one cent of zero.
        """
        rate = irr(PRINCIPAL, schedule)
        assert abs(npv(PRINCIPAL, schedule, rate)) <= Decimal("0.01")

    def test_npv_at_irr_with_insurance(self):
        """
        Verify the zero-NPV property with insurance charges in the outflows.
        """
        insurance = InsuranceParameters(
            life_insurance_rate=Decimal("0.0003"),
            property_insurance_amount=Decimal("30"),
            disgravamen_rate=Decimal("0.00049"),
        )
        schedule = generate_schedule(Decimal("226255"), 0.0080, 360, insurance)
        rate = irr(Decimal("226255"), schedule)

        assert abs(npv(Decimal("226255"), schedule, rate)) <= Decimal("0.01")

    def test_eight_decimal_places(self, schedule):
        """
        Verify rates carry more precision than money.
        """
        assert irr(PRINCIPAL, schedule).as_tuple().exponent == -8


class TestTCEA:
    """Tests for the total effective annual cost."""

    def test_equals_irr_on_same_flows(self, schedule):
        """
        Verify TCEA on the loan amount matches IRR on the same amount.
        """
        assert tcea(PRINCIPAL, schedule) == irr(PRINCIPAL, schedule)

    def test_insurance_raises_cost(self, schedule):
        """
        Verify insurance charges make the loan more expensive.
        """
        insured = generate_schedule(
            PRINCIPAL, 0.0075, 240, InsuranceParameters(life_insurance_rate=Decimal("0.0005"))
        )
        assert tcea(PRINCIPAL, insured) > tcea(PRINCIPAL, schedule)

    def test_capitalized_costs_not_subtracted(self, schedule):
        """
        Verify the capitalized-costs argument does not change the result.
        """
        assert tcea(PRINCIPAL, schedule, Decimal("1500")) == tcea(PRINCIPAL, schedule)


# =============================================================================
# Root Finding
# =============================================================================

class TestSolver:
    """Tests for the monthly-rate root search."""

    def test_simple_root(self):
        """
        Verify -100 then +110 has a 10% rate.
        """
        result = solve_monthly_rate(np.array([-100.0, 110.0]))

        assert isinstance(result, RootResult)
        assert result.converged
        assert result.method == "newton"
        assert result.monthly_rate == pytest.approx(0.10, rel=1e-9)
        assert result.annual_rate == pytest.approx(1.1 ** 12 - 1, rel=1e-9)

    def test_no_sign_change_rejected(self):
        """
        Verify flows that never change sign have no rate of return.
        """
        with pytest.raises(NumericDegenerateError, match="do not change sign"):
            solve_monthly_rate(np.array([100.0, 50.0, 25.0]))
        with pytest.raises(NumericDegenerateError):
            solve_monthly_rate(np.zeros(5))

    def test_zero_derivative_returns_best_estimate(self):
        """
        Verify a zero derivative at the seed stops Newton without dividing
        by zero and returns the seed as an unconverged estimate.
        """
        # d/dr at r=0 of 0.75 - 2/(1+r) + 1/(1+r)^2 is exactly 0
        flows = np.array([0.75, -2.0, 1.0])
        result = solve_monthly_rate(flows, initial_guess=0.0)

        assert not result.converged
        assert result.method == "newton"
        assert result.monthly_rate == 0.0

    def test_bracketed_fallback(self, schedule):
        """
        Verify brentq refines the root when Newton hits its iteration cap.
        """
        flows = cash_flow_vector(PRINCIPAL, schedule)
        result = solve_monthly_rate(flows, max_iterations=1)

        assert result.method == "brentq"
        assert result.converged
        assert result.monthly_rate == pytest.approx(0.0075, abs=1e-6)

    def test_fallback_is_logged(self, schedule, caplog):
        """
        Verify the fallback emits a warning.
        """
        flows = cash_flow_vector(PRINCIPAL, schedule)
        with caplog.at_level("WARNING", logger="MORTGAGE.Indicators"):
            solve_monthly_rate(flows, max_iterations=1)

        assert "brentq" in caplog.text


# =============================================================================
# Calculator
# =============================================================================

class TestIndicatorCalculator:
    """Tests for the indicator triple."""

    def test_calculate(self, schedule):
        """
        Verify the calculator bundles NPV, IRR and TCEA.
        """
        result = IndicatorCalculator().calculate(PRINCIPAL, schedule, Decimal("10"))

        assert isinstance(result, FinancialIndicators)
        assert result.discount_rate == Decimal("10")
        assert result.npv == npv(PRINCIPAL, schedule, 10)
        assert result.irr == result.tcea
        assert result.npv > 0

    def test_solver_settings_used(self, schedule):
        """
        Verify a custom seed reaches the same root.
        """
        default = IndicatorCalculator().calculate(PRINCIPAL, schedule, 10)
        seeded = IndicatorCalculator(initial_guess=0.05, max_iterations=500).calculate(
            PRINCIPAL, schedule, 10
        )

        assert float(seeded.irr) == pytest.approx(float(default.irr), abs=1e-6)
