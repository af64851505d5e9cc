"""
Grace Period Tests
==================

Tests for partial (interest-only) and total (capitalizing) grace windows and
the re-amortization that follows them.
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from engine.errors import InvalidInputError
from engine.grace import GracePolicy, GraceType, apply_grace_period
from engine.schedule import InsuranceParameters, PeriodKind, generate_schedule

RATE = 0.0075


@pytest.fixture
def base_schedule():
    """100,000 at TEM 0.75% over 240 months."""
    return generate_schedule(Decimal("100000"), RATE, 240)


def assert_chain(schedule):
    """Balance chain, contiguity and exact payoff."""
    assert [p.period for p in schedule] == list(range(1, len(schedule) + 1))
    for prev, cur in zip(schedule, schedule[1:]):
        assert cur.opening_balance == prev.closing_balance
    assert schedule[-1].closing_balance == Decimal("0.00")


# =============================================================================
# Grace Policy
# =============================================================================

class TestGracePolicy:
    """Tests for grace policy validation."""

    def test_defaults_to_none(self):
        """
        Verify the default policy is inactive.
        """
        policy = GracePolicy()
        assert policy.kind == GraceType.NONE
        assert not policy.is_active
        assert GracePolicy.none() == policy

    def test_kind_from_string(self):
        """
        Verify kinds can be given by name.
        """
        assert GracePolicy("TOTAL", 3).kind == GraceType.TOTAL

    @pytest.mark.parametrize("duration", [-1, 61, 2.0, True])
    def test_invalid_duration(self, duration):
        """
        Verify durations outside 0..60 or non-integers are rejected.
        """
        with pytest.raises(InvalidInputError):
            GracePolicy(GraceType.PARTIAL, duration)

    def test_zero_duration_inactive(self):
        """
        Verify a zero-length window does nothing.
        """
        assert not GracePolicy(GraceType.TOTAL, 0).is_active


# =============================================================================
# No Grace
# =============================================================================

class TestNoGrace:
    """Tests for the no-op path."""

    def test_none_returns_equal_copy(self, base_schedule):
        """
        Verify NONE returns the same periods in a new list.
        """
        result = apply_grace_period(base_schedule, GracePolicy.none(), RATE)

        assert result == base_schedule
        assert result is not base_schedule


# =============================================================================
# Partial Grace
# =============================================================================

class TestPartialGrace:
    """Tests for interest-only grace."""

    def test_grace_periods_pay_interest_only(self, base_schedule):
        """
        Verify the window pays interest, repays nothing and keeps the balance.
        """
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.PARTIAL, 6), RATE)

        for p in result[:6]:
            assert p.kind == PeriodKind.PARTIAL_GRACE
            assert p.opening_balance == Decimal("100000.00")
            assert p.closing_balance == Decimal("100000.00")
            assert p.interest == Decimal("750.00")
            assert p.installment == Decimal("750.00")
            assert p.principal == Decimal("0.00")

    def test_balance_at_end_of_window_unchanged(self, base_schedule):
        """
        Verify the balance at period d equals the opening principal.
        """
        d = 12
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.PARTIAL, d), RATE)

        assert result[d - 1].closing_balance == base_schedule[0].opening_balance

    def test_remainder_reamortized(self, base_schedule):
        """
        Verify the remaining periods amortize the principal to zero.
        """
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.PARTIAL, 6), RATE)

        assert len(result) == 240
        assert_chain(result)
        assert all(p.kind == PeriodKind.ORDINARY for p in result[6:])
        assert sum(p.principal for p in result) == Decimal("100000.00")
        # fewer periods to repay the same balance
        assert result[6].installment > base_schedule[6].installment

    def test_partial_with_embedded_disgravamen(self, base_schedule):
        """
        Verify embedded disgravamen is paid along with interest in the window.
        """
        insurance = InsuranceParameters(disgravamen_rate=Decimal("0.00049"))
        schedule = generate_schedule(Decimal("100000"), RATE, 240, insurance)
        result = apply_grace_period(schedule, GracePolicy(GraceType.PARTIAL, 3), RATE, insurance)

        first = result[0]
        assert first.disgravamen == Decimal("49.00")
        assert first.installment == Decimal("799.00")
        assert first.closing_balance == Decimal("100000.00")
        assert_chain(result)


# =============================================================================
# Total Grace
# =============================================================================

class TestTotalGrace:
    """Tests for capitalizing grace."""

    def test_interest_capitalizes(self, base_schedule):
        """
        Verify nothing is paid and the balance grows by the interest.
        """
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.TOTAL, 2), RATE)

        first, second = result[0], result[1]
        assert first.kind == PeriodKind.TOTAL_GRACE
        assert first.installment == Decimal("0.00")
        assert first.principal == Decimal("0.00")
        assert first.closing_balance == Decimal("100750.00")
        assert second.opening_balance == Decimal("100750.00")
        assert second.interest == Decimal("755.63")
        assert second.closing_balance == Decimal("101505.63")

    def test_balance_exceeds_no_grace_balance(self, base_schedule):
        """
        Verify the balance at period d is above the ordinary balance at d.
        """
        for d in (1, 6, 24, 60):
            result = apply_grace_period(base_schedule, GracePolicy(GraceType.TOTAL, d), RATE)
            assert result[d - 1].closing_balance > base_schedule[d - 1].closing_balance

    def test_balance_strictly_increases_in_window(self, base_schedule):
        """
        Verify each grace period ends with a larger balance than it opened with.
        """
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.TOTAL, 12), RATE)

        for p in result[:12]:
            assert p.closing_balance > p.opening_balance

    def test_capitalized_balance_reamortized(self, base_schedule):
        """
        Verify the remainder repays the grown balance to zero.
        """
        d = 6
        result = apply_grace_period(base_schedule, GracePolicy(GraceType.TOTAL, d), RATE)
        capitalized = result[d - 1].closing_balance

        assert len(result) == 240
        assert_chain(result)
        assert sum(p.principal for p in result[d:]) == capitalized
        assert result[d].installment > base_schedule[d].installment

    def test_total_payment_excludes_installment(self, base_schedule):
        """
        Verify only insurance is paid during total grace.
        """
        insurance = InsuranceParameters(life_insurance_rate=Decimal("0.0005"))
        schedule = generate_schedule(Decimal("100000"), RATE, 240, insurance)
        result = apply_grace_period(schedule, GracePolicy(GraceType.TOTAL, 2), RATE, insurance)

        assert result[0].total_payment == Decimal("50.00")
        assert result[1].life_insurance == Decimal("50.38")


# =============================================================================
# Edge Cases
# =============================================================================

class TestGraceEdgeCases:
    """Tests for input handling."""

    def test_input_not_mutated(self, base_schedule):
        """
        Verify the ordinary schedule is left untouched.
        """
        snapshot = list(base_schedule)
        apply_grace_period(base_schedule, GracePolicy(GraceType.TOTAL, 12), RATE)

        assert base_schedule == snapshot

    def test_window_must_leave_periods(self):
        """
        Verify a window covering the whole term is rejected.
        """
        schedule = generate_schedule(Decimal("10000"), 0.01, 12)

        with pytest.raises(InvalidInputError, match="shorter than the loan term"):
            apply_grace_period(schedule, GracePolicy(GraceType.TOTAL, 12), 0.01)

    def test_longest_allowed_window(self):
        """
        Verify a window of N-1 periods leaves a single repayment.
        """
        schedule = generate_schedule(Decimal("10000"), 0.01, 12)
        result = apply_grace_period(schedule, GracePolicy(GraceType.PARTIAL, 11), 0.01)

        assert result[-1].kind == PeriodKind.ORDINARY
        assert result[-1].principal == Decimal("10000.00")
        assert_chain(result)

    def test_dates_preserved(self):
        """
        Verify grace and re-amortized periods keep their due dates.
        """
        schedule = generate_schedule(
            Decimal("10000"), 0.01, 12, first_payment_date=date(2025, 1, 15)
        )
        result = apply_grace_period(schedule, GracePolicy(GraceType.PARTIAL, 2), 0.01)

        assert [p.payment_date for p in result] == [p.payment_date for p in schedule]
