"""Tests for the loan and fine policy rules."""

from datetime import datetime
from decimal import Decimal

import pytest

from library_circulation.models.enums import MemberType
from library_circulation.models.settings import SystemSetting
from library_circulation.policy import (
    LoanPolicy,
    can_borrow,
    can_renew,
    capped_overdue_fine,
    days_overdue,
    due_date_for,
    overdue_fine,
    to_money,
)


@pytest.fixture
def student_policy() -> LoanPolicy:
    return LoanPolicy.from_setting(
        SystemSetting(
            member_type=MemberType.STUDENT,
            max_books_allowed=3,
            loan_duration_days=14,
            renewal_limit=2,
            fine_per_day=Decimal("0.50"),
            grace_period_days=1,
        )
    )


class TestOverdueFine:
    def test_grace_period_is_free(self, student_policy):
        """5 days late with 1 day of grace at 0.50/day is 0.5 x (5 - 1)."""
        assert overdue_fine(student_policy, 5) == Decimal("2.00")

    @pytest.mark.parametrize("days", [0, 1])
    def test_no_fine_within_grace(self, student_policy, days):
        assert overdue_fine(student_policy, days) == Decimal("0.00")

    def test_fine_is_decimal_cents(self):
        policy = LoanPolicy(
            member_type=MemberType.FACULTY,
            max_books_allowed=10,
            loan_duration_days=30,
            renewal_limit=3,
            fine_per_day=Decimal("0.25"),
            grace_period_days=2,
        )
        fine = overdue_fine(policy, 9)
        assert fine == Decimal("1.75")
        assert fine.as_tuple().exponent == -2


class TestDaysOverdue:
    def test_not_yet_due(self):
        due = datetime(2024, 1, 10)
        assert days_overdue(due, datetime(2024, 1, 9, 23, 59)) == 0
        assert days_overdue(due, due) == 0

    def test_partial_days_are_floored(self):
        due = datetime(2024, 1, 10)
        assert days_overdue(due, datetime(2024, 1, 10, 23, 0)) == 0
        assert days_overdue(due, datetime(2024, 1, 15, 12, 0)) == 5


class TestLoanTerms:
    def test_due_date_is_start_of_day(self, student_policy):
        issued = datetime(2024, 1, 1, 16, 45, 12)
        assert due_date_for(student_policy, issued) == datetime(2024, 1, 15, 0, 0, 0)

    def test_can_borrow_below_limit(self, student_policy):
        assert can_borrow(student_policy, 2)
        assert not can_borrow(student_policy, 3)

    def test_can_renew_below_limit(self, student_policy):
        assert can_renew(student_policy, 1)
        assert not can_renew(student_policy, 2)

    def test_from_setting_copies_terms(self, student_policy):
        assert student_policy.member_type == MemberType.STUDENT
        assert student_policy.fine_per_day == Decimal("0.50")
        assert student_policy.grace_period_days == 1


def test_to_money_rounds_half_up():
    assert to_money(0.125) == Decimal("0.13")
    assert to_money(Decimal("2")) == Decimal("2.00")


class TestCappedOverdueFine:
    def test_capped_at_price_plus_fee(self, student_policy):
        fine = capped_overdue_fine(student_policy, 60, Decimal("2.00"), Decimal("5.00"))
        assert fine == Decimal("7.00")

    def test_below_cap_is_unchanged(self, student_policy):
        fine = capped_overdue_fine(student_policy, 5, Decimal("20.00"), Decimal("5.00"))
        assert fine == Decimal("2.00")

    def test_unpriced_book_is_not_capped(self, student_policy):
        fine = capped_overdue_fine(student_policy, 60, None, Decimal("5.00"))
        assert fine == Decimal("29.50")
