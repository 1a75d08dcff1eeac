"""
Loan and fine policy rules.

Pure functions over a ``LoanPolicy`` (the typed view of one
``system_settings`` row). The loan and fine ledgers call these; nothing here
touches the database.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .models.enums import MemberType
from .models.settings import SystemSetting

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize to cents. Floats go through ``str`` to avoid binary noise."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LoanPolicy:
    member_type: MemberType
    max_books_allowed: int
    loan_duration_days: int
    renewal_limit: int
    fine_per_day: Decimal
    grace_period_days: int = 0

    @classmethod
    def from_setting(cls, setting: SystemSetting) -> "LoanPolicy":
        return cls(
            member_type=MemberType(setting.member_type),
            max_books_allowed=setting.max_books_allowed,
            loan_duration_days=setting.loan_duration_days,
            renewal_limit=setting.renewal_limit,
            fine_per_day=to_money(setting.fine_per_day),
            grace_period_days=setting.grace_period_days,
        )


def days_overdue(due_date: datetime, now: datetime) -> int:
    """Whole days past due, floored; zero when not yet due."""
    if now <= due_date:
        return 0
    return (now - due_date) // timedelta(days=1)


def overdue_fine(policy: LoanPolicy, overdue_days: int) -> Decimal:
    """
    Fine for a loan ``overdue_days`` late.

    The first ``grace_period_days`` are free, e.g. 5 days late with one day
    of grace at 0.50/day is 2.00.
    """
    chargeable = max(0, overdue_days - policy.grace_period_days)
    return to_money(policy.fine_per_day * chargeable)


def due_date_for(policy: LoanPolicy, issued_at: datetime) -> datetime:
    """Start of the day ``loan_duration_days`` after issue."""
    due = issued_at + timedelta(days=policy.loan_duration_days)
    return datetime.combine(due.date(), time.min)


def can_renew(policy: LoanPolicy, renewal_count: int) -> bool:
    return renewal_count < policy.renewal_limit


def can_borrow(policy: LoanPolicy, books_issued_count: int) -> bool:
    return books_issued_count < policy.max_books_allowed


def capped_overdue_fine(
    policy: LoanPolicy,
    overdue_days: int,
    price: Decimal | None,
    processing_fee: Decimal,
) -> Decimal:
    """
    Overdue fine limited to what losing the book would cost.

    Books without a price are not capped.
    """
    amount = overdue_fine(policy, overdue_days)
    if price is None:
        return amount
    return min(amount, to_money(price) + to_money(processing_fee))
