"""
Fine models.

Fines are created pending. Payments accumulate in ``paid_amount``; the fine
becomes PAID once fully covered. WAIVED is an administrative write-off of
the unpaid remainder.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, Field

from .base import CamelModel
from .enums import FineStatus, FineType, Money, PaymentMethod


class Fine(CamelModel):
    """A monetary penalty owed by a member."""

    id: str = Field(
        ...,
        description="Unique identifier for the fine",
        pattern=r"^fine_[a-zA-Z0-9_]+$",
        examples=["fine_202401151030120001"],
    )
    member_id: str
    transaction_id: str | None = Field(None, description="Loan the fine relates to, if any")
    fine_type: FineType
    amount: Money = Field(..., ge=0)
    paid_amount: Money = Field(Decimal("0.00"), ge=0)
    status: FineStatus = FineStatus.PENDING
    description: str | None = None
    payment_date: datetime | None = None
    payment_method: PaymentMethod | None = None
    created_at: datetime | None = None

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0.00"), self.amount - self.paid_amount)

    model_config = ConfigDict(from_attributes=True)


class FinePayment(CamelModel):
    """Request body for paying (part of) a fine."""

    fine_id: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CASH


class LostBookReport(CamelModel):
    """Request body for charging a member for a lost book."""

    transaction_id: str = Field(..., min_length=1)
    description: str | None = Field(None, max_length=1000)


class DamageReport(CamelModel):
    """Request body for charging a member for damaging a book."""

    member_id: str = Field(..., min_length=1)
    book_id: str = Field(..., min_length=1)
    damage_percent: Literal[25, 50, 100] = Field(
        ..., description="25 = minor, 50 = moderate, 100 = severe/total"
    )
    transaction_id: str | None = None
    description: str | None = Field(None, max_length=1000)
