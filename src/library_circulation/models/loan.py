"""
Loan transaction models.

A loan is open while its status is ISSUED (or OVERDUE); returning or losing
the book closes it.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, Field

from .base import CamelModel
from .enums import Money, TransactionStatus
from .fine import Fine
from .reservation import Reservation


class LoanTransaction(CamelModel):
    """One issue of one book to one member."""

    id: str = Field(
        ...,
        description="Unique identifier for the loan",
        pattern=r"^loan_[a-zA-Z0-9_]+$",
        examples=["loan_202401151030120001"],
    )
    member_id: str
    book_id: str
    issue_date: datetime
    due_date: datetime
    return_date: datetime | None = None
    status: TransactionStatus = TransactionStatus.ISSUED
    renewal_count: int = Field(0, ge=0)
    fine_amount: Money = Field(Decimal("0.00"), ge=0)

    @property
    def is_open(self) -> bool:
        return self.status in (TransactionStatus.ISSUED, TransactionStatus.OVERDUE)

    model_config = ConfigDict(from_attributes=True)


class OverdueLoan(LoanTransaction):
    """An open loan past its due date, with the fine it would incur today."""

    days_overdue: int = Field(..., ge=0)
    estimated_fine: Money = Field(..., ge=0)


class ReturnResult(CamelModel):
    """Outcome of returning a book."""

    transaction: LoanTransaction
    fine: Fine | None = Field(None, description="Overdue fine raised by this return, if any")
    next_reservation: Reservation | None = Field(
        None, description="Head of the book's hold queue after the return"
    )
    overdue_days: int = Field(0, ge=0, description="Whole days past the due date")


class IssueRequest(CamelModel):
    member_id: str = Field(..., min_length=1)
    book_id: str = Field(..., min_length=1)


class LoanAction(CamelModel):
    """Request body for returning or renewing a loan."""

    transaction_id: str = Field(..., min_length=1)
