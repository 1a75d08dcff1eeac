"""
Member models for the library circulation service.

A member is the borrower side of a user account (1:1 via ``user_id``).
``books_issued_count`` and ``outstanding_fines`` are running counters kept
in step by the loan and fine ledgers.
"""

from decimal import Decimal

from pydantic import ConfigDict, EmailStr, Field

from .base import CamelModel
from .enums import MemberStatus, MemberType, Money


class Member(CamelModel):
    """Represents a library member who can reserve and borrow books."""

    id: str = Field(
        ...,
        description="Unique identifier for the member",
        pattern=r"^member_[a-zA-Z0-9_]+$",
        examples=["member_202401151030120001"],
    )

    user_id: str = Field(..., description="Owning user account", min_length=1)

    full_name: str = Field(..., description="Full name of the member", min_length=1, max_length=200)

    email: str = Field(..., description="Contact email address")

    member_type: MemberType = Field(
        ..., description="Membership category; selects the loan and fine terms"
    )

    status: MemberStatus = Field(MemberStatus.ACTIVE, description="Membership status")

    books_issued_count: int = Field(0, description="Loans currently open", ge=0)

    outstanding_fines: Money = Field(
        Decimal("0.00"), description="Unpaid fine balance", ge=0
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)


class MemberCreate(CamelModel):
    """Input for registering a member."""

    user_id: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    member_type: MemberType = MemberType.PUBLIC


class MemberStatusUpdate(CamelModel):
    status: MemberStatus
