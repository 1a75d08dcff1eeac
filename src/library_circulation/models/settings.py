"""
System settings models.

One settings row exists per member type and carries the loan and fine
terms for that type. There is no fallback row: a missing type is an error.
"""

from pydantic import ConfigDict, Field

from .base import CamelModel
from .enums import MemberType, Money


class SystemSetting(CamelModel):
    """Loan and fine terms for one member type."""

    member_type: MemberType
    max_books_allowed: int = Field(..., ge=1, description="Concurrent loans allowed")
    loan_duration_days: int = Field(..., ge=1, description="Days until a new loan is due")
    renewal_limit: int = Field(..., ge=0, description="Renewals allowed per loan")
    fine_per_day: Money = Field(..., ge=0, description="Overdue fine per day")
    grace_period_days: int = Field(0, ge=0, description="Overdue days before fines accrue")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "memberType": "student",
                "maxBooksAllowed": 3,
                "loanDurationDays": 14,
                "renewalLimit": 2,
                "finePerDay": 0.5,
                "gracePeriodDays": 1,
            }
        },
    )


class SettingsUpdate(CamelModel):
    """
    Partial update of a settings row.

    Creating a row that does not exist yet requires every field except
    ``grace_period_days``.
    """

    max_books_allowed: int | None = Field(None, ge=1)
    loan_duration_days: int | None = Field(None, ge=1)
    renewal_limit: int | None = Field(None, ge=0)
    fine_per_day: Money | None = Field(None, ge=0)
    grace_period_days: int | None = Field(None, ge=0)

    model_config = ConfigDict(extra="forbid")
