"""Read-only circulation reports."""

from datetime import date
from typing import Literal

from pydantic import Field

from .base import CamelModel
from .book import Book
from .enums import FineStatus, FineType, Money
from .fine import Fine
from .loan import OverdueLoan


class CirculationSummary(CamelModel):
    reservations_by_status: dict[str, int] = Field(
        default_factory=dict, description="Reservation count per status value"
    )
    active_loans: int = Field(0, ge=0)
    overdue_loans: int = Field(0, ge=0)
    pending_fines_total: Money = Field(..., ge=0, description="Unpaid remainder of pending fines")
    collected_fines_total: Money = Field(..., ge=0, description="Sum of all payments received")


class OverdueReport(CamelModel):
    overdue_count: int = Field(0, ge=0)
    transactions: list[OverdueLoan] = Field(default_factory=list)


class FinancialSummary(CamelModel):
    total_fines_amount: Money = Field(..., ge=0)
    collected_amount: Money = Field(..., ge=0, description="Payments received against these fines")
    waived_amount: Money = Field(..., ge=0, description="Unpaid remainder written off by waivers")
    outstanding_amount: Money = Field(..., ge=0, description="Unpaid remainder of pending fines")
    total_fine_count: int = Field(0, ge=0)


class FineTypeBreakdown(CamelModel):
    fine_type: FineType
    count: int = Field(0, ge=0)
    total_amount: Money = Field(..., ge=0)
    paid_amount: Money = Field(..., ge=0)


class FineStatusBreakdown(CamelModel):
    status: FineStatus
    count: int = Field(0, ge=0)
    total_amount: Money = Field(..., ge=0)


class FinancialReport(CamelModel):
    """Fines raised within a date range, both ends inclusive."""

    from_date: date | None = None
    to_date: date | None = None
    summary: FinancialSummary
    by_type: list[FineTypeBreakdown] = Field(default_factory=list)
    by_status: list[FineStatusBreakdown] = Field(default_factory=list)
    fines: list[Fine] = Field(default_factory=list)


class InventoryReport(CamelModel):
    total_books: int = Field(0, ge=0)
    total_copies: int = Field(0, ge=0)
    available_copies: int = Field(0, ge=0)
    issued_copies: int = Field(0, ge=0)
    low_stock_books: list[Book] = Field(
        default_factory=list, description="Live books with at most one copy on the shelf"
    )


class ReportExportRequest(CamelModel):
    report_type: Literal["overdue", "financial", "inventory"]
    format: Literal["csv", "json"] = "csv"
    from_date: date | None = None
    to_date: date | None = None
