"""
Library circulation models.

Pydantic v2 models returned by the repositories and accepted by the REST
and tool surfaces:
- Book / Member: the catalog and membership fields circulation reads
- Reservation: holds and the per-book FIFO queue
- SystemSetting: loan and fine terms per member type
- LoanTransaction / Fine: the loan and fine ledgers
- CirculationSummary and the overdue, financial and inventory reports
"""

from .book import Book, BookCreate
from .enums import (
    FineStatus,
    FineType,
    MemberStatus,
    MemberType,
    Money,
    PaymentMethod,
    ReservationStatus,
    TransactionStatus,
)
from .fine import DamageReport, Fine, FinePayment, LostBookReport
from .loan import IssueRequest, LoanAction, LoanTransaction, OverdueLoan, ReturnResult
from .member import Member, MemberCreate, MemberStatusUpdate
from .report import (
    CirculationSummary,
    FinancialReport,
    InventoryReport,
    OverdueReport,
    ReportExportRequest,
)
from .reservation import ExpireResult, Reservation, ReservationCreate
from .settings import SettingsUpdate, SystemSetting

__all__ = [
    "Book",
    "BookCreate",
    "CirculationSummary",
    "DamageReport",
    "ExpireResult",
    "FinancialReport",
    "Fine",
    "FinePayment",
    "FineStatus",
    "FineType",
    "InventoryReport",
    "IssueRequest",
    "LoanAction",
    "LoanTransaction",
    "LostBookReport",
    "Member",
    "MemberCreate",
    "MemberStatus",
    "MemberStatusUpdate",
    "MemberType",
    "Money",
    "OverdueLoan",
    "OverdueReport",
    "PaymentMethod",
    "ReportExportRequest",
    "ReservationStatus",
    "Reservation",
    "ReservationCreate",
    "ReturnResult",
    "SettingsUpdate",
    "SystemSetting",
    "TransactionStatus",
]
