"""
Read-only circulation reports: the summary rollup, the overdue, financial
and inventory reports, and their CSV export.
"""

import csv
import io
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import LibraryConfig, get_config
from ..models.book import Book as BookModel
from ..models.enums import FineStatus, FineType, ReservationStatus, TransactionStatus
from ..models.fine import Fine as FineModel
from ..models.report import (
    CirculationSummary,
    FinancialReport,
    FinancialSummary,
    FineStatusBreakdown,
    FineTypeBreakdown,
    InventoryReport,
    OverdueReport,
)
from ..observability import trace_repository_operation
from ..policy import to_money
from .loan_repository import LoanRepository
from .repository import Clock
from .schema import Book as BookDB
from .schema import Fine as FineDB
from .schema import LoanTransaction as LoanDB
from .schema import Reservation as ReservationDB
from .session import safe_query

REPORT_TYPES = ("overdue", "financial", "inventory")

LOW_STOCK_THRESHOLD = 1

ZERO = Decimal("0.00")


class ReportRepository:
    def __init__(
        self,
        session: Session,
        config: LibraryConfig | None = None,
        clock: Clock = datetime.now,
    ):
        self.session = session
        self.config = config or get_config()
        self.clock = clock

    def summary(self) -> CirculationSummary:
        now = self.clock()
        open_loans = (TransactionStatus.ISSUED, TransactionStatus.OVERDUE)

        by_status = dict.fromkeys((s.value for s in ReservationStatus), 0)
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(ReservationDB.status, func.count()).group_by(ReservationDB.status)
            ).all(),
            "Failed to count reservations",
        )
        for status, count in rows:
            by_status[ReservationStatus(status).value] = count

        active_loans = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count()).select_from(LoanDB).where(LoanDB.status.in_(open_loans))
            ).scalar(),
            "Failed to count active loans",
        )
        overdue_loans = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(LoanDB)
                .where(LoanDB.status.in_(open_loans), LoanDB.due_date < now)
            ).scalar(),
            "Failed to count overdue loans",
        )
        pending_total = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.sum(FineDB.amount - FineDB.paid_amount)).where(
                    FineDB.status == FineStatus.PENDING
                )
            ).scalar(),
            "Failed to total pending fines",
        )
        collected_total = safe_query(
            self.session,
            lambda s: s.execute(select(func.sum(FineDB.paid_amount))).scalar(),
            "Failed to total collected fines",
        )

        return CirculationSummary(
            reservations_by_status=by_status,
            active_loans=active_loans or 0,
            overdue_loans=overdue_loans or 0,
            pending_fines_total=to_money(pending_total or Decimal("0")),
            collected_fines_total=to_money(collected_total or Decimal("0")),
        )

    def overdue_report(self) -> OverdueReport:
        loans = LoanRepository(self.session, self.config, self.clock).get_overdue()
        return OverdueReport(overdue_count=len(loans), transactions=loans)

    def financial_report(
        self, from_date: date | None = None, to_date: date | None = None
    ) -> FinancialReport:
        """
        Fines raised between ``from_date`` and ``to_date``.

        Either bound may be omitted. ``to_date`` covers the whole day.
        Collected counts every payment received, including part payments on
        fines that are still pending; waived counts only the written-off
        remainder.
        """
        with trace_repository_operation("report", "financial_report", "fines"):
            query = select(FineDB).order_by(FineDB.created_at.asc(), FineDB.id.asc())
            if from_date is not None:
                query = query.where(FineDB.created_at >= datetime.combine(from_date, time.min))
            if to_date is not None:
                end = datetime.combine(to_date + timedelta(days=1), time.min)
                query = query.where(FineDB.created_at < end)
            rows = safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to load fines for the financial report",
            )
            fines = [FineModel.model_validate(row) for row in rows]

        by_type = {
            fine_type: FineTypeBreakdown(
                fine_type=fine_type, total_amount=ZERO, paid_amount=ZERO
            )
            for fine_type in FineType
        }
        by_status = {
            status: FineStatusBreakdown(status=status, total_amount=ZERO) for status in FineStatus
        }
        waived = ZERO
        outstanding = ZERO
        for fine in fines:
            kind = by_type[fine.fine_type]
            kind.count += 1
            kind.total_amount += fine.amount
            kind.paid_amount += fine.paid_amount

            state = by_status[fine.status]
            state.count += 1
            state.total_amount += fine.amount

            if fine.status == FineStatus.WAIVED:
                waived += fine.remaining
            elif fine.status == FineStatus.PENDING:
                outstanding += fine.remaining

        return FinancialReport(
            from_date=from_date,
            to_date=to_date,
            summary=FinancialSummary(
                total_fines_amount=to_money(sum((f.amount for f in fines), ZERO)),
                collected_amount=to_money(sum((f.paid_amount for f in fines), ZERO)),
                waived_amount=to_money(waived),
                outstanding_amount=to_money(outstanding),
                total_fine_count=len(fines),
            ),
            by_type=[b for b in by_type.values() if b.count],
            by_status=[b for b in by_status.values() if b.count],
            fines=fines,
        )

    def inventory_report(self) -> InventoryReport:
        books = self._live_books()
        total_copies = sum(b.total_copies for b in books)
        available = sum(b.available_copies for b in books)
        return InventoryReport(
            total_books=len(books),
            total_copies=total_copies,
            available_copies=available,
            issued_copies=total_copies - available,
            low_stock_books=[
                b
                for b in books
                if b.total_copies > 0 and b.available_copies <= LOW_STOCK_THRESHOLD
            ],
        )

    def export_csv(
        self, report_type: str, from_date: date | None = None, to_date: date | None = None
    ) -> str:
        """
        Render one report as CSV text with a header row.

        Raises:
            ValueError: If ``report_type`` is not one of REPORT_TYPES
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer)

        if report_type == "overdue":
            writer.writerow(
                [
                    "transaction_id",
                    "member_id",
                    "book_id",
                    "issue_date",
                    "due_date",
                    "days_overdue",
                    "estimated_fine",
                ]
            )
            for loan in self.overdue_report().transactions:
                writer.writerow(
                    [
                        loan.id,
                        loan.member_id,
                        loan.book_id,
                        loan.issue_date.date().isoformat(),
                        loan.due_date.date().isoformat(),
                        loan.days_overdue,
                        loan.estimated_fine,
                    ]
                )
        elif report_type == "financial":
            writer.writerow(
                [
                    "fine_id",
                    "member_id",
                    "transaction_id",
                    "fine_type",
                    "status",
                    "amount",
                    "paid_amount",
                    "created_at",
                ]
            )
            for fine in self.financial_report(from_date, to_date).fines:
                writer.writerow(
                    [
                        fine.id,
                        fine.member_id,
                        fine.transaction_id or "",
                        fine.fine_type.value,
                        fine.status.value,
                        fine.amount,
                        fine.paid_amount,
                        fine.created_at.isoformat() if fine.created_at else "",
                    ]
                )
        elif report_type == "inventory":
            writer.writerow(
                ["book_id", "title", "isbn", "total_copies", "available_copies", "issued_copies"]
            )
            for book in self._live_books():
                writer.writerow(
                    [
                        book.id,
                        book.title,
                        book.isbn,
                        book.total_copies,
                        book.available_copies,
                        book.total_copies - book.available_copies,
                    ]
                )
        else:
            raise ValueError(
                f"Unknown report type '{report_type}'. Expected one of: {', '.join(REPORT_TYPES)}"
            )

        return buffer.getvalue()

    def _live_books(self) -> list[BookModel]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB).where(BookDB.is_deleted.is_(False)).order_by(BookDB.title, BookDB.id)
            ).scalars().all(),
            "Failed to load books for the inventory report",
        )
        return [BookModel.model_validate(row) for row in rows]
