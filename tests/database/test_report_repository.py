"""Tests for the overdue, financial and inventory reports and their CSV export."""

import csv
import io
from datetime import date, timedelta
from decimal import Decimal

import pytest

from library_circulation.database.fine_repository import FineRepository
from library_circulation.database.loan_repository import LoanRepository
from library_circulation.database.report_repository import ReportRepository
from library_circulation.models.enums import FineStatus, FineType


@pytest.fixture
def reports(test_db_session, test_config, clock):
    return ReportRepository(test_db_session, test_config, clock)


@pytest.fixture
def fines(test_db_session, test_config, clock):
    return FineRepository(test_db_session, test_config, clock)


@pytest.fixture
def fine_history(fines, clock, make_member):
    """Three fines over four days: part-paid, waived, then fully paid."""
    member = make_member()

    part_paid = fines.record_fine(member.id, FineType.MEMBERSHIP, Decimal("5.00"))
    fines.process_payment(part_paid.id, Decimal("1.50"))

    clock.advance(days=1)
    waived = fines.record_fine(member.id, FineType.DAMAGE, Decimal("4.00"))
    fines.waive(waived.id)

    clock.advance(days=2)
    paid = fines.record_fine(member.id, FineType.OVERDUE, Decimal("3.00"))
    fines.process_payment(paid.id, Decimal("3.00"))

    return part_paid, waived, paid


def rows_of(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


class TestOverdueReport:
    def test_lists_late_loans_with_estimate(
        self, reports, test_db_session, test_config, clock, seeded_settings, make_book, make_member
    ):
        loans = LoanRepository(test_db_session, test_config, clock)
        late = loans.issue_book(make_member().id, make_book(available_copies=1, price="20.00").id)
        clock.now = late.due_date + timedelta(days=10)
        loans.issue_book(make_member().id, make_book(available_copies=1).id)

        report = reports.overdue_report()

        assert report.overdue_count == 1
        assert [loan.id for loan in report.transactions] == [late.id]
        # Student terms: one day of grace, then 0.50 a day
        assert report.transactions[0].days_overdue == 10
        assert report.transactions[0].estimated_fine == Decimal("4.50")


class TestFinancialReport:
    def test_whole_history(self, reports, fine_history):
        report = reports.financial_report()

        assert report.summary.total_fine_count == 3
        assert report.summary.total_fines_amount == Decimal("12.00")
        assert report.summary.collected_amount == Decimal("4.50")
        assert report.summary.waived_amount == Decimal("4.00")
        assert report.summary.outstanding_amount == Decimal("3.50")

        by_status = {b.status: (b.count, b.total_amount) for b in report.by_status}
        assert by_status == {
            FineStatus.PENDING: (1, Decimal("5.00")),
            FineStatus.WAIVED: (1, Decimal("4.00")),
            FineStatus.PAID: (1, Decimal("3.00")),
        }
        overdue = next(b for b in report.by_type if b.fine_type == FineType.OVERDUE)
        assert (overdue.count, overdue.paid_amount) == (1, Decimal("3.00"))

    def test_range_is_inclusive_of_whole_days(self, reports, fine_history):
        part_paid, waived, _ = fine_history

        report = reports.financial_report(date(2024, 1, 16), date(2024, 1, 16))
        assert [f.id for f in report.fines] == [waived.id]
        assert report.summary.waived_amount == Decimal("4.00")
        assert report.summary.outstanding_amount == Decimal("0.00")

        report = reports.financial_report(to_date=date(2024, 1, 15))
        assert [f.id for f in report.fines] == [part_paid.id]

    def test_empty_range(self, reports, fine_history):
        report = reports.financial_report(date(2025, 1, 1))

        assert report.summary.total_fine_count == 0
        assert report.summary.total_fines_amount == Decimal("0.00")
        assert report.by_type == []


class TestInventoryReport:
    def test_copy_totals_and_low_stock(self, reports, make_book):
        make_book(total_copies=3, available_copies=3)
        low = make_book(total_copies=2, available_copies=1)
        make_book(total_copies=0, available_copies=0)
        make_book(total_copies=4, available_copies=0, is_deleted=True)

        report = reports.inventory_report()

        assert report.total_books == 3
        assert report.total_copies == 5
        assert report.available_copies == 4
        assert report.issued_copies == 1
        assert [b.id for b in report.low_stock_books] == [low.id]


class TestCsvExport:
    def test_inventory(self, reports, make_book):
        book = make_book(total_copies=2, available_copies=1)

        rows = rows_of(reports.export_csv("inventory"))

        assert rows[0] == [
            "book_id",
            "title",
            "isbn",
            "total_copies",
            "available_copies",
            "issued_copies",
        ]
        assert rows[1] == [book.id, book.title, book.isbn, "2", "1", "1"]

    def test_financial_honours_range(self, reports, fine_history):
        _, waived, _ = fine_history

        rows = rows_of(reports.export_csv("financial", date(2024, 1, 16), date(2024, 1, 16)))

        assert len(rows) == 2
        assert rows[1][0] == waived.id
        assert rows[1][3:7] == ["damage", "waived", "4.00", "0.00"]

    def test_overdue_header_only_when_nothing_is_late(self, reports):
        rows = rows_of(reports.export_csv("overdue"))
        assert rows == [
            [
                "transaction_id",
                "member_id",
                "book_id",
                "issue_date",
                "due_date",
                "days_overdue",
                "estimated_fine",
            ]
        ]

    def test_unknown_report_type(self, reports):
        with pytest.raises(ValueError, match="Unknown report type"):
            reports.export_csv("circulation")
