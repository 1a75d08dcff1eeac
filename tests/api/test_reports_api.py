"""Tests for the reporting endpoints."""

import csv
import io
from decimal import Decimal

import pytest

from library_circulation.database.fine_repository import FineRepository
from library_circulation.database.loan_repository import LoanRepository
from library_circulation.models.enums import FineType

LIBRARIAN = {"X-User-Role": "librarian"}


def member_headers(member_id: str) -> dict[str, str]:
    return {"X-User-Role": "member", "X-Member-Id": member_id}


@pytest.fixture
def member(make_member):
    return make_member()


@pytest.fixture
def fine(test_db_session, test_config, clock, member):
    """A fine raised on 2024-01-15, the fixed test date."""
    return FineRepository(test_db_session, test_config, clock).record_fine(
        member.id, FineType.MEMBERSHIP, Decimal("6.00")
    )


@pytest.mark.parametrize(
    "path", ["/reports/overdue", "/reports/financial", "/reports/inventory"]
)
def test_reports_are_staff_only(client, member, path):
    assert client.get(path, headers=member_headers(member.id)).status_code == 403


def test_overdue_report(
    client, test_db_session, test_config, clock, seeded_settings, member, make_book
):
    loan = LoanRepository(test_db_session, test_config, clock).issue_book(
        member.id, make_book(available_copies=1).id
    )

    response = client.get("/reports/overdue", headers=LIBRARIAN)

    body = response.json()
    assert body["message"] == "Found 1 overdue transaction(s)"
    assert body["data"]["overdueCount"] == 1
    assert body["data"]["transactions"][0]["id"] == loan.id


def test_financial_report_by_date_range(client, fine):
    inside = client.get(
        "/reports/financial",
        params={"fromDate": "2024-01-15", "toDate": "2024-01-15"},
        headers=LIBRARIAN,
    ).json()["data"]
    assert inside["summary"]["totalFineCount"] == 1
    assert inside["summary"]["outstandingAmount"] == 6.0
    assert inside["byType"] == [
        {"fineType": "membership", "count": 1, "totalAmount": 6.0, "paidAmount": 0.0}
    ]

    after = client.get(
        "/reports/financial", params={"fromDate": "2024-01-16"}, headers=LIBRARIAN
    ).json()["data"]
    assert after["summary"]["totalFineCount"] == 0


def test_financial_report_rejects_reversed_range(client):
    response = client.get(
        "/reports/financial",
        params={"fromDate": "2024-02-01", "toDate": "2024-01-01"},
        headers=LIBRARIAN,
    )
    assert response.status_code == 400


def test_inventory_report(client, make_book):
    make_book(total_copies=2, available_copies=1)

    data = client.get("/reports/inventory", headers=LIBRARIAN).json()["data"]

    assert data["totalCopies"] == 2
    assert data["issuedCopies"] == 1
    assert len(data["lowStockBooks"]) == 1


class TestExport:
    def test_csv_download(self, client, fine):
        response = client.post(
            "/reports/export",
            json={"reportType": "financial", "fromDate": "2024-01-15"},
            headers=LIBRARIAN,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="financial-report-')
        assert disposition.endswith('.csv"')

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "fine_id"
        assert rows[1][0] == fine.id

    def test_json_format_returns_envelope(self, client, make_book):
        make_book(total_copies=1, available_copies=1)

        response = client.post(
            "/reports/export",
            json={"reportType": "inventory", "format": "json"},
            headers=LIBRARIAN,
        )

        assert response.json()["data"]["totalBooks"] == 1

    def test_unknown_report_type(self, client):
        response = client.post(
            "/reports/export", json={"reportType": "circulation"}, headers=LIBRARIAN
        )
        assert response.status_code == 422

    def test_staff_only(self, client, member):
        response = client.post(
            "/reports/export",
            json={"reportType": "inventory"},
            headers=member_headers(member.id),
        )
        assert response.status_code == 403
