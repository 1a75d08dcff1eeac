"""Tests for the loan transaction endpoints."""

import pytest

from library_circulation.database.loan_repository import LoanRepository

LIBRARIAN = {"X-User-Role": "librarian"}


def member_headers(member_id: str) -> dict[str, str]:
    return {"X-User-Role": "member", "X-Member-Id": member_id}


@pytest.fixture
def member(make_member, seeded_settings):
    return make_member()


@pytest.fixture
def book(make_book):
    return make_book(available_copies=1, price="2.00")


@pytest.fixture
def past_loan(test_db_session, test_config, clock, member, book):
    """A loan issued on the fixed test date, long overdue by the wall clock."""
    return LoanRepository(test_db_session, test_config, clock).issue_book(member.id, book.id)


def issue(client, member_id: str, book_id: str):
    return client.post(
        "/transactions/issue",
        json={"memberId": member_id, "bookId": book_id},
        headers=LIBRARIAN,
    )


class TestIssue:
    def test_staff_issue(self, client, member, book):
        response = issue(client, member.id, book.id)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Book issued successfully"
        assert body["data"]["memberId"] == member.id
        assert body["data"]["status"] == "issued"
        assert body["data"]["renewalCount"] == 0

    def test_members_cannot_issue(self, client, member, book):
        response = client.post(
            "/transactions/issue",
            json={"memberId": member.id, "bookId": book.id},
            headers=member_headers(member.id),
        )
        assert response.status_code == 403

    def test_no_copy_on_shelf(self, client, member, make_book):
        response = issue(client, member.id, make_book(available_copies=0).id)

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestReturn:
    def test_on_time_return(self, client, member, book):
        loan_id = issue(client, member.id, book.id).json()["data"]["id"]

        response = client.post(
            "/transactions/return", json={"transactionId": loan_id}, headers=LIBRARIAN
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Book returned successfully. No fines applied."
        assert body["data"]["fine"] is None
        assert body["data"]["transaction"]["status"] == "returned"

    def test_late_return_reports_fine(self, client, past_loan):
        response = client.post(
            "/transactions/return", json={"transactionId": past_loan.id}, headers=LIBRARIAN
        )

        body = response.json()
        # Price 2.00 plus the 5.00 processing fee caps the fine
        assert body["data"]["fine"]["amount"] == 7.0
        assert "Overdue fine of $7.00 applied" in body["message"]
        assert f"({body['data']['overdueDays']} day(s) overdue)" in body["message"]

    def test_second_return_is_rejected(self, client, member, book):
        loan_id = issue(client, member.id, book.id).json()["data"]["id"]
        client.post("/transactions/return", json={"transactionId": loan_id}, headers=LIBRARIAN)

        response = client.post(
            "/transactions/return", json={"transactionId": loan_id}, headers=LIBRARIAN
        )
        assert response.status_code == 400


class TestRenew:
    def test_member_renews_own_loan(self, client, member, book):
        loan = issue(client, member.id, book.id).json()["data"]

        response = client.post(
            "/transactions/renew",
            json={"transactionId": loan["id"]},
            headers=member_headers(member.id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["renewalCount"] == 1
        assert body["data"]["dueDate"] > loan["dueDate"]
        assert body["message"].startswith("Book renewed successfully. New due date: ")

    def test_member_cannot_renew_someone_elses_loan(self, client, member, book, make_member):
        loan_id = issue(client, member.id, book.id).json()["data"]["id"]

        response = client.post(
            "/transactions/renew",
            json={"transactionId": loan_id},
            headers=member_headers(make_member().id),
        )
        assert response.status_code == 403

    def test_unknown_loan(self, client):
        response = client.post(
            "/transactions/renew", json={"transactionId": "loan_missing"}, headers=LIBRARIAN
        )
        assert response.status_code == 404


class TestOverdue:
    def test_lists_overdue_loans(self, client, past_loan):
        response = client.get("/transactions/overdue", headers=LIBRARIAN)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Found 1 overdue transaction(s)."
        assert [loan["id"] for loan in body["data"]] == [past_loan.id]
        assert body["data"][0]["daysOverdue"] > 0
        assert body["data"][0]["estimatedFine"] == 7.0

    def test_staff_only(self, client, member):
        response = client.get("/transactions/overdue", headers=member_headers(member.id))
        assert response.status_code == 403
