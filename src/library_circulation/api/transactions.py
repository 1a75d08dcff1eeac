"""Loan transaction endpoints: issue, return, renew and the overdue list."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..config import LibraryConfig
from ..database.loan_repository import LoanRepository
from ..models.loan import IssueRequest, LoanAction
from .dependencies import (
    EVERYONE,
    STAFF,
    Principal,
    ensure_own_member,
    get_db,
    get_library_config,
    require_roles,
)
from .responses import envelope

router = APIRouter(prefix="/transactions", tags=["transactions"])


def get_repository(
    session: Session = Depends(get_db),
    config: LibraryConfig = Depends(get_library_config),
) -> LoanRepository:
    return LoanRepository(session, config)


@router.post("/issue", status_code=status.HTTP_201_CREATED)
def issue_book(
    body: IssueRequest,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: LoanRepository = Depends(get_repository),
):
    return envelope(repo.issue_book(body.member_id, body.book_id), "Book issued successfully")


@router.post("/return")
def return_book(
    body: LoanAction,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: LoanRepository = Depends(get_repository),
):
    result = repo.return_book(body.transaction_id)
    if result.fine is not None:
        message = (
            f"Book returned successfully. Overdue fine of ${result.fine.amount} applied "
            f"({result.overdue_days} day(s) overdue)."
        )
    else:
        message = "Book returned successfully. No fines applied."
    return envelope(result, message)


@router.post("/renew")
def renew_loan(
    body: LoanAction,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: LoanRepository = Depends(get_repository),
):
    if principal.is_member:
        ensure_own_member(principal, repo.require(body.transaction_id).member_id)
    loan = repo.renew(body.transaction_id)
    return envelope(
        loan,
        f"Book renewed successfully. New due date: {loan.due_date.date().isoformat()}.",
    )


@router.get("/overdue")
def overdue_loans(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: LoanRepository = Depends(get_repository),
):
    loans = repo.get_overdue()
    return envelope(loans, f"Found {len(loans)} overdue transaction(s).")
