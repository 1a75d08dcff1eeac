"""
Loan repository: issue, return and renew.

Every operation checks all of its preconditions first, then applies the
copy-count, member-counter, fine and reservation changes in a single commit.
Loan terms come from the member type's settings row via ``LoanPolicy``.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import LibraryConfig, get_config
from ..models.enums import (
    FineStatus,
    FineType,
    MemberStatus,
    ReservationStatus,
    TransactionStatus,
)
from ..models.fine import Fine as FineModel
from ..models.loan import LoanTransaction as LoanModel
from ..models.loan import OverdueLoan, ReturnResult
from ..observability import trace_repository_operation
from ..policy import (
    LoanPolicy,
    can_borrow,
    can_renew,
    capped_overdue_fine,
    days_overdue,
    due_date_for,
    to_money,
)
from .errors import ConflictError, InvalidStateError, LimitExceededError, NotFoundError
from .repository import BaseRepository, Clock, generate_id
from .reservation_repository import ReservationRepository
from .schema import Book as BookDB
from .schema import Fine as FineDB
from .schema import LoanTransaction as LoanDB
from .schema import Member as MemberDB
from .session import safe_commit, safe_query
from .settings_repository import SettingsRepository

logger = logging.getLogger(__name__)

OPEN_STATUSES = (TransactionStatus.ISSUED, TransactionStatus.OVERDUE)


class LoanRepository(BaseRepository[LoanDB, LoanModel]):
    """Repository for the loan ledger."""

    def __init__(
        self,
        session: Session,
        config: LibraryConfig | None = None,
        clock: Clock = datetime.now,
    ):
        super().__init__(session)
        self.config = config or get_config()
        self.clock = clock
        self.settings = SettingsRepository(session)
        self.reservations = ReservationRepository(session, self.config, clock)

    @property
    def model_class(self) -> type[LoanDB]:
        return LoanDB

    @property
    def response_schema(self) -> type[LoanModel]:
        return LoanModel

    @property
    def entity_name(self) -> str:
        return "Loan"

    def issue_book(self, member_id: str, book_id: str) -> LoanModel:
        """
        Lend a copy of a book to a member.

        Copies on the shelf are held for the front of the reservation queue:
        a member may borrow only if fewer holds are ahead of them than there
        are available copies. The borrower's own active hold is fulfilled as
        part of the loan.

        Raises:
            NotFoundError: If the member, book or member-type settings are missing
            InvalidStateError: If the member is inactive, owes too much, or no copy is free
            LimitExceededError: If the member is at their borrowing limit
            ConflictError: If the member already has this book, or it is held for others
        """
        with trace_repository_operation("loan", "issue_book", "loan_transactions"):
            member = self._get_member(member_id)
            if member.status != MemberStatus.ACTIVE:
                raise InvalidStateError(
                    f"Member {member_id} is {member.status.value}; only active members can borrow"
                )

            policy = self.settings.policy_for(member.member_type)
            if not can_borrow(policy, member.books_issued_count):
                raise LimitExceededError(
                    f"Member has reached the limit of {policy.max_books_allowed} borrowed books"
                )

            limit = to_money(self.config.max_outstanding_fines)
            if to_money(member.outstanding_fines) > limit:
                raise InvalidStateError(
                    f"Outstanding fines of {to_money(member.outstanding_fines)} exceed {limit}; "
                    "pay fines before borrowing"
                )

            book = self._get_live_book(book_id)
            if book.available_copies <= 0:
                raise InvalidStateError(f"No copies of '{book.title}' are available")

            if self._find_open_loan(member_id, book_id) is not None:
                raise ConflictError(f"Member {member_id} already has book {book_id} on loan")

            queue = safe_query(
                self.session,
                lambda s: s.execute(self.reservations._queue_query(book_id)).scalars().all(),
                "Failed to get reservation queue",
            )
            own = next((r for r in queue if r.member_id == member_id), None)
            ahead = queue.index(own) if own is not None else len(queue)
            if ahead >= book.available_copies:
                raise ConflictError(
                    "This book is currently reserved by another member. Cannot issue."
                )

            now = self.clock()
            loan = LoanDB(
                id=generate_id(self.session, LoanDB, "loan"),
                member_id=member_id,
                book_id=book_id,
                issue_date=now,
                due_date=due_date_for(policy, now),
                status=TransactionStatus.ISSUED,
                renewal_count=0,
                fine_amount=Decimal("0.00"),
            )
            self.session.add(loan)
            book.available_copies -= 1
            member.books_issued_count += 1
            if own is not None:
                self.reservations._transition(own, ReservationStatus.FULFILLED)

            safe_commit(self.session, "issue book")
            logger.info(
                "Loan %s issued: book %s to member %s, due %s",
                loan.id,
                book_id,
                member_id,
                loan.due_date.date().isoformat(),
            )
            return self._to_response_model(loan)

    def return_book(self, transaction_id: str) -> ReturnResult:
        """
        Close a loan, raising an overdue fine when it came back late.

        The fine is capped at the book's price plus the processing fee when
        the book has a price.

        Raises:
            NotFoundError: If the loan or the member-type settings are missing
            InvalidStateError: If the loan is already closed
        """
        with trace_repository_operation("loan", "return_book", "loan_transactions"):
            loan = self._require_db_obj(transaction_id)
            if loan.status not in OPEN_STATUSES:
                raise InvalidStateError(
                    f"Loan {transaction_id} is already {loan.status.value}"
                )

            member = loan.member
            book = loan.book
            policy = self.settings.policy_for(member.member_type)

            now = self.clock()
            late_days = days_overdue(loan.due_date, now)
            amount = self._fine_for(policy, late_days, book)

            loan.return_date = now
            loan.status = TransactionStatus.RETURNED
            loan.fine_amount = amount

            fine = None
            if amount > 0:
                fine = FineDB(
                    id=generate_id(self.session, FineDB, "fine"),
                    member_id=member.id,
                    transaction_id=loan.id,
                    fine_type=FineType.OVERDUE,
                    amount=amount,
                    paid_amount=Decimal("0.00"),
                    status=FineStatus.PENDING,
                    description=f"Returned {late_days} day(s) late",
                    created_at=now,
                )
                self.session.add(fine)
                member.outstanding_fines = to_money(member.outstanding_fines) + amount

            book.available_copies = min(book.total_copies, book.available_copies + 1)
            member.books_issued_count = max(0, member.books_issued_count - 1)

            safe_commit(self.session, "return book")
            logger.info(
                "Loan %s returned %d day(s) late, fine %s", loan.id, late_days, amount
            )

            next_reservation = self.reservations.get_next_in_queue(book.id)
            if next_reservation is not None:
                logger.info(
                    "Book %s returned; reservation %s (member %s) is next in queue",
                    book.id,
                    next_reservation.id,
                    next_reservation.member_id,
                )

            return ReturnResult(
                transaction=self._to_response_model(loan),
                fine=FineModel.model_validate(fine) if fine is not None else None,
                next_reservation=next_reservation,
                overdue_days=late_days,
            )

    def renew(self, transaction_id: str) -> LoanModel:
        """
        Extend the due date by one loan period.

        Raises:
            NotFoundError: If the loan or the member-type settings are missing
            InvalidStateError: If the loan is not in ISSUED status
            LimitExceededError: If the renewal limit is reached
            ConflictError: If another member is waiting for the book
        """
        with trace_repository_operation("loan", "renew", "loan_transactions"):
            loan = self._require_db_obj(transaction_id)
            if loan.status != TransactionStatus.ISSUED:
                raise InvalidStateError(
                    f"Only issued loans can be renewed. Current status: '{loan.status.value}'"
                )

            policy = self.settings.policy_for(loan.member.member_type)
            if not can_renew(policy, loan.renewal_count):
                raise LimitExceededError(
                    f"Maximum renewal limit of {policy.renewal_limit} reached for this loan"
                )

            if self.reservations.has_active_by_other_member(loan.book_id, loan.member_id):
                raise ConflictError(
                    "This book has been reserved by another member and cannot be renewed"
                )

            loan.due_date = loan.due_date + timedelta(days=policy.loan_duration_days)
            loan.renewal_count += 1
            safe_commit(self.session, "renew loan")
            logger.info(
                "Loan %s renewed (%d/%d), now due %s",
                loan.id,
                loan.renewal_count,
                policy.renewal_limit,
                loan.due_date.date().isoformat(),
            )
            return self._to_response_model(loan)

    def get_overdue(self) -> list[OverdueLoan]:
        """Open loans past their due date, most overdue first, with today's fine estimate."""
        now = self.clock()
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(LoanDB)
                .where(LoanDB.status.in_(OPEN_STATUSES), LoanDB.due_date < now)
                .order_by(LoanDB.due_date.asc(), LoanDB.id.asc())
            ).scalars().all(),
            "Failed to get overdue loans",
        )

        overdue = []
        for loan in rows:
            late_days = days_overdue(loan.due_date, now)
            policy = self.settings.policy_for(loan.member.member_type)
            overdue.append(
                OverdueLoan(
                    **self._to_response_model(loan).model_dump(),
                    days_overdue=late_days,
                    estimated_fine=self._fine_for(policy, late_days, loan.book),
                )
            )
        return overdue

    def _fine_for(self, policy: LoanPolicy, late_days: int, book: BookDB) -> Decimal:
        return capped_overdue_fine(
            policy, late_days, book.price, self.config.lost_book_processing_fee
        )

    def _find_open_loan(self, member_id: str, book_id: str) -> LoanDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(LoanDB)
                .where(
                    LoanDB.member_id == member_id,
                    LoanDB.book_id == book_id,
                    LoanDB.status.in_(OPEN_STATUSES),
                )
                .limit(1)
            ).scalar_one_or_none(),
            "Failed to check for an open loan",
        )

    def _get_member(self, member_id: str) -> MemberDB:
        member = safe_query(
            self.session, lambda s: s.get(MemberDB, member_id), "Failed to get member"
        )
        if member is None:
            raise NotFoundError(f"Member with ID {member_id} not found")
        return member

    def _get_live_book(self, book_id: str) -> BookDB:
        book = safe_query(self.session, lambda s: s.get(BookDB, book_id), "Failed to get book")
        if book is None or book.is_deleted:
            raise NotFoundError(f"Book with ID {book_id} not found")
        return book
