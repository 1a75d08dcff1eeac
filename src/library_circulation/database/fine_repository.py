"""
Fine repository: payments, waivers, and lost/damage charges.

``Member.outstanding_fines`` is kept equal to the unpaid remainder of the
member's pending fines: every charge adds to it and every payment or waiver
takes the same amount off, in the same commit.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import LibraryConfig, get_config
from ..models.enums import FineStatus, FineType, PaymentMethod, TransactionStatus
from ..models.fine import DamageReport
from ..models.fine import Fine as FineModel
from ..observability import trace_repository_operation
from ..policy import to_money
from .errors import InvalidStateError, LimitExceededError, NotFoundError
from .repository import BaseRepository, Clock, generate_id
from .schema import Book as BookDB
from .schema import Fine as FineDB
from .schema import LoanTransaction as LoanDB
from .schema import Member as MemberDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

OPEN_LOAN_STATUSES = (TransactionStatus.ISSUED, TransactionStatus.OVERDUE)


class FineRepository(BaseRepository[FineDB, FineModel]):
    """Repository for the fine ledger."""

    def __init__(
        self,
        session: Session,
        config: LibraryConfig | None = None,
        clock: Clock = datetime.now,
    ):
        super().__init__(session)
        self.config = config or get_config()
        self.clock = clock

    @property
    def model_class(self) -> type[FineDB]:
        return FineDB

    @property
    def response_schema(self) -> type[FineModel]:
        return FineModel

    def process_payment(
        self,
        fine_id: str,
        amount: Decimal,
        method: PaymentMethod = PaymentMethod.CASH,
    ) -> FineModel:
        """
        Record a full or partial payment.

        Partial payments accumulate and leave the fine pending; it becomes
        PAID once ``paid_amount`` reaches ``amount``.

        Raises:
            NotFoundError: If the fine does not exist
            InvalidStateError: If the fine is already paid or waived, or amount is not positive
            LimitExceededError: If the payment exceeds the remaining balance
        """
        with trace_repository_operation("fine", "process_payment", "fines"):
            fine = self._require_db_obj(fine_id)
            if fine.status == FineStatus.PAID:
                raise InvalidStateError("This fine has already been fully paid")
            if fine.status == FineStatus.WAIVED:
                raise InvalidStateError("This fine has been waived and cannot be paid")

            payment = to_money(amount)
            if payment <= 0:
                raise InvalidStateError("Payment amount must be greater than zero")

            remaining = to_money(fine.amount) - to_money(fine.paid_amount)
            if payment > remaining:
                raise LimitExceededError(
                    f"Payment amount ({payment}) exceeds remaining balance ({remaining})"
                )

            fine.paid_amount = to_money(fine.paid_amount) + payment
            fine.payment_method = PaymentMethod(method).value
            fine.payment_date = self.clock()
            if fine.paid_amount >= to_money(fine.amount):
                fine.status = FineStatus.PAID

            self._adjust_outstanding(fine.member, -payment)
            safe_commit(self.session, "process fine payment")
            logger.info(
                "Payment of %s processed for fine %s (member %s); status %s",
                payment,
                fine.id,
                fine.member_id,
                fine.status.value,
            )
            return self._to_response_model(fine)

    def waive(self, fine_id: str) -> FineModel:
        """
        Write off the unpaid remainder of a pending fine. Irrevocable.

        Raises:
            NotFoundError: If the fine does not exist
            InvalidStateError: If the fine is not pending
        """
        with trace_repository_operation("fine", "waive", "fines"):
            fine = self._require_db_obj(fine_id)
            if fine.status == FineStatus.PAID:
                raise InvalidStateError("Cannot waive an already paid fine")
            if fine.status == FineStatus.WAIVED:
                raise InvalidStateError("This fine has already been waived")

            unpaid = to_money(fine.amount) - to_money(fine.paid_amount)
            fine.status = FineStatus.WAIVED
            self._adjust_outstanding(fine.member, -unpaid)
            safe_commit(self.session, "waive fine")
            logger.info("Fine %s waived for member %s: %s", fine.id, fine.member_id, unpaid)
            return self._to_response_model(fine)

    def record_lost_book(self, transaction_id: str, description: str | None = None) -> FineModel:
        """
        Charge for a lost book: its price (or the default price) plus the
        processing fee. Closes the loan as LOST and retires the copy.

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is already closed
        """
        with trace_repository_operation("fine", "record_lost_book", "fines"):
            loan = safe_query(
                self.session, lambda s: s.get(LoanDB, transaction_id), "Failed to get loan"
            )
            if loan is None:
                raise NotFoundError(f"Loan with ID {transaction_id} not found")
            if loan.status not in OPEN_LOAN_STATUSES:
                raise InvalidStateError(
                    f"Loan {transaction_id} is {loan.status.value}; only open loans can be lost"
                )

            book = loan.book
            member = loan.member
            price = self._price_of(book)
            fee = to_money(self.config.lost_book_processing_fee)
            amount = price + fee

            fine = self._new_fine(
                member,
                FineType.LOST,
                amount,
                transaction_id=loan.id,
                description=description
                or (
                    f'Lost book: "{book.title}" by {book.author}. '
                    f"Replacement cost ({price}) + processing fee ({fee})"
                ),
            )

            loan.status = TransactionStatus.LOST
            loan.return_date = self.clock()
            loan.fine_amount = amount
            book.total_copies = max(0, book.total_copies - 1)
            book.available_copies = min(book.available_copies, book.total_copies)
            member.books_issued_count = max(0, member.books_issued_count - 1)

            safe_commit(self.session, "record lost book")
            logger.info(
                "Lost book fine of %s recorded for member %s, book %s", amount, member.id, book.id
            )
            return self._to_response_model(fine)

    def record_damage(self, report: DamageReport) -> FineModel:
        """
        Charge ``damage_percent`` of the book's price.

        Raises:
            NotFoundError: If the member, book or referenced loan does not exist
            InvalidStateError: If the loan belongs to a different member or book
        """
        with trace_repository_operation("fine", "record_damage", "fines"):
            member = self._get_member(report.member_id)
            book = safe_query(
                self.session, lambda s: s.get(BookDB, report.book_id), "Failed to get book"
            )
            if book is None:
                raise NotFoundError(f"Book with ID {report.book_id} not found")

            if report.transaction_id is not None:
                loan = safe_query(
                    self.session,
                    lambda s: s.get(LoanDB, report.transaction_id),
                    "Failed to get loan",
                )
                if loan is None:
                    raise NotFoundError(f"Loan with ID {report.transaction_id} not found")
                if loan.member_id != member.id or loan.book_id != book.id:
                    raise InvalidStateError(
                        "Loan does not correspond to the specified member and book"
                    )

            price = self._price_of(book)
            amount = to_money(price * report.damage_percent / 100)
            fine = self._new_fine(
                member,
                FineType.DAMAGE,
                amount,
                transaction_id=report.transaction_id,
                description=report.description
                or f'Damage ({report.damage_percent}%) to "{book.title}"',
            )
            safe_commit(self.session, "record damage fine")
            logger.info(
                "Damage fine of %s (%d%%) recorded for member %s, book %s",
                amount,
                report.damage_percent,
                member.id,
                book.id,
            )
            return self._to_response_model(fine)

    def record_fine(
        self,
        member_id: str,
        fine_type: FineType,
        amount: Decimal,
        transaction_id: str | None = None,
        description: str | None = None,
    ) -> FineModel:
        """
        Charge a fine that is not tied to a loan event, such as a membership
        fee or a reservation no-show.

        Raises:
            NotFoundError: If the member does not exist
            InvalidStateError: If the amount is not positive
        """
        with trace_repository_operation("fine", "record_fine", "fines"):
            member = self._get_member(member_id)
            amount = to_money(amount)
            if amount <= 0:
                raise InvalidStateError("Fine amount must be greater than zero")
            fine = self._new_fine(
                member, FineType(fine_type), amount, transaction_id, description
            )
            safe_commit(self.session, "record fine")
            logger.info(
                "%s fine of %s recorded for member %s", fine.fine_type.value, amount, member_id
            )
            return self._to_response_model(fine)

    def find_by_member(self, member_id: str) -> list[FineModel]:
        """
        All fines for a member, newest first.

        Raises:
            NotFoundError: If the member does not exist
        """
        self._get_member(member_id)
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(FineDB)
                .where(FineDB.member_id == member_id)
                .order_by(FineDB.created_at.desc(), FineDB.id.desc())
            ).scalars().all(),
            "Failed to get member fines",
        )
        return [self._to_response_model(row) for row in rows]

    def get_outstanding(self) -> list[FineModel]:
        """Every pending fine, oldest first."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(FineDB)
                .where(FineDB.status == FineStatus.PENDING)
                .order_by(FineDB.created_at.asc(), FineDB.id.asc())
            ).scalars().all(),
            "Failed to get outstanding fines",
        )
        return [self._to_response_model(row) for row in rows]

    def _new_fine(
        self,
        member: MemberDB,
        fine_type: FineType,
        amount: Decimal,
        transaction_id: str | None = None,
        description: str | None = None,
    ) -> FineDB:
        fine = FineDB(
            id=generate_id(self.session, FineDB, "fine"),
            member_id=member.id,
            transaction_id=transaction_id,
            fine_type=fine_type,
            amount=amount,
            paid_amount=Decimal("0.00"),
            status=FineStatus.PENDING,
            description=description,
            created_at=self.clock(),
        )
        self.session.add(fine)
        self._adjust_outstanding(member, amount)
        return fine

    def _adjust_outstanding(self, member: MemberDB, delta: Decimal) -> None:
        member.outstanding_fines = max(
            Decimal("0.00"), to_money(member.outstanding_fines) + delta
        )

    def _price_of(self, book: BookDB) -> Decimal:
        if book.price is None:
            return to_money(self.config.default_book_price)
        return to_money(book.price)

    def _get_member(self, member_id: str) -> MemberDB:
        member = safe_query(
            self.session, lambda s: s.get(MemberDB, member_id), "Failed to get member"
        )
        if member is None:
            raise NotFoundError(f"Member with ID {member_id} not found")
        return member
