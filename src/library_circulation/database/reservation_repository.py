"""
Reservation repository: the hold queue for unavailable books.

Queue rules:
1. A hold may only be placed on a book with no available copies.
2. A member holds at most one active reservation per book, and at most
   ``max_active_reservations`` active reservations overall.
3. The queue for a book is its active reservations ordered by
   ``reservation_date`` then ``id``; position is derived on read.
4. Status only moves forward, from ACTIVE to FULFILLED, CANCELLED or EXPIRED.

Nothing here changes a book's copy counts. Loan issue consults the queue
head and fulfils the borrower's own reservation (see ``LoanRepository``).
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import LibraryConfig, get_config
from ..models.enums import MemberStatus, ReservationStatus
from ..models.reservation import ExpireResult
from ..models.reservation import Reservation as ReservationModel
from ..observability import trace_repository_operation
from .errors import (
    ConflictError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    RepositoryException,
)
from .repository import BaseRepository, Clock, generate_id
from .schema import Book as BookDB
from .schema import Member as MemberDB
from .schema import Reservation as ReservationDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

_VERBS = {
    ReservationStatus.CANCELLED: "cancel",
    ReservationStatus.FULFILLED: "fulfill",
}


def _is_active_pair_violation(error: IntegrityError) -> bool:
    """True when ``error`` came from ``uq_reservation_active_pair``.

    PostgreSQL names the index; SQLite only lists the indexed columns.
    """
    message = str(error.orig)
    return "uq_reservation_active_pair" in message or (
        "reservations.book_id" in message and "reservations.member_id" in message
    )


class ReservationRepository(BaseRepository[ReservationDB, ReservationModel]):
    """Repository for reservations and the per-book queue."""

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
    def model_class(self) -> type[ReservationDB]:
        return ReservationDB

    @property
    def response_schema(self) -> type[ReservationModel]:
        return ReservationModel

    def create(self, book_id: str, member_id: str) -> ReservationModel:
        """
        Place a hold on a book for a member.

        Checks run in order and the first failure wins; nothing is written
        until all of them pass.

        Raises:
            NotFoundError: If the book (or a soft-deleted book) or member is missing
            InvalidStateError: If the book has copies available or the member is not active
            ConflictError: If the member already holds an active reservation for the book
            LimitExceededError: If the member is at the active reservation limit
        """
        with trace_repository_operation("reservation", "create", "reservations"):
            book = self._get_live_book(book_id)

            if book.available_copies > 0:
                logger.info("Rejected hold on available book %s", book_id)
                raise InvalidStateError(
                    "This book is currently available. Borrow it directly instead of reserving."
                )

            member = self._get_member(member_id)

            if member.status != MemberStatus.ACTIVE:
                raise InvalidStateError(
                    f"Member {member_id} is {member.status.value}; "
                    "only active members can reserve books"
                )

            if self._find_active(book_id, member_id) is not None:
                raise ConflictError(
                    f"Member {member_id} already has an active reservation for book {book_id}"
                )

            limit = self.config.max_active_reservations
            if self.count_active_for_member(member_id) >= limit:
                raise LimitExceededError(
                    f"Members cannot hold more than {limit} active reservations"
                )

            now = self.clock()
            reservation = ReservationDB(
                id=generate_id(self.session, ReservationDB, "reservation"),
                book_id=book_id,
                member_id=member_id,
                reservation_date=now,
                expiry_date=now + timedelta(days=self.config.reservation_expiry_days),
                status=ReservationStatus.ACTIVE,
            )
            self.session.add(reservation)

            # The partial unique index catches a concurrent duplicate the read above missed
            try:
                self.session.flush()
            except IntegrityError as e:
                self.session.rollback()
                if _is_active_pair_violation(e):
                    raise ConflictError(
                        f"Member {member_id} already has an active reservation for book {book_id}"
                    ) from e
                logger.exception("Failed to insert reservation for book %s", book_id)
                raise RepositoryException(
                    f"Database operation 'create reservation' failed: {e.orig}"
                ) from e

            safe_commit(self.session, "create reservation")
            logger.info(
                "Reservation %s placed: member %s, book %s", reservation.id, member_id, book_id
            )
            return self._to_response_model(reservation)

    def cancel(self, reservation_id: str) -> ReservationModel:
        """
        Raises:
            NotFoundError: If the reservation does not exist
            InvalidStateError: If the reservation is not active
        """
        return self._finish(reservation_id, ReservationStatus.CANCELLED)

    def fulfill(self, reservation_id: str) -> ReservationModel:
        """
        Mark a reservation as honoured. The caller decides which hold a
        checkout satisfies; this only performs the status change.

        Raises:
            NotFoundError: If the reservation does not exist
            InvalidStateError: If the reservation is not active
        """
        return self._finish(reservation_id, ReservationStatus.FULFILLED)

    def _finish(self, reservation_id: str, target: ReservationStatus) -> ReservationModel:
        with trace_repository_operation("reservation", _VERBS[target], "reservations"):
            reservation = self._require_db_obj(reservation_id)
            self._transition(reservation, target)
            safe_commit(self.session, f"{_VERBS[target]} reservation")
            return self._to_response_model(reservation)

    def _transition(self, reservation: ReservationDB, target: ReservationStatus) -> None:
        """Move an active reservation to a terminal status without committing."""
        if reservation.status != ReservationStatus.ACTIVE:
            raise InvalidStateError(
                f"Cannot {_VERBS[target]} a reservation with status '{reservation.status.value}'"
            )
        reservation.status = target
        reservation.updated_at = self.clock()
        logger.info("Reservation %s -> %s", reservation.id, target.value)

    def expire_old(self) -> ExpireResult:
        """
        Expire every active reservation whose expiry date has passed.

        Safe to run repeatedly; a second run right after the first expires nothing.
        """
        with trace_repository_operation("reservation", "expire_old", "reservations"):
            now = self.clock()
            stmt = (
                update(ReservationDB)
                .where(
                    ReservationDB.status == ReservationStatus.ACTIVE,
                    ReservationDB.expiry_date < now,
                )
                .values(status=ReservationStatus.EXPIRED, updated_at=now)
                .execution_options(synchronize_session="fetch")
            )
            result = safe_query(
                self.session, lambda s: s.execute(stmt), "Failed to expire reservations"
            )
            expired = result.rowcount or 0
            safe_commit(self.session, "expire reservations")
            logger.info("Expired %d reservation(s)", expired)
            return ExpireResult(expired_count=expired)

    def get_by_book(self, book_id: str) -> list[ReservationModel]:
        """
        The queue for a book: active reservations, oldest first, each with
        its 1-based ``queue_position``.

        Raises:
            NotFoundError: If the book does not exist
        """
        self._get_live_book(book_id)
        rows = safe_query(
            self.session,
            lambda s: s.execute(self._queue_query(book_id)).scalars().all(),
            "Failed to get reservation queue",
        )
        return [
            self._to_response_model(row).model_copy(update={"queue_position": position})
            for position, row in enumerate(rows, start=1)
        ]

    def get_by_member(self, member_id: str) -> list[ReservationModel]:
        """
        All of a member's reservations, any status, newest first.

        Raises:
            NotFoundError: If the member does not exist
        """
        self._get_member(member_id)
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(ReservationDB)
                .where(ReservationDB.member_id == member_id)
                .order_by(ReservationDB.reservation_date.desc(), ReservationDB.id.desc())
            ).scalars().all(),
            "Failed to get member reservations",
        )
        return [self._to_response_model(row) for row in rows]

    def get_next_in_queue(self, book_id: str) -> ReservationModel | None:
        """The oldest active reservation for a book, or None when nobody is waiting."""
        head = self._queue_head(book_id)
        if head is None:
            return None
        return self._to_response_model(head).model_copy(update={"queue_position": 1})

    def count_active_for_member(self, member_id: str) -> int:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(ReservationDB)
                .where(
                    ReservationDB.member_id == member_id,
                    ReservationDB.status == ReservationStatus.ACTIVE,
                )
            ).scalar(),
            "Failed to count active reservations",
        ) or 0

    def has_active_by_other_member(self, book_id: str, member_id: str) -> bool:
        """True when someone other than ``member_id`` is waiting for the book."""
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(ReservationDB)
                .where(
                    ReservationDB.book_id == book_id,
                    ReservationDB.member_id != member_id,
                    ReservationDB.status == ReservationStatus.ACTIVE,
                )
            ).scalar(),
            "Failed to check reservations by other members",
        )
        return bool(count)

    def _queue_query(self, book_id: str):
        return (
            select(ReservationDB)
            .where(
                ReservationDB.book_id == book_id,
                ReservationDB.status == ReservationStatus.ACTIVE,
            )
            .order_by(ReservationDB.reservation_date.asc(), ReservationDB.id.asc())
        )

    def _queue_head(self, book_id: str) -> ReservationDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(self._queue_query(book_id).limit(1)).scalar_one_or_none(),
            "Failed to get next reservation in queue",
        )

    def _find_active(self, book_id: str, member_id: str) -> ReservationDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(ReservationDB).where(
                    ReservationDB.book_id == book_id,
                    ReservationDB.member_id == member_id,
                    ReservationDB.status == ReservationStatus.ACTIVE,
                )
            ).scalar_one_or_none(),
            "Failed to check existing reservation",
        )

    def _get_live_book(self, book_id: str) -> BookDB:
        book = safe_query(
            self.session,
            lambda s: s.get(BookDB, book_id),
            "Failed to get book for reservation",
        )
        if book is None or book.is_deleted:
            raise NotFoundError(f"Book with ID {book_id} not found")
        return book

    def _get_member(self, member_id: str) -> MemberDB:
        member = safe_query(
            self.session,
            lambda s: s.get(MemberDB, member_id),
            "Failed to get member for reservation",
        )
        if member is None:
            raise NotFoundError(f"Member with ID {member_id} not found")
        return member
