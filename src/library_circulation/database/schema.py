"""
SQLAlchemy database schema for the library circulation service.

Tables:
- books: catalog copy ledger with soft delete
- members: borrowers, their status and running counters
- system_settings: loan/fine terms, one row per member type
- reservations: hold queue for unavailable books
- loan_transactions: issue/return/renew ledger
- fines: monetary penalties tied to loans or reservations

Enum columns store the lowercase enum *values* so that raw SQL predicates
(the partial unique index on reservations) can match them.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from ..models.enums import (
    FineStatus,
    FineType,
    MemberStatus,
    MemberType,
    ReservationStatus,
    TransactionStatus,
)

Base = declarative_base()


def _enum_column(enum_cls: type[enum.Enum], **kwargs) -> Column:
    return Column(
        Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
            length=30,
        ),
        **kwargs,
    )


class Book(Base):
    """
    Books table - the catalog copy ledger.

    available_copies is decremented by loan issue and incremented by loan
    return. Reservations only read it.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(200), nullable=False)
    isbn = Column(String(13), nullable=False, unique=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="book")
    transactions = relationship("LoanTransaction", back_populates="book")

    __table_args__ = (
        Index("idx_book_availability", "available_copies"),
        CheckConstraint("id LIKE 'book_%'", name="check_book_id_format"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
    )


class Member(Base):
    """Members table - borrower identity and running counters."""

    __tablename__ = "members"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), nullable=False, unique=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    member_type = _enum_column(MemberType, nullable=False, default=MemberType.PUBLIC)
    status = _enum_column(MemberStatus, nullable=False, default=MemberStatus.ACTIVE)
    books_issued_count = Column(Integer, nullable=False, default=0)
    outstanding_fines = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="member")
    transactions = relationship("LoanTransaction", back_populates="member")
    fines = relationship("Fine", back_populates="member")

    __table_args__ = (
        Index("idx_member_status", "status"),
        CheckConstraint("id LIKE 'member_%'", name="check_member_id_format"),
        CheckConstraint("books_issued_count >= 0", name="check_books_issued_non_negative"),
        CheckConstraint("outstanding_fines >= 0", name="check_fines_non_negative"),
    )


class SystemSetting(Base):
    """System settings table - loan and fine terms per member type."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_type = _enum_column(MemberType, nullable=False, unique=True)
    max_books_allowed = Column(Integer, nullable=False)
    loan_duration_days = Column(Integer, nullable=False)
    renewal_limit = Column(Integer, nullable=False)
    fine_per_day = Column(Numeric(10, 2), nullable=False)
    grace_period_days = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_books_allowed >= 1", name="check_max_books_positive"),
        CheckConstraint("loan_duration_days >= 1", name="check_loan_duration_positive"),
        CheckConstraint("renewal_limit >= 0", name="check_renewal_limit_non_negative"),
        CheckConstraint("fine_per_day >= 0", name="check_fine_per_day_non_negative"),
        CheckConstraint("grace_period_days >= 0", name="check_grace_period_non_negative"),
    )


class Reservation(Base):
    """
    Reservations table - the hold queue.

    Queue position is not stored: it is the rank by (reservation_date, id)
    among active rows for the same book. The partial unique index keeps at
    most one active reservation per (book, member) pair under concurrency.
    """

    __tablename__ = "reservations"

    id = Column(String(50), primary_key=True)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    reservation_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    status = _enum_column(
        ReservationStatus, nullable=False, default=ReservationStatus.ACTIVE
    )

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="reservations")
    member = relationship("Member", back_populates="reservations")

    __table_args__ = (
        Index("idx_reservation_member", "member_id", "status"),
        Index("idx_reservation_queue", "book_id", "status", "reservation_date"),
        Index("idx_reservation_expiry", "status", "expiry_date"),
        Index(
            "uq_reservation_active_pair",
            "book_id",
            "member_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        CheckConstraint("id LIKE 'reservation_%'", name="check_reservation_id_format"),
        CheckConstraint("expiry_date > reservation_date", name="check_expiry_after_reservation"),
    )


class LoanTransaction(Base):
    """Loan transactions table - issue/return/renew ledger."""

    __tablename__ = "loan_transactions"

    id = Column(String(50), primary_key=True)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    issue_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = _enum_column(
        TransactionStatus, nullable=False, default=TransactionStatus.ISSUED
    )
    renewal_count = Column(Integer, nullable=False, default=0)
    fine_amount = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    member = relationship("Member", back_populates="transactions")
    book = relationship("Book", back_populates="transactions")
    fines = relationship("Fine", back_populates="transaction")

    __table_args__ = (
        Index("idx_transaction_member", "member_id", "status"),
        Index("idx_transaction_book", "book_id", "status"),
        Index("idx_transaction_due_date", "due_date"),
        CheckConstraint("id LIKE 'loan_%'", name="check_loan_id_format"),
        CheckConstraint("renewal_count >= 0", name="check_renewal_count_non_negative"),
        CheckConstraint("fine_amount >= 0", name="check_loan_fine_non_negative"),
    )


class Fine(Base):
    """Fines table - monetary penalties."""

    __tablename__ = "fines"

    id = Column(String(50), primary_key=True)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    transaction_id = Column(String(50), ForeignKey("loan_transactions.id"), nullable=True)
    fine_type = _enum_column(FineType, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = _enum_column(FineStatus, nullable=False, default=FineStatus.PENDING)
    description = Column(Text, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    payment_method = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    member = relationship("Member", back_populates="fines")
    transaction = relationship("LoanTransaction", back_populates="fines")

    __table_args__ = (
        Index("idx_fine_member", "member_id"),
        Index("idx_fine_status", "status"),
        CheckConstraint("id LIKE 'fine_%'", name="check_fine_id_format"),
        CheckConstraint("amount >= 0", name="check_fine_amount_non_negative"),
        CheckConstraint("paid_amount >= 0", name="check_paid_amount_non_negative"),
        CheckConstraint("paid_amount <= amount", name="check_paid_not_exceed_amount"),
    )
