"""
Database package for the library circulation service.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- The repository error taxonomy (errors.py)
- One repository per aggregate: books, members, settings, reservations,
  loans, fines, and the read-only report rollup
"""

from .book_repository import BookRepository
from .errors import (
    ConflictError,
    DuplicateError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    RepositoryException,
)
from .fine_repository import FineRepository
from .loan_repository import LoanRepository
from .member_repository import MemberRepository
from .report_repository import ReportRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .reservation_repository import ReservationRepository
from .schema import Base, Book, Fine, LoanTransaction, Member, Reservation, SystemSetting
from .session import (
    DatabaseManager,
    get_db_manager,
    get_session,
    reset_db_manager,
    safe_commit,
    safe_query,
)
from .settings_repository import SettingsRepository

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookRepository",
    "ConflictError",
    "DatabaseManager",
    "DuplicateError",
    "Fine",
    "FineRepository",
    "InvalidStateError",
    "LimitExceededError",
    "LoanRepository",
    "LoanTransaction",
    "Member",
    "MemberRepository",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "ReportRepository",
    "Reservation",
    "ReservationRepository",
    "SettingsRepository",
    "SystemSetting",
    "get_db_manager",
    "get_session",
    "reset_db_manager",
    "safe_commit",
    "safe_query",
]
