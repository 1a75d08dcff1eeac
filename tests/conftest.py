"""Test configuration and fixtures for the library circulation service.

1. Isolated test databases - each test gets its own SQLite file
2. Configuration overrides - a test config pointing at that file
3. A controllable clock for queue-order and expiry tests
4. Factories for books and members in specific states
"""

import itertools
import os
from collections.abc import Generator
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session, sessionmaker

from library_circulation.config import LibraryConfig, reset_config
from library_circulation.database.schema import Base
from library_circulation.database.schema import Book as BookDB
from library_circulation.database.schema import Member as MemberDB
from library_circulation.database.session import build_engine, reset_db_manager
from library_circulation.database.settings_repository import SettingsRepository
from library_circulation.models.enums import MemberStatus, MemberType

# Spans are created but never exported during tests
logfire.configure(send_to_logfire=False, console=False)


class FakeClock:
    """Callable stand-in for ``datetime.now`` that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 15, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# === Environment Fixtures ===


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Keep every test away from the developer's database and environment."""
    for key in list(os.environ):
        if key.startswith("LIBRARY_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("LIBRARY_DATABASE_PATH", str(tmp_path / "env_library.db"))
    reset_config()
    reset_db_manager()

    yield

    reset_db_manager()
    reset_config()


# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_db_session(test_database_url: str) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session on a fresh schema."""
    engine = build_engine(test_database_url)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()

    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# === Configuration Fixtures ===


@pytest.fixture
def test_config(test_db_path: Path) -> LibraryConfig:
    return LibraryConfig(
        server_name="test-library-circulation",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# === Test Data Fixtures ===


@pytest.fixture
def seeded_settings(test_db_session: Session):
    """Default loan and fine terms for every member type."""
    return SettingsRepository(test_db_session).seed_defaults()


@pytest.fixture
def make_book(test_db_session: Session):
    """Insert a book directly, with any copy counts."""
    counter = itertools.count(1)

    def factory(
        *,
        total_copies: int = 1,
        available_copies: int = 0,
        price: Decimal | str | None = None,
        is_deleted: bool = False,
        title: str | None = None,
    ) -> BookDB:
        n = next(counter)
        book = BookDB(
            id=f"book_test{n:04d}",
            title=title or f"Test Book {n}",
            author="Test Author",
            isbn=str(9780000000000 + n),
            total_copies=total_copies,
            available_copies=available_copies,
            price=Decimal(price) if price is not None else None,
            is_deleted=is_deleted,
        )
        test_db_session.add(book)
        test_db_session.commit()
        return book

    return factory


@pytest.fixture
def make_member(test_db_session: Session):
    """Insert a member directly, in any status."""
    counter = itertools.count(1)

    def factory(
        *,
        member_type: MemberType = MemberType.STUDENT,
        status: MemberStatus = MemberStatus.ACTIVE,
        outstanding_fines: Decimal | str = "0.00",
        books_issued_count: int = 0,
    ) -> MemberDB:
        n = next(counter)
        member = MemberDB(
            id=f"member_test{n:04d}",
            user_id=f"user_test{n:04d}",
            full_name=f"Test Member {n}",
            email=f"member{n}@example.com",
            member_type=member_type,
            status=status,
            books_issued_count=books_issued_count,
            outstanding_fines=Decimal(outstanding_fines),
        )
        test_db_session.add(member)
        test_db_session.commit()
        return member

    return factory
