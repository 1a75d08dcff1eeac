"""
Database session management for the library circulation service.

Sessions are short-lived: one per HTTP request or tool call. Repositories
commit through ``safe_commit`` so that a failed write is rolled back and
surfaced as a ``RepositoryException`` instead of a raw driver error.
Callers that own a unit of work without a repository commit in it (the CLI
commands) use ``DatabaseManager.session_scope``.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .errors import RepositoryException
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
    # SQLite ignores REFERENCES clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    SQLite shares one connection across the API threadpool, which avoids
    "database is locked"; any other backend gets a pre-pinged pool.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_foreign_keys)
    else:
        engine = create_engine(database_url, pool_size=10, max_overflow=20, pool_pre_ping=True)
    logger.info("Database engine created: %s", engine.url)
    return engine


class DatabaseManager:
    """Owns the engine and session factory for one database URL, built on first use."""

    def __init__(self, database_url: str | None = None):
        if database_url is None:
            database_url = get_config().get_database_url()
            logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = build_engine(self.database_url)
        return self._engine

    def create_session(self) -> Session:
        """Create a new database session. Callers must close it."""
        if self._session_factory is None:
            # expire_on_commit=False keeps returned rows readable after the repository commits
            self._session_factory = sessionmaker(
                bind=self.engine, autoflush=False, expire_on_commit=False
            )
        return self._session_factory()

    @contextmanager
    def session_scope(self, operation: str = "unit of work") -> Generator[Session, None, None]:
        """
        Commit when the block exits cleanly; roll back and re-raise otherwise.

        ```python
        with get_db_manager().session_scope("expire reservations") as session:
            ReservationRepository(session).expire_old()
        ```

        Raises:
            RepositoryException: If the final commit fails
        """
        session = self.create_session()
        try:
            yield session
            safe_commit(session, operation)
        except Exception:
            logger.warning("Rolling back %s", operation)
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Create any missing tables.

        Production deployments should manage the schema with a migration tool.
        """
        if drop_existing:
            logger.warning("Dropping all circulation tables")
            Base.metadata.drop_all(bind=self.engine)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))

    def can_connect(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False
        return True

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the process-wide database manager.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - process-wide engine

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)
    return _db_manager


def reset_db_manager() -> None:
    """Dispose the process-wide manager so the next call builds a fresh one."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def get_session() -> Session:
    """A new session from the process-wide manager; the tool handlers close it with ``with``."""
    return get_db_manager().create_session()


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back on failure.

    Raises:
        RepositoryException: If the commit fails
    """
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Commit failed during %s", operation)
        raise RepositoryException(f"Database operation '{operation}' failed: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, converting driver errors into repository errors.

    Raises:
        RepositoryException: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise RepositoryException(f"{error_msg}: Database query failed") from e
