"""
Book repository: the catalog copy ledger.

Circulation reads books to decide whether a hold or a loan is allowed; only
the loan ledger moves ``available_copies``.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..models.book import Book as BookModel
from ..models.book import BookCreate
from ..observability import trace_repository_operation
from .errors import DuplicateError, NotFoundError
from .repository import BaseRepository, PaginatedResponse, PaginationParams, generate_id
from .schema import Book as BookDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


class BookRepository(BaseRepository[BookDB, BookModel]):
    @property
    def model_class(self) -> type[BookDB]:
        return BookDB

    @property
    def response_schema(self) -> type[BookModel]:
        return BookModel

    def create(self, book_data: BookCreate) -> BookModel:
        """
        Add a book with all copies on the shelf.

        Raises:
            DuplicateError: If the ISBN is already catalogued
        """
        with trace_repository_operation("book", "create", "books"):
            existing = safe_query(
                self.session,
                lambda s: s.execute(
                    select(BookDB.id).where(BookDB.isbn == book_data.isbn)
                ).scalar_one_or_none(),
                "Failed to check ISBN",
            )
            if existing is not None:
                raise DuplicateError(f"Book with ISBN {book_data.isbn} already exists")

            book = BookDB(
                id=generate_id(self.session, BookDB, "book"),
                title=book_data.title,
                author=book_data.author,
                isbn=book_data.isbn,
                total_copies=book_data.total_copies,
                available_copies=book_data.total_copies,
                price=book_data.price,
                is_deleted=False,
            )
            self.session.add(book)
            try:
                self.session.flush()
            except IntegrityError as e:
                self.session.rollback()
                raise DuplicateError(f"Book with ISBN {book_data.isbn} already exists") from e
            safe_commit(self.session, "create book")
            logger.info("Catalogued book %s (%s)", book.id, book.isbn)
            return self._to_response_model(book)

    def _require_live(self, book_id: str) -> BookDB:
        """Fetch a book that exists and is not soft-deleted."""
        book = self._get_db_obj(book_id)
        if book is None or book.is_deleted:
            raise NotFoundError(f"Book with ID {book_id} not found")
        return book

    def get_live(self, book_id: str) -> BookModel:
        """
        Raises:
            NotFoundError: If the book does not exist or is deleted
        """
        return self._to_response_model(self._require_live(book_id))

    def soft_delete(self, book_id: str) -> BookModel:
        with trace_repository_operation("book", "soft_delete", "books"):
            book = self._require_live(book_id)
            book.is_deleted = True
            safe_commit(self.session, "soft delete book")
            logger.info("Soft-deleted book %s", book_id)
            return self._to_response_model(book)

    def list_active(self, pagination: PaginationParams | None = None) -> PaginatedResponse[BookModel]:
        query = select(BookDB).where(BookDB.is_deleted.is_(False)).order_by(BookDB.title, BookDB.id)
        return self._paginate(query, pagination)
