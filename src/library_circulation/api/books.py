"""Catalog endpoints circulation relies on."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database.book_repository import BookRepository
from ..database.repository import PaginationParams
from ..models.book import BookCreate
from .dependencies import EVERYONE, STAFF, Principal, Role, get_db, require_roles
from .responses import envelope

router = APIRouter(prefix="/books", tags=["books"])


def get_repository(session: Session = Depends(get_db)) -> BookRepository:
    return BookRepository(session)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_book(
    body: BookCreate,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: BookRepository = Depends(get_repository),
):
    return envelope(repo.create(body), "Book created successfully")


@router.get("")
def list_books(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    _: Principal = Depends(require_roles(*EVERYONE)),
    repo: BookRepository = Depends(get_repository),
):
    books = repo.list_active(PaginationParams(page=page, page_size=page_size))
    return envelope(books, "Books retrieved")


@router.get("/{book_id}")
def get_book(
    book_id: str,
    _: Principal = Depends(require_roles(*EVERYONE)),
    repo: BookRepository = Depends(get_repository),
):
    return envelope(repo.get_live(book_id), "Book retrieved")


@router.delete("/{book_id}")
def delete_book(
    book_id: str,
    _: Principal = Depends(require_roles(Role.ADMIN)),
    repo: BookRepository = Depends(get_repository),
):
    return envelope(repo.soft_delete(book_id), "Book deleted successfully")
