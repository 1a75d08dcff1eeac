"""
Book models for the library circulation service.

Only the fields circulation needs are modelled here: the copy ledger
(total/available copies), the price used by lost and damage fines, and the
soft-delete flag.
"""

from pydantic import ConfigDict, Field, model_validator

from .base import CamelModel
from .enums import Money


class Book(CamelModel):
    """
    A catalog entry and its copy ledger.

    available_copies moves only through loan issue/return and lost-book
    processing; reservations read it but never change it.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the book",
        pattern=r"^book_[a-zA-Z0-9_]+$",
        examples=["book_202401151030120001"],
    )

    title: str = Field(..., description="Title of the book", min_length=1, max_length=500)

    author: str = Field(..., description="Author display name", min_length=1, max_length=200)

    isbn: str = Field(
        ...,
        description="13-digit ISBN",
        pattern=r"^\d{13}$",
        examples=["9780134685479"],
    )

    total_copies: int = Field(..., description="Copies owned by the library", ge=0)

    available_copies: int = Field(..., description="Copies on the shelf right now", ge=0)

    price: Money | None = Field(
        None,
        description="Replacement price; used by lost/damage fines and the overdue cap",
        ge=0,
    )

    is_deleted: bool = Field(False, description="Soft-delete marker")

    @model_validator(mode="after")
    def validate_copies(self) -> "Book":
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def is_available(self) -> bool:
        return not self.is_deleted and self.available_copies > 0

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "id": "book_202401151030120001",
                "title": "Effective Python",
                "author": "Brett Slatkin",
                "isbn": "9780134853987",
                "totalCopies": 2,
                "availableCopies": 0,
                "price": 39.99,
                "isDeleted": False,
            }
        },
    )


class BookCreate(CamelModel):
    """Input for adding a book to the catalog."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=200)
    isbn: str = Field(..., pattern=r"^\d{13}$")
    total_copies: int = Field(1, ge=0, le=1000)
    price: Money | None = Field(None, ge=0)
