"""
Reservation models for the library circulation service.

A reservation is a hold on a book that currently has no available copies.
Holds for the same book form a FIFO queue ordered by reservation time; the
queue position is derived when listing a book's queue and is never stored.
"""

from datetime import datetime

from pydantic import ConfigDict, Field

from .base import CamelModel
from .enums import ReservationStatus


class Reservation(CamelModel):
    """
    Represents a hold on a book.

    Status only moves forward: ACTIVE becomes FULFILLED, CANCELLED or EXPIRED
    and never changes again.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the reservation",
        pattern=r"^reservation_[a-zA-Z0-9_]+$",
        examples=["reservation_202401151030120001"],
    )

    book_id: str = Field(..., description="ID of the reserved book")

    member_id: str = Field(..., description="ID of the member holding the reservation")

    reservation_date: datetime = Field(..., description="When the hold was placed")

    expiry_date: datetime = Field(..., description="When an unfulfilled hold lapses")

    status: ReservationStatus = Field(
        ReservationStatus.ACTIVE, description="Current lifecycle state"
    )

    queue_position: int | None = Field(
        None,
        description="1-based rank among the book's active holds (queue listings only)",
        ge=1,
    )

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "reservation_202401151030120001",
                "bookId": "book_202401011200000001",
                "memberId": "member_202401011200000003",
                "reservationDate": "2024-01-15T10:30:12",
                "expiryDate": "2024-02-14T10:30:12",
                "status": "active",
                "queuePosition": 1,
            }
        },
    )


class ReservationCreate(CamelModel):
    """
    Request body for placing a hold.

    ``member_id`` may be omitted when the caller is a member reserving for
    themselves; staff must name the member.
    """

    book_id: str = Field(..., min_length=1, description="Book to reserve")
    member_id: str | None = Field(None, min_length=1, description="Member to reserve for")


class ExpireResult(CamelModel):
    """Outcome of an expiry sweep."""

    expired_count: int = Field(..., ge=0, description="Holds moved from active to expired")
