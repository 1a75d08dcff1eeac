"""
Reservation tools.

Tool handlers over the reservation engine:
1. reserve_book: place a hold on a book with no copies available
2. cancel_reservation / fulfill_reservation: finish an active hold
3. reservation_queue: list a book's queue in order
4. expire_reservations: sweep holds past their expiry date

Handlers validate arguments with pydantic, run one repository call in a
fresh session, and return either ``{"content": [...], "data": {...}}`` or
``{"isError": True, "content": [...]}``. Repository errors are reported to
the caller verbatim.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..database.errors import NotFoundError, RepositoryException
from ..database.reservation_repository import ReservationRepository
from ..database.session import get_session
from ..models.reservation import Reservation
from ..observability import trace_tool

logger = logging.getLogger(__name__)


class ReserveBookInput(BaseModel):
    """Input schema for the reserve_book tool."""

    book_id: str = Field(
        ...,
        description="ID of the book to reserve; it must have no copies available",
        min_length=1,
        examples=["book_202401011200000001"],
    )
    member_id: str = Field(
        ...,
        description="ID of the member placing the hold",
        min_length=1,
        examples=["member_202401011200000003"],
    )


class ReservationIdInput(BaseModel):
    """Input schema for tools that act on one reservation."""

    reservation_id: str = Field(
        ...,
        description="ID of the reservation",
        min_length=1,
        examples=["reservation_202401151030120001"],
    )


class BookIdInput(BaseModel):
    book_id: str = Field(..., description="ID of the book", min_length=1)


def _error(text: str) -> dict[str, Any]:
    return {"isError": True, "content": [{"type": "text", "text": text}]}


def _invalid(tool: str, error: ValidationError) -> dict[str, Any]:
    logger.warning("Invalid %s parameters: %s", tool, error)
    return _error(f"Invalid {tool} parameters: {error}")


def _reservation_data(reservation: Reservation) -> dict[str, Any]:
    return reservation.model_dump(mode="json")


@trace_tool("reserve_book")
async def reserve_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Place a hold and report the member's position in the queue."""
    try:
        params = ReserveBookInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("reservation", e)

    with get_session() as session:
        try:
            repo = ReservationRepository(session)
            reservation = repo.create(params.book_id, params.member_id)
            queue = repo.get_by_book(params.book_id)
        except NotFoundError as e:
            logger.info("Reservation failed - entity not found: %s", e)
            return _error(str(e))
        except RepositoryException as e:
            logger.info("Reservation failed - business rule: %s", e)
            return _error(str(e))

    position = next((r.queue_position for r in queue if r.id == reservation.id), None)
    message = (
        f"Reserved book '{reservation.book_id}' for member '{reservation.member_id}'. "
        f"Queue position: {position} of {len(queue)}. "
        f"Reservation expires on {reservation.expiry_date.strftime('%B %d, %Y')}"
    )
    return {
        "content": [{"type": "text", "text": message}],
        "data": {
            "reservation": {**_reservation_data(reservation), "queue_position": position},
            "total_in_queue": len(queue),
        },
    }


async def _finish(tool: str, arguments: dict[str, Any], action: str) -> dict[str, Any]:
    try:
        params = ReservationIdInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid(tool, e)

    with get_session() as session:
        try:
            repo = ReservationRepository(session)
            if action == "cancel":
                reservation = repo.cancel(params.reservation_id)
            else:
                reservation = repo.fulfill(params.reservation_id)
        except RepositoryException as e:
            logger.info("%s failed: %s", tool, e)
            return _error(str(e))

    return {
        "content": [
            {
                "type": "text",
                "text": f"Reservation '{reservation.id}' is now {reservation.status.value}",
            }
        ],
        "data": {"reservation": _reservation_data(reservation)},
    }


@trace_tool("cancel_reservation")
async def cancel_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    return await _finish("cancel_reservation", arguments, "cancel")


@trace_tool("fulfill_reservation")
async def fulfill_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    return await _finish("fulfill_reservation", arguments, "fulfill")


@trace_tool("reservation_queue")
async def reservation_queue_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List the active holds on a book in queue order."""
    try:
        params = BookIdInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("reservation_queue", e)

    with get_session() as session:
        try:
            queue = ReservationRepository(session).get_by_book(params.book_id)
        except RepositoryException as e:
            logger.info("Queue lookup failed: %s", e)
            return _error(str(e))

    if queue:
        lines = [
            f"{r.queue_position}. {r.member_id} (reserved {r.reservation_date:%Y-%m-%d})"
            for r in queue
        ]
        text = f"{len(queue)} member(s) waiting for '{params.book_id}':\n" + "\n".join(lines)
    else:
        text = f"No one is waiting for '{params.book_id}'"

    return {
        "content": [{"type": "text", "text": text}],
        "data": {"book_id": params.book_id, "queue": [_reservation_data(r) for r in queue]},
    }


@trace_tool("expire_reservations")
async def expire_reservations_handler(
    arguments: dict[str, Any] | None = None,  # noqa: ARG001
) -> dict[str, Any]:
    """Expire every active hold whose expiry date has passed."""
    with get_session() as session:
        try:
            result = ReservationRepository(session).expire_old()
        except RepositoryException as e:
            logger.exception("Reservation expiry sweep failed")
            return _error(str(e))

    return {
        "content": [{"type": "text", "text": f"Expired {result.expired_count} reservation(s)"}],
        "data": result.model_dump(),
    }


reserve_book = {
    "name": "reserve_book",
    "description": (
        "Reserve a book that has no copies available. Places the member at the back of the "
        "book's FIFO queue. Fails if the book can be borrowed directly, the member is not "
        "active, already holds this book, or already has the maximum number of active holds."
    ),
    "inputSchema": ReserveBookInput.model_json_schema(),
    "handler": reserve_book_handler,
}

cancel_reservation = {
    "name": "cancel_reservation",
    "description": (
        "Cancel an active reservation. Fails if it is already fulfilled, cancelled or expired."
    ),
    "inputSchema": ReservationIdInput.model_json_schema(),
    "handler": cancel_reservation_handler,
}

fulfill_reservation = {
    "name": "fulfill_reservation",
    "description": (
        "Mark an active reservation as fulfilled once the reserved copy has been handed "
        "to the member."
    ),
    "inputSchema": ReservationIdInput.model_json_schema(),
    "handler": fulfill_reservation_handler,
}

reservation_queue = {
    "name": "reservation_queue",
    "description": "List the members waiting for a book, oldest reservation first.",
    "inputSchema": BookIdInput.model_json_schema(),
    "handler": reservation_queue_handler,
}

expire_reservations = {
    "name": "expire_reservations",
    "description": "Expire all active reservations whose expiry date has passed.",
    "inputSchema": {"type": "object", "properties": {}},
    "handler": expire_reservations_handler,
}
