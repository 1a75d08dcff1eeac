"""Tool definitions registered by the tool server."""

from .reservations import (
    cancel_reservation,
    expire_reservations,
    fulfill_reservation,
    reservation_queue,
    reserve_book,
)

all_tools = [
    reserve_book,
    cancel_reservation,
    fulfill_reservation,
    reservation_queue,
    expire_reservations,
]

__all__ = ["all_tools"]
