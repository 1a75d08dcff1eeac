"""Status and type enumerations shared by the database schema and the models."""

from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import PlainSerializer


class MemberType(str, Enum):
    """Membership category; selects the row of loan/fine terms."""

    STUDENT = "student"
    FACULTY = "faculty"
    PUBLIC = "public"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class ReservationStatus(str, Enum):
    """Reservation lifecycle. ACTIVE is the only non-terminal state."""

    ACTIVE = "active"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class TransactionStatus(str, Enum):
    ISSUED = "issued"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class FineType(str, Enum):
    OVERDUE = "overdue"
    LOST = "lost"
    DAMAGE = "damage"
    MEMBERSHIP = "membership"
    RESERVATION_NOSHOW = "reservation_noshow"


class FineStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


# Decimal in Python, a plain number in JSON
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
