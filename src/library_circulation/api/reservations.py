"""Reservation endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..config import LibraryConfig
from ..database.reservation_repository import ReservationRepository
from ..models.reservation import ReservationCreate
from .dependencies import (
    EVERYONE,
    STAFF,
    Principal,
    Role,
    ensure_own_member,
    get_db,
    get_library_config,
    require_roles,
)
from .responses import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["reservations"])


def get_repository(
    session: Session = Depends(get_db),
    config: LibraryConfig = Depends(get_library_config),
) -> ReservationRepository:
    return ReservationRepository(session, config)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reservation(
    body: ReservationCreate,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: ReservationRepository = Depends(get_repository),
):
    if principal.is_member:
        if body.member_id is not None and body.member_id != principal.member_id:
            raise HTTPException(
                status.HTTP_403_FORBIDDEN, "Members can only reserve books for themselves"
            )
        member_id = principal.member_id
    else:
        if body.member_id is None:
            raise HTTPException(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "memberId is required when reserving on behalf of a member",
            )
        member_id = body.member_id

    reservation = repo.create(body.book_id, member_id)
    return envelope(reservation, "Reservation created successfully")


@router.delete("/{reservation_id}")
def cancel_reservation(
    reservation_id: str,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: ReservationRepository = Depends(get_repository),
):
    if principal.is_member:
        ensure_own_member(principal, repo.require(reservation_id).member_id)
    reservation = repo.cancel(reservation_id)
    return envelope(reservation, "Reservation cancelled successfully")


@router.get("/member/{member_id}")
def list_member_reservations(
    member_id: str,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: ReservationRepository = Depends(get_repository),
):
    ensure_own_member(principal, member_id)
    return envelope(repo.get_by_member(member_id), "Member reservations retrieved")


@router.get("/book/{book_id}")
def book_queue(
    book_id: str,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReservationRepository = Depends(get_repository),
):
    return envelope(repo.get_by_book(book_id), "Reservation queue retrieved")


@router.get("/book/{book_id}/next")
def next_in_queue(
    book_id: str,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReservationRepository = Depends(get_repository),
):
    reservation = repo.get_next_in_queue(book_id)
    message = "Next reservation retrieved" if reservation else "No active reservations for this book"
    return envelope(reservation, message)


@router.put("/{reservation_id}/fulfill")
def fulfill_reservation(
    reservation_id: str,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReservationRepository = Depends(get_repository),
):
    return envelope(repo.fulfill(reservation_id), "Reservation fulfilled successfully")


@router.post("/expire")
def expire_reservations(
    _: Principal = Depends(require_roles(Role.ADMIN)),
    repo: ReservationRepository = Depends(get_repository),
):
    result = repo.expire_old()
    return envelope(result, f"Expired {result.expired_count} reservation(s)")
