"""Member endpoints circulation relies on."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database.member_repository import MemberRepository
from ..models.member import MemberCreate, MemberStatusUpdate
from .dependencies import (
    EVERYONE,
    STAFF,
    Principal,
    Role,
    ensure_own_member,
    get_db,
    require_roles,
)
from .responses import envelope

router = APIRouter(prefix="/members", tags=["members"])


def get_repository(session: Session = Depends(get_db)) -> MemberRepository:
    return MemberRepository(session)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_member(
    body: MemberCreate,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: MemberRepository = Depends(get_repository),
):
    return envelope(repo.create(body), "Member created successfully")


@router.get("/user/{user_id}")
def get_member_by_user(
    user_id: str,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: MemberRepository = Depends(get_repository),
):
    member = repo.get_by_user_id(user_id)
    if member is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"No member for user {user_id}")
    return envelope(member, "Member retrieved")


@router.get("/{member_id}")
def get_member(
    member_id: str,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: MemberRepository = Depends(get_repository),
):
    ensure_own_member(principal, member_id)
    return envelope(repo.require(member_id), "Member retrieved")


@router.put("/{member_id}/status")
def update_member_status(
    member_id: str,
    body: MemberStatusUpdate,
    _: Principal = Depends(require_roles(Role.ADMIN)),
    repo: MemberRepository = Depends(get_repository),
):
    return envelope(repo.set_status(member_id, body.status), "Member status updated")
