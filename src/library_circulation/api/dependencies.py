"""
Request dependencies: database session, configuration and caller identity.

Identity arrives from the upstream gateway as ``X-User-Role`` and
``X-Member-Id`` headers; this service trusts them and only enforces
role-based access.
"""

from collections.abc import Generator
from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..config import LibraryConfig, get_config
from ..database.session import get_db_manager


class Role(str, Enum):
    MEMBER = "member"
    LIBRARIAN = "librarian"
    ADMIN = "admin"


STAFF = (Role.LIBRARIAN, Role.ADMIN)
EVERYONE = (Role.MEMBER, Role.LIBRARIAN, Role.ADMIN)


@dataclass(frozen=True)
class Principal:
    role: Role
    member_id: str | None = None

    @property
    def is_member(self) -> bool:
        return self.role == Role.MEMBER


def get_db() -> Generator[Session, None, None]:
    """One session per request, closed when the response is sent."""
    session = get_db_manager().create_session()
    try:
        yield session
    finally:
        session.close()


def get_library_config() -> LibraryConfig:
    return get_config()


def get_principal(
    x_user_role: str | None = Header(None),
    x_member_id: str | None = Header(None),
) -> Principal:
    if not x_user_role:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Authentication required")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED, f"Unknown role '{x_user_role}'"
        ) from None
    if role == Role.MEMBER and not x_member_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Member identity is missing")
    return Principal(role=role, member_id=x_member_id)


def require_roles(*roles: Role):
    """Dependency factory: the caller must hold one of ``roles``."""

    def checker(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                f"Role '{principal.role.value}' is not allowed to perform this action",
            )
        return principal

    return checker


def ensure_own_member(principal: Principal, member_id: str) -> None:
    """Members may only act on their own records; staff may act on anyone's."""
    if principal.is_member and principal.member_id != member_id:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, "Members can only access their own records"
        )
