"""System settings endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database.settings_repository import SettingsRepository
from ..models.settings import SettingsUpdate
from .dependencies import STAFF, Principal, Role, get_db, require_roles
from .responses import envelope

router = APIRouter(prefix="/settings", tags=["settings"])


def get_repository(session: Session = Depends(get_db)) -> SettingsRepository:
    return SettingsRepository(session)


@router.get("")
def list_settings(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: SettingsRepository = Depends(get_repository),
):
    return envelope(repo.find_all(), "System settings retrieved")


@router.get("/{member_type}")
def get_setting(
    member_type: str,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: SettingsRepository = Depends(get_repository),
):
    return envelope(repo.find_by_member_type(member_type), "System settings retrieved")


@router.put("/{member_type}")
def update_setting(
    member_type: str,
    body: SettingsUpdate,
    _: Principal = Depends(require_roles(Role.ADMIN)),
    repo: SettingsRepository = Depends(get_repository),
):
    return envelope(repo.update(member_type, body), "System settings updated")
