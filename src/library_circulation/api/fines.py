"""Fine endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..config import LibraryConfig
from ..database.fine_repository import FineRepository
from ..models.fine import DamageReport, FinePayment, LostBookReport
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

router = APIRouter(prefix="/fines", tags=["fines"])


def get_repository(
    session: Session = Depends(get_db),
    config: LibraryConfig = Depends(get_library_config),
) -> FineRepository:
    return FineRepository(session, config)


@router.get("/member/{member_id}")
def list_member_fines(
    member_id: str,
    principal: Principal = Depends(require_roles(*EVERYONE)),
    repo: FineRepository = Depends(get_repository),
):
    ensure_own_member(principal, member_id)
    return envelope(repo.find_by_member(member_id), "Member fines retrieved")


@router.get("/outstanding")
def outstanding_fines(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: FineRepository = Depends(get_repository),
):
    return envelope(repo.get_outstanding(), "Outstanding fines retrieved")


@router.post("/pay")
def pay_fine(
    body: FinePayment,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: FineRepository = Depends(get_repository),
):
    fine = repo.process_payment(body.fine_id, body.amount, body.payment_method)
    return envelope(fine, "Payment processed successfully")


@router.post("/{fine_id}/waive")
def waive_fine(
    fine_id: str,
    _: Principal = Depends(require_roles(Role.ADMIN)),
    repo: FineRepository = Depends(get_repository),
):
    return envelope(repo.waive(fine_id), "Fine waived successfully")


@router.post("/lost", status_code=status.HTTP_201_CREATED)
def record_lost_book(
    body: LostBookReport,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: FineRepository = Depends(get_repository),
):
    fine = repo.record_lost_book(body.transaction_id, body.description)
    return envelope(fine, "Lost book fine recorded")


@router.post("/damage", status_code=status.HTTP_201_CREATED)
def record_damage(
    body: DamageReport,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: FineRepository = Depends(get_repository),
):
    return envelope(repo.record_damage(body), "Damage fine recorded")
