"""Reporting endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..config import LibraryConfig
from ..database.report_repository import ReportRepository
from ..models.report import ReportExportRequest
from .dependencies import STAFF, Principal, get_db, get_library_config, require_roles
from .responses import envelope

router = APIRouter(prefix="/reports", tags=["reports"])


def get_repository(
    session: Session = Depends(get_db),
    config: LibraryConfig = Depends(get_library_config),
) -> ReportRepository:
    return ReportRepository(session, config)


def _check_range(from_date: date | None, to_date: date | None) -> None:
    if from_date and to_date and from_date > to_date:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "fromDate must not be after toDate")


@router.get("/summary")
def circulation_summary(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReportRepository = Depends(get_repository),
):
    return envelope(repo.summary(), "Circulation summary retrieved")


@router.get("/overdue")
def overdue_report(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReportRepository = Depends(get_repository),
):
    report = repo.overdue_report()
    return envelope(report, f"Found {report.overdue_count} overdue transaction(s)")


@router.get("/financial")
def financial_report(
    from_date: date | None = Query(None, alias="fromDate"),
    to_date: date | None = Query(None, alias="toDate"),
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReportRepository = Depends(get_repository),
):
    _check_range(from_date, to_date)
    return envelope(repo.financial_report(from_date, to_date), "Financial report generated")


@router.get("/inventory")
def inventory_report(
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReportRepository = Depends(get_repository),
):
    return envelope(repo.inventory_report(), "Inventory report generated")


@router.post("/export")
def export_report(
    body: ReportExportRequest,
    _: Principal = Depends(require_roles(*STAFF)),
    repo: ReportRepository = Depends(get_repository),
):
    _check_range(body.from_date, body.to_date)

    if body.format == "json":
        reports = {
            "overdue": repo.overdue_report,
            "financial": lambda: repo.financial_report(body.from_date, body.to_date),
            "inventory": repo.inventory_report,
        }
        return envelope(reports[body.report_type](), f"{body.report_type.title()} report exported")

    content = repo.export_csv(body.report_type, body.from_date, body.to_date)
    filename = f"{body.report_type}-report-{repo.clock().date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
