from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.api.deps import require_super_admin
from backoffice.db import get_db
from backoffice.services.auth_service import SessionContext
from backoffice.services.report_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/top-sales", summary="Best selling menu items")
def top_sales(
    limit: int = Query(5, ge=1, le=100),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_super_admin),
):
    return {"items": ReportService(db).top_sales(limit=limit)}


@router.get("/summary", summary="Sales summary")
def summary(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_super_admin),
):
    return ReportService(db).sales_summary()
