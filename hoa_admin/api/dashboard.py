from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import require_roles
from ..constants import FINANCE_READ_ROLES
from ..models.models import User
from ..schemas.schemas import DashboardSummaryRead
from ..services.reports import dashboard_summary

router = APIRouter()


@router.get("/dashboard/summary", response_model=DashboardSummaryRead)
def read_dashboard_summary(
    fiscal_year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_READ_ROLES)),
) -> DashboardSummaryRead:
    return dashboard_summary(db, fiscal_year)
