from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Due, DueStatus, Household, HouseholdStatus, Payment, Resident
from ..schemas.schemas import DashboardSummaryRead
from .ledger import CENTS, ensure_decimal


def total_collected(session: Session, fiscal_year: int) -> Decimal:
    collected = (
        session.query(func.coalesce(func.sum(Payment.amount), 0))
        .join(Due, Payment.due_id == Due.id)
        .filter(Due.fiscal_year == fiscal_year)
        .scalar()
    )
    return ensure_decimal(collected).quantize(CENTS)


def outstanding_dues(session: Session, fiscal_year: int) -> Decimal:
    billed = (
        session.query(func.coalesce(func.sum(Due.amount), 0))
        .filter(Due.fiscal_year == fiscal_year, Due.status != DueStatus.WAIVED)
        .scalar()
    )
    paid = (
        session.query(func.coalesce(func.sum(Payment.amount), 0))
        .join(Due, Payment.due_id == Due.id)
        .filter(Due.fiscal_year == fiscal_year, Due.status != DueStatus.WAIVED)
        .scalar()
    )
    return max(ensure_decimal(billed) - ensure_decimal(paid), Decimal("0")).quantize(CENTS)


def dashboard_summary(session: Session, fiscal_year: Optional[int] = None) -> DashboardSummaryRead:
    fiscal_year = fiscal_year or date.today().year
    active_households = session.query(Household).filter(Household.status == HouseholdStatus.ACTIVE).count()
    active_residents = (
        session.query(Resident)
        .join(Household, Resident.household_id == Household.id)
        .filter(Household.status == HouseholdStatus.ACTIVE)
        .count()
    )
    return DashboardSummaryRead(
        fiscal_year=fiscal_year,
        total_collected=total_collected(session, fiscal_year),
        outstanding_dues=outstanding_dues(session, fiscal_year),
        active_households=active_households,
        active_residents=active_residents,
    )
