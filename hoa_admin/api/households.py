from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import require_minimum_role, require_roles
from ..constants import FINANCE_READ_ROLES
from ..models.models import Household, HouseholdStatus, User
from ..schemas.schemas import HouseholdCreate, HouseholdLedgerRead, HouseholdRead, HouseholdUpdate, LedgerEntryRead
from ..services import households as household_service
from ..services.ledger import household_outstanding_balance, list_household_entries

router = APIRouter()


@router.get("", response_model=List[HouseholdRead])
def list_households(
    status: Optional[HouseholdStatus] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_minimum_role("AUDITOR")),
) -> List[Household]:
    return household_service.list_households(db, status=status)


@router.get("/{household_id}", response_model=HouseholdRead)
def read_household(
    household_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_minimum_role("AUDITOR")),
) -> Household:
    return household_service.get_household(db, household_id)


@router.post("", response_model=HouseholdRead, status_code=201)
def create_household(
    payload: HouseholdCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_minimum_role("CLERK")),
) -> Household:
    return household_service.create_household(db, payload, actor_user_id=actor.id)


@router.put("/{household_id}", response_model=HouseholdRead)
def update_household(
    household_id: int,
    payload: HouseholdUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_minimum_role("CLERK")),
) -> Household:
    return household_service.update_household(db, household_id, payload, actor_user_id=actor.id)


@router.get("/{household_id}/ledger", response_model=HouseholdLedgerRead)
def read_household_ledger(
    household_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_READ_ROLES)),
) -> HouseholdLedgerRead:
    household = household_service.get_household(db, household_id)
    return HouseholdLedgerRead(
        household_id=household.id,
        outstanding_balance=household_outstanding_balance(db, household.id),
        entries=[LedgerEntryRead.model_validate(entry) for entry in list_household_entries(db, household.id)],
    )
