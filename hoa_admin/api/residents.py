from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import require_minimum_role
from ..core.errors import NotFoundError
from ..models.models import Household, Resident, User
from ..schemas.schemas import ResidentCreate, ResidentRead
from ..services.audit import audit_log

router = APIRouter()


@router.get("", response_model=List[ResidentRead])
def list_residents(
    household_id: Optional[int] = Query(None),
    unassigned: bool = Query(False),
    db: Session = Depends(get_db),
    _: User = Depends(require_minimum_role("AUDITOR")),
) -> List[Resident]:
    query = db.query(Resident)
    if household_id is not None:
        query = query.filter(Resident.household_id == household_id)
    elif unassigned:
        query = query.filter(Resident.household_id.is_(None))
    return query.order_by(Resident.last_name.asc(), Resident.first_name.asc()).all()


@router.get("/{resident_id}", response_model=ResidentRead)
def read_resident(
    resident_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_minimum_role("AUDITOR")),
) -> Resident:
    resident = db.get(Resident, resident_id)
    if not resident:
        raise NotFoundError("Resident not found")
    return resident


@router.post("", response_model=ResidentRead, status_code=201)
def create_resident(
    payload: ResidentCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_minimum_role("CLERK")),
) -> Resident:
    if payload.household_id is not None and db.get(Household, payload.household_id) is None:
        raise NotFoundError("Household not found")
    resident = Resident(**payload.model_dump())
    db.add(resident)
    db.flush()
    audit_log(
        db_session=db,
        actor_user_id=actor.id,
        action="resident.create",
        target_entity_type="Resident",
        target_entity_id=str(resident.id),
        after=payload.model_dump(mode="json"),
        commit=False,
    )
    db.commit()
    db.refresh(resident)
    return resident
