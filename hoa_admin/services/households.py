import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..constants import DUES_LISTING_KEY
from ..core.errors import DomainError, NotFoundError
from ..models.models import Household, HouseholdStatus, Resident
from ..schemas.schemas import HouseholdCreate, HouseholdUpdate
from .audit import audit_log
from .listing_cache import listing_cache

logger = logging.getLogger(__name__)

HOUSEHOLD_FIELDS = (
    "block",
    "lot",
    "address",
    "type",
    "status",
    "senior_citizen_count",
    "pwd_count",
    "solo_parent_count",
    "head_id",
)


class HouseholdConflict(DomainError):
    code = "HouseholdConflict"
    status_code = 409


def list_households(session: Session, status: Optional[HouseholdStatus] = None) -> List[Household]:
    query = session.query(Household).options(selectinload(Household.residents), selectinload(Household.head))
    if status is not None:
        query = query.filter(Household.status == status)
    return query.order_by(Household.block.asc(), Household.lot.asc()).all()


def get_household(session: Session, household_id: int) -> Household:
    household = (
        session.query(Household)
        .options(selectinload(Household.residents), selectinload(Household.head))
        .filter(Household.id == household_id)
        .first()
    )
    if household is None:
        raise NotFoundError("Household not found")
    return household


def _ensure_unique_address(session: Session, block: str, lot: str, exclude_id: Optional[int] = None) -> None:
    query = session.query(Household).filter(Household.block == block, Household.lot == lot)
    if exclude_id is not None:
        query = query.filter(Household.id != exclude_id)
    if query.first() is not None:
        raise HouseholdConflict(f"A household is already registered for block {block}, lot {lot}")


def _address_collision(
    session: Session, block: str, lot: str, exc: IntegrityError, exclude_id: Optional[int] = None
) -> HouseholdConflict:
    session.rollback()
    query = session.query(Household.id).filter(Household.block == block, Household.lot == lot)
    if exclude_id is not None:
        query = query.filter(Household.id != exclude_id)
    if query.first() is None:
        raise exc
    logger.warning("Concurrent registration of block %s, lot %s", block, lot)
    return HouseholdConflict(f"A household is already registered for block {block}, lot {lot}")


def _ensure_head_exists(session: Session, head_id: Optional[int]) -> None:
    if head_id is not None and session.get(Resident, head_id) is None:
        raise NotFoundError("Household head resident not found")


def _snapshot(household: Household) -> dict:
    snapshot = {field: getattr(household, field) for field in HOUSEHOLD_FIELDS}
    snapshot["resident_ids"] = sorted(resident.id for resident in household.residents)
    return snapshot


def _link_residents(session: Session, household: Household, resident_ids: Sequence[int]) -> None:
    wanted = set(resident_ids)
    if household.head_id is not None:
        wanted.add(household.head_id)
    current = {resident.id for resident in household.residents}

    to_remove = current - wanted
    to_add = wanted - current
    if to_remove:
        session.query(Resident).filter(Resident.id.in_(sorted(to_remove))).update(
            {Resident.household_id: None}, synchronize_session="fetch"
        )
    if to_add:
        session.query(Resident).filter(Resident.id.in_(sorted(to_add))).update(
            {Resident.household_id: household.id}, synchronize_session="fetch"
        )
    session.flush()
    session.expire(household, ["residents"])


def create_household(session: Session, payload: HouseholdCreate, *, actor_user_id: Optional[int] = None) -> Household:
    _ensure_unique_address(session, payload.block, payload.lot)
    _ensure_head_exists(session, payload.head_id)

    household = Household(**payload.model_dump(include=set(HOUSEHOLD_FIELDS)))
    session.add(household)
    try:
        session.flush()
    except IntegrityError as exc:
        raise _address_collision(session, payload.block, payload.lot, exc) from exc
    _link_residents(session, household, payload.resident_ids)

    audit_log(
        db_session=session,
        actor_user_id=actor_user_id,
        action="household.create",
        target_entity_type="Household",
        target_entity_id=str(household.id),
        after=_snapshot(household),
        commit=False,
    )
    session.commit()
    logger.info("Registered household %s (block %s, lot %s)", household.id, household.block, household.lot)
    return get_household(session, household.id)


def update_household(
    session: Session,
    household_id: int,
    payload: HouseholdUpdate,
    *,
    actor_user_id: Optional[int] = None,
) -> Household:
    household = get_household(session, household_id)
    _ensure_unique_address(session, payload.block, payload.lot, exclude_id=household_id)
    _ensure_head_exists(session, payload.head_id)

    before = _snapshot(household)
    for field, value in payload.model_dump(include=set(HOUSEHOLD_FIELDS)).items():
        setattr(household, field, value)
    try:
        session.flush()
    except IntegrityError as exc:
        raise _address_collision(session, payload.block, payload.lot, exc, exclude_id=household_id) from exc
    _link_residents(session, household, payload.resident_ids)

    audit_log(
        db_session=session,
        actor_user_id=actor_user_id,
        action="household.update",
        target_entity_type="Household",
        target_entity_id=str(household.id),
        before=before,
        after=_snapshot(household),
        commit=False,
    )
    session.commit()
    # Dues rows embed the household summary.
    listing_cache.invalidate(DUES_LISTING_KEY)
    return get_household(session, household.id)
