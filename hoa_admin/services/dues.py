"""Dues workflow: validate a proposed due, persist it, and keep its ledger entries in step.

Every submission runs the same ordered checks and stops at the first failure:

1. household exists and is Active
2. water-bill meter readings are complete and consistent
3. no other due occupies the (household, type, fiscal period) slot
4. fiscal month/year are in range
5. amount meets the minimum for its type
6. due date is not in the past, except for arrearages and penalties
7. on update only: amount/type/period are frozen once payments exist

Failures are returned as a ``DueSubmissionResult`` rather than raised, so form
handlers can show the message next to the form.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..constants import (
    DEFAULT_MINIMUM_DUE_AMOUNT,
    DUES_LISTING_KEY,
    FISCAL_MONTH_MAX,
    FISCAL_MONTH_MIN,
    FISCAL_YEAR_MAX,
    FISCAL_YEAR_MIN,
)
from ..core.errors import DomainError
from ..models.models import Due, DueType, Household, HouseholdStatus, Payment
from ..schemas.schemas import DuePayload
from .audit import audit_log
from .ledger import CENTS, ensure_decimal, post_due_entry, resync_due_entries, sum_payments
from .listing_cache import listing_cache

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("amount", "type", "fiscal_month", "fiscal_year")

MINIMUM_DUE_AMOUNTS: Dict[DueType, Decimal] = {
    DueType.MONTHLY_DUES: Decimal("100"),
    DueType.WATER_BILL: Decimal("50"),
    DueType.ELECTRICITY: Decimal("50"),
    DueType.SPECIAL_ASSESSMENT: Decimal("1"),
    DueType.ARREARAGES: Decimal("1"),
    DueType.PENALTY: Decimal("1"),
}

# True where the charge is normally entered after the fact.
BACKDATING_ALLOWED: Dict[DueType, bool] = {
    DueType.MONTHLY_DUES: False,
    DueType.WATER_BILL: False,
    DueType.ELECTRICITY: False,
    DueType.SPECIAL_ASSESSMENT: False,
    DueType.ARREARAGES: True,
    DueType.PENALTY: True,
}

for _policy_name, _policy in (("MINIMUM_DUE_AMOUNTS", MINIMUM_DUE_AMOUNTS), ("BACKDATING_ALLOWED", BACKDATING_ALLOWED)):
    _unhandled = [due_type.value for due_type in DueType if due_type not in _policy]
    if _unhandled:
        raise RuntimeError(f"{_policy_name} has no entry for due type(s): {', '.join(_unhandled)}")


class DueWorkflowError(DomainError):
    code = "DueWorkflowError"


class HouseholdInvalid(DueWorkflowError):
    code = "HouseholdInvalid"


class WaterBillFieldsInvalid(DueWorkflowError):
    code = "WaterBillFieldsInvalid"


class DuplicateDue(DueWorkflowError):
    code = "DuplicateDue"
    status_code = 409


class FiscalPeriodInvalid(DueWorkflowError):
    code = "FiscalPeriodInvalid"


class AmountTooLow(DueWorkflowError):
    code = "AmountTooLow"


class DueDateInPast(DueWorkflowError):
    code = "DueDateInPast"


class ProtectedFieldsLocked(DueWorkflowError):
    code = "ProtectedFieldsLocked"
    status_code = 409

    def __init__(self, fields: Sequence[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Cannot modify {', '.join(self.fields)} after payments have been made")


class DueNotFound(DueWorkflowError):
    code = "DueNotFound"
    status_code = 404


class PersistenceFailure(DueWorkflowError):
    code = "PersistenceFailure"
    status_code = 503


@dataclass
class DueSubmissionResult:
    success: bool
    message: str
    data: Optional[Due] = None
    error: Optional[str] = None
    code: Optional[str] = None
    status_code: int = 200

    @classmethod
    def ok(cls, message: str, due: Due, status_code: int = 200) -> "DueSubmissionResult":
        return cls(success=True, message=message, data=due, status_code=status_code)

    @classmethod
    def failure(cls, exc: DueWorkflowError, error: Optional[str] = None) -> "DueSubmissionResult":
        return cls(
            success=False,
            message=exc.message,
            error=error,
            code=exc.code,
            status_code=exc.status_code,
        )


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def validate_household(session: Session, household_id: int) -> Household:
    household = session.get(Household, household_id)
    if household is None:
        raise HouseholdInvalid("Household does not exist")
    if household.status != HouseholdStatus.ACTIVE:
        raise HouseholdInvalid("Household is not active")
    return household


def validate_water_bill_fields(payload: DuePayload) -> None:
    if payload.type != DueType.WATER_BILL:
        return
    if payload.meter_reading is None or payload.previous_reading is None:
        raise WaterBillFieldsInvalid("Meter readings are required for water bills")
    if payload.meter_reading < 0 or payload.previous_reading < 0:
        raise WaterBillFieldsInvalid("Meter readings cannot be negative")
    if payload.meter_reading < payload.previous_reading:
        raise WaterBillFieldsInvalid("Current reading cannot be less than previous reading")


def duplicate_due_message(due_type: DueType) -> str:
    return f"A {due_type.label} already exists for this household and fiscal period"


def find_due_for_period(
    session: Session,
    household_id: int,
    due_type: DueType,
    fiscal_month: int,
    fiscal_year: int,
    exclude_id: Optional[int] = None,
) -> Optional[Due]:
    query = session.query(Due).filter(
        Due.household_id == household_id,
        Due.type == due_type,
        Due.fiscal_month == fiscal_month,
        Due.fiscal_year == fiscal_year,
    )
    if exclude_id is not None:
        query = query.filter(Due.id != exclude_id)
    return query.first()


def check_for_duplicate_due(
    session: Session,
    household_id: int,
    due_type: DueType,
    fiscal_month: int,
    fiscal_year: int,
    exclude_id: Optional[int] = None,
) -> None:
    existing = find_due_for_period(session, household_id, due_type, fiscal_month, fiscal_year, exclude_id)
    if existing is not None:
        raise DuplicateDue(duplicate_due_message(due_type))


def validate_fiscal_period(fiscal_month: int, fiscal_year: int) -> None:
    if fiscal_month < FISCAL_MONTH_MIN or fiscal_month > FISCAL_MONTH_MAX:
        raise FiscalPeriodInvalid(f"Fiscal month must be between {FISCAL_MONTH_MIN} and {FISCAL_MONTH_MAX}")
    if fiscal_year < FISCAL_YEAR_MIN or fiscal_year > FISCAL_YEAR_MAX:
        raise FiscalPeriodInvalid(f"Fiscal year must be between {FISCAL_YEAR_MIN} and {FISCAL_YEAR_MAX}")


def minimum_amount_for(due_type: DueType) -> Decimal:
    return MINIMUM_DUE_AMOUNTS.get(due_type, Decimal(DEFAULT_MINIMUM_DUE_AMOUNT))


def validate_amount(due_type: DueType, amount: Decimal | float | int) -> None:
    amount = ensure_decimal(amount)
    if amount <= 0:
        raise AmountTooLow("Amount must be greater than 0")
    minimum = minimum_amount_for(due_type)
    if amount < minimum:
        raise AmountTooLow(f"Amount for {due_type.label} must be at least {minimum}")


def validate_due_date(due_date: date | datetime, due_type: DueType, today: Optional[date] = None) -> None:
    if BACKDATING_ALLOWED.get(due_type, False):
        return
    today = today or date.today()
    if _as_date(due_date) < today:
        raise DueDateInPast("Due date cannot be in the past for this due type")


def changed_protected_fields(existing: Due, payload: DuePayload) -> List[str]:
    proposed = {
        "amount": ensure_decimal(payload.amount).quantize(CENTS),
        "type": payload.type,
        "fiscal_month": payload.fiscal_month,
        "fiscal_year": payload.fiscal_year,
    }
    current = {
        "amount": ensure_decimal(existing.amount).quantize(CENTS),
        "type": existing.type,
        "fiscal_month": existing.fiscal_month,
        "fiscal_year": existing.fiscal_year,
    }
    return [field for field in PROTECTED_FIELDS if current[field] != proposed[field]]


def check_payment_lock(existing: Due, payload: DuePayload) -> None:
    if not existing.payments:
        return
    changed = changed_protected_fields(existing, payload)
    if changed:
        raise ProtectedFieldsLocked(changed)


def run_validation_chain(
    session: Session,
    payload: DuePayload,
    *,
    exclude_id: Optional[int] = None,
    today: Optional[date] = None,
) -> Household:
    household = validate_household(session, payload.household_id)
    validate_water_bill_fields(payload)
    check_for_duplicate_due(
        session,
        payload.household_id,
        payload.type,
        payload.fiscal_month,
        payload.fiscal_year,
        exclude_id=exclude_id,
    )
    validate_fiscal_period(payload.fiscal_month, payload.fiscal_year)
    validate_amount(payload.type, payload.amount)
    validate_due_date(payload.due_date, payload.type, today=today)
    return household


def _due_fields(payload: DuePayload) -> Dict[str, Any]:
    is_water_bill = payload.type == DueType.WATER_BILL
    return {
        "household_id": payload.household_id,
        "type": payload.type,
        "amount": ensure_decimal(payload.amount).quantize(CENTS),
        "due_date": _as_date(payload.due_date),
        "fiscal_month": payload.fiscal_month,
        "fiscal_year": payload.fiscal_year,
        "description": payload.description,
        "status": payload.status,
        "late_fee": ensure_decimal(payload.late_fee),
        "meter_reading": payload.meter_reading if is_water_bill else None,
        "previous_reading": payload.previous_reading if is_water_bill else None,
    }


def _snapshot(due: Due) -> Dict[str, Any]:
    return {column.name: getattr(due, column.name) for column in Due.__table__.columns}


def _persistence_failure(
    session: Session,
    payload: DuePayload,
    exc: SQLAlchemyError,
    message: str,
    exclude_id: Optional[int] = None,
) -> DueSubmissionResult:
    session.rollback()
    if isinstance(exc, IntegrityError):
        collision = find_due_for_period(
            session,
            payload.household_id,
            payload.type,
            payload.fiscal_month,
            payload.fiscal_year,
            exclude_id=exclude_id,
        )
        if collision is not None:
            logger.warning("Due period collision rejected by the database for household %s", payload.household_id)
            return DueSubmissionResult.failure(DuplicateDue(duplicate_due_message(payload.type)))
    logger.exception("%s for household %s", message, payload.household_id)
    return DueSubmissionResult.failure(PersistenceFailure(message), error=str(getattr(exc, "orig", None) or exc))


def create_due(
    session: Session,
    payload: DuePayload,
    *,
    actor_user_id: Optional[int] = None,
    today: Optional[date] = None,
) -> DueSubmissionResult:
    try:
        run_validation_chain(session, payload, today=today)
    except DueWorkflowError as exc:
        logger.info("Due rejected for household %s: %s", payload.household_id, exc.message)
        return DueSubmissionResult.failure(exc)

    try:
        due = Due(**_due_fields(payload))
        session.add(due)
        session.flush()
        entry = post_due_entry(session, due)
        audit_log(
            db_session=session,
            actor_user_id=actor_user_id,
            action="dues.create",
            target_entity_type="Due",
            target_entity_id=str(due.id),
            after={**payload.model_dump(mode="json"), "ledger_entry_id": entry.id},
            commit=False,
        )
        session.commit()
    except SQLAlchemyError as exc:
        return _persistence_failure(session, payload, exc, "Failed to create due")

    session.refresh(due)
    logger.info("Created due %s (%s %s/%s) for household %s", due.id, due.type.value, due.fiscal_month, due.fiscal_year, due.household_id)
    return DueSubmissionResult.ok("Due created successfully", due, status_code=201)


def get_due(session: Session, due_id: int) -> Optional[Due]:
    return (
        session.query(Due)
        .options(selectinload(Due.payments))
        .filter(Due.id == due_id)
        .first()
    )


def dues_listing_state(session: Session) -> tuple:
    """Fingerprint of the rows the dues listing renders; changes whenever any process writes them."""
    due_count, last_due_change = session.query(func.count(Due.id), func.max(Due.updated_at)).one()
    payment_count, last_payment_id = session.query(func.count(Payment.id), func.max(Payment.id)).one()
    last_household_change = session.query(func.max(Household.updated_at)).scalar()
    return (due_count, last_due_change, payment_count, last_payment_id, last_household_change)


def update_due(
    session: Session,
    due_id: int,
    payload: DuePayload,
    *,
    actor_user_id: Optional[int] = None,
    today: Optional[date] = None,
) -> DueSubmissionResult:
    existing = get_due(session, due_id)
    if existing is None:
        return DueSubmissionResult.failure(DueNotFound("Due not found"))

    try:
        run_validation_chain(session, payload, exclude_id=due_id, today=today)
        check_payment_lock(existing, payload)
    except DueWorkflowError as exc:
        logger.info("Update of due %s rejected: %s", due_id, exc.message)
        return DueSubmissionResult.failure(exc)

    before = _snapshot(existing)
    previous_amount = ensure_decimal(existing.amount)
    total_paid = sum_payments(existing.payments)

    try:
        for field, value in _due_fields(payload).items():
            setattr(existing, field, value)
        session.flush()

        new_amount = ensure_decimal(payload.amount).quantize(CENTS)
        if new_amount != previous_amount:
            touched = resync_due_entries(session, existing.id, new_amount, total_paid)
            logger.info("Resynced %s ledger entries for due %s (%s -> %s)", touched, existing.id, previous_amount, new_amount)

        audit_log(
            db_session=session,
            actor_user_id=actor_user_id,
            action="dues.update",
            target_entity_type="Due",
            target_entity_id=str(existing.id),
            before=before,
            after=_snapshot(existing),
            commit=False,
        )
        session.commit()
    except SQLAlchemyError as exc:
        return _persistence_failure(session, payload, exc, "Failed to update due", exclude_id=due_id)

    session.refresh(existing)
    return DueSubmissionResult.ok("Due updated successfully", existing)


def submit_due(
    session: Session,
    payload: DuePayload,
    existing_id: Optional[int] = None,
    *,
    actor_user_id: Optional[int] = None,
    today: Optional[date] = None,
) -> DueSubmissionResult:
    """Entry point for the dues form: create when ``existing_id`` is None, otherwise update."""
    try:
        if existing_id is not None:
            result = update_due(session, existing_id, payload, actor_user_id=actor_user_id, today=today)
        else:
            result = create_due(session, payload, actor_user_id=actor_user_id, today=today)
    except Exception as exc:
        logger.exception("Error handling due form submission")
        session.rollback()
        return DueSubmissionResult(
            success=False,
            message="An unexpected error occurred",
            error=str(exc) or exc.__class__.__name__,
            code="UnexpectedError",
            status_code=500,
        )

    if not result.success:
        return result

    listing_cache.invalidate(DUES_LISTING_KEY)
    return result
