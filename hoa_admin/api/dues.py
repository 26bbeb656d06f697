from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session, selectinload

from ..api.dependencies import get_db
from ..auth.jwt import require_roles
from ..constants import BILLING_ROLES, DUES_LISTING_KEY, FINANCE_READ_ROLES, PAYMENT_ROLES
from ..core.errors import NotFoundError
from ..models.models import Due, DueStatus, User
from ..schemas.schemas import DuePayload, DueRead, DueSubmissionRead, PaymentCreate, PaymentRead
from ..services.dues import DueSubmissionResult, dues_listing_state, get_due, submit_due
from ..services.ledger import remaining_balance, sum_payments
from ..services.listing_cache import listing_cache
from ..services.payments import list_payments, record_payment

router = APIRouter()


def serialize_due(due: Due) -> DueRead:
    data = DueRead.model_validate(due)
    return data.model_copy(
        update={
            "total_paid": sum_payments(due.payments),
            "remaining_balance": remaining_balance(due),
        }
    )


def _submission_response(result: DueSubmissionResult, response: Response) -> DueSubmissionRead:
    response.status_code = result.status_code
    return DueSubmissionRead(
        success=result.success,
        message=result.message,
        data=serialize_due(result.data) if result.data is not None else None,
        error=result.error,
        code=result.code,
    )


@router.get("", response_model=List[DueRead])
def list_dues(
    request: Request,
    response: Response,
    household_id: Optional[int] = Query(None),
    fiscal_year: Optional[int] = Query(None),
    status: Optional[DueStatus] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_READ_ROLES)),
):
    etag = listing_cache.etag(DUES_LISTING_KEY, *dues_listing_state(db))
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})

    query = db.query(Due).options(selectinload(Due.payments), selectinload(Due.household))
    if household_id is not None:
        query = query.filter(Due.household_id == household_id)
    if fiscal_year is not None:
        query = query.filter(Due.fiscal_year == fiscal_year)
    if status is not None:
        query = query.filter(Due.status == status)
    dues = query.order_by(Due.created_at.desc(), Due.id.desc()).all()

    response.headers["ETag"] = etag
    return [serialize_due(due) for due in dues]


@router.get("/{due_id}", response_model=DueRead)
def read_due(
    due_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_READ_ROLES)),
) -> DueRead:
    due = get_due(db, due_id)
    if due is None:
        raise NotFoundError("Due not found")
    return serialize_due(due)


@router.post("", response_model=DueSubmissionRead, status_code=201)
def create_due_endpoint(
    payload: DuePayload,
    response: Response,
    db: Session = Depends(get_db),
    actor: User = Depends(require_roles(*BILLING_ROLES)),
) -> DueSubmissionRead:
    result = submit_due(db, payload, actor_user_id=actor.id)
    return _submission_response(result, response)


@router.put("/{due_id}", response_model=DueSubmissionRead)
def update_due_endpoint(
    due_id: int,
    payload: DuePayload,
    response: Response,
    db: Session = Depends(get_db),
    actor: User = Depends(require_roles(*BILLING_ROLES)),
) -> DueSubmissionRead:
    result = submit_due(db, payload, due_id, actor_user_id=actor.id)
    return _submission_response(result, response)


@router.get("/{due_id}/payments", response_model=List[PaymentRead])
def list_due_payments(
    due_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_READ_ROLES)),
):
    return list_payments(db, due_id)


@router.post("/{due_id}/payments", response_model=PaymentRead, status_code=201)
def record_due_payment(
    due_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_roles(*PAYMENT_ROLES)),
):
    return record_payment(db, due_id, payload, actor_user_id=actor.id)
