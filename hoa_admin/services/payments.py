import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from ..constants import DUES_LISTING_KEY
from ..core.errors import DomainError, NotFoundError
from ..models.models import DueStatus, Payment
from ..schemas.schemas import PaymentCreate
from .audit import audit_log
from .dues import get_due
from .ledger import ensure_decimal, post_payment_entry, remaining_balance
from .listing_cache import listing_cache

logger = logging.getLogger(__name__)


class PaymentRejected(DomainError):
    code = "PaymentRejected"
    status_code = 409


def list_payments(session: Session, due_id: int) -> List[Payment]:
    due = get_due(session, due_id)
    if due is None:
        raise NotFoundError("Due not found")
    return list(due.payments)


def record_payment(
    session: Session,
    due_id: int,
    payload: PaymentCreate,
    *,
    actor_user_id: Optional[int] = None,
) -> Payment:
    due = get_due(session, due_id)
    if due is None:
        raise NotFoundError("Due not found")
    if due.status == DueStatus.WAIVED:
        raise PaymentRejected("Cannot record payments against a waived due")

    outstanding = remaining_balance(due)
    amount = ensure_decimal(payload.amount)
    if outstanding <= 0:
        raise PaymentRejected("Due is already fully paid")
    if amount > outstanding:
        raise PaymentRejected(f"Payment exceeds the remaining balance of {outstanding}")

    payment = Payment(
        amount=amount,
        payment_date=payload.payment_date or datetime.now(timezone.utc),
        payment_method=payload.payment_method,
        reference_no=payload.reference_no,
        received_by=payload.received_by,
    )
    due.payments.append(payment)
    session.flush()

    balance_after = outstanding - amount
    due.status = DueStatus.PAID if balance_after == Decimal("0") else DueStatus.PARTIAL
    post_payment_entry(session, due, payment, balance_after)
    audit_log(
        db_session=session,
        actor_user_id=actor_user_id,
        action="payments.record",
        target_entity_type="Payment",
        target_entity_id=str(payment.id),
        after={
            "due_id": due.id,
            "amount": str(amount),
            "payment_method": payment.payment_method,
            "reference_no": payment.reference_no,
            "balance_after": str(balance_after),
        },
        commit=False,
    )
    session.commit()
    session.refresh(payment)

    logger.info("Recorded payment %s of %s against due %s (balance %s)", payment.id, amount, due.id, balance_after)
    listing_cache.invalidate(DUES_LISTING_KEY)
    return payment
