from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Due, DueStatus, LedgerEntry, LedgerReferenceType, Payment

CENTS = Decimal("0.01")


def ensure_decimal(amount: Decimal | float | int | str | None) -> Decimal:
    if amount is None:
        return Decimal("0")
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def sum_payments(payments: Iterable[Payment]) -> Decimal:
    return sum((ensure_decimal(payment.amount) for payment in payments), Decimal("0"))


def remaining_balance(due: Due) -> Decimal:
    return ensure_decimal(due.amount) - sum_payments(due.payments)


def post_due_entry(session: Session, due: Due, timestamp: Optional[datetime] = None) -> LedgerEntry:
    """Append the ledger debit for a newly created due; nothing is paid yet so balance equals amount."""
    amount = ensure_decimal(due.amount)
    entry = LedgerEntry(
        household_id=due.household_id,
        transaction_date=timestamp or datetime.now(timezone.utc),
        description=f"Due created: {due.type.value}",
        debit=amount,
        credit=Decimal("0"),
        balance=amount,
        reference_type=LedgerReferenceType.DUE,
        reference_id=due.id,
    )
    session.add(entry)
    session.flush()
    return entry


def resync_due_entries(session: Session, due_id: int, amount: Decimal, total_paid: Decimal) -> int:
    """Rewrite debit/balance on every ledger row that references the due. Returns rows touched."""
    amount = ensure_decimal(amount)
    return (
        session.query(LedgerEntry)
        .filter(
            LedgerEntry.reference_type == LedgerReferenceType.DUE,
            LedgerEntry.reference_id == due_id,
        )
        .update(
            {
                LedgerEntry.debit: amount,
                LedgerEntry.balance: amount - ensure_decimal(total_paid),
            },
            synchronize_session="fetch",
        )
    )


def post_payment_entry(session: Session, due: Due, payment: Payment, balance_after: Decimal) -> LedgerEntry:
    description = f"Payment received for {due.type.value} {due.fiscal_month:02d}/{due.fiscal_year}"
    if payment.payment_method:
        description += f" via {payment.payment_method}"
    if payment.reference_no:
        description += f" ({payment.reference_no})"
    entry = LedgerEntry(
        household_id=due.household_id,
        transaction_date=payment.payment_date or datetime.now(timezone.utc),
        description=description,
        debit=Decimal("0"),
        credit=ensure_decimal(payment.amount),
        balance=ensure_decimal(balance_after),
        reference_type=LedgerReferenceType.PAYMENT,
        reference_id=payment.id,
    )
    session.add(entry)
    session.flush()
    return entry


def list_household_entries(session: Session, household_id: int) -> List[LedgerEntry]:
    return (
        session.query(LedgerEntry)
        .filter(LedgerEntry.household_id == household_id)
        .order_by(LedgerEntry.transaction_date.desc(), LedgerEntry.id.desc())
        .all()
    )


def household_outstanding_balance(session: Session, household_id: int) -> Decimal:
    billed = (
        session.query(func.coalesce(func.sum(Due.amount), 0))
        .filter(Due.household_id == household_id, Due.status != DueStatus.WAIVED)
        .scalar()
    )
    paid = (
        session.query(func.coalesce(func.sum(Payment.amount), 0))
        .join(Due, Payment.due_id == Due.id)
        .filter(Due.household_id == household_id, Due.status != DueStatus.WAIVED)
        .scalar()
    )
    return (ensure_decimal(billed) - ensure_decimal(paid)).quantize(CENTS)
