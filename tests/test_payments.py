from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from hoa_admin.api.dependencies import get_db
from hoa_admin.auth.jwt import get_current_user
from hoa_admin.core.errors import NotFoundError
from hoa_admin.main import app
from hoa_admin.models.models import AuditLog, Due, DueStatus, LedgerEntry, LedgerReferenceType
from hoa_admin.schemas.schemas import PaymentCreate
from hoa_admin.services.dues import create_due
from hoa_admin.services.payments import PaymentRejected, record_payment


def _override_get_db(session):
    def _inner():
        try:
            yield session
        finally:
            pass

    return _inner


def _override_user(user):
    def _inner():
        return user

    return _inner


def test_partial_then_full_payment_updates_status_and_ledger(db_session, create_household, due_payload):
    household = create_household()
    due = create_due(db_session, due_payload(household.id, amount=Decimal("500"))).data

    record_payment(db_session, due.id, PaymentCreate(amount=Decimal("200.00"), reference_no="OR-1001"))
    assert db_session.get(Due, due.id).status == DueStatus.PARTIAL

    record_payment(db_session, due.id, PaymentCreate(amount=Decimal("300.00")))
    assert db_session.get(Due, due.id).status == DueStatus.PAID

    credits = (
        db_session.query(LedgerEntry)
        .filter(LedgerEntry.reference_type == LedgerReferenceType.PAYMENT)
        .order_by(LedgerEntry.id.asc())
        .all()
    )
    assert [entry.credit for entry in credits] == [Decimal("200.00"), Decimal("300.00")]
    assert [entry.balance for entry in credits] == [Decimal("300.00"), Decimal("0.00")]
    assert "OR-1001" in credits[0].description


def test_overpayment_is_rejected(db_session, create_household, due_payload):
    household = create_household()
    due = create_due(db_session, due_payload(household.id, amount=Decimal("150"))).data

    with pytest.raises(PaymentRejected) as exc:
        record_payment(db_session, due.id, PaymentCreate(amount=Decimal("150.01")))
    assert exc.value.message == "Payment exceeds the remaining balance of 150.00"


def test_fully_paid_and_waived_dues_refuse_payments(db_session, create_household, due_payload):
    household = create_household()
    paid = create_due(db_session, due_payload(household.id, amount=Decimal("150"))).data
    record_payment(db_session, paid.id, PaymentCreate(amount=Decimal("150.00")))

    with pytest.raises(PaymentRejected) as exc:
        record_payment(db_session, paid.id, PaymentCreate(amount=Decimal("1.00")))
    assert exc.value.message == "Due is already fully paid"

    waived = create_due(
        db_session,
        due_payload(household.id, type="SPECIAL_ASSESSMENT", amount=Decimal("40"), status=DueStatus.WAIVED),
    ).data
    with pytest.raises(PaymentRejected):
        record_payment(db_session, waived.id, PaymentCreate(amount=Decimal("10.00")))


def test_payment_against_missing_due(db_session):
    with pytest.raises(NotFoundError):
        record_payment(db_session, 404, PaymentCreate(amount=Decimal("10.00")))


def test_clerk_records_payment_via_api(db_session, create_user, create_household, due_payload):
    clerk = create_user(email="clerk@example.com", role_name="CLERK")
    household = create_household()
    due = create_due(db_session, due_payload(household.id, amount=Decimal("500"))).data
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_user] = _override_user(clerk)
    client = TestClient(app)

    try:
        response = client.post(
            f"/dues/{due.id}/payments",
            json={"amount": "200.00", "payment_method": "GCASH", "reference_no": "GC-77"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["due_id"] == due.id
        assert body["amount"] == "200.00"
        assert body["payment_method"] == "GCASH"

        listing = client.get(f"/dues/{due.id}/payments")
        assert listing.status_code == 200
        assert [payment["reference_no"] for payment in listing.json()] == ["GC-77"]

        too_much = client.post(f"/dues/{due.id}/payments", json={"amount": "400.00"})
        assert too_much.status_code == 409
        assert too_much.json()["code"] == "PaymentRejected"

        invalid = client.post(f"/dues/{due.id}/payments", json={"amount": "0"})
        assert invalid.status_code == 422

        log = db_session.query(AuditLog).filter(AuditLog.action == "payments.record").one()
        assert log.actor_user_id == clerk.id
    finally:
        client.close()
        app.dependency_overrides.clear()
