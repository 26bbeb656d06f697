from datetime import date
from decimal import Decimal

from fastapi.testclient import TestClient

from hoa_admin.api.dependencies import get_db
from hoa_admin.auth.jwt import get_current_user
from hoa_admin.main import app
from hoa_admin.models.models import DueType
from hoa_admin.services.audit import audit_log
from hoa_admin.services.dues import submit_due


def _override_get_db(session):
    def _generator():
        try:
            yield session
        finally:
            pass

    return _generator


def _override_user(user):
    def _provider():
        return user

    return _provider


def test_audit_log_serializes_non_json_values(db_session, create_user):
    admin = create_user(email="admin@example.com")

    entry = audit_log(db_session, admin.id, "dues.export", after={"total": Decimal("12.50")})

    assert entry.id is not None
    assert entry.after == '{"total": "12.50"}'


def test_audit_log_snapshots_store_enum_values_and_iso_dates(db_session, create_user):
    admin = create_user(email="admin@example.com")

    entry = audit_log(
        db_session,
        admin.id,
        "dues.update",
        before={"type": DueType.PENALTY, "due_date": date(2024, 3, 5), "amount": Decimal("40.00")},
    )

    assert entry.before == '{"amount": "40.00", "due_date": "2024-03-05", "type": "PENALTY"}'
    assert entry.after is None


def test_auditor_lists_and_filters_audit_logs(db_session, create_user, create_household, due_payload):
    admin = create_user(email="admin@example.com")
    auditor = create_user(email="auditor@example.com", role_name="AUDITOR")
    household = create_household()
    submit_due(db_session, due_payload(household.id), actor_user_id=admin.id)
    audit_log(db_session, admin.id, "household.update", target_entity_type="Household", target_entity_id=str(household.id))

    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_user] = _override_user(auditor)
    client = TestClient(app)

    try:
        response = client.get("/audit-logs/")
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2

        filtered = client.get("/audit-logs/", params={"action": "dues.create"})
        items = filtered.json()["items"]
        assert len(items) == 1
        assert items[0]["actor"]["email"] == "admin@example.com"
        assert items[0]["target_entity_type"] == "Due"
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_clerk_cannot_read_audit_logs(db_session, create_user):
    clerk = create_user(email="clerk@example.com", role_name="CLERK")
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_user] = _override_user(clerk)
    client = TestClient(app)

    try:
        response = client.get("/audit-logs/")
        assert response.status_code == 403
    finally:
        client.close()
        app.dependency_overrides.clear()
