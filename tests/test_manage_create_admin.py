from hoa_admin.manage_create_admin import create_admin
from hoa_admin.models.models import Role


def test_create_admin_seeds_roles_and_is_idempotent(db_session):
    user = create_admin(db_session, "admin@example.com", "changeme", "Site Administrator")
    db_session.commit()

    assert user.role_names == ["ADMIN"]
    assert {role.name for role in db_session.query(Role).all()} == {"ADMIN", "TREASURER", "CLERK", "AUDITOR"}
    assert create_admin(db_session, "admin@example.com", "other", "Someone Else") is None
