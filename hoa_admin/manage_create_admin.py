"""Create the initial ADMIN user for the HOA admin backend.

Run: `python -m hoa_admin.manage_create_admin --email admin@example.com --password changeme`
"""

import argparse
from contextlib import contextmanager

from hoa_admin.auth.jwt import get_password_hash
from hoa_admin.config import SessionLocal
from hoa_admin.constants import DEFAULT_ROLES
from hoa_admin.models.models import Role, User


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ensure_roles(db):
    for name, description in DEFAULT_ROLES:
        role = db.query(Role).filter(Role.name == name).first()
        if not role:
            role = Role(name=name, description=description)
            db.add(role)
    db.flush()


def create_admin(db, email: str, password: str, full_name: str):
    ensure_roles(db)
    admin_role = db.query(Role).filter(Role.name == "ADMIN").one()

    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        return None

    user = User(
        email=email,
        full_name=full_name,
        hashed_password=get_password_hash(password),
    )
    user.roles.append(admin_role)
    db.add(user)
    db.flush()
    return user


def main():
    parser = argparse.ArgumentParser(description="Create the initial ADMIN user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--full-name", default="Initial Administrator")
    args = parser.parse_args()

    with session_scope() as db:
        user = create_admin(db, args.email, args.password, args.full_name)
        if user is None:
            print("User already exists with that email.")
            return
        print(f"Created ADMIN user with id {user.id}")


if __name__ == "__main__":
    main()
