import sys
from collections.abc import Callable, Generator
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hoa_admin.config import Base  # noqa: E402
import hoa_admin.config as app_config  # noqa: E402
from hoa_admin.auth.jwt import get_password_hash  # noqa: E402
# Import the full models module so every table registers with Base metadata.
from hoa_admin.models import models as _all_models  # noqa: E402,F401
from hoa_admin.models.models import (  # noqa: E402
    DueType,
    Household,
    HouseholdStatus,
    Resident,
    Role,
    User,
)
from hoa_admin.schemas.schemas import DuePayload  # noqa: E402


def _sqlite_engine(db_path: Path):
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


@pytest.fixture(scope="session", autouse=True)
def _configure_global_test_db(tmp_path_factory):
    """Point the app-wide SessionLocal/engine at a throwaway DB so TestClient never touches the dev file."""
    db_dir = tmp_path_factory.mktemp("globaldb")
    engine = _sqlite_engine(db_dir / "app.db")
    Base.metadata.create_all(engine)
    app_config.SessionLocal = sessionmaker(bind=engine)
    app_config.engine = engine
    yield
    engine.dispose()


@pytest.fixture
def db_session(tmp_path) -> Generator[Session, None, None]:
    """Provide a fresh SQLite database for each test."""
    engine = _sqlite_engine(tmp_path / "test.db")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def create_role(db_session: Session) -> Callable[[str], Role]:
    def _create(name: str) -> Role:
        existing = db_session.query(Role).filter(Role.name == name).first()
        if existing:
            return existing
        role = Role(name=name)
        db_session.add(role)
        db_session.commit()
        return role

    return _create


@pytest.fixture
def create_user(db_session: Session, create_role: Callable[[str], Role]) -> Callable[[str, Optional[str]], User]:
    def _create(email: str = "user@example.com", role_name: str = "ADMIN") -> User:
        role = create_role(role_name)
        user = User(email=email, hashed_password=get_password_hash("changeme"))
        user.roles.append(role)
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def create_resident(db_session: Session) -> Callable[..., Resident]:
    counter = {"value": 0}

    def _create(first_name: str = "Juan", last_name: str = "Dela Cruz", household_id: Optional[int] = None) -> Resident:
        counter["value"] += 1
        resident = Resident(
            first_name=first_name,
            last_name=f"{last_name} {counter['value']}",
            email=f"resident{counter['value']}@example.com",
            household_id=household_id,
        )
        db_session.add(resident)
        db_session.commit()
        return resident

    return _create


@pytest.fixture
def create_household(db_session: Session) -> Callable[..., Household]:
    counter = {"value": 0}

    def _create(status: HouseholdStatus = HouseholdStatus.ACTIVE) -> Household:
        counter["value"] += 1
        household = Household(
            block="1",
            lot=str(counter["value"]),
            address=f"{counter['value']} Sampaguita Street",
            status=status,
        )
        db_session.add(household)
        db_session.commit()
        return household

    return _create


@pytest.fixture
def due_payload() -> Callable[..., DuePayload]:
    """Build a valid MONTHLY_DUES payload a month ahead; override any field by keyword."""

    def _build(household_id: int, **overrides) -> DuePayload:
        upcoming = date.today() + timedelta(days=30)
        values = {
            "household_id": household_id,
            "type": DueType.MONTHLY_DUES,
            "amount": Decimal("150.00"),
            "due_date": upcoming,
            "fiscal_month": upcoming.month,
            "fiscal_year": upcoming.year,
            "description": "Monthly association dues",
        }
        values.update(overrides)
        return DuePayload(**values)

    return _build
