#!/usr/bin/env python
"""
Seed script to populate the database with sample households and dues for local development.

Usage:
    python scripts/seed_data.py --households 5
"""

import argparse
from datetime import date
from decimal import Decimal

from hoa_admin.config import Base, SessionLocal, engine
from hoa_admin.main import ensure_default_roles
from hoa_admin.manage_create_admin import create_admin
from hoa_admin.models.models import DueType, Household, HouseholdStatus, Resident, User
from hoa_admin.schemas.schemas import DuePayload
from hoa_admin.services.dues import submit_due


def create_household_bundle(session, index: int) -> Household:
    head = Resident(
        first_name=f"Resident{index}",
        last_name="Sample",
        email=f"resident{index}@example.com",
    )
    session.add(head)
    session.flush()

    household = Household(
        block=str((index - 1) // 10 + 1),
        lot=str(index),
        address=f"{100 + index} Mabini Street",
        status=HouseholdStatus.ACTIVE,
        head_id=head.id,
    )
    session.add(household)
    session.flush()
    head.household_id = household.id
    session.commit()
    return household


def seed_database(households: int) -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        ensure_default_roles(session)
        admin = session.query(User).filter(User.email == "admin@example.com").first()
        if admin is None:
            admin = create_admin(session, "admin@example.com", "changeme", "Site Administrator")
            session.commit()

        start_index = session.query(Household).count() + 1
        today = date.today()
        created_dues = 0
        for offset in range(max(households, 0)):
            household = create_household_bundle(session, start_index + offset)
            payload = DuePayload(
                household_id=household.id,
                type=DueType.MONTHLY_DUES,
                amount=Decimal("150.00"),
                due_date=today,
                fiscal_month=today.month,
                fiscal_year=today.year,
                description="Monthly association dues",
            )
            result = submit_due(session, payload, actor_user_id=admin.id)
            if result.success:
                created_dues += 1
            else:
                print(f"Skipped dues for household {household.id}: {result.message}")

        print(f"Seed complete. Created {households} households and {created_dues} dues (admin password: 'changeme').")


def main():
    parser = argparse.ArgumentParser(description="Seed the HOA database with sample data.")
    parser.add_argument("--households", type=int, default=5, help="Number of households to create")
    args = parser.parse_args()
    seed_database(args.households)


if __name__ == "__main__":
    main()
