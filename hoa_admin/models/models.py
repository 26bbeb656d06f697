import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base
from ..constants import ROLE_PRIORITY


def utcnow():
    return datetime.now(timezone.utc)


class HouseholdStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    VACANT = "Vacant"


class HouseholdType(str, enum.Enum):
    OWNED = "Owned"
    RENTED = "Rented"


class DueType(str, enum.Enum):
    MONTHLY_DUES = "MONTHLY_DUES"
    WATER_BILL = "WATER_BILL"
    ELECTRICITY = "ELECTRICITY"
    SPECIAL_ASSESSMENT = "SPECIAL_ASSESSMENT"
    ARREARAGES = "ARREARAGES"
    PENALTY = "PENALTY"

    @property
    def label(self) -> str:
        return self.value.lower().replace("_", " ")


class DueStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"


class LedgerReferenceType(str, enum.Enum):
    DUE = "DUE"
    PAYMENT = "PAYMENT"


def _enum_column(enum_cls, **kwargs) -> Column:
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
        ),
        **kwargs,
    )


user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime, default=utcnow, nullable=False),
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    description = Column(String, nullable=True)

    users = orm_relationship("User", secondary=user_roles, back_populates="roles")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    roles = orm_relationship("Role", secondary=user_roles, back_populates="users")
    audit_logs = orm_relationship("AuditLog", back_populates="actor")

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    @property
    def highest_priority_role(self):
        if not self.roles:
            return None
        return max(self.roles, key=lambda role: ROLE_PRIORITY.get(role.name, 0))

    def has_role(self, role_name: str) -> bool:
        return any(role.name == role_name for role in self.roles)

    def has_any_role(self, *role_names: str) -> bool:
        targets = set(role_names)
        if not targets:
            return False
        return any(role.name in targets for role in self.roles)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=utcnow, index=True, nullable=False)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    target_entity_type = Column(String, nullable=True)
    target_entity_id = Column(String, nullable=True)
    before = Column(Text, nullable=True)
    after = Column(Text, nullable=True)

    actor = orm_relationship("User", back_populates="audit_logs")


class Resident(Base):
    __tablename__ = "residents"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    middle_name = Column(String, nullable=True)
    last_name = Column(String, nullable=False)
    extension_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String, nullable=True)
    civil_status = Column(String, nullable=True)
    occupation = Column(String, nullable=True)
    household_id = Column(Integer, ForeignKey("households.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    household = orm_relationship("Household", back_populates="residents", foreign_keys=[household_id])

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name, self.extension_name]
        return " ".join(part for part in parts if part)


class Household(Base):
    __tablename__ = "households"
    __table_args__ = (UniqueConstraint("block", "lot", name="uq_household_block_lot"),)

    id = Column(Integer, primary_key=True, index=True)
    block = Column(String, nullable=False)
    lot = Column(String, nullable=False)
    address = Column(String, nullable=False)
    type = _enum_column(HouseholdType, nullable=False, default=HouseholdType.OWNED)
    status = _enum_column(HouseholdStatus, nullable=False, default=HouseholdStatus.ACTIVE, index=True)
    senior_citizen_count = Column(Integer, nullable=False, default=0)
    pwd_count = Column(Integer, nullable=False, default=0)
    solo_parent_count = Column(Integer, nullable=False, default=0)
    head_id = Column(Integer, ForeignKey("residents.id", ondelete="SET NULL", use_alter=True), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    head = orm_relationship("Resident", foreign_keys=[head_id], post_update=True)
    residents = orm_relationship("Resident", back_populates="household", foreign_keys="Resident.household_id")
    dues = orm_relationship("Due", back_populates="household", cascade="all, delete-orphan")
    ledger_entries = orm_relationship("LedgerEntry", back_populates="household", cascade="all, delete-orphan")


class Due(Base):
    __tablename__ = "dues"
    __table_args__ = (
        UniqueConstraint(
            "household_id",
            "type",
            "fiscal_month",
            "fiscal_year",
            name="uq_due_household_type_period",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    type = _enum_column(DueType, nullable=False, default=DueType.MONTHLY_DUES)
    amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    fiscal_month = Column(Integer, nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    status = _enum_column(DueStatus, nullable=False, default=DueStatus.UNPAID)
    late_fee = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    meter_reading = Column(Numeric(12, 2), nullable=True)
    previous_reading = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    household = orm_relationship("Household", back_populates="dues")
    payments = orm_relationship(
        "Payment",
        back_populates="due",
        cascade="all, delete-orphan",
        order_by="Payment.payment_date",
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    due_id = Column(Integer, ForeignKey("dues.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(DateTime, default=utcnow, nullable=False)
    payment_method = Column(String, nullable=False, default="CASH")
    reference_no = Column(String, nullable=True)
    received_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    due = orm_relationship("Due", back_populates="payments")


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_date = Column(DateTime, default=utcnow, nullable=False)
    description = Column(String, nullable=True)
    debit = Column(Numeric(10, 2), nullable=False, default=0)
    credit = Column(Numeric(10, 2), nullable=False, default=0)
    balance = Column(Numeric(10, 2), nullable=False, default=0)
    reference_type = _enum_column(LedgerReferenceType, nullable=False)
    reference_id = Column(Integer, nullable=False, index=True)

    household = orm_relationship("Household", back_populates="ledger_entries")
