from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, condecimal, conint

from ..models.models import DueStatus, DueType, HouseholdStatus, HouseholdType, LedgerReferenceType


class RoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None


class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    password: str = Field(min_length=8)
    role_ids: List[int] = Field(min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: Optional[str] = None
    roles: List[RoleRead] = []
    created_at: datetime
    is_active: bool


class Token(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    roles: List[str]
    primary_role: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_expires_in: Optional[int] = None


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class ResidentBase(BaseModel):
    first_name: str = Field(min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(min_length=1)
    extension_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    civil_status: Optional[str] = None
    occupation: Optional[str] = None


class ResidentCreate(ResidentBase):
    household_id: Optional[int] = None


class ResidentRead(ResidentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    household_id: Optional[int] = None
    full_name: str
    created_at: datetime


class HouseholdBase(BaseModel):
    block: str = Field(min_length=1)
    lot: str = Field(min_length=1)
    address: str = Field(min_length=1)
    type: HouseholdType = HouseholdType.OWNED
    status: HouseholdStatus = HouseholdStatus.ACTIVE
    senior_citizen_count: conint(ge=0) = 0
    pwd_count: conint(ge=0) = 0
    solo_parent_count: conint(ge=0) = 0
    head_id: Optional[int] = None


class HouseholdCreate(HouseholdBase):
    resident_ids: List[int] = []


class HouseholdUpdate(HouseholdBase):
    resident_ids: List[int] = []


class HouseholdSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    block: str
    lot: str
    address: str
    status: HouseholdStatus


class HouseholdRead(HouseholdBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    head: Optional[ResidentRead] = None
    residents: List[ResidentRead] = []
    created_at: datetime
    updated_at: datetime


class DuePayload(BaseModel):
    """Form values for a due; business rules are enforced by the dues workflow, not here."""

    household_id: int
    type: DueType = DueType.MONTHLY_DUES
    amount: condecimal(max_digits=10, decimal_places=2)
    due_date: date
    fiscal_month: int
    fiscal_year: int
    description: Optional[str] = None
    status: DueStatus = DueStatus.UNPAID
    late_fee: condecimal(ge=0, max_digits=10, decimal_places=2) = Decimal("0")
    meter_reading: Optional[condecimal(max_digits=12, decimal_places=2)] = None
    previous_reading: Optional[condecimal(max_digits=12, decimal_places=2)] = None


class PaymentCreate(BaseModel):
    amount: condecimal(gt=0, max_digits=10, decimal_places=2)
    payment_date: Optional[datetime] = None
    payment_method: str = "CASH"
    reference_no: Optional[str] = None
    received_by: Optional[str] = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    due_id: int
    amount: Decimal
    payment_date: datetime
    payment_method: str
    reference_no: Optional[str] = None
    received_by: Optional[str] = None


class DueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    household_id: int
    type: DueType
    amount: Decimal
    due_date: date
    fiscal_month: int
    fiscal_year: int
    status: DueStatus
    late_fee: Decimal
    description: Optional[str] = None
    meter_reading: Optional[Decimal] = None
    previous_reading: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime
    payments: List[PaymentRead] = []
    household: Optional[HouseholdSummary] = None
    total_paid: Decimal = Decimal("0")
    remaining_balance: Decimal = Decimal("0")


class DueSubmissionRead(BaseModel):
    success: bool
    message: str
    data: Optional[DueRead] = None
    error: Optional[str] = None
    code: Optional[str] = None


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    household_id: int
    transaction_date: datetime
    description: Optional[str] = None
    debit: Decimal
    credit: Decimal
    balance: Decimal
    reference_type: LedgerReferenceType
    reference_id: int


class HouseholdLedgerRead(BaseModel):
    household_id: int
    outstanding_balance: Decimal
    entries: List[LedgerEntryRead] = []


class DashboardSummaryRead(BaseModel):
    fiscal_year: int
    total_collected: Decimal
    outstanding_dues: Decimal
    active_households: int
    active_residents: int


class AuditLogActor(BaseModel):
    id: Optional[int] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None


class AuditLogEntry(BaseModel):
    id: int
    timestamp: datetime
    action: str
    target_entity_type: Optional[str] = None
    target_entity_id: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    actor: AuditLogActor


class AuditLogList(BaseModel):
    items: List[AuditLogEntry]
    total: int
