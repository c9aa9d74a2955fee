from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator


class CustomerStatus(str, Enum):
    NEW = "new"
    REGULAR = "regular"
    PREMIUM = "premium"


class MembershipLevel(str, Enum):
    BASIC = "basic"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class EntryType(str, Enum):
    EARN = "earn"
    REDEEM = "redeem"
    ADJUST = "adjust"
    EXPIRE = "expire"


class EntrySource(str, Enum):
    PURCHASE = "purchase"
    PROMOTION = "promotion"
    REFERRAL = "referral"
    ADMIN = "admin"
    EXPIRATION = "expiration"
    REWARD = "reward"


class Customer(BaseModel):
    id: UUID
    name: str = ""
    status: CustomerStatus = CustomerStatus.NEW
    loyalty_points: int = Field(default=0, ge=0, description="Snapshot the ledger must reconcile to")
    membership_level: MembershipLevel = MembershipLevel.BASIC

    model_config = ConfigDict(from_attributes=True, json_schema_extra={
        "example": {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "name": "John Smith",
            "status": "premium",
            "loyalty_points": 2500,
            "membership_level": "gold"
        }
    })


class Purchase(BaseModel):
    id: UUID
    customer_id: UUID
    date: datetime
    points_earned: int = Field(..., ge=0)
    fuel_type: Optional[str] = None
    gallons: Optional[float] = None
    total_amount: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # naive dates from the purchase store are UTC
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class LedgerEntry(BaseModel):
    id: UUID
    customer_id: UUID
    date: datetime
    type: EntryType
    points: int
    source: EntrySource
    description: str
    related_purchase_id: Optional[UUID] = None
    balance: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class LedgerStats(BaseModel):
    earned: int = 0
    redeemed: int = 0
    expired: int = 0
    adjusted: int = 0


class LedgerBalance(BaseModel):
    customer_id: UUID
    current_balance: int
    snapshot_points: int
    total_entries: int
    last_transaction_at: Optional[datetime] = None

    @property
    def in_sync(self) -> bool:
        return self.current_balance == self.snapshot_points


class LedgerHistoryResponse(BaseModel):
    customer_id: UUID
    entries: list[LedgerEntry]
    total_count: int
    current_balance: int
    stats: LedgerStats


class CustomerLedgerResult(BaseModel):
    customer_id: UUID
    entries: list[LedgerEntry]
    drift: int
    adjustment: Optional[LedgerEntry] = None

    @property
    def reconciled(self) -> bool:
        return self.adjustment is not None


class CustomerFailure(BaseModel):
    customer_id: Optional[UUID] = None
    error_type: str
    message: str


class BatchReport(BaseModel):
    customers_processed: int = 0
    customers_failed: int = 0
    entries_written: int = 0
    reconciliation_entries: int = 0
    failures: list[CustomerFailure] = Field(default_factory=list)
