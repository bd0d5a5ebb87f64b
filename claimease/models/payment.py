# claimease/models/payment.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, timezone

from claimease.core.constants import PaymentType, PaymentMethod, PaymentStatus, Currency
from claimease.models.base import BaseEntity, utcnow


class PaymentFees(BaseModel):
    gateway_fee: float = 0.0
    processing_fee: float = 0.0
    total_fees: float = 0.0


class PaymentTaxes(BaseModel):
    gst: float = 0.0
    total_tax: float = 0.0


class Refund(BaseModel):
    refund_id: str
    amount: float
    reason: Optional[str] = None
    refunded_at: datetime = Field(default_factory=utcnow)
    refunded_by: Optional[str] = None
    status: str = "completed"


class Payment(BaseEntity):
    """Money movement tied to a policy."""
    payment_id: str
    transaction_id: str
    policy_id: str
    customer_id: str

    payment_type: PaymentType = PaymentType.PREMIUM
    amount: float
    currency: Currency = Currency.INR
    payment_method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    description: Optional[str] = None

    fees: PaymentFees = Field(default_factory=PaymentFees)
    taxes: PaymentTaxes = Field(default_factory=PaymentTaxes)
    net_amount: float = 0.0

    due_date: Optional[datetime] = None
    processed_date: Optional[datetime] = None
    receipt_number: Optional[str] = None
    failure_reason: Optional[str] = None
    refund: Optional[Refund] = None
    processed_by: Optional[str] = None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if not self.due_date:
            return False
        return self.due_date < (now or utcnow()) and self.status in PaymentStatus.open_statuses()


class PaymentCreate(BaseModel):
    policy_id: str
    amount: float
    payment_method: str
    payment_type: str = PaymentType.PREMIUM.value
    currency: str = Currency.INR.value
    due_date: Optional[datetime] = None
    description: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def as_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class PaymentStatusUpdate(BaseModel):
    status: str
    failure_reason: Optional[str] = None


class RefundRequest(BaseModel):
    amount: Optional[float] = None
    reason: Optional[str] = None
