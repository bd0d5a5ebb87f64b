# claimease/models/policy.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date

from claimease.core.constants import (
    PolicyType, PolicyStatus, PremiumFrequency, RiskCategory, PaymentMethod
)
from claimease.models.base import BaseEntity, generate_id, utcnow

# ===================
# Supporting Models
# ===================

class Beneficiary(BaseModel):
    name: str
    relationship: str
    percentage: float = Field(ge=0, le=100)


class PolicyPaymentRecord(BaseModel):
    """Premium payment recorded against a policy."""
    amount: float
    payment_date: datetime = Field(default_factory=utcnow)
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    status: str = "completed"
    recorded_by: Optional[str] = None

    class Config:
        use_enum_values = True


class PolicyMetadata(BaseModel):
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    risk_category: RiskCategory = RiskCategory.MEDIUM

    class Config:
        use_enum_values = True


# ===================
# Main Policy Model
# ===================

class Policy(BaseEntity):
    """Insurance contract between ClaimEase and a customer."""
    policy_id: str = Field(default_factory=lambda: generate_id("pol"))
    policy_number: str
    policy_name: str
    description: str
    policy_type: PolicyType

    coverage_amount: float
    premium_amount: float
    premium_frequency: PremiumFrequency = PremiumFrequency.ANNUAL
    duration: int

    customer_id: str
    agent_id: Optional[str] = None

    start_date: date
    end_date: date
    next_payment_due: Optional[date] = None

    status: PolicyStatus = PolicyStatus.PENDING
    is_active: bool = True

    terms: str
    exclusions: List[str] = Field(default_factory=list)
    beneficiaries: List[Beneficiary] = Field(default_factory=list)
    payment_history: List[PolicyPaymentRecord] = Field(default_factory=list)
    claim_ids: List[str] = Field(default_factory=list)
    metadata: PolicyMetadata = Field(default_factory=PolicyMetadata)

    created_by: Optional[str] = None

    def covers(self, day: date) -> bool:
        """Check whether a date falls inside the coverage period."""
        return self.start_date <= day <= self.end_date

    def days_until_expiry(self, today: Optional[date] = None) -> int:
        return (self.end_date - (today or date.today())).days


# ===================
# Request Models
# ===================

class PolicyCreate(BaseModel):
    policy_name: str = ""
    description: str = ""
    policy_type: str = ""
    coverage_amount: Optional[float] = None
    premium_amount: Optional[float] = None
    premium_frequency: str = PremiumFrequency.ANNUAL.value
    duration: Optional[int] = None
    customer_id: str = ""
    agent_id: Optional[str] = None
    start_date: Optional[date] = None
    terms: str = ""
    exclusions: List[str] = Field(default_factory=list)
    beneficiaries: List[Beneficiary] = Field(default_factory=list)
    metadata: Optional[PolicyMetadata] = None

    class Config:
        json_schema_extra = {
            "example": {
                "policy_name": "Family Health Shield",
                "description": "Comprehensive health cover for a family of four",
                "policy_type": "health",
                "coverage_amount": 500000,
                "premium_amount": 12000,
                "premium_frequency": "annual",
                "duration": 5,
                "customer_id": "usr_123abc",
                "terms": "Cover applies to hospitalization, day-care procedures and pre-existing conditions after 2 years."
            }
        }


class PolicyUpdate(BaseModel):
    """Mutable policy fields. Dates and duration are fixed at creation."""
    policy_name: Optional[str] = None
    description: Optional[str] = None
    coverage_amount: Optional[float] = None
    premium_amount: Optional[float] = None
    premium_frequency: Optional[str] = None
    agent_id: Optional[str] = None
    terms: Optional[str] = None
    exclusions: Optional[List[str]] = None
    beneficiaries: Optional[List[Beneficiary]] = None
    metadata: Optional[PolicyMetadata] = None

    # Rejected when present
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration: Optional[int] = None


class PolicyStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class PolicyPaymentCreate(BaseModel):
    amount: float
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
