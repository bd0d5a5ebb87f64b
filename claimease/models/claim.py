# claimease/models/claim.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date

from claimease.core.constants import (
    ClaimType, ClaimStatus, ClaimPriority, InvestigationRecommendation
)
from claimease.models.base import BaseEntity, StatusChange, generate_id, utcnow

# ===================
# Supporting Models
# ===================

class ClaimDocument(BaseModel):
    """Supporting file attached to a claim."""
    document_id: str = Field(default_factory=lambda: generate_id("doc"))
    filename: str
    original_name: str
    url: str
    mime_type: str
    size: int
    uploaded_by: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utcnow)


class Witness(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class InvestigationNote(BaseModel):
    note: str
    added_by: Optional[str] = None
    added_at: datetime = Field(default_factory=utcnow)


class Investigation(BaseModel):
    investigator_id: Optional[str] = None
    start_date: datetime = Field(default_factory=utcnow)
    findings: Optional[str] = None
    recommendation: Optional[InvestigationRecommendation] = None
    notes: List[InvestigationNote] = Field(default_factory=list)

    class Config:
        use_enum_values = True


# ===================
# Main Claim Model
# ===================

class Claim(BaseEntity):
    """Complete claim with all details."""
    claim_id: str = Field(default_factory=lambda: generate_id("clm"))
    claim_number: str
    policy_id: str
    customer_id: str

    claim_type: ClaimType
    claim_amount: float
    incident_date: date
    incident_location: str
    description: str
    priority: ClaimPriority = ClaimPriority.MEDIUM

    # Status tracking
    status: ClaimStatus = ClaimStatus.SUBMITTED
    status_history: List[StatusChange] = Field(default_factory=list)

    documents: List[ClaimDocument] = Field(default_factory=list)
    witnesses: List[Witness] = Field(default_factory=list)

    # Processing
    submitted_by: Optional[str] = None
    assigned_to: Optional[str] = None
    approved_amount: Optional[float] = None
    rejection_reason: Optional[str] = None
    investigation: Optional[Investigation] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    decided_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status in ClaimStatus.active_statuses()

    @property
    def processing_days(self) -> Optional[int]:
        if not self.decided_at:
            return None
        return (self.decided_at - self.submitted_at).days


# ===================
# Request Models
# ===================

class ClaimCreate(BaseModel):
    """Claim fields as submitted by the claim form."""
    policy_id: str = ""
    claim_type: str = ClaimType.OTHER.value
    claim_amount: Optional[float] = None
    incident_date: Optional[date] = None
    incident_location: str = ""
    description: str = ""
    priority: str = ClaimPriority.MEDIUM.value
    witnesses: List[Witness] = Field(default_factory=list)


class ClaimUpdate(BaseModel):
    claim_type: Optional[str] = None
    claim_amount: Optional[float] = None
    incident_date: Optional[date] = None
    incident_location: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    witnesses: Optional[List[Witness]] = None


class ClaimStatusUpdate(BaseModel):
    status: str
    comments: Optional[str] = None
    approved_amount: Optional[float] = None
    rejection_reason: Optional[str] = None


class ClaimAssign(BaseModel):
    assigned_to: str


class InvestigationCreate(BaseModel):
    findings: Optional[str] = None
    recommendation: Optional[str] = None
    notes: Optional[str] = None
