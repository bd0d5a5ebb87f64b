# claimease/models/base.py
"""Shared pieces of the stored documents: ids, timestamps and the status audit entry."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
import uuid


def generate_id(prefix: str = "") -> str:
    """``<prefix>_<12 hex chars>``, e.g. ``clm_3f9a0c1d2e4b``."""
    token = uuid.uuid4().hex[:12]
    return f"{prefix}_{token}" if prefix else token


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin(BaseModel):
    """created_at / updated_at in naive UTC."""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self):
        self.updated_at = utcnow()


class BaseEntity(TimestampMixin):
    """Stored document; enums are kept as their string values."""

    class Config:
        use_enum_values = True


class StatusChange(BaseModel):
    """One entry of an append-only status audit trail."""
    status: str
    previous_status: Optional[str] = None
    changed_by: Optional[str] = None
    changed_at: datetime = Field(default_factory=utcnow)
    comments: Optional[str] = None
    reason: Optional[str] = None

    class Config:
        frozen = True
