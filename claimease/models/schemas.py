# claimease/models/schemas.py
"""Shared request/response schemas."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
import math


class UploadedFile(BaseModel):
    """File saved under UPLOAD_DIR."""
    field: str
    filename: str
    original_name: str
    path: str
    url: str
    mime_type: str
    size: int


class ChatRequest(BaseModel):
    message: str = ""


class ChatResponse(BaseModel):
    success: bool = True
    response: str
    category: str
    confidence: float
    suggestions: List[str] = Field(default_factory=list)
    context_data: Optional[Dict[str, Any]] = None
    source: str = "rules"


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RefreshRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    password: str = ""


class UpdatePasswordRequest(BaseModel):
    current_password: str = ""
    new_password: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str


def page_meta(total: int, page: int, limit: int, count: int) -> Dict[str, int]:
    """Pagination block shared by list responses."""
    return {
        "count": count,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "current_page": page,
    }
