# claimease/models/user.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date

from claimease.core.constants import UserRole, UserStatus
from claimease.models.base import BaseEntity, generate_id

# ===================
# Supporting Models
# ===================

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "India"


class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    push: bool = True
    in_app: bool = True


# ===================
# Main User Model
# ===================

PRIVATE_FIELDS = {"password_hash", "reset_password_token", "reset_password_expire"}


class User(BaseEntity):
    """Account of an admin, agent or customer."""
    user_id: str = Field(default_factory=lambda: generate_id("usr"))
    first_name: str
    last_name: str
    email: str
    phone: str
    role: UserRole = UserRole.CUSTOMER
    is_active: bool = True

    department: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    agent_code: Optional[str] = None
    avatar: Optional[str] = None

    password_hash: str
    last_login: Optional[datetime] = None
    reset_password_token: Optional[str] = None
    reset_password_expire: Optional[datetime] = None

    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def status(self) -> str:
        return UserStatus.ACTIVE.value if self.is_active else UserStatus.INACTIVE.value

    def to_public(self) -> Dict[str, Any]:
        """Serialized form safe to return to clients."""
        data = self.model_dump(mode="json", exclude=PRIVATE_FIELDS)
        data["full_name"] = self.full_name
        data["status"] = self.status
        return data


# ===================
# Request Models
# ===================

class UserCreate(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    role: str = UserRole.CUSTOMER.value
    department: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Asha",
                "last_name": "Verma",
                "email": "asha@example.com",
                "phone": "9876543210",
                "password": "Secure@123",
                "role": "customer",
                "date_of_birth": "1990-05-14"
            }
        }


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[Address] = None
    is_active: Optional[bool] = None


class UserStatusUpdate(BaseModel):
    status: str


class BulkStatusUpdate(BaseModel):
    user_ids: List[str]
    status: str
