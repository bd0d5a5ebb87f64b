# claimease/services/user_service.py
"""User account management."""

import secrets
from datetime import date
from typing import Optional, List, Tuple, Dict, Any

from fastapi import UploadFile

from claimease.core.config import settings
from claimease.core.constants import UserRole, UserStatus, NotificationType
from claimease.core.exceptions import (
    UserNotFoundError, DuplicateResourceError, AuthorizationError,
    BusinessRuleError, ValidationFailedError
)
from claimease.core.logging import get_logger
from claimease.core.security import hash_password, validate_password_strength, sanitize_input
from claimease.models.user import User, UserCreate, UserUpdate
from claimease.storage.user_store import get_user_store
from claimease.utils.uploads import save_upload
from claimease.utils.validators import (
    FieldErrors, calculate_age, is_valid_phone, is_valid_user_email
)

logger = get_logger(__name__)


def validate_password(password: Optional[str], errors: FieldErrors, field: str = "password"):
    if not password:
        errors.add(field, "Password is required")
        return
    for message in validate_password_strength(password)["errors"]:
        errors.add(field, message)


def validate_profile(data: Dict[str, Any], errors: FieldErrors, partial: bool = False):
    """
    Check user profile fields.

    With ``partial`` only the keys present in ``data`` are checked, except that
    role-dependent requirements always look at the merged record.
    """
    def present(key: str) -> bool:
        return not partial or key in data

    for key, label in (("first_name", "First name"), ("last_name", "Last name")):
        if present(key):
            value = (data.get(key) or "").strip()
            if not value:
                errors.add(key, f"{label} is required")
            elif not 2 <= len(value) <= 50:
                errors.add(key, f"{label} must be between 2 and 50 characters")

    if present("email"):
        email = (data.get("email") or "").strip()
        if not email:
            errors.add("email", "Email is required")
        elif not is_valid_user_email(email):
            errors.add("email", "Please enter a valid email")

    if present("phone"):
        phone = (data.get("phone") or "").strip()
        if not phone:
            errors.add("phone", "Phone number is required")
        elif not is_valid_phone(phone):
            errors.add("phone", "Phone number must be exactly 10 digits")

    role = data.get("role")
    if role not in UserRole.values():
        errors.add("role", "Invalid role")
        return

    if role in (UserRole.AGENT.value, UserRole.ADMIN.value) and not (data.get("department") or "").strip():
        errors.add("department", "Department is required for agents and admins")

    if role == UserRole.CUSTOMER.value:
        dob: Optional[date] = data.get("date_of_birth")
        if dob is None:
            errors.add("date_of_birth", "Date of birth is required for customers")
        else:
            age = calculate_age(dob)
            if dob > date.today() or age > settings.MAX_CUSTOMER_AGE:
                errors.add("date_of_birth", "Please enter a valid date of birth")
            elif age < settings.MIN_CUSTOMER_AGE:
                errors.add("date_of_birth", f"Customer must be at least {settings.MIN_CUSTOMER_AGE} years old")


def generate_agent_code() -> str:
    return f"AG{secrets.randbelow(10**6):06d}"


class UserService:
    """Service for user operations."""

    def __init__(self):
        self.store = get_user_store()

    # ===================
    # Lookup
    # ===================

    def get_user(self, user_id: str) -> User:
        user = self.store.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_visible_user(self, viewer: User, user_id: str) -> User:
        """Admins see everyone, agents see customers, customers see themselves."""
        user = self.get_user(user_id)
        if viewer.role == UserRole.ADMIN or viewer.user_id == user_id:
            return user
        if viewer.role == UserRole.AGENT and user.role == UserRole.CUSTOMER:
            return user
        raise AuthorizationError("Not authorized to view this user")

    def list_users(
        self,
        viewer: User,
        role: Optional[str] = None,
        status: Optional[str] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[User], int]:
        scope = None
        if viewer.role == UserRole.AGENT:
            scope = lambda u: u.role == UserRole.CUSTOMER
        is_active = None
        if status:
            is_active = status == UserStatus.ACTIVE.value
        return self.store.search(
            scope=scope, role=role, is_active=is_active, department=department,
            search=sanitize_input(search), sort_by=sort_by, sort_order=sort_order,
            page=page, limit=limit
        )

    # ===================
    # Create / update
    # ===================

    def create_user(self, data: UserCreate, created_by: Optional[User] = None) -> User:
        """Validate and persist a new account. Agents receive an agent code."""
        raw = data.model_dump()
        for key in ("first_name", "last_name", "email", "phone", "department"):
            raw[key] = sanitize_input(raw.get(key))
        raw["email"] = (raw.get("email") or "").lower()

        errors = FieldErrors()
        validate_profile(raw, errors)
        validate_password(data.password, errors)
        errors.raise_if_any()

        if self.store.get_by_email(raw["email"]):
            raise DuplicateResourceError("User already exists with this email", field="email")

        user = User(
            first_name=raw["first_name"],
            last_name=raw["last_name"],
            email=raw["email"],
            phone=raw["phone"],
            role=raw["role"],
            department=raw.get("department") or None,
            date_of_birth=raw.get("date_of_birth"),
            address=data.address,
            agent_code=generate_agent_code() if raw["role"] == UserRole.AGENT.value else None,
            password_hash=hash_password(data.password),
        )
        self.store.save(user)

        logger.log_business("user_created", user_id=user.user_id, role=user.role,
                            created_by=created_by.user_id if created_by else None)
        return user

    def update_user(self, actor: User, user_id: str, update: UserUpdate) -> User:
        user = self.get_user(user_id)
        changes = update.model_dump(exclude_none=True)

        if actor.role != UserRole.ADMIN:
            if actor.user_id != user_id:
                raise AuthorizationError("Not authorized to update this user")
            for restricted in ("role", "is_active", "department"):
                if restricted in changes:
                    raise AuthorizationError(f"Not authorized to change {restricted}")

        for key in ("first_name", "last_name", "email", "phone", "department"):
            if key in changes:
                changes[key] = sanitize_input(changes[key])
        if "email" in changes:
            changes["email"] = changes["email"].lower()

        merged = user.model_dump()
        merged.update(changes)
        errors = FieldErrors()
        validate_profile({**changes, "role": merged["role"], "department": merged["department"],
                          "date_of_birth": merged["date_of_birth"]}, errors, partial=True)
        errors.raise_if_any()

        if "email" in changes and changes["email"] != user.email:
            if self.store.get_by_email(changes["email"]):
                raise DuplicateResourceError("User already exists with this email", field="email")

        if "address" in changes:
            changes["address"] = update.address
        for key, value in changes.items():
            setattr(user, key, value)
        if user.role == UserRole.AGENT and not user.agent_code:
            user.agent_code = generate_agent_code()
        user.touch()
        self.store.save(user)

        logger.log_business("user_updated", user_id=user.user_id, updated_by=actor.user_id,
                            fields=sorted(changes))
        return user

    # ===================
    # Status
    # ===================

    def _parse_status(self, status: str) -> bool:
        if status not in UserStatus.values():
            raise ValidationFailedError.single("status", "Status must be either active or inactive")
        return status == UserStatus.ACTIVE.value

    def update_status(self, actor: User, user_id: str, status: str) -> User:
        is_active = self._parse_status(status)
        user = self.get_user(user_id)
        if user.user_id == actor.user_id and not is_active:
            raise BusinessRuleError("You cannot deactivate your own account")

        user.is_active = is_active
        user.touch()
        self.store.save(user)

        from claimease.core.dependencies import get_notification_service
        get_notification_service().notify(
            user.user_id,
            NotificationType.ACCOUNT_UPDATE,
            "Account status updated",
            f"Your account is now {status}.",
            sender_id=actor.user_id,
        )
        logger.log_security("user_status_changed", severity="low", user_id=user.user_id,
                            status=status, changed_by=actor.user_id)
        return user

    def bulk_update_status(self, actor: User, user_ids: List[str], status: str) -> int:
        """Change status for many users at once. Admin accounts are never touched."""
        is_active = self._parse_status(status)
        if not user_ids:
            raise ValidationFailedError.single("user_ids", "User IDs array is required")

        modified = 0
        for user_id in user_ids:
            user = self.store.get(user_id)
            if user is None or user.role == UserRole.ADMIN or user.user_id == actor.user_id:
                continue
            if user.is_active != is_active:
                user.is_active = is_active
                user.touch()
                self.store.save(user)
                modified += 1

        logger.log_business("users_bulk_status", count=modified, status=status, changed_by=actor.user_id)
        return modified

    def delete_user(self, actor: User, user_id: str) -> User:
        """Deactivate an account. Admin accounts cannot be deleted."""
        user = self.get_user(user_id)
        if user.role == UserRole.ADMIN:
            raise BusinessRuleError("Cannot delete admin users")
        user.is_active = False
        user.touch()
        self.store.save(user)
        logger.log_business("user_deactivated", user_id=user_id, deleted_by=actor.user_id)
        return user

    async def upload_avatar(self, user: User, file: UploadFile) -> User:
        stored = await save_upload(file, "avatar", user.user_id)
        user.avatar = stored.url
        user.touch()
        self.store.save(user)
        return user

    # ===================
    # Statistics
    # ===================

    def dashboard_stats(self) -> Dict[str, Any]:
        stats = self.store.get_statistics()
        users = self.store.get_all()
        recent = sorted(users, key=lambda u: u.created_at, reverse=True)[:5]
        stats["recent_users"] = [u.to_public() for u in recent]
        return stats
