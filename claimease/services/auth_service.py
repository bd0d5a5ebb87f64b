# claimease/services/auth_service.py
"""Registration, login, token refresh and password recovery."""

from datetime import timedelta
from typing import Dict, Any, Optional

from claimease.core.config import settings
from claimease.core.constants import UserRole
from claimease.core.exceptions import AuthenticationError, BusinessRuleError
from claimease.core.logging import get_logger
from claimease.core.security import (
    generate_tokens, verify_token, verify_password, hash_password,
    generate_secure_token, sha256_hex
)
from claimease.models.base import utcnow
from claimease.models.user import User, UserCreate
from claimease.storage.user_store import get_user_store
from claimease.utils.validators import FieldErrors
from claimease.services.user_service import validate_password

logger = get_logger(__name__)


class AuthService:
    """Service for authentication flows."""

    def __init__(self):
        self.store = get_user_store()

    def _session(self, user: User) -> Dict[str, Any]:
        tokens = generate_tokens(user.user_id)
        return {"user": user.to_public(), **tokens}

    def register(self, data: UserCreate, ip: Optional[str] = None) -> Dict[str, Any]:
        """Self-service sign-up. Always creates a customer account."""
        from claimease.core.dependencies import get_user_service

        data = data.model_copy(update={"role": UserRole.CUSTOMER.value, "department": None})
        user = get_user_service().create_user(data)
        logger.log_auth("register", user_id=user.user_id, ip=ip)
        return self._session(user)

    def login(self, email: str, password: str, ip: Optional[str] = None) -> Dict[str, Any]:
        errors = FieldErrors()
        errors.check(bool(email), "email", "Email is required")
        errors.check(bool(password), "password", "Password is required")
        errors.raise_if_any()

        user = self.store.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.log_auth("login", user_id=user.user_id if user else None, success=False, ip=ip)
            logger.log_security("failed_login", severity="medium", email=email, ip=ip)
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            logger.log_auth("login", user_id=user.user_id, success=False, ip=ip, reason="inactive")
            raise AuthenticationError("Account is deactivated. Please contact administrator.")

        user.last_login = utcnow()
        self.store.save(user)
        logger.log_auth("login", user_id=user.user_id, ip=ip)
        return self._session(user)

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        payload = verify_token(refresh_token, refresh=True)
        user = self.store.get(payload.get("id", ""))
        if user is None or not user.is_active:
            raise AuthenticationError("Invalid refresh token")
        logger.log_auth("refresh", user_id=user.user_id)
        return self._session(user)

    def logout(self, user: User):
        logger.log_auth("logout", user_id=user.user_id)

    def forgot_password(self, email: str, ip: Optional[str] = None) -> Optional[str]:
        """
        Issue a password reset token.

        Only the SHA-256 of the token is stored. Returns the raw token when an
        account exists; callers decide whether to expose it.
        """
        errors = FieldErrors()
        errors.check(bool(email), "email", "Email is required")
        errors.raise_if_any()

        user = self.store.get_by_email(email)
        if user is None:
            logger.log_security("password_reset_unknown_email", severity="low", email=email, ip=ip)
            return None

        token = generate_secure_token(20)
        user.reset_password_token = sha256_hex(token)
        user.reset_password_expire = utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
        self.store.save(user)

        logger.log_email("password_reset", user.email, "Password Reset Request", user_id=user.user_id)
        return token

    def reset_password(self, token: str, password: str) -> Dict[str, Any]:
        user = self.store.get_by_reset_token(sha256_hex(token or ""))
        if user is None or not user.reset_password_expire or user.reset_password_expire < utcnow():
            raise BusinessRuleError("Invalid or expired token")

        errors = FieldErrors()
        validate_password(password, errors)
        errors.raise_if_any()

        user.password_hash = hash_password(password)
        user.reset_password_token = None
        user.reset_password_expire = None
        user.touch()
        self.store.save(user)

        logger.log_auth("password_reset", user_id=user.user_id)
        return self._session(user)

    def update_password(self, user: User, current_password: str, new_password: str) -> Dict[str, Any]:
        if not verify_password(current_password or "", user.password_hash):
            logger.log_security("password_change_rejected", severity="medium", user_id=user.user_id)
            raise AuthenticationError("Password is incorrect")

        errors = FieldErrors()
        validate_password(new_password, errors, field="new_password")
        errors.raise_if_any()

        user.password_hash = hash_password(new_password)
        user.touch()
        self.store.save(user)

        logger.log_auth("password_change", user_id=user.user_id)
        return self._session(user)
