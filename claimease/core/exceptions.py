# claimease/core/exceptions.py
"""Custom exceptions for ClaimEase application."""

from typing import Optional, Dict, Any, List


class ClaimEaseException(Exception):
    """Base exception for all ClaimEase errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.errors = errors or []
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


# ===================
# Lookup Exceptions
# ===================

class NotFoundError(ClaimEaseException):
    """Entity not found in storage."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found",
            error_code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
            details={"id": entity_id}
        )


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class PolicyNotFoundError(NotFoundError):
    def __init__(self, policy_id: str):
        super().__init__("Policy", policy_id)


class ClaimNotFoundError(NotFoundError):
    def __init__(self, claim_id: str):
        super().__init__("Claim", claim_id)


class PaymentNotFoundError(NotFoundError):
    def __init__(self, payment_id: str):
        super().__init__("Payment", payment_id)


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str):
        super().__init__("Notification", notification_id)


# ===================
# Validation Exceptions
# ===================

class ValidationFailedError(ClaimEaseException):
    """One or more fields failed validation.

    ``errors`` holds ``{"field": ..., "message": ...}`` entries.
    """

    status_code = 400

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            errors=errors
        )

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailedError":
        return cls([{"field": field, "message": message}], message=message)


class BusinessRuleError(ClaimEaseException):
    """A request that is well-formed but violates a domain rule."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="BUSINESS_RULE_VIOLATION",
            details=details
        )


class DuplicateResourceError(ClaimEaseException):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="DUPLICATE_RESOURCE",
            errors=[{"field": field, "message": message}] if field else None
        )


# ===================
# Access Exceptions
# ===================

class AuthenticationError(ClaimEaseException):
    status_code = 401

    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(message=message, error_code="AUTHENTICATION_ERROR")


class AuthorizationError(ClaimEaseException):
    status_code = 403

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(message=message, error_code="AUTHORIZATION_ERROR")


class RateLimitExceeded(ClaimEaseException):
    status_code = 429

    def __init__(self, message: str = "Too many requests, please try again later", retry_after: int = 0):
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            details={"retry_after": retry_after}
        )


# ===================
# Workflow Exceptions
# ===================

class InvalidStatusTransition(ClaimEaseException):
    """Transition not present in the lifecycle table."""

    status_code = 400

    def __init__(self, entity: str, current_status: str, new_status: str):
        super().__init__(
            message=f"Cannot change {entity} status from {current_status} to {new_status}",
            error_code="INVALID_STATUS_TRANSITION",
            details={"current_status": current_status, "new_status": new_status}
        )


class TransitionNotAuthorized(ClaimEaseException):
    """Transition exists but the acting role may not perform it."""

    status_code = 403

    def __init__(self, entity: str, new_status: str, role: str):
        super().__init__(
            message=f"Role '{role}' is not allowed to move a {entity} to {new_status}",
            error_code="TRANSITION_NOT_AUTHORIZED",
            details={"new_status": new_status, "role": role}
        )


# ===================
# Upload Exceptions
# ===================

class UploadError(ClaimEaseException):
    status_code = 400

    def __init__(self, message: str, error_code: str = "UPLOAD_ERROR", filename: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"filename": filename} if filename else {}
        )


class FileTooLargeError(UploadError):
    def __init__(self, filename: str, max_mb: int):
        super().__init__(
            message=f"File size too large. Maximum size is {max_mb}MB.",
            error_code="FILE_TOO_LARGE",
            filename=filename
        )


class TooManyFilesError(UploadError):
    def __init__(self, max_files: int):
        super().__init__(
            message=f"Too many files. Maximum is {max_files} files.",
            error_code="TOO_MANY_FILES"
        )


class UnsupportedFileTypeError(UploadError):
    def __init__(self, filename: str, content_type: str):
        super().__init__(
            message=f"Invalid file type. Allowed types for this field do not include {content_type}.",
            error_code="UNSUPPORTED_FILE_TYPE",
            filename=filename
        )


# ===================
# AI/LLM Exceptions
# ===================

class LLMConnectionError(ClaimEaseException):
    """Cannot connect to LLM provider."""

    status_code = 503

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"LLM connection failed ({provider}): {message}",
            error_code="LLM_CONNECTION_ERROR",
            details={"provider": provider}
        )
