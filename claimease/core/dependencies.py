# claimease/core/dependencies.py
from typing import Optional, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from claimease.core.constants import UserRole
from claimease.core.exceptions import AuthenticationError, AuthorizationError
from claimease.core.logging import get_logger
from claimease.core.security import verify_token

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# ===================
# Service Instances
# ===================

_auth_service = None
_user_service = None
_policy_service = None
_claim_service = None
_payment_service = None
_notification_service = None
_analytics_service = None
_chatbot_service = None
_dashboard_service = None
_profile_service = None
_recommendation_service = None


def get_auth_service():
    """Get authentication service."""
    global _auth_service
    if _auth_service is None:
        from claimease.services.auth_service import AuthService
        _auth_service = AuthService()
        logger.debug("Auth service initialized")
    return _auth_service


def get_user_service():
    global _user_service
    if _user_service is None:
        from claimease.services.user_service import UserService
        _user_service = UserService()
        logger.debug("User service initialized")
    return _user_service


def get_policy_service():
    global _policy_service
    if _policy_service is None:
        from claimease.services.policy_service import PolicyService
        _policy_service = PolicyService()
        logger.debug("Policy service initialized")
    return _policy_service


def get_claim_service():
    global _claim_service
    if _claim_service is None:
        from claimease.services.claim_service import ClaimService
        _claim_service = ClaimService()
        logger.debug("Claim service initialized")
    return _claim_service


def get_payment_service():
    global _payment_service
    if _payment_service is None:
        from claimease.services.payment_service import PaymentService
        _payment_service = PaymentService()
        logger.debug("Payment service initialized")
    return _payment_service


def get_notification_service():
    global _notification_service
    if _notification_service is None:
        from claimease.services.notification_service import NotificationService
        _notification_service = NotificationService()
        logger.debug("Notification service initialized")
    return _notification_service


def get_analytics_service():
    global _analytics_service
    if _analytics_service is None:
        from claimease.services.analytics_service import AnalyticsService
        _analytics_service = AnalyticsService()
        logger.debug("Analytics service initialized")
    return _analytics_service


def get_chatbot_service():
    global _chatbot_service
    if _chatbot_service is None:
        from claimease.services.chatbot_service import ChatbotService
        _chatbot_service = ChatbotService()
        logger.debug("Chatbot service initialized")
    return _chatbot_service


def get_dashboard_service():
    global _dashboard_service
    if _dashboard_service is None:
        from claimease.services.dashboard_service import DashboardService
        _dashboard_service = DashboardService()
        logger.debug("Dashboard service initialized")
    return _dashboard_service


def get_profile_service():
    global _profile_service
    if _profile_service is None:
        from claimease.services.profile_service import ProfileService
        _profile_service = ProfileService()
        logger.debug("Profile service initialized")
    return _profile_service


def get_recommendation_service():
    global _recommendation_service
    if _recommendation_service is None:
        from claimease.services.recommendation_service import RecommendationService
        _recommendation_service = RecommendationService()
        logger.debug("Recommendation service initialized")
    return _recommendation_service


# ===================
# Authentication
# ===================

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
):
    """Resolve the bearer token to an active user."""
    from claimease.storage.user_store import get_user_store

    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized to access this route")

    payload = verify_token(credentials.credentials)
    user = get_user_store().get(payload.get("id", ""))
    if user is None:
        raise AuthenticationError("No user found with this token")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    request.state.user_id = user.user_id
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory restricting a route to the given roles."""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def dependency(user=Depends(get_current_user)):
        if user.role not in allowed:
            logger.log_security("unauthorized_role_access", severity="low",
                                user_id=user.user_id, role=user.role,
                                required=sorted(allowed))
            raise AuthorizationError(f"User role '{user.role}' is not authorized to access this route")
        return user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.AGENT)


# ===================
# Cleanup
# ===================

def cleanup_resources():
    """Drop every cached service and store so the next call rebuilds them."""
    global _auth_service, _user_service, _policy_service, _claim_service
    global _payment_service, _notification_service, _analytics_service
    global _chatbot_service, _dashboard_service, _profile_service, _recommendation_service

    from claimease.ai import llm
    from claimease.storage import (
        user_store, policy_store, claim_store, payment_store, notification_store, profile_store
    )

    _auth_service = _user_service = _policy_service = _claim_service = None
    _payment_service = _notification_service = _analytics_service = None
    _chatbot_service = _dashboard_service = None
    _profile_service = _recommendation_service = None

    user_store._user_store = None
    policy_store._policy_store = None
    claim_store._claim_store = None
    payment_store._payment_store = None
    notification_store._notification_store = None
    profile_store._profile_store = None
    llm._llm_service = None
    logger.debug("Services and stores released")
