# claimease/core/rate_limit.py
"""Per-client request limits exposed as FastAPI dependencies."""

from typing import Callable

from fastapi import Request

from claimease.core.config import settings
from claimease.core.exceptions import RateLimitExceeded
from claimease.core.logging import get_logger
from claimease.core.security import check_rate_limit

logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    """Peer address of the connection, or the first forwarded hop when ``TRUST_PROXY`` is on."""
    if settings.TRUST_PROXY:
        first_hop = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def rate_limiter(scope: str, limit_setting: str, window_setting: str, message: str) -> Callable:
    """
    Build a dependency enforcing ``settings.<limit_setting>`` requests per
    ``settings.<window_setting>`` seconds for each client IP.

    Limits are read at request time so they follow runtime configuration.
    """

    async def dependency(request: Request):
        if not settings.RATE_LIMIT_ENABLED:
            return
        ip = client_ip(request)
        result = check_rate_limit(
            f"{scope}:{ip}",
            getattr(settings, limit_setting),
            getattr(settings, window_setting),
        )
        if not result["allowed"]:
            logger.log_security("rate_limit_exceeded", severity="medium",
                                scope=scope, ip=ip, url=str(request.url.path))
            raise RateLimitExceeded(message)

    return dependency


general_limit = rate_limiter(
    "general", "RATE_LIMIT_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS",
    "Too many requests from this IP, please try again later."
)

auth_limit = rate_limiter(
    "auth", "AUTH_RATE_LIMIT_REQUESTS", "AUTH_RATE_LIMIT_WINDOW_SECONDS",
    "Too many authentication attempts, please try again later."
)

password_reset_limit = rate_limiter(
    "password_reset", "PASSWORD_RESET_LIMIT_REQUESTS", "PASSWORD_RESET_WINDOW_SECONDS",
    "Too many password reset attempts, please try again later."
)
