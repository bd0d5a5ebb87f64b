# claimease/api/v1/admin.py
from fastapi import APIRouter, Depends

from claimease.core.config import settings
from claimease.core.dependencies import require_admin
from claimease.core.logging import get_logger
from claimease.storage.user_store import get_user_store
from claimease.storage.policy_store import get_policy_store
from claimease.storage.claim_store import get_claim_store
from claimease.storage.payment_store import get_payment_store

logger = get_logger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "llm_provider": settings.LLM_PROVIDER,
        "llm_configured": settings.is_llm_configured,
        "rate_limit_enabled": settings.RATE_LIMIT_ENABLED,
        "debug_mode": settings.DEBUG
    }


@router.get("/stats")
async def get_system_stats():
    """Record counts per collection."""
    claims = get_claim_store()
    return {
        "users_count": get_user_store().count(),
        "policies_count": get_policy_store().count(),
        "claims_count": claims.count(),
        "pending_claims": len(claims.get_pending_claims()),
        "payments_count": get_payment_store().count(),
        "llm_provider": settings.LLM_PROVIDER
    }
