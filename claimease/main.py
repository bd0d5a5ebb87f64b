# claimease/main.py
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from claimease.core.config import settings
from claimease.core.dependencies import cleanup_resources
from claimease.core.exceptions import ClaimEaseException
from claimease.core.logging import get_logger
from claimease.core.rate_limit import general_limit, client_ip
from claimease.models.schemas import HealthResponse

logger = get_logger(__name__)

# ===================
# Lifespan Management
# ===================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}",
                environment=settings.ENVIRONMENT, llm_provider=settings.LLM_PROVIDER,
                llm_configured=settings.is_llm_configured)
    yield
    cleanup_resources()
    logger.info("Shutting down")

# ===================
# Application Setup
# ===================

app = FastAPI(
    title=settings.APP_NAME,
    description="Insurance policy and claims management API",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# ===================
# Middleware
# ===================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.log_request(
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        user_id=getattr(request.state, "user_id", None),
        ip=client_ip(request),
    )
    return response

# ===================
# Exception Handlers
# ===================

@app.exception_handler(ClaimEaseException)
async def claimease_exception_handler(request: Request, exc: ClaimEaseException):
    body = {"success": False, "message": exc.message, "error_code": exc.error_code}
    if exc.errors:
        body["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error(exc.message, error_code=exc.error_code, url=request.url.path, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        errors.append({
            "param": ".".join(loc[1:]) or (loc[0] if loc else ""),
            "msg": error.get("msg", "Invalid value"),
            "location": loc[0] if loc else "body",
        })
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "error_code": "VALIDATION_ERROR",
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error: {exc}", url=request.url.path, method=request.method)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )

# ===================
# Include Routers
# ===================

from claimease.api.v1.auth import router as auth_router
from claimease.api.v1.users import router as users_router
from claimease.api.v1.policies import router as policies_router
from claimease.api.v1.claims import router as claims_router
from claimease.api.v1.payments import router as payments_router
from claimease.api.v1.analytics import router as analytics_router
from claimease.api.v1.notifications import router as notifications_router
from claimease.api.v1.chatbot import router as chatbot_router
from claimease.api.v1.dashboard import router as dashboard_router
from claimease.api.v1.admin import router as admin_router
from claimease.api.v1.profile import router as profile_router
from claimease.api.v1.recommendations import router as recommendations_router

api = settings.API_PREFIX
limited = [Depends(general_limit)]

app.include_router(auth_router, prefix=f"{api}/auth", tags=["auth"])
app.include_router(users_router, prefix=f"{api}/users", tags=["users"], dependencies=limited)
app.include_router(policies_router, prefix=f"{api}/policies", tags=["policies"], dependencies=limited)
app.include_router(claims_router, prefix=f"{api}/claims", tags=["claims"], dependencies=limited)
app.include_router(payments_router, prefix=f"{api}/payments", tags=["payments"], dependencies=limited)
app.include_router(analytics_router, prefix=f"{api}/analytics", tags=["analytics"], dependencies=limited)
app.include_router(notifications_router, prefix=f"{api}/notifications", tags=["notifications"], dependencies=limited)
app.include_router(chatbot_router, prefix=f"{api}/chatbot", tags=["chatbot"], dependencies=limited)
app.include_router(dashboard_router, prefix=f"{api}/dashboard", tags=["dashboard"], dependencies=limited)
app.include_router(admin_router, prefix=f"{api}/admin", tags=["admin"], dependencies=limited)
app.include_router(profile_router, prefix=f"{api}/profile", tags=["profile"], dependencies=limited)
app.include_router(recommendations_router, prefix=f"{api}/recommendations", tags=["recommendations"], dependencies=limited)

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

# ===================
# Root Endpoints
# ===================

@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "auth": f"{api}/auth",
            "users": f"{api}/users",
            "policies": f"{api}/policies",
            "claims": f"{api}/claims",
            "payments": f"{api}/payments",
            "analytics": f"{api}/analytics",
            "notifications": f"{api}/notifications",
            "chatbot": f"{api}/chatbot",
            "dashboard": f"{api}/dashboard",
            "profile": f"{api}/profile",
            "recommendations": f"{api}/recommendations"
        }
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=settings.APP_VERSION, environment=settings.ENVIRONMENT)


@app.get(f"{api}/health", response_model=HealthResponse, include_in_schema=False)
async def api_health_check():
    return await health_check()


def main():
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "claimease.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="warning" if settings.LOG_LEVEL == "warn" else settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
