# claimease/api/v1/auth.py
from fastapi import APIRouter, Depends, Request

from claimease.core.config import settings
from claimease.core.dependencies import get_auth_service, get_current_user
from claimease.core.rate_limit import auth_limit, password_reset_limit, client_ip
from claimease.models.schemas import (
    LoginRequest, RefreshRequest, ForgotPasswordRequest,
    ResetPasswordRequest, UpdatePasswordRequest
)
from claimease.models.user import UserCreate

router = APIRouter()


@router.post("/register", status_code=201, dependencies=[Depends(auth_limit)])
async def register(data: UserCreate, request: Request):
    """Self-service sign-up; always creates a customer."""
    session = get_auth_service().register(data, ip=client_ip(request))
    return {"success": True, "message": "User registered successfully", **session}


@router.post("/login", dependencies=[Depends(auth_limit)])
async def login(data: LoginRequest, request: Request):
    session = get_auth_service().login(data.email.strip().lower(), data.password, ip=client_ip(request))
    return {"success": True, "message": "Login successful", **session}


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"success": True, "user": user.to_public()}


@router.post("/logout")
async def logout(user=Depends(get_current_user)):
    get_auth_service().logout(user)
    return {"success": True, "message": "User logged out successfully"}


@router.post("/refresh")
async def refresh(data: RefreshRequest):
    session = get_auth_service().refresh(data.refresh_token)
    return {"success": True, "message": "Token refreshed", **session}


@router.post("/forgot-password", dependencies=[Depends(password_reset_limit)])
async def forgot_password(data: ForgotPasswordRequest, request: Request):
    """
    Start a password reset.

    The response is the same whether or not the email is registered. The raw
    token is only echoed back in debug mode.
    """
    token = get_auth_service().forgot_password(data.email.strip().lower(), ip=client_ip(request))
    response = {"success": True, "message": "If that email is registered, a reset link has been sent"}
    if token and settings.DEBUG:
        response["reset_token"] = token
    return response


@router.put("/reset-password/{token}", dependencies=[Depends(password_reset_limit)])
async def reset_password(token: str, data: ResetPasswordRequest):
    session = get_auth_service().reset_password(token, data.password)
    return {"success": True, "message": "Password reset successful", **session}


@router.put("/update-password")
async def update_password(data: UpdatePasswordRequest, user=Depends(get_current_user)):
    session = get_auth_service().update_password(user, data.current_password, data.new_password)
    return {"success": True, "message": "Password updated successfully", **session}
