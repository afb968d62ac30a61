"""Admin authentication endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field, field_validator

from peaceblog.api.deps import (
    AuthRateLimit,
    AuthServiceDep,
    CurrentAdmin,
    security,
    unauthorized,
)
from peaceblog.services.auth import AuthError
from peaceblog.services.passcodes import MAX_PASSCODE_BYTES, passcode_too_long

router = APIRouter()


class CodeRequest(BaseModel):
    """Request body for asking for a verification code."""

    username: str = Field(min_length=1, max_length=50)
    passcode: str = Field(min_length=1)

    @field_validator("passcode")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        if passcode_too_long(value):
            raise ValueError(f"must be at most {MAX_PASSCODE_BYTES} bytes")
        return value


class VerifyRequest(BaseModel):
    """Request body for verification code submission."""

    username: str = Field(min_length=1, max_length=50)
    code: str = Field(min_length=1, max_length=10)


class AuthResponse(BaseModel):
    """Response for a successful sign-in step."""

    success: bool = True
    message: str


class TokenResponse(AuthResponse):
    """Response containing the session token."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime


class TokenStatusResponse(BaseModel):
    """Response for token validation."""

    valid: bool
    message: str


class AdminRead(BaseModel):
    """Identity carried by the presented token."""

    username: str
    user_id: str
    role: str
    issued_at: datetime
    expires_at: datetime


@router.post("/request", response_model=AuthResponse)
async def request_code(
    request: CodeRequest,
    auth: AuthServiceDep,
    _rate_limit: AuthRateLimit,
):
    """
    Request a verification code.

    Checks the passcode and emails a one-time code to the admin's address.
    """
    try:
        message = await auth.request_code(request.username, request.passcode)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        ) from e

    return AuthResponse(message=message)


@router.post("/verify", response_model=TokenResponse)
async def verify_code(
    request: VerifyRequest,
    auth: AuthServiceDep,
    _rate_limit: AuthRateLimit,
):
    """
    Verify a code and return a session token.
    """
    try:
        issued = await auth.verify_code(request.username, request.code)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        ) from e

    return TokenResponse(
        message="Authentication successful",
        token=issued.token,
        expires_at=issued.expires_at,
    )


@router.get("/verify-token", response_model=TokenStatusResponse)
async def verify_token(
    auth: AuthServiceDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
):
    """Check whether the presented bearer token is still valid."""
    if not credentials:
        raise unauthorized("Not authenticated")

    try:
        auth.validate_token(credentials.credentials)
    except AuthError as e:
        raise unauthorized(e.message) from e

    return TokenStatusResponse(valid=True, message="Token is valid")


@router.get("/me", response_model=AdminRead)
async def get_current_admin_info(admin: CurrentAdmin):
    """Get the identity of the signed-in admin."""
    return AdminRead(
        username=admin.subject,
        user_id=admin.user_id,
        role=admin.role,
        issued_at=admin.issued_at,
        expires_at=admin.expires_at,
    )


@router.post("/logout")
async def logout():
    """
    Logout endpoint.

    Tokens are stateless, so this only exists for client-side token clearing.
    """
    return {"message": "Logged out successfully"}
