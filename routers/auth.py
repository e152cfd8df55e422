"""
Auth router for handling user authentication and request signing related endpoints.
"""

from fastapi import status, APIRouter, Depends, Request, Body
from starlette.concurrency import run_in_threadpool

from schema.security import (
    AuthResponse,
    Identity,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    NonceResponse,
    RefreshTokenRequest,
    TokenPair,
)
from schema.users import RegisterRequest, UserResponse

from security.helpers import get_current_identity, get_security_service
from security.service import SecurityService
from services.users import UserService, get_user_service

from typing import Annotated, Optional


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


@router.get("/nonce", response_model=NonceResponse)
async def get_nonce(
    security_service: Annotated[SecurityService, Depends(get_security_service)],
):
    """Issue a single use nonce for signing the next request.

    Only a valid `timestamp` (query parameter or `X-Timestamp` header) is required
    to call this endpoint, since a client cannot hold a nonce before calling it.

    ## Possible Errors
    - 400 Bad Request: If the timestamp is missing, malformed or outside the allowed window.
    - 503 Service Unavailable: If the nonce store cannot be reached.
    """
    nonce = await run_in_threadpool(security_service.generate_nonce)
    return NonceResponse(nonce=nonce)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Create a new user account.

    ## Possible Errors
    - 403 Forbidden: If registration is disabled.
    - 409 Conflict: If a user with the provided email or username already exists.
    - 503 Service Unavailable: If there is a database connection issue.

    ## Error response structure
    ```json
    {
        "detail": "Sample error message",
        "code": "sample_error_code"
    }
    ```
    """
    user = await user_service.register(payload)
    return UserResponse.from_record(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Login endpoint that returns the user together with access and refresh tokens.

    ## Possible Errors
    - 401 Unauthorized: If the email or password is incorrect.
    - 403 Forbidden: If the account has been deactivated.
    """
    tokens, user = await user_service.login(payload.email, payload.password)
    return AuthResponse(user=UserResponse.from_record(user), **tokens.model_dump())


@router.post("/refresh", response_model=TokenPair)
async def refresh_access_token(
    payload: RefreshTokenRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Exchange a refresh token for a new token pair.

    Refresh tokens are single use: the presented token is revoked and replaying it
    fails with `revoked`.

    ## Possible Errors
    - 401 Unauthorized: If the refresh token is invalid, expired or already used.
    """
    return await user_service.refresh(payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    identity: Annotated[Identity, Depends(get_current_identity)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    payload: Annotated[Optional[LogoutRequest], Body()] = None,
):
    """Revoke the current access token and, if supplied, the refresh token."""
    refresh_token = payload.refresh_token if payload else None
    await user_service.logout(identity, request.state.access_token, refresh_token)
    return MessageResponse(message="Successfully logged out")
