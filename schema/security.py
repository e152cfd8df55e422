"""Defines schema of requests and responses related to security"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, EmailStr

from typing import Annotated, Optional

from models.helpers import TokenType

from schema.users import UserResponse


class NonceResponse(BaseModel):
    """Response of the nonce endpoint."""

    nonce: str


class LoginRequest(BaseModel):
    """Credentials submitted to the login endpoint."""

    email: Annotated[EmailStr, Field(max_length=254)]
    password: Annotated[str, Field(min_length=1)]


class TokenPair(BaseModel):
    """Model representing both access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # Access token expiry in seconds


class AuthResponse(TokenPair):
    """Login response: the authenticated user plus a fresh token pair."""

    user: UserResponse


class RefreshTokenRequest(BaseModel):
    """Model for refresh token request."""

    refresh_token: Annotated[str, Field(min_length=1)]


class LogoutRequest(BaseModel):
    """Optional refresh token to revoke together with the access token."""

    refresh_token: Optional[str] = None


class TokenClaims(BaseModel):
    """Claims carried by access and refresh tokens."""

    sub: str
    user_id: str
    email: str
    role: str
    token_type: TokenType
    jti: str  # Unique token identifier, used for blacklisting
    iss: str
    iat: int
    nbf: int
    exp: int

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class Identity(BaseModel):
    """Identity attached to the request once the access token has been validated."""

    user_id: str
    email: str
    role: str
    token_id: str
    expires_at: datetime


class MessageResponse(BaseModel):
    message: str
