"""Contains all security related helper functions and dependencies
"""
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request

from passlib.context import CryptContext

from models.helpers import TokenType
from schema.security import Identity

from .errors import ForbiddenError, UnauthenticatedError
from .service import SecurityService
from .tokens import TokenService


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

BEARER_SCHEME = "Bearer"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies that `plain_password` and `hashed_password` are equal.

    Args:
        plain_password (str): The plain text password to verify.
        hashed_password (str): The hashed password to compare against.

    Returns:
        bool: True if the passwords match, False otherwise.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown or corrupted hash format
        return False


def get_password_hash(password: str) -> str:
    """Generates a hash for the given password.

    Args:
        password (str): The plain text password to hash.

    Returns:
        str: The hashed password.
    """
    return pwd_context.hash(password)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header.

    Args:
        authorization (Optional[str]): Raw header value.

    Raises:
        UnauthenticatedError: If the header is missing, uses another scheme or carries no token.

    Returns:
        str: The bearer token.
    """
    if not authorization:
        raise UnauthenticatedError("Authorization header required")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1].strip():
        raise UnauthenticatedError("Invalid authorization header format")

    return parts[1].strip()


def _identity_from_token(token_service: TokenService, token: str) -> Identity:
    claims = token_service.validate(token, TokenType.ACCESS)
    return Identity(
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role,
        token_id=claims.jti,
        expires_at=claims.expires_at,
    )


def get_current_identity(
    request: Request,
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> Identity:
    """Authenticate the request from its bearer access token.

    The identity is also stored on `request.state.identity` for downstream handlers.

    Raises:
        UnauthenticatedError: Raised when the credentials are missing or invalid.
        TokenRevokedError: Raised when the access token has been revoked.

    Returns:
        Identity: The authenticated identity.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    identity = _identity_from_token(token_service, token)
    request.state.identity = identity
    request.state.access_token = token
    return identity


def get_optional_identity(
    request: Request,
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> Optional[Identity]:
    """Like `get_current_identity`, but anonymous requests get None instead of a 401."""
    try:
        return get_current_identity(request, token_service)
    except UnauthenticatedError:
        return None


def require_role(required_role: str) -> Callable[..., Identity]:
    """Build a dependency that only admits identities with exactly `required_role`.

    Args:
        required_role (str): The role to compare against. No hierarchy is applied.

    Returns:
        Callable[..., Identity]: The dependency.
    """

    def role_gate(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if identity.role != required_role:
            raise ForbiddenError()
        return identity

    return role_gate
