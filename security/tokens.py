"""Issuing, validating, rotating and revoking signed access/refresh token pairs."""

import uuid

import logfire

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError
from pydantic import ValidationError

from models.helpers import TokenType
from schema.security import TokenClaims, TokenPair

from .blacklist import RedisTokenBlacklist
from .errors import (
    InvalidTokenError,
    MalformedTokenError,
    SigningMethodMismatchError,
    TokenExpiredError,
    TokenNotYetValidError,
    TokenRevokedError,
    TokenTypeMismatchError,
)

ALGORITHM = "HS256"


class TokenService(ABC):
    """Capability set for token issuance and validation."""

    @abstractmethod
    def issue_pair(self, user_id: str, email: str, role: str) -> TokenPair: ...

    @abstractmethod
    def validate(self, token: str, expected_type: TokenType) -> TokenClaims: ...

    @abstractmethod
    def rotate(self, refresh_token: str) -> TokenPair: ...

    @abstractmethod
    def revoke(self, token: str, expected_type: TokenType) -> TokenClaims: ...

    @abstractmethod
    def blacklist(self, token_id: str, ttl: timedelta) -> bool: ...

    @abstractmethod
    def is_blacklisted(self, token_id: str) -> bool: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTTokenService(TokenService):
    """JWT (HS256) implementation with distinct secrets for access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        blacklist: RedisTokenBlacklist,
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=30),
        issuer: str = "gatekeeper",
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logfire.Logfire] = None,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Access and refresh secrets must be provided")
        self.secrets = {
            TokenType.ACCESS: access_secret,
            TokenType.REFRESH: refresh_secret,
        }
        self.ttls = {
            TokenType.ACCESS: access_ttl,
            TokenType.REFRESH: refresh_ttl,
        }
        self._blacklist = blacklist
        self.issuer = issuer
        self.clock = clock
        self.logger = logger or logfire.with_settings(tags=["tokens"])

    def _create_token(self, user_id: str, email: str, role: str, token_type: TokenType) -> str:
        now = self.clock()
        token_id = str(uuid.uuid4())
        claims = {
            "sub": user_id,
            "user_id": user_id,
            "email": email,
            "role": role,
            "token_type": token_type.value,
            "jti": token_id,
            "iss": self.issuer,
            "iat": now,
            "nbf": now,
            "exp": now + self.ttls[token_type],
        }
        return jwt.encode(claims, self.secrets[token_type], algorithm=ALGORITHM)

    def issue_pair(self, user_id: str, email: str, role: str) -> TokenPair:
        """Create a new access token and refresh token for the given identity.

        Args:
            user_id (str): Subject of both tokens.
            email (str): Email embedded in the claims.
            role (str): Role embedded in the claims.

        Returns:
            TokenPair: The signed tokens and the access token lifetime in seconds.
        """
        return TokenPair(
            access_token=self._create_token(user_id, email, role, TokenType.ACCESS),
            refresh_token=self._create_token(user_id, email, role, TokenType.REFRESH),
            expires_in=int(self.ttls[TokenType.ACCESS].total_seconds()),
        )

    def validate(self, token: str, expected_type: TokenType) -> TokenClaims:
        """Parse and verify `token` with the secret that belongs to `expected_type`.

        Args:
            token (str): Encoded JWT.
            expected_type (TokenType): The kind of token the caller expects.

        Raises:
            MalformedTokenError: If the token cannot be parsed or misses claims.
            SigningMethodMismatchError: If the token is not signed with HS256.
            TokenTypeMismatchError: If the embedded type differs from `expected_type`.
            InvalidTokenError: If the signature or the issuer do not verify.
            TokenExpiredError: If the token has expired.
            TokenNotYetValidError: If the token is used before its `nbf`.
            TokenRevokedError: If the token id has been blacklisted.
            StoreUnavailableError: If the blacklist cannot be reached.

        Returns:
            TokenClaims: The verified claims.
        """
        expected_type = TokenType(expected_type)
        if not token:
            raise MalformedTokenError()

        try:
            header = jwt.get_unverified_header(token)
            unverified = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError() from e

        if header.get("alg") != ALGORITHM:
            raise SigningMethodMismatchError()

        # A token of the other type is signed with the other secret; report the
        # type mismatch rather than a bad signature.
        if unverified.get("token_type") != expected_type.value:
            raise TokenTypeMismatchError()

        try:
            payload = jwt.decode(
                token,
                self.secrets[expected_type],
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"verify_aud": False, "verify_nbf": False},
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except JWTClaimsError as e:
            raise InvalidTokenError(f"Invalid token claims: {e}") from e
        except JWTError as e:
            raise InvalidTokenError() from e

        try:
            claims = TokenClaims(**payload)
        except ValidationError as e:
            raise MalformedTokenError() from e

        if claims.nbf > self.clock().timestamp():
            raise TokenNotYetValidError()

        if self._blacklist.contains(claims.jti):
            self.logger.warning(
                "Revoked {token_type} token presented for user {user_id}",
                token_type=claims.token_type.value,
                user_id=claims.user_id,
                token_id=claims.jti,
            )
            raise TokenRevokedError()

        return claims

    def _remaining(self, claims: TokenClaims) -> timedelta:
        return claims.expires_at - self.clock()

    def rotate(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair.

        The presented refresh token is blacklisted for the rest of its lifetime, so a
        second rotation with the same token fails with `TokenRevokedError`.

        Args:
            refresh_token (str): The refresh token to consume.

        Returns:
            TokenPair: A fresh pair for the same identity.
        """
        claims = self.validate(refresh_token, TokenType.REFRESH)

        if not self._blacklist.add(claims.jti, self._remaining(claims)):
            # Lost the race against a concurrent rotation of the same token
            raise TokenRevokedError()

        self.logger.info("Rotated refresh token for user {user_id}", user_id=claims.user_id)
        return self.issue_pair(claims.user_id, claims.email, claims.role)

    def revoke(self, token: str, expected_type: TokenType) -> TokenClaims:
        """Validate `token` and blacklist it until it would have expired."""
        claims = self.validate(token, expected_type)
        self._blacklist.add(claims.jti, self._remaining(claims))
        self.logger.info(
            "Revoked {token_type} token for user {user_id}",
            token_type=claims.token_type.value,
            user_id=claims.user_id,
        )
        return claims

    def blacklist(self, token_id: str, ttl: timedelta) -> bool:
        return self._blacklist.add(token_id, ttl)

    def is_blacklisted(self, token_id: str) -> bool:
        return self._blacklist.contains(token_id)
