"""Service for account lifecycle and credential verification."""

import logfire

from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from models.helpers import Role, TokenType
from schema.security import Identity, TokenPair
from schema.users import (
    CreateUserRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UpdateUserRequest,
    UserRecord,
)
from security.errors import UnauthenticatedError
from security.helpers import get_password_hash, verify_password
from security.tokens import TokenService
from utils.errors import APIError

from .errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    InvalidPasswordError,
    RegistrationDisabledError,
    UserConflictError,
    UserNotFoundError,
)
from .repository import UserRepository


class UserService:
    """Business logic for user accounts. Token handling is delegated to the token service."""

    def __init__(
        self,
        repository: UserRepository,
        token_service: TokenService,
        enable_registration: bool = True,
        logger: Optional[logfire.Logfire] = None,
    ):
        self.repository = repository
        self.token_service = token_service
        self.enable_registration = enable_registration
        self.logger = logger or logfire.with_settings(tags=["users"])

    async def _ensure_unique(self, email: Optional[str], username: Optional[str], user_id: str = "") -> None:
        if email:
            existing = await self.repository.find_by_email(email)
            if existing and existing.id != user_id:
                raise UserConflictError("A user with this email already exists")
        if username:
            existing = await self.repository.find_by_username(username)
            if existing and existing.id != user_id:
                raise UserConflictError("A user with this username already exists")

    async def create_user(self, payload: CreateUserRequest) -> UserRecord:
        """Create a user account without checking the registration switch.

        Args:
            payload (CreateUserRequest): Account details.

        Raises:
            UserConflictError: If the email or the username is already taken.

        Returns:
            UserRecord: The stored account.
        """
        await self._ensure_unique(payload.email, payload.username)

        now = datetime.now(timezone.utc)
        password_hash = await run_in_threadpool(get_password_hash, payload.password)
        record = UserRecord(
            email=payload.email,
            username=payload.username,
            password_hash=password_hash,
            role=payload.role,
            created_at=now,
            updated_at=now,
        )
        user = await self.repository.create(record)
        self.logger.info("Created user {user_id} with role {role}", user_id=user.id, role=user.role.value)
        return user

    async def register(self, payload: RegisterRequest) -> UserRecord:
        """Self service registration. New accounts always get the user role.

        Raises:
            RegistrationDisabledError: If registration is switched off.
            UserConflictError: If the email or the username is already taken.
        """
        if not self.enable_registration:
            raise RegistrationDisabledError()
        return await self.create_user(CreateUserRequest(**payload.model_dump(), role=Role.USER))

    async def get_user(self, user_id: str) -> UserRecord:
        user = await self.repository.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def login(self, email: str, password: str) -> Tuple[TokenPair, UserRecord]:
        """Verify credentials and issue a token pair.

        Args:
            email (str): Account email.
            password (str): Plain text password.

        Raises:
            InvalidCredentialsError: If the account does not exist or the password is wrong.
            AccountDisabledError: If the account has been deactivated.

        Returns:
            Tuple[TokenPair, UserRecord]: The tokens and the authenticated user.
        """
        user = await self.repository.find_by_email(email)
        if user is None:
            raise InvalidCredentialsError()

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            self.logger.warning("Failed login attempt for user {user_id}", user_id=user.id)
            raise InvalidCredentialsError()

        if not user.active:
            raise AccountDisabledError()

        tokens = await run_in_threadpool(
            self.token_service.issue_pair, user.id, user.email, user.role.value
        )

        try:
            user.last_login = datetime.now(timezone.utc)
            user = await self.repository.update(user)
        except APIError as e:
            # Not worth failing the login over
            self.logger.warning(
                "Failed to update last login time for user {user_id}: {detail}",
                user_id=user.id,
                detail=e.detail,
            )

        self.logger.info("User {user_id} logged in", user_id=user.id)
        return tokens, user

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token into a new token pair.

        Raises:
            UnauthenticatedError: If the refresh token is invalid, or the account is gone or disabled.
            TokenRevokedError: If the refresh token has already been used or revoked.
        """
        claims = await run_in_threadpool(
            self.token_service.validate, refresh_token, TokenType.REFRESH
        )
        user = await self.repository.find_by_id(claims.user_id)
        if user is None or not user.active:
            raise UnauthenticatedError("User not found or inactive")

        return await run_in_threadpool(self.token_service.rotate, refresh_token)

    async def logout(self, identity: Identity, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Revoke the presented access token and, optionally, a refresh token of the same user.

        Raises:
            UnauthenticatedError: If the refresh token is invalid or belongs to another user.
        """
        if refresh_token:
            claims = await run_in_threadpool(
                self.token_service.validate, refresh_token, TokenType.REFRESH
            )
            if claims.user_id != identity.user_id:
                raise UnauthenticatedError("Refresh token does not belong to this user")
            await run_in_threadpool(self.token_service.revoke, refresh_token, TokenType.REFRESH)

        await run_in_threadpool(self.token_service.revoke, access_token, TokenType.ACCESS)
        self.logger.info("User {user_id} logged out", user_id=identity.user_id)

    async def update_profile(self, user_id: str, payload: UpdateProfileRequest) -> UserRecord:
        user = await self.get_user(user_id)

        if payload.username is not None and payload.username != user.username:
            await self._ensure_unique(None, payload.username, user_id=user.id)
            user.username = payload.username
        if payload.avatar_url is not None:
            user.avatar_url = payload.avatar_url

        return await self.repository.update(user)

    async def update_user(self, user_id: str, payload: UpdateUserRequest) -> UserRecord:
        """Administrative update: profile fields plus role and active flag."""
        user = await self.get_user(user_id)

        if payload.username is not None and payload.username != user.username:
            await self._ensure_unique(None, payload.username, user_id=user.id)
            user.username = payload.username
        if payload.avatar_url is not None:
            user.avatar_url = payload.avatar_url
        if payload.role is not None:
            user.role = payload.role
        if payload.active is not None:
            user.active = payload.active

        user = await self.repository.update(user)
        self.logger.info("Updated user {user_id}", user_id=user.id)
        return user

    async def delete_user(self, user_id: str) -> None:
        await self.repository.delete(user_id)
        self.logger.info("Deleted user {user_id}", user_id=user_id)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace the password after checking the current one.

        Raises:
            UserNotFoundError: If the user does not exist.
            InvalidPasswordError: If `current_password` is wrong.
        """
        user = await self.get_user(user_id)

        if not await run_in_threadpool(verify_password, current_password, user.password_hash):
            raise InvalidPasswordError()

        user.password_hash = await run_in_threadpool(get_password_hash, new_password)
        await self.repository.update(user)
        self.logger.info("Password changed for user {user_id}", user_id=user.id)

    async def ensure_default_admin(self, email: str, username: str, password: str) -> Optional[UserRecord]:
        """Create the default administrator unless an account with `email` exists.

        Returns:
            Optional[UserRecord]: The new admin, or None if it already existed.
        """
        if await self.repository.find_by_email(email):
            self.logger.info("Admin user already exists, skipping creation")
            return None

        admin = await self.create_user(
            CreateUserRequest(email=email, username=username, password=password, role=Role.ADMIN)
        )
        self.logger.info("Default admin user created")
        return admin


def get_user_service(request: Request) -> UserService:
    """Dependency returning the application's UserService instance.

    Returns:
        UserService: The service created by `create_app`.
    """
    return request.app.state.user_service
