"""Application settings loaded from the environment."""

import os

from datetime import timedelta

from dotenv import load_dotenv

from pydantic import BaseModel, Field

from typing import Annotated, List


DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24
DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS = 30
DEFAULT_TIMESTAMP_WINDOW_SECONDS = 60
DEFAULT_NONCE_EXPIRE_SECONDS = 120
DEFAULT_DATABASE_TIMEOUT_SECONDS = 5.0


class Settings(BaseModel):
    """Runtime configuration of the service.

    Field names match the environment variables they are read from. Build it once
    with `Settings.from_env()` at process start and hand it to `create_app`.
    """

    APP_NAME: Annotated[str, Field(default="Gatekeeper API")]
    API_PREFIX: Annotated[str, Field(default="/api/v1")]
    BACKEND_CORS_ORIGINS: Annotated[List[str], Field(default=["*"])]
    # Proxies whose X-Forwarded-For is trusted for the client address
    TRUSTED_PROXIES: Annotated[List[str], Field(default=["127.0.0.1"])]

    # Request signing
    SIGNATURE_SECRET: Annotated[str, Field(default="changethis-signature-secret")]
    TIMESTAMP_WINDOW_SECONDS: Annotated[int, Field(default=DEFAULT_TIMESTAMP_WINDOW_SECONDS)]
    NONCE_EXPIRE_SECONDS: Annotated[int, Field(default=DEFAULT_NONCE_EXPIRE_SECONDS)]

    # Tokens
    ACCESS_TOKEN_SECRET: Annotated[str, Field(default="changethis-access-secret")]
    REFRESH_TOKEN_SECRET: Annotated[str, Field(default="changethis-refresh-secret")]
    ACCESS_TOKEN_EXPIRE_MINUTES: Annotated[int, Field(default=DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES)]
    REFRESH_TOKEN_EXPIRE_DAYS: Annotated[int, Field(default=DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS)]
    TOKEN_ISSUER: Annotated[str, Field(default="gatekeeper")]

    # Stores
    REDIS_URL: Annotated[str, Field(default="redis://localhost:6379/0")]
    REDIS_SOCKET_TIMEOUT: Annotated[float, Field(default=2.0, gt=0)]
    DATABASE_CONNECTION_STRING: Annotated[str, Field(default="mongodb://localhost:27017")]
    DATABASE_NAME: Annotated[str, Field(default="gatekeeper")]
    DATABASE_TIMEOUT_SECONDS: Annotated[float, Field(default=DEFAULT_DATABASE_TIMEOUT_SECONDS)]

    # Accounts
    ENABLE_REGISTRATION: Annotated[bool, Field(default=True)]
    CREATE_DEFAULT_ADMIN: Annotated[bool, Field(default=False)]
    DEFAULT_ADMIN_EMAIL: Annotated[str, Field(default="admin@example.com")]
    DEFAULT_ADMIN_USERNAME: Annotated[str, Field(default="admin")]
    DEFAULT_ADMIN_PASSWORD: Annotated[str, Field(default="admin123456")]

    # Logging
    LOGFIRE_WRITE_TOKEN: Annotated[str | None, Field(default=None)]
    LOG_TO_CONSOLE: Annotated[bool, Field(default=True)]

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        """Read settings from the process environment (and a `.env` file if present).

        Args:
            env_file (str | None, optional): Path of the dotenv file. Defaults to None,
                which lets python-dotenv look for `.env` from the working directory.

        Returns:
            Settings: The loaded settings.
        """
        load_dotenv(env_file)

        values = {}
        for name in cls.model_fields:
            raw = os.getenv(name)
            if raw is None:
                continue
            if name in ("BACKEND_CORS_ORIGINS", "TRUSTED_PROXIES"):
                values[name] = [origin.strip() for origin in raw.split(",") if origin.strip()]
            else:
                values[name] = raw

        return cls(**values)

    @property
    def access_token_ttl(self) -> timedelta:
        minutes = self.ACCESS_TOKEN_EXPIRE_MINUTES
        if minutes <= 0:
            minutes = DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES
        return timedelta(minutes=minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        days = self.REFRESH_TOKEN_EXPIRE_DAYS
        if days <= 0:
            days = DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS
        return timedelta(days=days)

    @property
    def timestamp_window(self) -> timedelta:
        seconds = self.TIMESTAMP_WINDOW_SECONDS
        if seconds <= 0:
            seconds = DEFAULT_TIMESTAMP_WINDOW_SECONDS
        return timedelta(seconds=seconds)

    @property
    def nonce_ttl(self) -> timedelta:
        seconds = self.NONCE_EXPIRE_SECONDS
        if seconds <= 0:
            seconds = DEFAULT_NONCE_EXPIRE_SECONDS
        return timedelta(seconds=seconds)

    @property
    def database_timeout(self) -> timedelta:
        seconds = self.DATABASE_TIMEOUT_SECONDS
        if seconds <= 0:
            seconds = DEFAULT_DATABASE_TIMEOUT_SECONDS
        return timedelta(seconds=seconds)

    @property
    def nonce_path(self) -> str:
        return f"{self.API_PREFIX}/auth/nonce"
