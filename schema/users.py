"""Contains the schema definition for requests and responses related to users
"""

import re

from datetime import datetime

from pydantic import BaseModel, Field, EmailStr, field_validator

from typing import Annotated, Optional

from models.helpers import Role


def check_password_strength(password: str) -> str:
    """Password must contain at least one letter and one number."""
    if not re.search(r"[A-Za-z]", password):
        raise ValueError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")
    return password


class UserRecord(BaseModel):
    """User account as seen by the service layer, independent of the storage backend."""

    id: Annotated[str, Field(default="")]
    email: EmailStr
    username: str
    password_hash: str
    role: Annotated[Role, Field(default=Role.USER)]
    active: Annotated[bool, Field(default=True)]
    avatar_url: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RegisterRequest(BaseModel):
    """Describes the structure of the registration request."""

    email: Annotated[EmailStr, Field(max_length=254)]
    username: Annotated[str, Field(max_length=50, min_length=3, pattern=r"^[A-Za-z0-9_.-]+$")]
    password: Annotated[str, Field(min_length=8, max_length=72)]

    # * Validate the password to ensure it has at least one letter and one number
    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return check_password_strength(v)


class CreateUserRequest(RegisterRequest):
    """Account creation with an explicit role, for provisioning by the service itself."""

    role: Annotated[Role, Field(default=Role.USER)]


class UpdateProfileRequest(BaseModel):
    """Fields a user may change on their own account."""

    username: Annotated[Optional[str], Field(default=None, max_length=50, min_length=3, pattern=r"^[A-Za-z0-9_.-]+$")]
    avatar_url: Annotated[Optional[str], Field(default=None, max_length=500)]


class UpdateUserRequest(UpdateProfileRequest):
    """Fields an administrator may change on any account."""

    role: Annotated[Optional[Role], Field(default=None)]
    active: Annotated[Optional[bool], Field(default=None)]


class ChangePasswordRequest(BaseModel):
    """Describes the structure of the change password request."""

    current_password: Annotated[str, Field(min_length=1)]
    new_password: Annotated[str, Field(min_length=8, max_length=72)]

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        return check_password_strength(v)


class UserResponse(BaseModel):
    """Public representation of a user account."""

    id: Annotated[str, Field(description="Unique identifier for the user")]
    email: EmailStr
    username: str
    role: Role
    active: bool
    avatar_url: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(**record.model_dump(exclude={"password_hash"}))
