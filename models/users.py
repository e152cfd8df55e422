from datetime import datetime, timezone

from pydantic import Field, EmailStr, field_serializer
from typing import Annotated, Optional

from beanie import Document, Indexed, PydanticObjectId

from .helpers import Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserDocument(Document):
    """MongoDB document backing user accounts.
    """
    email: Annotated[EmailStr, Indexed(unique=True), Field(max_length=254)]
    username: Annotated[str, Indexed(unique=True), Field(max_length=50, min_length=3)]
    password_hash: Annotated[str, Field()]
    role: Annotated[Role, Field(default=Role.USER)]
    active: Annotated[bool, Field(default=True)]
    avatar_url: Annotated[Optional[str], Field(default=None, max_length=500)]
    last_login: Annotated[Optional[datetime], Field(default=None)]
    created_at: Annotated[datetime, Field(default_factory=utcnow)]
    updated_at: Annotated[datetime, Field(default_factory=utcnow)]

    @field_serializer("id")
    def convert_pydantic_object_id_to_string(self, id: PydanticObjectId):
        return str(id)

    class Settings:
        """Beanie document settings."""
        name = "users"
