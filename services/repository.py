"""User persistence behind a small repository interface."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from beanie import PydanticObjectId
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from models.users import UserDocument
from schema.users import UserRecord
from utils.errors import StoreUnavailableError

from .errors import UserConflictError, UserNotFoundError


class UserRepository(ABC):
    """Storage operations the user service depends on."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[UserRecord]: ...

    @abstractmethod
    async def create(self, record: UserRecord) -> UserRecord:
        """Persist a new user and return it with its id. Raises UserConflictError on duplicates."""

    @abstractmethod
    async def update(self, record: UserRecord) -> UserRecord:
        """Persist changes to an existing user. Raises UserNotFoundError if it is gone."""

    @abstractmethod
    async def delete(self, user_id: str) -> None:
        """Delete a user. Raises UserNotFoundError if it does not exist."""


def _to_record(document: UserDocument) -> UserRecord:
    return UserRecord(id=str(document.id), **document.model_dump(exclude={"id", "revision_id"}))


class BeanieUserRepository(UserRepository):
    """MongoDB repository using the Beanie `UserDocument` model."""

    async def _get_document(self, user_id: str) -> Optional[UserDocument]:
        if not ObjectId.is_valid(user_id):
            return None
        try:
            return await UserDocument.get(PydanticObjectId(user_id))
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to load user: {e}") from e

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        document = await self._get_document(user_id)
        return _to_record(document) if document else None

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            document = await UserDocument.find_one(UserDocument.email == email)
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to load user: {e}") from e
        return _to_record(document) if document else None

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        try:
            document = await UserDocument.find_one(UserDocument.username == username)
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to load user: {e}") from e
        return _to_record(document) if document else None

    async def create(self, record: UserRecord) -> UserRecord:
        document = UserDocument(**record.model_dump(exclude={"id"}, exclude_none=True))
        try:
            await document.insert()
        except DuplicateKeyError as e:
            raise UserConflictError() from e
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to create user: {e}") from e
        return _to_record(document)

    async def update(self, record: UserRecord) -> UserRecord:
        document = await self._get_document(record.id)
        if document is None:
            raise UserNotFoundError()

        changes = record.model_dump(exclude={"id", "created_at"})
        changes["updated_at"] = datetime.now(timezone.utc)
        for field, value in changes.items():
            setattr(document, field, value)

        try:
            await document.save()
        except DuplicateKeyError as e:
            raise UserConflictError() from e
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to update user: {e}") from e
        return _to_record(document)

    async def delete(self, user_id: str) -> None:
        document = await self._get_document(user_id)
        if document is None:
            raise UserNotFoundError()
        try:
            await document.delete()
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to delete user: {e}") from e
