""" User router for handling all user-related endpoints.
"""

from fastapi import APIRouter, Depends

from schema.security import Identity, MessageResponse
from schema.users import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UpdateUserRequest,
    UserResponse,
)

from models.helpers import Role

from security.helpers import get_current_identity, require_role
from services.users import UserService, get_user_service

from typing import Annotated

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)

admin_router = APIRouter(
    prefix="/admin/users",
    tags=["Admin"],
)


@router.get("/me", response_model=UserResponse)
async def get_current_user(
    identity: Annotated[Identity, Depends(get_current_identity)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Get details of the authenticated user.

    ## Possible Errors
    - 401 Unauthorized: If the access token is missing, invalid or revoked.
    - 404 Not Found: If the user no longer exists.
    """
    user = await user_service.get_user(identity.user_id)
    return UserResponse.from_record(user)


@router.put("/me", response_model=UserResponse)
async def update_current_user(
    payload: UpdateProfileRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Update the username or avatar of the authenticated user.

    ## Possible Errors
    - 409 Conflict: If the username is taken.
    """
    user = await user_service.update_profile(identity.user_id, payload)
    return UserResponse.from_record(user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Change the password of the authenticated user.

    ## Possible Errors
    - 400 Bad Request: If the current password is wrong.
    """
    await user_service.change_password(
        identity.user_id, payload.current_password, payload.new_password
    )
    return MessageResponse(message="Password updated successfully")


@admin_router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    admin: Annotated[Identity, Depends(require_role(Role.ADMIN.value))],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Get any user by ID (admin only)."""
    user = await user_service.get_user(user_id)
    return UserResponse.from_record(user)


@admin_router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: UpdateUserRequest,
    admin: Annotated[Identity, Depends(require_role(Role.ADMIN.value))],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Update any user, including role and active flag (admin only)."""
    user = await user_service.update_user(user_id, payload)
    return UserResponse.from_record(user)


@admin_router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    admin: Annotated[Identity, Depends(require_role(Role.ADMIN.value))],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """Delete a user (admin only)."""
    await user_service.delete_user(user_id)
    return MessageResponse(message="User deleted successfully")
