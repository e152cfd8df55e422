"""Error kinds raised by the user service."""

from fastapi import status

from utils.errors import APIError


class UserNotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "user_not_found"
    default_detail = "User not found"


class UserConflictError(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "user_conflict"
    default_detail = "A user with this email or username already exists"


class InvalidCredentialsError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_detail = "Incorrect email or password"


class AccountDisabledError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "account_disabled"
    default_detail = "Account is deactivated"


class RegistrationDisabledError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "registration_disabled"
    default_detail = "Registration is disabled"


class InvalidPasswordError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_password"
    default_detail = "Invalid current password"
