"""Error kinds raised by the request security layer and the token service."""

from fastapi import status

from utils.errors import APIError


class SecurityError(APIError):
    """Base class for security policy rejections."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "security_error"
    default_detail = "Request rejected"


class MissingSecurityParameterError(SecurityError):
    code = "missing_parameter"
    default_detail = "timestamp, nonce, and signature are required"


class InvalidTimestampFormatError(SecurityError):
    code = "invalid_format"
    default_detail = "Invalid timestamp format"


class TimestampOutOfWindowError(SecurityError):
    code = "out_of_window"
    default_detail = "Timestamp is outside validity window"


class NonceInvalidError(SecurityError):
    code = "nonce_invalid_or_expired"
    default_detail = "Invalid or expired nonce"


class InvalidSignatureError(SecurityError):
    code = "invalid_signature"
    default_detail = "Invalid signature"


class UnauthenticatedError(SecurityError):
    """Missing, malformed or otherwise unusable credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_detail = "Could not validate credentials"


class MalformedTokenError(UnauthenticatedError):
    default_detail = "Malformed token"


class SigningMethodMismatchError(UnauthenticatedError):
    default_detail = "Unexpected token signing method"


class TokenTypeMismatchError(UnauthenticatedError):
    default_detail = "Token type mismatch"


class InvalidTokenError(UnauthenticatedError):
    default_detail = "Invalid token"


class TokenExpiredError(UnauthenticatedError):
    default_detail = "Token has expired"


class TokenNotYetValidError(UnauthenticatedError):
    default_detail = "Token is not yet valid"


class TokenRevokedError(UnauthenticatedError):
    """The token is cryptographically valid but its id is blacklisted."""

    code = "revoked"
    default_detail = "Token has been revoked"


class ForbiddenError(SecurityError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Insufficient permissions"
