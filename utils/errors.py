"""Base error types shared by every layer of the API.

Services raise these instead of returning booleans so that the middleware layer
can pick the status code and the logging treatment for each kind of failure.
"""

from fastapi import status


class APIError(Exception):
    """Base class for all errors that are translated into an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_detail: str = "An unexpected error occurred"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class StoreUnavailableError(APIError):
    """Raised when the cache or the user store cannot be reached in time.

    This is a transient infrastructure fault and must never be reported as a
    security rejection.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    default_detail = "Service temporarily unavailable"
