"""Translation of internal error kinds into HTTP responses.

This is the only place where an `APIError` turns into a status code and a body.
"""

import logfire

from fastapi import FastAPI, Request, status
from starlette.responses import JSONResponse

from security.errors import (
    InvalidSignatureError,
    InvalidTimestampFormatError,
    MissingSecurityParameterError,
    SecurityError,
)
from utils.errors import APIError, StoreUnavailableError


def error_response(exc: APIError) -> JSONResponse:
    """Build the JSON response for `exc`.

    ## Response structure
    ```json
    {
        "detail": "Invalid signature",
        "code": "invalid_signature"
    }
    ```
    """
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=headers,
    )


def log_error(logger: logfire.Logfire, exc: APIError, request: Request) -> None:
    """Log `exc` with the treatment its kind deserves."""
    path = request.url.path
    client = request.client.host if request.client else "unknown"

    if isinstance(exc, StoreUnavailableError):
        logger.error("Store unavailable on {path}: {detail}", path=path, detail=exc.detail)
    elif isinstance(exc, InvalidSignatureError):
        logger.warning("Invalid request signature on {path} from {client}", path=path, client=client)
    elif isinstance(exc, (InvalidTimestampFormatError, MissingSecurityParameterError)):
        logger.info("Malformed security parameters on {path}: {code}", path=path, code=exc.code)
    elif isinstance(exc, SecurityError):
        logger.warning(
            "Request rejected on {path} from {client}: {code}", path=path, client=client, code=exc.code
        )
    else:
        logger.debug("Request failed on {path}: {code}", path=path, code=exc.code)


def register_exception_handlers(app: FastAPI, logger: logfire.Logfire) -> None:
    """Translate `APIError`s raised by dependencies and routes."""

    async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
        log_error(logger, exc, request)
        return error_response(exc)

    app.add_exception_handler(APIError, handle_api_error)
