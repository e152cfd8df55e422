"""
FastAPI middleware enforcing replay protection on API requests.

Every request under the protected prefix must carry a millisecond timestamp, a
single use nonce obtained from the nonce endpoint and an HMAC-SHA256 signature of
its parameters. The nonce endpoint itself only needs a valid timestamp.
"""

import json

import logfire

from datetime import timedelta
from typing import Callable, Dict, Optional
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from security.errors import InvalidSignatureError, MissingSecurityParameterError
from security.service import SecurityService
from security.signature import SIGNATURE_FIELD
from utils.errors import APIError

from .errors import error_response, log_error

TIMESTAMP_FIELD = "timestamp"
NONCE_FIELD = "nonce"

TIMESTAMP_HEADER = "X-Timestamp"
NONCE_HEADER = "X-Nonce"
SIGNATURE_HEADER = "X-Sign"

BODYLESS_METHODS = {"GET", "HEAD"}


class RequestSecurityMiddleware(BaseHTTPMiddleware):
    """
    Validates timestamp, nonce and signature of incoming requests.

    Checks run cheapest first and stop at the first failure: the timestamp is
    checked before the nonce is consumed, and the nonce is consumed before the
    signature is verified, so a request with a stale or malformed timestamp never
    burns a valid nonce.
    """

    def __init__(
        self,
        app: FastAPI,
        security_service: SecurityService,
        timestamp_window: Optional[timedelta] = None,
        protected_prefix: str = "/api/v1",
        nonce_path: str = "/api/v1/auth/nonce",
        logger: Optional[logfire.Logfire] = None,
    ):
        """
        Initialize the request security middleware.

        Args:
            app: FastAPI application instance
            security_service: Service performing the individual checks
            timestamp_window: Allowed clock distance (default: the service's configured window)
            protected_prefix: Only paths under this prefix are checked
            nonce_path: Path of the nonce endpoint, which only requires a timestamp
            logger: Logging handle
        """
        super().__init__(app)

        self.security_service = security_service
        self.timestamp_window = timestamp_window
        self.protected_prefix = protected_prefix.rstrip("/")
        self.nonce_path = nonce_path
        self.logger = logger or logfire.with_settings(tags=["request-security"])

    def _is_protected(self, path: str) -> bool:
        return path == self.protected_prefix or path.startswith(f"{self.protected_prefix}/")

    async def collect_params(self, request: Request) -> Dict[str, str]:
        """
        Collect the signable parameters of a request.

        Sources are merged in a fixed order and a later source overwrites an earlier
        one: query string, form body, top level string fields of a JSON body, and
        finally the `X-Timestamp`/`X-Nonce` headers.

        Args:
            request: Incoming request

        Returns:
            Mapping of parameter name to value (the signature itself excluded)

        Raises:
            InvalidSignatureError: If a form body is not valid UTF-8, since it cannot be signed
                byte for byte
        """
        params: Dict[str, str] = {}

        query: Dict[str, str] = {}
        for key, value in request.query_params.multi_items():
            query.setdefault(key, value)
        params.update(query)

        if request.method not in BODYLESS_METHODS:
            content_type = request.headers.get("content-type", "").lower()
            body = await request.body()

            if body and content_type.startswith("application/x-www-form-urlencoded"):
                try:
                    pairs = parse_qsl(body.decode("utf-8"), keep_blank_values=True, errors="strict")
                except UnicodeDecodeError as e:
                    raise InvalidSignatureError("Form body is not valid UTF-8") from e
                form: Dict[str, str] = {}
                for key, value in pairs:
                    form.setdefault(key, value)
                params.update(form)

            elif body and content_type.startswith("application/json"):
                try:
                    payload = json.loads(body)
                except ValueError:
                    payload = None
                if isinstance(payload, dict):
                    params.update({k: v for k, v in payload.items() if isinstance(v, str)})

        header_timestamp = request.headers.get(TIMESTAMP_HEADER)
        if header_timestamp:
            params[TIMESTAMP_FIELD] = header_timestamp
        header_nonce = request.headers.get(NONCE_HEADER)
        if header_nonce:
            params[NONCE_FIELD] = header_nonce

        return params

    async def verify(self, request: Request) -> None:
        """
        Run the replay protection checks for one request.

        Raises:
            APIError: The first check that failed
        """
        params = await self.collect_params(request)
        signature = request.headers.get(SIGNATURE_HEADER) or params.pop(SIGNATURE_FIELD, "")
        params.pop(SIGNATURE_FIELD, None)

        timestamp = params.get(TIMESTAMP_FIELD, "")
        nonce = params.get(NONCE_FIELD, "")

        if request.url.path == self.nonce_path:
            if not timestamp:
                raise MissingSecurityParameterError("timestamp is required")
            await run_in_threadpool(
                self.security_service.validate_timestamp, timestamp, self.timestamp_window
            )
            return

        if not (timestamp and nonce and signature):
            raise MissingSecurityParameterError()

        await run_in_threadpool(
            self.security_service.validate_timestamp, timestamp, self.timestamp_window
        )
        await run_in_threadpool(self.security_service.validate_nonce, nonce)
        await run_in_threadpool(self.security_service.validate_signature, params, signature)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Reject the request on the first failed check, otherwise pass it on.

        Args:
            request: FastAPI Request object
            call_next: Next middleware or route handler

        Returns:
            Response object
        """
        if request.method == "OPTIONS" or not self._is_protected(request.url.path):
            return await call_next(request)

        try:
            await self.verify(request)
        except APIError as exc:
            log_error(self.logger, exc, request)
            return error_response(exc)

        self.logger.debug("Request admitted on {path}", path=request.url.path)
        return await call_next(request)
