"""
Access log for every HTTP request.

One line per request with method, path, client address, status, latency and
request id. Server errors are logged as errors, client errors as warnings and
everything else as info.
"""

import time
import uuid

import logfire

from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request once its response is known.

    The request id is taken from the `X-Request-ID` header or generated, and is
    echoed back on the response.
    """

    def __init__(
        self,
        app: FastAPI,
        logger: Optional[logfire.Logfire] = None,
        excluded_paths: Optional[set] = None,
    ):
        super().__init__(app)
        self.logger = logger or logfire.with_settings(tags=["access"])
        self.excluded_paths = excluded_paths or set()

    def _log(self, status_code: int, **fields) -> None:
        message = "{method} {path} {status_code} {latency_ms}ms"
        if status_code >= 500:
            self.logger.error(message, status_code=status_code, **fields)
        elif status_code >= 400:
            self.logger.warning(message, status_code=status_code, **fields)
        else:
            self.logger.info(message, status_code=status_code, **fields)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Time the request, log it and tag the response with its request id.

        Args:
            request: FastAPI Request object
            call_next: Next middleware or route handler

        Returns:
            Response object
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
            "request_id": request_id,
            "user_agent": request.headers.get("user-agent", "")[:200],
        }

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = round((time.perf_counter() - start) * 1000, 2)
            self._log(500, latency_ms=latency_ms, **fields)
            raise

        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        self._log(response.status_code, latency_ms=latency_ms, **fields)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
