"""
Request logging middleware; assigns the request id every log record carries.
"""

import contextvars
import logging
import time
from typing import Dict, Optional
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Context variable for request ID
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar('request_id', default='no-request-id')

# Mutating endpoints worth logging at INFO even when request logging is quiet
_ALLOCATION_PREFIXES = ("/api/v1/manager/reservations", "/api/v1/user/reservations")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each request and response with timing and a request id."""

    def __init__(
        self,
        app,
        log_requests: bool = True,
        log_responses: bool = True,
        sensitive_headers: Optional[list] = None
    ):
        super().__init__(app)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.sensitive_headers = sensitive_headers or ["authorization", "cookie"]

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        start_time = time.time()

        if self.log_requests:
            self._log_request(request, request_id)

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"

            if self.log_responses:
                self._log_response(request, response, request_id, process_time)

            return response

        except Exception as exc:
            process_time = time.time() - start_time
            logger.error(
                f"Request exception: {type(exc).__name__}",
                extra={
                    "request_id": request_id,
                    "exception_type": type(exc).__name__,
                    "process_time": process_time,
                    "method": request.method,
                    "path": request.url.path,
                },
                exc_info=True
            )
            raise
        finally:
            request_id_var.reset(token)

    def _log_request(self, request: Request, request_id: str):
        request_info = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_ip": self._get_client_ip(request),
            "headers": self._sanitize_headers(dict(request.headers)),
        }

        if request.url.path.startswith(_ALLOCATION_PREFIXES):
            logger.info(f"Reservation request: {request.method} {request.url.path}", extra=request_info)
        elif request.url.path in ("/health", "/", "/docs", "/redoc"):
            logger.debug(f"Health check: {request.method} {request.url.path}", extra=request_info)
        else:
            logger.info(f"API request: {request.method} {request.url.path}", extra=request_info)

    def _log_response(self, request: Request, response: Response, request_id: str, process_time: float):
        response_info = {
            "request_id": request_id,
            "status_code": response.status_code,
            "process_time": process_time,
        }

        if response.status_code < 400:
            logger.info(f"Response: {response.status_code} ({process_time:.4f}s)", extra=response_info)
        elif response.status_code < 500:
            logger.warning(f"Client error: {response.status_code} ({process_time:.4f}s)", extra=response_info)
        else:
            logger.error(f"Server error: {response.status_code} ({process_time:.4f}s)", extra=response_info)

        if process_time > 2.0:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {process_time:.4f}s",
                extra={"request_id": request_id, "slow_request": True, "process_time": process_time}
            )

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _sanitize_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        sanitized = {}
        for key, value in headers.items():
            if key.lower() in self.sensitive_headers:
                sanitized[key] = "***MASKED***"
            else:
                sanitized[key] = value
        return sanitized
