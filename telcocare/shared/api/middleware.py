"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.

Every error leaving the service uses the same flat shape:
    {error, error_message, error_stage, timestamp[, error_details]}
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from telcocare.config import ErrorStage, settings
from telcocare.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def error_body(
    error: str,
    message: str,
    stage: ErrorStage,
    details: Optional[str] = None,
) -> dict:
    """Build the flat error payload shared by every error response."""
    body = {
        "error": error,
        "error_message": message,
        "error_stage": stage.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details and settings.debug:
        body["error_details"] = details
    return body


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Correlation IDs link the request log lines with the pipeline and
    persistence log lines of the same ticket.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests and responses.

    Provides audit trail and debugging information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are validation-stage errors with HTTP 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request body")
    if location:
        message = f"{location}: {message}"

    logger.warning(
        "Request validation failed",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "path": request.url.path,
            "error_message": message
        }
    )

    return JSONResponse(
        status_code=400,
        content=error_body("Validation Error", message, ErrorStage.VALIDATION, str(errors)),
    )


def allowed_methods_message(allow: Optional[str]) -> str:
    """Turn an `Allow` header into a hint such as "Use POST method"."""
    methods = sorted({m.strip().upper() for m in (allow or "").split(",") if m.strip()})
    if "GET" in methods and "HEAD" in methods:
        methods.remove("HEAD")
    if not methods:
        return "Method Not Allowed"
    return f"Use {' or '.join(methods)} method"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (404, 405, ...) in the flat error shape."""
    if exc.status_code == 405:
        headers = getattr(exc, "headers", None) or {}
        body = error_body(
            "Method Not Allowed",
            allowed_methods_message(headers.get("Allow")),
            ErrorStage.VALIDATION,
        )
    else:
        body = error_body(
            str(exc.detail) if exc.detail else "HTTP Error",
            str(exc.detail),
            ErrorStage.VALIDATION if exc.status_code < 500 else ErrorStage.PROCESSING,
        )
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    return JSONResponse(
        status_code=500,
        content=error_body(
            "Internal Server Error",
            "An unexpected error occurred in the pipeline",
            ErrorStage.PROCESSING,
            str(exc),
        ),
    )
