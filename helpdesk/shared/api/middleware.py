"""
Shared API Middleware
======================

Request tracing, request logging and the mapping from application
exceptions to HTTP responses.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk.config import settings
from helpdesk.core import (
    ApplicationException,
    AuthenticationException,
    AuthorizationException,
    ConfigurationException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    The id is taken from the X-Correlation-ID header when the caller sends
    one, and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status code and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

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
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000),
                }
            )
            raise

        response_time_ms = int((time.perf_counter() - start_time) * 1000)
        response.headers["X-Response-Time"] = f"{response_time_ms}ms"
        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": response_time_ms,
                "user_id": request.headers.get(settings.auth_header),
            }
        )
        return response


def _error_body(request: Request, detail: str, **extra) -> dict:
    body = {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", None),
    }
    body.update({k: v for k, v in extra.items() if v})
    return body


async def authorization_exception_handler(request: Request, exc: AuthorizationException) -> JSONResponse:
    # The denied action is logged, never returned to the caller
    logger.warning(
        "Access denied",
        extra={"path": request.url.path, "method": request.method, "action": exc.action}
    )
    return JSONResponse(status_code=403, content={"detail": "forbidden"})


async def authentication_exception_handler(request: Request, exc: AuthenticationException) -> JSONResponse:
    return JSONResponse(status_code=401, content=_error_body(request, exc.message))


async def not_found_exception_handler(request: Request, exc: ResourceNotFoundException) -> JSONResponse:
    return JSONResponse(status_code=404, content=_error_body(request, exc.message))


async def validation_exception_handler(request: Request, exc: ValidationException) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "error": exc.message, "fields": list(exc.details)}
    )
    return JSONResponse(status_code=422, content=_error_body(request, exc.message, errors=exc.details))


async def configuration_exception_handler(request: Request, exc: ConfigurationException) -> JSONResponse:
    logger.error(
        "Configuration error",
        extra={"path": request.url.path, "error": exc.message, "details": exc.details}
    )
    return JSONResponse(status_code=500, content=_error_body(request, exc.message))


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    logger.error(
        "Application error",
        extra={"path": request.url.path, "error_type": type(exc).__name__, "error": exc.message}
    )
    return JSONResponse(status_code=500, content=_error_body(request, "Internal server error"))


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

    # Don't expose internal details in production
    is_dev = settings.environment == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthorizationException, authorization_exception_handler)
    app.add_exception_handler(AuthenticationException, authentication_exception_handler)
    app.add_exception_handler(ResourceNotFoundException, not_found_exception_handler)
    app.add_exception_handler(ValidationException, validation_exception_handler)
    app.add_exception_handler(ConfigurationException, configuration_exception_handler)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
