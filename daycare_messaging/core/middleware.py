"""
FastAPI Middleware

Provides request/response middleware for:
- Request ID injection (X-Request-ID)
- Request logging (with PII masking)
- Global error handling in the ``{"error", "code", "requestId"}`` shape
"""
import re
import time
from typing import Callable
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from daycare_messaging.core.logging import (
    get_logger,
    set_request_id,
    get_request_id
)
from daycare_messaging.core.exceptions import AppException, ErrorCode

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Long digit runs in paths or query strings are treated as phone numbers
_PHONE_IN_PATH_RE = re.compile(r"(\+?\d{4})\d{4,}(\d{2})")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to bind a request ID to the current context"""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _mask_path_pii(path: str) -> str:
    return _PHONE_IN_PATH_RE.sub(r"\1****\2", path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log requests and responses (with PII masking)"""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        start_time = time.time()
        safe_path = _mask_path_pii(request.url.path)

        logger.info(
            f"Request started: {request.method} {safe_path}",
            extra_data={
                "method": request.method,
                "path": safe_path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            log_level = "info" if response.status_code < 400 else "warning"
            getattr(logger, log_level)(
                f"Request completed: {request.method} {safe_path}",
                extra_data={
                    "method": request.method,
                    "path": safe_path,
                    "status_code": response.status_code,
                    "duration_seconds": round(duration, 4),
                }
            )

            return response
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {safe_path}",
                extra_data={
                    "method": request.method,
                    "path": safe_path,
                    "duration_seconds": round(duration, 4),
                    "error": str(e),
                },
                exc_info=True
            )
            raise


def _error_response(status_code: int, content: dict, headers: dict | None = None) -> JSONResponse:
    request_id = get_request_id()
    content = {**content, "requestId": request_id}
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={REQUEST_ID_HEADER: request_id, **(headers or {})},
    )


async def app_exception_handler(
    request: Request,
    exc: AppException
) -> JSONResponse:
    """Handle application exceptions"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.error_code.value}",
        extra_data={
            "error_code": exc.error_code.value,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path,
        }
    )
    return _error_response(exc.status_code, exc.to_dict())


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Request body/header validation failures use the same error shape"""
    logger.warning(
        "Request validation failed",
        extra_data={"path": request.url.path, "errors": exc.errors()}
    )
    return _error_response(
        400,
        {
            "error": "Invalid request",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "details": {"errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                for err in exc.errors()
            ]},
        },
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra_data={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": request.url.path,
        },
        exc_info=True
    )
    return _error_response(
        500,
        {"error": "An unexpected error occurred", "code": ErrorCode.INTERNAL_ERROR.value},
    )


def setup_middleware(app: FastAPI) -> None:
    """Setup all middleware for the application"""
    # Starlette wraps in reverse order of registration, so RequestId is the
    # outermost layer and every response carries the header.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup exception handlers"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
