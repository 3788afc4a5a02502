"""Error responses and logging setup for the housing-fund assistant API.

Every failure that reaches FastAPI leaves as the same ``ErrorResponse``
envelope carrying the request's correlation id. Production responses carry
only ``correlation_id`` and ``type``; development and test responses add the
diagnostic fields allowed by ``core.security_config``.

Streaming endpoints cannot use this path once headers are sent. They report
failures in-band with fixed fallback text instead.
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import (
    ConversationMappingNotFoundError,
    DomainError,
    UpstreamServiceError,
    UserNotFoundError,
)
from core.security_config import get_allowed_error_fields, is_sensitive_key
from schemas.api import ErrorResponse


_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

REDACTED = "[REDACTED]"

# Domain error -> (HTTP status, message shown to the caller)
DOMAIN_ERRORS: dict[type[DomainError], tuple[int, str]] = {
    UserNotFoundError: (
        status.HTTP_404_NOT_FOUND,
        "The requested resource was not found",
    ),
    ConversationMappingNotFoundError: (
        status.HTTP_404_NOT_FOUND,
        "No message is registered for this conversation",
    ),
    UpstreamServiceError: (
        status.HTTP_502_BAD_GATEWAY,
        "The assistant service is temporarily unavailable",
    ),
}
_DEFAULT_DOMAIN_ERROR = (status.HTTP_400_BAD_REQUEST, "Domain error")


def get_correlation_id() -> str:
    """Return the current correlation id, creating one outside a request."""
    correlation_id = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Logger wrapper attaching the correlation id and redacted key/values.

    Keyword arguments land on the record as ``structured_data``; keys that
    look like credentials or citizen PII (phone, id card, bank card) are
    replaced with ``[REDACTED]`` at any nesting depth.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(data, dict):
            return {}
        return {
            key: REDACTED if is_sensitive_key(key) else self._sanitize_value(value)
            for key, value in data.items()
        }

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list | tuple):
            return [self._sanitize_value(item) for item in value]
        return value

    def _log(
        self, level: int, message: str, fields: dict[str, Any], exc_info: bool = False
    ) -> None:
        correlation_id = get_correlation_id()
        structured_data = {
            "correlation_id": correlation_id,
            **self._sanitize_data(fields),
        }
        if get_settings().ENVIRONMENT != "production":
            # The plain-text formatter drops extras; keep the id in the message
            message = f"[{correlation_id}] {message}"
        self.logger.log(
            level,
            message,
            extra={"structured_data": structured_data},
            exc_info=exc_info,
        )

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, fields, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Turn exceptions escaping the app into the standard error envelope."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Assemble the envelope, dropping fields the environment may not expose."""
    allowed = get_allowed_error_fields(environment)
    optional: dict[str, Any] = {
        "details": details,
        "traceback": traceback_str,
        "exception_type": exception_type,
        "validation_errors": validation_errors,
    }
    error_body: dict[str, Any] = {"correlation_id": correlation_id, "type": error_type}
    error_body.update(
        {
            name: value
            for name, value in optional.items()
            if name in allowed and value not in (None, {}, "")
        }
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error_body).model_dump(),
    )


def _http_error(
    exc: StarletteHTTPException, correlation_id: str, environment: str
) -> JSONResponse:
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="http_error",
        message="An HTTP error occurred",
        environment=environment,
        details={"detail": exc.detail},
        exception_type=exc.__class__.__name__,
        status_code=exc.status_code,
    )


def _validation_error(
    exc: ValidationError | RequestValidationError,
    correlation_id: str,
    environment: str,
) -> JSONResponse:
    # ctx may hold the raised exception object
    errors = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
    structured_logger.warning("Request validation failed", error_count=len(errors))
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="validation_error",
        message="Invalid request data provided",
        environment=environment,
        validation_errors=errors,
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
    )


def _domain_error(
    exc: DomainError, correlation_id: str, environment: str
) -> JSONResponse:
    status_code, message = DOMAIN_ERRORS.get(type(exc), _DEFAULT_DOMAIN_ERROR)
    fields: dict[str, Any] = {"error_type": exc.__class__.__name__}
    if isinstance(exc, UpstreamServiceError) and exc.status_code is not None:
        fields["upstream_status"] = exc.status_code
    structured_logger.warning(f"Domain error: {exc}", **fields)
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="domain_error",
        message=message,
        environment=environment,
        details={"detail": str(exc)},
        status_code=status_code,
    )


def _unhandled_error(
    exc: Exception, correlation_id: str, environment: str
) -> JSONResponse:
    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__
    )
    diagnostics = environment != "production"
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="internal_server_error",
        message="An internal error occurred",
        environment=environment,
        traceback_str=(
            "".join(traceback.format_exception(exc)).strip() if diagnostics else None
        ),
        exception_type=exc.__class__.__name__ if diagnostics else None,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Single exception handler registered for every error kind.

    Raw exception text only reaches the response outside production.
    """
    environment = get_settings().ENVIRONMENT
    correlation_id = get_correlation_id()

    if isinstance(exc, StarletteHTTPException):
        return _http_error(exc, correlation_id, environment)
    if isinstance(exc, ValidationError | RequestValidationError):
        return _validation_error(exc, correlation_id, environment)
    if isinstance(exc, DomainError):
        return _domain_error(exc, correlation_id, environment)
    return _unhandled_error(exc, correlation_id, environment)


def setup_logging() -> None:
    """Install one stdout handler on the root logger (no-op when one exists).

    Production logs are JSON lines; other environments use plain text.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    environment = get_settings().ENVIRONMENT
    log_level = logging.DEBUG if environment == "development" else logging.INFO

    formatter: logging.Formatter
    if environment == "production":
        formatter = JsonFormatter(
            "{asctime}{levelname}{name}{message}",
            style="{",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    if environment == "production":
        for noisy in ("uvicorn.access", "httpx", "apscheduler"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
