"""Response envelopes shared by the JSON endpoints.

Streaming endpoints do not use these; they emit ``ChatSseEvent`` frames.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for JSON responses: ``data`` on success, ``error`` otherwise."""

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Error envelope; ``error`` always carries ``correlation_id`` and ``type``."""

    success: bool = False
    message: str = "An error occurred"
