"""Focused unit tests for global exception handling behaviors.

These tests exercise the public contract via a small FastAPI app using the
installed exception handler and ExceptionNormalizationMiddleware.
"""

from __future__ import annotations

import json
from collections.abc import Generator
from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.error_handler import (
    ExceptionNormalizationMiddleware,
    _build_error_response,
    global_exception_handler,
)
from core.exceptions import (
    ConversationMappingNotFoundError,
    DomainError,
    UpstreamServiceError,
    UserNotFoundError,
)
from core.middleware import CorrelationIdMiddleware


class Card(BaseModel):
    card_type: str = Field(min_length=3)
    type: int = Field(ge=1)


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DomainError, global_exception_handler)

    @app.post("/cards")
    async def submit_card(card: Card):  # pragma: no cover - executed via client
        return {"ok": True, "card": card.model_dump()}

    @app.get("/user-missing")
    async def user_missing():
        raise UserNotFoundError("User u-1 is not registered")

    @app.get("/mapping-missing")
    async def mapping_missing():
        raise ConversationMappingNotFoundError("conv-1")

    @app.get("/upstream-down")
    async def upstream_down():
        raise UpstreamServiceError("HTTP 503: maintenance", status_code=503)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("Exploded with secret=should_not_leak")

    @app.get("/bad-request")
    async def bad_request():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="content is required",
        )

    return app


@pytest.fixture(params=["production", "development"])
def environment(request: pytest.FixtureRequest) -> Generator[str, None, None]:
    with patch("core.error_handler.get_settings") as mocked:
        mocked.return_value.ENVIRONMENT = request.param
        yield request.param


@pytest.fixture
def app_client(environment: str) -> TestClient:
    return TestClient(_build_app())


def test_validation_error(app_client: TestClient, environment: str):
    resp = app_client.post("/cards", json={"card_type": "ab", "type": 0})
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"]["type"] == "validation_error"
    # production should not include validation_errors
    assert ("validation_errors" in data["error"]) is (environment != "production")


@pytest.mark.parametrize(
    ("path", "expected_status"),
    [
        ("/user-missing", 404),
        ("/mapping-missing", 404),
        ("/upstream-down", 502),
    ],
)
def test_domain_errors_map_to_status(
    app_client: TestClient, environment: str, path: str, expected_status: int
):
    resp = app_client.get(path)
    assert resp.status_code == expected_status
    data = resp.json()
    assert data["success"] is False
    assert data["error"]["type"] == "domain_error"
    assert data["error"]["correlation_id"]
    assert ("details" in data["error"]) is (environment != "production")


def test_mapping_missing_message(app_client: TestClient):
    resp = app_client.get("/mapping-missing")
    assert resp.json()["message"] == "No message is registered for this conversation"


def test_generic_exception(app_client: TestClient, environment: str):
    resp = app_client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    if environment == "production":
        assert "traceback" not in body["error"]
        assert "secret=should_not_leak" not in str(body)
    else:
        assert "traceback" in body["error"]
        assert body["error"]["exception_type"] == "RuntimeError"


def test_http_exception(app_client: TestClient, environment: str):
    resp = app_client.get("/bad-request")
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["type"] == "http_error"
    assert body["message"] == "An HTTP error occurred"
    if environment == "production":
        assert "details" not in body["error"]
    else:
        assert body["error"]["details"]["detail"] == "content is required"


def test_correlation_id_round_trip(app_client: TestClient):
    resp = app_client.get("/user-missing", headers={"X-Correlation-ID": "cid-7"})
    assert resp.headers["X-Correlation-ID"] == "cid-7"
    assert resp.json()["error"]["correlation_id"] == "cid-7"


def test_build_error_response_production_hides_optional_fields():
    resp = _build_error_response(
        correlation_id="cid",
        error_type="internal_server_error",
        message="An internal error occurred",
        environment="production",
        details={"debug": True},
        traceback_str="trace",
        exception_type="ValueError",
        validation_errors={"x": 1},
        status_code=500,
    )
    body = json.loads(resp.body)

    assert resp.status_code == 500
    assert body["error"] == {"correlation_id": "cid", "type": "internal_server_error"}


def test_build_error_response_development_includes_optional_fields():
    resp = _build_error_response(
        correlation_id="cid",
        error_type="domain_error",
        message="The assistant service is temporarily unavailable",
        environment="development",
        details={"detail": "HTTP 503"},
        validation_errors={"x": 1},
        status_code=502,
    )
    body = json.loads(resp.body)

    assert resp.status_code == 502
    assert body["error"]["details"] == {"detail": "HTTP 503"}
    assert body["error"]["validation_errors"] == {"x": 1}
    assert "traceback" not in body["error"]
