"""Tests for the flow chart endpoint."""

from __future__ import annotations

from fastapi import status
from fastapi.testclient import TestClient

from main import app


URL = "/api/v1/flow/state"


class TestFlowState:
    def test_bank_signed_user(self) -> None:
        client = TestClient(app)
        response = client.post(
            URL, json={"phase": "80001", "is_authorized": True, "is_married": False}
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["phase"] == "80001"
        assert body["in_later_phase"] is False
        assert body["current_step"] == "multi_child"
        assert len(body["steps"]) == 12
        steps = {step["id"]: step for step in body["steps"]}
        assert steps["bank_sign"]["is_completed"] is True
        assert steps["marriage"]["sub_label"] == "未婚"

    def test_later_band(self) -> None:
        client = TestClient(app)
        response = client.post(URL, json={"phase": "11000"})

        body = response.json()
        assert body["in_later_phase"] is True
        assert body["current_step"] == "deposit"

    def test_non_ascii_digits_fall_back_to_start(self) -> None:
        client = TestClient(app)
        response = client.post(URL, json={"phase": "²"})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["in_later_phase"] is False
        assert body["current_step"] == "auth"
        assert not any(step["is_completed"] for step in body["steps"])

    def test_unknown_field_is_rejected(self) -> None:
        client = TestClient(app)
        response = client.post(URL, json={"phase": "20000", "colour": "red"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
