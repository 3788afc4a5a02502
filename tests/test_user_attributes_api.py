"""Integration tests for the user attribute endpoint."""

from __future__ import annotations

import httpx
import pytest
from fastapi import status
from httpx import AsyncClient


URL = "/api/v1/user/attributes"


@pytest.fixture
def property_update_ok(upstream):
    upstream.route("/v1/property/update", lambda request: httpx.Response(200, json={}))
    return upstream


class TestUpdateUserAttribute:
    @pytest.mark.asyncio
    async def test_phase_without_card_jumps(
        self, async_client: AsyncClient, property_update_ok
    ) -> None:
        response = await async_client.post(
            URL, json={"user_id": "user-1", "attribute_name": "phase", "value": "30001"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "attribute_name": "phase",
            "requested_value": "30001",
            "actual_value": "80000",
            "jumped": True,
        }
        pushed = property_update_ok.json_body()["property_values"]
        assert pushed == [{"property_name": "phase", "value": "80000"}]

    @pytest.mark.asyncio
    async def test_phase_with_card_is_written_as_is(
        self, async_client: AsyncClient, property_update_ok
    ) -> None:
        response = await async_client.post(
            URL, json={"user_id": "user-1", "attribute_name": "phase", "value": "99999"}
        )

        body = response.json()
        assert body["actual_value"] == "99999"
        assert body["jumped"] is False

    @pytest.mark.asyncio
    async def test_other_attributes_pass_through(
        self, async_client: AsyncClient, property_update_ok
    ) -> None:
        response = await async_client.post(
            URL, json={"user_id": "user-1", "attribute_name": "is_married", "value": True}
        )

        assert response.json()["actual_value"] is True
        pushed = property_update_ok.json_body()["property_values"]
        assert pushed == [{"property_name": "is_married", "value": True}]

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(
        self, async_client: AsyncClient, upstream
    ) -> None:
        upstream.route("/v1/property/update", lambda request: httpx.Response(500))

        response = await async_client.post(
            URL, json={"user_id": "user-1", "attribute_name": "phase", "value": "20000"}
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error"]["type"] == "domain_error"

    @pytest.mark.asyncio
    async def test_blank_attribute_name_is_422(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            URL, json={"user_id": "user-1", "attribute_name": "", "value": 1}
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
