"""Client for the GPTBots agent and workflow APIs."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx

from core.exceptions import UpstreamServiceError
from schemas.chat_streaming import ChatMessage
from schemas.workflow import WorkflowRequest, WorkflowResult


logger = logging.getLogger(__name__)

# Card submitted by the user -> workflow ``type`` for the rental extraction flow
CARD_TYPE_TO_WORKFLOW_TYPE: dict[str, int] = {
    "user_unauth": 1,
    "auth": 1,
    "prefill_info": 100,
    "processing_auth": 100,
    "account_info": 200,
    "mate_sms": 1071,
    "mate_sign": 1081,
    "spouse_sign": 1071,
    "spouse_auth": 1081,
    "sms_sign": 1121,
    "bank_sign": 1131,
    "extract_submit": 1132,
}


def resolve_workflow_type(request: WorkflowRequest) -> int | None:
    if request.type is not None:
        return request.type
    if request.card_type is None:
        return None
    return CARD_TYPE_TO_WORKFLOW_TYPE.get(request.card_type)


def _decode_json_object(raw: Any, field_name: str) -> dict[str, Any]:
    """Decode an output field that carries a JSON object as a string."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning(f"Workflow output.{field_name} is not valid JSON: {e}")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def interpret_workflow_response(payload: dict[str, Any]) -> WorkflowResult:
    """Turn a raw workflow response into a ``WorkflowResult``.

    The run succeeded when its status is SUCCEED and the business payload
    reports ``code == 0`` or ``is_eligible``, or when any payload came back
    at all (the query types only return data).
    """
    status = payload.get("status")
    if status != "SUCCEED":
        return WorkflowResult(
            success=False,
            status=status,
            user_message=f"Workflow 执行失败: {status}",
        )

    output = payload.get("output")
    if not isinstance(output, dict):
        return WorkflowResult(success=True, status=status)

    data = _decode_json_object(output.get("data"), "data")
    display_info = _decode_json_object(output.get("display_info"), "display_info")
    success = (
        data.get("code") == 0
        or data.get("is_eligible") is True
        or bool(data)
        or bool(display_info)
    )
    return WorkflowResult(
        success=success,
        status=status,
        user_message=output.get("user_message"),
        is_attr_changed=output.get("is_attr_changed"),
        data=data or None,
        display_info=display_info or None,
    )


class GPTBotsClient:
    """Thin async client over the GPTBots HTTP API.

    No retries happen here; a failed call surfaces to the caller.
    """

    def __init__(
        self,
        base_url: str,
        agent_key: str,
        workflow_key: str,
        *,
        verify_ssl: bool = True,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.agent_key = agent_key
        self.workflow_key = workflow_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            verify=verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _headers(key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {key}", "Content-Type": "application/json"}

    async def create_conversation(self, user_id: str) -> str:
        """Open a new bot conversation for ``user_id`` and return its id."""
        try:
            response = await self._client.post(
                "/v1/conversation",
                json={"user_id": user_id},
                headers=self._headers(self.agent_key),
            )
        except httpx.HTTPError as e:
            logger.error(f"Create conversation failed: {type(e).__name__}")
            raise UpstreamServiceError("Could not reach GPTBots") from e

        if response.is_error:
            logger.error(f"Create conversation returned HTTP {response.status_code}")
            raise UpstreamServiceError(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            conversation_id = response.json()["conversation_id"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamServiceError("Malformed create-conversation response") from e
        logger.info(f"Created conversation {conversation_id}")
        return str(conversation_id)

    async def update_user_properties(
        self, user_id: str, property_values: Sequence[dict[str, Any]]
    ) -> bool:
        """Push user properties to the agent. Returns False on any failure."""
        try:
            response = await self._client.post(
                "/v1/property/update",
                json={"user_id": user_id, "property_values": list(property_values)},
                headers=self._headers(self.agent_key),
            )
        except httpx.HTTPError as e:
            logger.error(f"Property update failed: {type(e).__name__}")
            return False
        if response.is_error:
            logger.error(
                f"Property update returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
            return False
        return True

    def _message_body(
        self,
        conversation_id: str,
        messages: Sequence[ChatMessage],
        response_mode: str,
        conversation_config: dict[str, Any] | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "conversation_id": conversation_id,
            "response_mode": response_mode,
            "messages": [message.model_dump() for message in messages],
        }
        if conversation_config:
            body["conversation_config"] = conversation_config
        return body

    async def stream_message_lines(
        self,
        conversation_id: str,
        messages: Sequence[ChatMessage],
        conversation_config: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """Send messages in streaming mode and yield raw response lines.

        Raises:
            UpstreamServiceError: the request failed or returned an error
                status; the message carries the status and response body.
        """
        body = self._message_body(
            conversation_id, messages, "streaming", conversation_config
        )
        try:
            async with self._client.stream(
                "POST",
                "/v2/conversation/message",
                json=body,
                headers=self._headers(self.agent_key),
            ) as response:
                if response.status_code >= 400:
                    error_body = (await response.aread()).decode(
                        "utf-8", errors="replace"
                    )
                    logger.error(
                        f"Streaming message returned HTTP {response.status_code}"
                    )
                    raise UpstreamServiceError(
                        f"HTTP {response.status_code}: {error_body[:500]}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    yield line
        except httpx.HTTPError as e:
            logger.error(f"Streaming message failed: {type(e).__name__}")
            raise UpstreamServiceError("GPTBots stream interrupted") from e

    async def send_message_blocking(
        self,
        conversation_id: str,
        messages: Sequence[ChatMessage],
        conversation_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body = self._message_body(
            conversation_id, messages, "blocking", conversation_config
        )
        try:
            response = await self._client.post(
                "/v2/conversation/message",
                json=body,
                headers=self._headers(self.agent_key),
            )
        except httpx.HTTPError as e:
            raise UpstreamServiceError("Could not reach GPTBots") from e
        if response.is_error:
            raise UpstreamServiceError(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        result: dict[str, Any] = response.json()
        return result

    async def invoke_workflow(self, request: WorkflowRequest) -> WorkflowResult:
        """Run a workflow synchronously for a submitted card.

        Failures are reported through ``WorkflowResult.success`` rather than
        raised, so the card can show the message to the user.
        """
        workflow_type = resolve_workflow_type(request)
        if workflow_type is None:
            logger.error(f"Unknown card type: {request.card_type}")
            return WorkflowResult(success=False, user_message="未知的卡片类型")

        input_data: dict[str, Any] = {"userId": request.user_id}
        if request.extra_input:
            input_data.update(request.extra_input)
        body = {
            "userId": request.user_id,
            "input": {
                "data": json.dumps(input_data, ensure_ascii=False),
                "type": workflow_type,
            },
            "isAsync": False,
        }
        logger.info(f"Invoking workflow type {workflow_type} ({request.card_type})")

        try:
            response = await self._client.post(
                "/v1/workflow/invoke",
                json=body,
                headers=self._headers(self.workflow_key),
            )
        except httpx.HTTPError as e:
            logger.error(f"Workflow call failed: {type(e).__name__}")
            return WorkflowResult(success=False, user_message="Workflow API 调用出错")

        if response.is_error:
            logger.error(f"Workflow returned HTTP {response.status_code}")
            return WorkflowResult(
                success=False,
                user_message=f"Workflow API 调用失败: HTTP {response.status_code}",
            )
        try:
            payload = response.json()
        except ValueError:
            return WorkflowResult(success=False, user_message="Workflow API 响应解析失败")
        if not isinstance(payload, dict):
            return WorkflowResult(success=False, user_message="Workflow API 响应解析失败")

        result = interpret_workflow_response(payload)
        logger.info(f"Workflow status {result.status}, success={result.success}")
        return result
