"""Schemas for assistant chat streaming."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


MAX_SSE_EVENT_BYTES: int = 65_536


class StreamEvent(BaseModel):
    """One event of the upstream bot's streaming feed."""

    code: int
    message: str = ""
    data: Any = None

    model_config = ConfigDict(extra="allow")


class DisplayListItem(BaseModel):
    id: str
    name: str


class DisplayUpdate(BaseModel):
    """Snapshot of what the user should currently see for the reply."""

    content: str = ""
    thinking: str = ""
    thinking_complete: bool = False
    is_thinking: bool = False
    card_type: str | None = None
    card_message: str | None = None
    list_items: list[DisplayListItem] | None = Field(default=None, alias="list")
    final: bool = False

    model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)


class ChatSseEvent(BaseModel):
    """Canonical SSE envelope for parsed assistant streaming."""

    event: Literal[
        "message.update",
        "message.complete",
        "error",
        "done",
    ]
    conversation_id: str
    message_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def to_sse(self, max_bytes: int | None = MAX_SSE_EVENT_BYTES) -> str:
        """Serialize event to SSE format.

        Raises ``ValueError`` when the payload exceeds ``max_bytes``. Display
        snapshots pass ``None``: they carry the whole reply so far and have no
        upper bound.
        """
        payload = self.model_dump_json()
        if max_bytes is not None and len(payload.encode("utf-8")) > max_bytes:
            raise ValueError("SSE payload exceeded MAX_SSE_EVENT_BYTES")
        return f"data: {payload}\n\n"


class ChatMessage(BaseModel):
    """Message in the bot's conversation format.

    ``content`` is either plain text or a list of typed parts (text, image,
    audio, document) passed through to the bot unchanged.
    """

    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]] = Field(..., min_length=1)


class ChatMessageRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1, max_length=64)
    messages: list[ChatMessage] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class CreateConversationRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=32)

    model_config = ConfigDict(extra="forbid")


class CreateConversationResponse(BaseModel):
    conversation_id: str
