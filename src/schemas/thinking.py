"""Schemas for thinking content updates."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ThinkingUpdateRequest(BaseModel):
    """Thinking update pushed by a bot workflow.

    Either ``message_id`` or ``conversation_id`` identifies the target.
    Presence is checked by the endpoint so a missing id is a 400, not a 422.
    """

    message_id: str | None = None
    conversation_id: str | None = None
    content: str | None = None
    register_mapping: bool = False

    model_config = ConfigDict(extra="forbid")


class ThinkingUpdateResponse(BaseModel):
    success: bool = True
    message_id: str
    conversation_id: str | None = None


class ThinkingContentResponse(BaseModel):
    message_id: str
    content: str | None = None
    found: bool
