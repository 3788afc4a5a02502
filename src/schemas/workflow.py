"""Schemas for GPTBots workflow invocation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WorkflowRequest(BaseModel):
    """Card submission forwarded to the workflow API.

    ``type`` wins over the value mapped from ``card_type``.
    """

    user_id: str = Field(..., min_length=1, max_length=32)
    card_type: str | None = None
    type: int | None = None
    extra_input: dict[str, Any] | None = Field(
        default=None,
        description="Additional workflow input merged into the payload (code, mobile).",
    )

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _require_card_type_or_type(self) -> WorkflowRequest:
        if not self.card_type and self.type is None:
            raise ValueError("Either card_type or type is required")
        return self


class WorkflowResult(BaseModel):
    success: bool
    status: str | None = None
    user_message: str | None = None
    is_attr_changed: bool | None = None
    data: dict[str, Any] | None = None
    display_info: dict[str, Any] | None = None
