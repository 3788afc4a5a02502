"""Schemas for pushing user attributes to the agent."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserAttributeUpdateRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=32)
    attribute_name: str = Field(..., min_length=1, max_length=64)
    value: Any = None

    model_config = ConfigDict(extra="forbid")


class UserAttributeUpdateResponse(BaseModel):
    """Result of an attribute push.

    For the ``phase`` attribute ``actual_value`` may differ from
    ``requested_value`` when the phase has no card and was forwarded.
    """

    success: bool = True
    attribute_name: str
    requested_value: Any = None
    actual_value: Any = None
    jumped: bool = False
