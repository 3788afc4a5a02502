"""Schemas for the extraction flow chart."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FlowStep(BaseModel):
    """One node of the extraction flow chart, derived from the phase code."""

    id: str
    label: str
    is_active: bool = False
    is_completed: bool = False
    sub_label: str | None = None

    model_config = ConfigDict(frozen=True)


class FlowStateRequest(BaseModel):
    """Inputs needed to light up the flow chart."""

    phase: str = Field(..., max_length=16)
    is_authorized: bool = False
    is_married: bool | None = None
    permitted_types: list[str] = Field(default_factory=list)
    selected_type: str | None = None
    is_finished: bool = False

    model_config = ConfigDict(extra="forbid")


class FlowStateResponse(BaseModel):
    phase: str
    in_later_phase: bool
    current_step: str
    steps: list[FlowStep]
