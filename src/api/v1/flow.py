from __future__ import annotations

from fastapi import APIRouter

from schemas.flow import FlowStateRequest, FlowStateResponse
from services.flow_state import (
    FlowFlags,
    current_step_id,
    derive_flow_state,
    in_later_phase,
)


router = APIRouter(prefix="/flow", tags=["flow"])


@router.post("/state", response_model=FlowStateResponse)
def get_flow_state(payload: FlowStateRequest) -> FlowStateResponse:
    """Light up the extraction flow chart for a phase code."""
    flags = FlowFlags(
        is_authorized=payload.is_authorized,
        is_married=payload.is_married,
        permitted_types=tuple(payload.permitted_types),
    )
    steps = derive_flow_state(
        payload.phase,
        flags,
        selected_type=payload.selected_type,
        is_finished=payload.is_finished,
    )
    return FlowStateResponse(
        phase=payload.phase,
        in_later_phase=in_later_phase(payload.phase),
        current_step=current_step_id({step.id: step.is_completed for step in steps}),
        steps=steps,
    )
