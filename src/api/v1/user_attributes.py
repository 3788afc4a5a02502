"""User attribute endpoint: pushes attributes to the agent."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from core.exceptions import UpstreamServiceError
from dependencies.services import GPTBotsClientDep
from schemas.user_attributes import (
    UserAttributeUpdateRequest,
    UserAttributeUpdateResponse,
)
from services.phase_registry import PHASE_ATTRIBUTE_NAME, apply_phase_update


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.post("/attributes", response_model=UserAttributeUpdateResponse)
async def update_user_attribute(
    payload: UserAttributeUpdateRequest,
    client: GPTBotsClientDep,
) -> UserAttributeUpdateResponse:
    """Push one attribute to the agent.

    Writes of ``phase`` go through the phase registry first, so a phase
    without a card is stored as the next phase that has one.
    """
    requested = payload.value
    actual = requested
    jumped = False
    if payload.attribute_name == PHASE_ATTRIBUTE_NAME and requested is not None:
        result = apply_phase_update(str(requested))
        if result.jumped:
            actual, jumped = result.actual, True

    updated = await client.update_user_properties(
        payload.user_id,
        [{"property_name": payload.attribute_name, "value": actual}],
    )
    if not updated:
        raise UpstreamServiceError(
            f"Updating attribute {payload.attribute_name} failed"
        )

    logger.info(f"Updated attribute {payload.attribute_name} for {payload.user_id}")
    return UserAttributeUpdateResponse(
        attribute_name=payload.attribute_name,
        requested_value=requested,
        actual_value=actual,
        jumped=jumped,
    )
