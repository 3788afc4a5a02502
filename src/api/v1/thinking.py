"""Thinking content endpoints used by bot workflows and the chat UI."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from dependencies.services import ThinkingStoreDep
from schemas.thinking import (
    ThinkingContentResponse,
    ThinkingUpdateRequest,
    ThinkingUpdateResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat/thinking", tags=["thinking"])


@router.post("/update", response_model=ThinkingUpdateResponse)
def update_thinking(
    payload: ThinkingUpdateRequest,
    store: ThinkingStoreDep,
) -> ThinkingUpdateResponse:
    """Store thinking content by message id, or by conversation id through
    the registered mapping."""
    if payload.content is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="content is required",
        )

    if payload.register_mapping and payload.conversation_id and payload.message_id:
        store.register(payload.conversation_id, payload.message_id)

    if payload.message_id:
        message_id = payload.message_id
        store.update(message_id, payload.content, payload.conversation_id)
    elif payload.conversation_id:
        # Raises ConversationMappingNotFoundError -> 404
        message_id = store.update_by_conversation(
            payload.conversation_id, payload.content
        )
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="message_id or conversation_id is required",
        )

    return ThinkingUpdateResponse(
        message_id=message_id, conversation_id=payload.conversation_id
    )


@router.get("/{message_id}", response_model=ThinkingContentResponse)
def get_thinking(message_id: str, store: ThinkingStoreDep) -> ThinkingContentResponse:
    content = store.get(message_id)
    return ThinkingContentResponse(
        message_id=message_id, content=content, found=content is not None
    )
