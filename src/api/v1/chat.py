"""Chat endpoints: conversation creation and assistant streaming."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from uuid import uuid4

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from core.config import get_settings
from dependencies.services import GPTBotsClientDep, ThinkingStoreDep
from schemas.chat_streaming import (
    ChatMessageRequest,
    ChatSseEvent,
    CreateConversationRequest,
    CreateConversationResponse,
    DisplayUpdate,
)
from services.streaming.dispatcher import (
    ERROR_FALLBACK,
    StreamEventDispatcher,
    parse_stream_event,
)
from services.user_directory import require_user


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@router.post(
    "/conversations",
    response_model=CreateConversationResponse,
    summary="Open a bot conversation",
)
async def create_conversation(
    payload: CreateConversationRequest,
    client: GPTBotsClientDep,
) -> CreateConversationResponse:
    """Create a GPTBots conversation for a registered user."""
    require_user(payload.user_id)
    conversation_id = await client.create_conversation(payload.user_id)
    return CreateConversationResponse(conversation_id=conversation_id)


@router.post(
    "/messages/upstream",
    response_class=StreamingResponse,
    summary="Relay the raw bot event stream",
)
async def relay_upstream_events(
    payload: ChatMessageRequest,
    client: GPTBotsClientDep,
) -> StreamingResponse:
    """Relay upstream events as ``data: {json}`` SSE lines.

    Lines that are not JSON events are dropped, so the client only ever sees
    well-formed events.
    """

    async def event_stream() -> AsyncGenerator[str, None]:
        try:
            async for line in client.stream_message_lines(
                payload.conversation_id, payload.messages
            ):
                event = parse_stream_event(line)
                if event is None:
                    continue
                yield f"data: {event.model_dump_json()}\n\n"
        except Exception:
            # Headers are already sent; end the stream here
            logger.exception(
                f"Upstream relay failed for conversation {payload.conversation_id}"
            )

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post(
    "/messages/stream",
    response_class=StreamingResponse,
    summary="Stream parsed assistant display updates",
)
async def stream_chat_message(
    payload: ChatMessageRequest,
    client: GPTBotsClientDep,
    store: ThinkingStoreDep,
) -> StreamingResponse:
    """Stream the reply as display updates using the canonical SSE envelope.

    The turn's message id is registered for the conversation before the
    upstream call so workflows can push thinking content while the reply
    streams. The final thinking text is stored under the same id.
    """
    settings = get_settings()
    conversation_id = payload.conversation_id
    message_id = uuid4().hex
    store.register(conversation_id, message_id)
    dispatcher = StreamEventDispatcher(update_interval=settings.stream_update_interval)

    def to_event(update: DisplayUpdate) -> str:
        return ChatSseEvent(
            event="message.complete" if update.final else "message.update",
            conversation_id=conversation_id,
            message_id=message_id,
            data=update.model_dump(by_alias=True, exclude={"final"}),
        ).to_sse(max_bytes=None)

    async def event_stream() -> AsyncGenerator[str, None]:
        try:
            lines = client.stream_message_lines(conversation_id, payload.messages)
            async for update in dispatcher.dispatch(lines):
                if update.final and update.thinking:
                    store.update(message_id, update.thinking, conversation_id)
                yield to_event(update)
        except Exception:
            logger.exception(f"Streaming failed for conversation {conversation_id}")
            yield ChatSseEvent(
                event="error",
                conversation_id=conversation_id,
                message_id=message_id,
                data={"message": ERROR_FALLBACK},
            ).to_sse()

        yield ChatSseEvent(
            event="done",
            conversation_id=conversation_id,
            message_id=message_id,
            data={},
        ).to_sse()

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )
