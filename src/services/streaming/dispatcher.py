"""Route upstream stream events into display updates.

One ``StreamEventDispatcher`` handles exactly one assistant reply. It feeds
text deltas through the think splitter, decides once whether the reply is a
JSON envelope or plain text, and emits ``DisplayUpdate`` snapshots no more
often than ``update_interval`` (the first and the final snapshot are always
emitted).
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterable, AsyncIterator, Callable
from dataclasses import dataclass, field

from pydantic import ValidationError

from schemas.chat_streaming import DisplayListItem, DisplayUpdate, StreamEvent
from services.streaming.envelope import (
    ResponseMode,
    detect_mode,
    parse_envelope,
    try_extract_live_content_field,
)
from services.streaming.think_splitter import ThinkMarkers, ThinkSplitter


logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL_SECONDS = 0.05

EMPTY_RESULT_FALLBACK = "抱歉，我暂时无法处理您的请求，请稍后再试。"
ERROR_FALLBACK = "抱歉，服务暂时不可用，请稍后再试。"

TRANSPORT_ERROR_CODES = range(40000, 50000)
APPLICATION_ERROR_CODES = range(50000, 60000)

TEXT_EVENT = (3, "Text")
AUDIO_EVENT = (39, "Audio")
FLOW_OUTPUT_EVENT = (10, "FlowOutput")
END_EVENT = (0, "End")
MESSAGE_INFO_EVENT = (11, "MessageInfo")
COST_EVENT = (4, "Cost")


def is_error_code(code: int) -> bool:
    return code in TRANSPORT_ERROR_CODES or code in APPLICATION_ERROR_CODES


def parse_stream_event(line: str) -> StreamEvent | None:
    """Parse one transport line (``data: {...}`` or bare JSON).

    Blank lines, SSE comments used as keep-alives and anything that is not a
    JSON event object return ``None``.
    """
    text = line.strip()
    if not text or text.startswith(":"):
        return None
    if text.startswith("data:"):
        text = text[len("data:") :].strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON stream line: %.50s", text)
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return StreamEvent.model_validate(payload)
    except ValidationError:
        logger.debug("Skipping stream line without an event code: %.50s", text)
        return None


@dataclass
class ParseState:
    """Mutable parse state of one reply."""

    splitter: ThinkSplitter = field(default_factory=ThinkSplitter)
    mode: ResponseMode = ResponseMode.UNDETERMINED
    last_emit_at: float | None = None
    done: bool = False
    error_code: int | None = None
    upstream_message_id: str | None = None
    final_update: DisplayUpdate | None = None

    def accumulated_visible(self) -> str:
        """Visible text so far, including the tail that is certainly visible."""
        return self.splitter.visible_text + self.splitter.pending_visible()


class StreamEventDispatcher:
    def __init__(
        self,
        *,
        update_interval: float = DEFAULT_UPDATE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        markers: ThinkMarkers | None = None,
    ):
        self.update_interval = update_interval
        self.clock = clock
        self.state = ParseState(splitter=ThinkSplitter(markers))
        self._handlers: dict[
            tuple[int, str], Callable[[StreamEvent], DisplayUpdate | None]
        ] = {
            TEXT_EVENT: self._on_text,
            AUDIO_EVENT: self._on_audio,
            FLOW_OUTPUT_EVENT: self._on_flow_output,
            END_EVENT: self._on_end,
            MESSAGE_INFO_EVENT: self._on_message_info,
            COST_EVENT: self._on_cost,
        }

    def feed_event(self, event: StreamEvent) -> DisplayUpdate | None:
        """Apply one event; returns an update when one should be emitted."""
        if self.state.done:
            return None
        if is_error_code(event.code):
            return self._on_error(event)
        handler = self._handlers.get((event.code, event.message))
        if handler is None:
            logger.debug("Ignoring stream event %s/%s", event.code, event.message)
            return None
        return handler(event)

    async def dispatch(
        self, lines: AsyncIterable[str]
    ) -> AsyncIterator[DisplayUpdate]:
        """Consume transport lines and yield display updates.

        The reply is finalized even when the transport ends without an End
        event.
        """
        async for line in lines:
            event = parse_stream_event(line)
            if event is None:
                continue
            update = self.feed_event(event)
            if update is not None:
                yield update
        if not self.state.done:
            yield self.finish()

    def finish(self) -> DisplayUpdate:
        """Finalize the reply and return the unthrottled final update."""
        if self.state.final_update is not None:
            return self.state.final_update

        splitter = self.state.splitter
        splitter.finish()
        visible = splitter.visible_text
        thinking = splitter.thinking_text
        if self.state.mode is ResponseMode.UNDETERMINED:
            self.state.mode = detect_mode(visible)

        update = DisplayUpdate(
            content=visible,
            thinking=thinking,
            thinking_complete=True,
            is_thinking=False,
            final=True,
        )
        if self.state.mode is ResponseMode.JSON_ENVELOPE:
            envelope = parse_envelope(visible)
            if envelope is not None:
                update = update.model_copy(
                    update={
                        "content": envelope.content,
                        "card_type": envelope.card_type,
                        "card_message": envelope.card_message,
                        "list_items": (
                            [
                                DisplayListItem(id=item.id, name=item.name)
                                for item in envelope.items
                            ]
                            if envelope.items
                            else None
                        ),
                    }
                )
            else:
                # Shown as plain text
                logger.warning("Reply started as JSON but did not parse as an envelope")

        if not update.content and not thinking and update.card_type is None:
            logger.warning("Reply finished without thinking or content")
            update = update.model_copy(update={"content": EMPTY_RESULT_FALLBACK})

        return self._complete(update)

    def _complete(self, update: DisplayUpdate) -> DisplayUpdate:
        self.state.done = True
        self.state.final_update = update
        self.state.last_emit_at = self.clock()
        return update

    def _fix_mode(self) -> None:
        if self.state.mode is ResponseMode.UNDETERMINED:
            self.state.mode = detect_mode(self.state.accumulated_visible())

    def _snapshot(self) -> DisplayUpdate:
        splitter = self.state.splitter
        visible = self.state.accumulated_visible()
        if self.state.mode is ResponseMode.JSON_ENVELOPE:
            content = try_extract_live_content_field(visible) or ""
        else:
            content = visible
        return DisplayUpdate(
            content=content,
            thinking=splitter.thinking_text,
            thinking_complete=splitter.thinking_complete,
            is_thinking=splitter.is_thinking,
        )

    def _emit(self, *, force: bool = False) -> DisplayUpdate | None:
        now = self.clock()
        last = self.state.last_emit_at
        if not force and last is not None and now - last < self.update_interval:
            return None
        self.state.last_emit_at = now
        return self._snapshot()

    def _on_text(self, event: StreamEvent) -> DisplayUpdate | None:
        if not isinstance(event.data, str):
            return None
        self.state.splitter.process(event.data)
        self._fix_mode()
        return self._emit()

    def _on_audio(self, event: StreamEvent) -> DisplayUpdate | None:
        data = event.data if isinstance(event.data, dict) else {}
        transcript = data.get("transcript")
        if not isinstance(transcript, str) or not transcript:
            return None
        self.state.splitter.append_visible(transcript)
        self._fix_mode()
        return self._emit(force=True)

    def _on_flow_output(self, event: StreamEvent) -> None:
        # Duplicates the text deltas
        return None

    def _on_end(self, event: StreamEvent) -> DisplayUpdate:
        return self.finish()

    def _on_message_info(self, event: StreamEvent) -> None:
        if isinstance(event.data, dict):
            message_id = event.data.get("message_id")
            if isinstance(message_id, str):
                self.state.upstream_message_id = message_id
        logger.debug("Upstream message info: %s", event.data)
        return None

    def _on_cost(self, event: StreamEvent) -> None:
        logger.debug("Upstream cost: %s", event.data)
        return None

    def _on_error(self, event: StreamEvent) -> DisplayUpdate:
        kind = "transport" if event.code in TRANSPORT_ERROR_CODES else "application"
        logger.error(
            "Upstream %s error %s: %s", kind, event.code, event.message or event.data
        )
        self.state.error_code = event.code
        splitter = self.state.splitter
        return self._complete(
            DisplayUpdate(
                content=ERROR_FALLBACK,
                thinking=splitter.thinking_text.strip(),
                thinking_complete=True,
                is_thinking=False,
                final=True,
            )
        )
