"""In-memory store for thinking content pushed while a reply is in flight.

Bot workflows push progress text for a message, either by message id or by
conversation id. The conversation -> message mapping is registered when a
reply starts streaming. Entries idle for longer than the TTL are removed by
``sweep``, which the scheduler calls periodically.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from core.exceptions import ConversationMappingNotFoundError


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class ThinkingEntry:
    message_id: str
    content: str
    created_at: float
    updated_at: float
    conversation_id: str | None = None


@dataclass(frozen=True)
class StoreStatus:
    thinking_count: int
    mapping_count: int


class ThinkingStore:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, ThinkingEntry] = {}
        # conversation_id -> (message_id, registered_at)
        self._mappings: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def update(
        self, message_id: str, content: str, conversation_id: str | None = None
    ) -> ThinkingEntry:
        """Create or replace the thinking content of ``message_id``."""
        now = self.clock()
        with self._lock:
            existing = self._entries.get(message_id)
            entry = ThinkingEntry(
                message_id=message_id,
                content=content,
                created_at=existing.created_at if existing else now,
                updated_at=now,
                conversation_id=conversation_id
                or (existing.conversation_id if existing else None),
            )
            self._entries[message_id] = entry
            if conversation_id:
                self._mappings[conversation_id] = (message_id, now)
        logger.debug(
            "Thinking updated for message %s (%d chars)", message_id, len(content)
        )
        return entry

    def get(self, message_id: str) -> str | None:
        with self._lock:
            entry = self._entries.get(message_id)
        return entry.content if entry else None

    def get_by_conversation(self, conversation_id: str) -> str | None:
        with self._lock:
            mapping = self._mappings.get(conversation_id)
        if mapping is None:
            return None
        return self.get(mapping[0])

    def message_id_for(self, conversation_id: str) -> str | None:
        with self._lock:
            mapping = self._mappings.get(conversation_id)
        return mapping[0] if mapping else None

    def update_by_conversation(self, conversation_id: str, content: str) -> str:
        """Update the in-flight message of ``conversation_id``.

        Returns the message id that was updated.

        Raises:
            ConversationMappingNotFoundError: no message is registered for the
                conversation.
        """
        message_id = self.message_id_for(conversation_id)
        if message_id is None:
            raise ConversationMappingNotFoundError(conversation_id)
        self.update(message_id, content, conversation_id)
        return message_id

    def register(self, conversation_id: str, message_id: str) -> None:
        with self._lock:
            self._mappings[conversation_id] = (message_id, self.clock())
        logger.debug("Registered conversation %s -> %s", conversation_id, message_id)

    def delete(self, message_id: str) -> None:
        with self._lock:
            entry = self._entries.pop(message_id, None)
            if entry and entry.conversation_id:
                mapping = self._mappings.get(entry.conversation_id)
                if mapping and mapping[0] == message_id:
                    del self._mappings[entry.conversation_id]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._mappings.clear()

    def status(self) -> StoreStatus:
        with self._lock:
            return StoreStatus(
                thinking_count=len(self._entries), mapping_count=len(self._mappings)
            )

    def sweep(self) -> int:
        """Remove entries idle for longer than the TTL. Returns how many."""
        cutoff = self.clock() - self.ttl_seconds
        with self._lock:
            expired = [
                message_id
                for message_id, entry in self._entries.items()
                if entry.updated_at < cutoff
            ]
            for message_id in expired:
                del self._entries[message_id]
            # Mappings go with their entry, or on their own once stale
            stale = [
                conversation_id
                for conversation_id, (mapped_id, at) in self._mappings.items()
                if mapped_id not in self._entries and at < cutoff
            ]
            for conversation_id in stale:
                del self._mappings[conversation_id]
        if expired:
            logger.info("Swept %d expired thinking entries", len(expired))
        return len(expired)
