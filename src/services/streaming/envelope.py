"""JSON envelope handling for assistant replies.

A reply is either plain text or a JSON object such as::

    {"content": "...", "card_type": "auth", "card_message": "...",
     "list": [{"id": "1", "name": "..."}]}

The mode is decided from the first non-whitespace character. While a JSON
reply is still streaming, the ``content`` field is pulled out of the partial
text so the user sees the answer grow; the strict parse only happens once the
stream has ended.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


logger = logging.getLogger(__name__)

_CONTENT_FIELD_RE = re.compile(r'"content"\s*:\s*"')

_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    '"': '"',
    "\\": "\\",
}
_SIMPLE_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


class ResponseMode(StrEnum):
    UNDETERMINED = "undetermined"
    PLAIN_TEXT = "plain_text"
    JSON_ENVELOPE = "json_envelope"


@dataclass(frozen=True)
class EnvelopeListItem:
    id: str
    name: str


@dataclass(frozen=True)
class Envelope:
    """Strictly parsed JSON reply."""

    content: str
    card_type: str | None = None
    card_message: str = ""
    items: tuple[EnvelopeListItem, ...] | None = None


@dataclass(frozen=True)
class PlainText:
    text: str


def detect_mode(text: str) -> ResponseMode:
    stripped = text.lstrip()
    if not stripped:
        return ResponseMode.UNDETERMINED
    if stripped[0] == "{":
        return ResponseMode.JSON_ENVELOPE
    return ResponseMode.PLAIN_TEXT


def _scan_string_body(text: str, start: int) -> str:
    """Raw (still escaped) string body from ``start`` up to the closing quote.

    Stops at the end of input when the string is not closed yet and drops a
    trailing escape sequence that has not fully arrived.
    """
    index = start
    length = len(text)
    while index < length:
        char = text[index]
        if char == '"':
            break
        if char == "\\":
            if index + 1 >= length:
                break
            if text[index + 1] == "u":
                if index + 6 > length:
                    break
                index += 6
            else:
                index += 2
            continue
        index += 1
    return text[start:index]


def _manual_unescape(raw: str) -> str:
    return _SIMPLE_ESCAPE_RE.sub(
        lambda match: _SIMPLE_ESCAPES.get(match.group(1), match.group(0)), raw
    )


def try_extract_live_content_field(text: str) -> str | None:
    """Best-effort value of the ``content`` field of a partial JSON object.

    Returns ``None`` when the field has not started yet.
    """
    match = _CONTENT_FIELD_RE.search(text)
    if match is None:
        return None

    raw = _scan_string_body(text, match.end())
    try:
        value = json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        value = _manual_unescape(raw)

    # A high surrogate whose pair has not arrived cannot be encoded yet
    if value and "\ud800" <= value[-1] <= "\udbff":
        value = value[:-1]
    return value


def _parse_items(raw_items: Any) -> tuple[EnvelopeListItem, ...] | None:
    if not isinstance(raw_items, list):
        return None
    items = [
        EnvelopeListItem(id=str(item.get("id", "")), name=str(item.get("name", "")))
        for item in raw_items
        if isinstance(item, dict)
    ]
    return tuple(items) or None


def parse_envelope(full_text: str) -> Envelope | None:
    """Strictly parse a complete reply.

    Anything that is not a JSON object with a ``content`` key yields ``None``;
    the caller then treats the reply as plain text.
    """
    text = full_text.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("Reply looked like JSON but did not parse: %s", exc)
        return None
    if not isinstance(payload, dict) or "content" not in payload:
        return None

    content = payload.get("content")
    card_type = payload.get("card_type")
    card_message = payload.get("card_message")
    return Envelope(
        content=content if isinstance(content, str) else "",
        card_type=card_type if isinstance(card_type, str) and card_type else None,
        card_message=card_message if isinstance(card_message, str) else "",
        items=_parse_items(payload.get("list")),
    )


def resolve_display(text: str) -> Envelope | PlainText:
    if detect_mode(text) is ResponseMode.JSON_ENVELOPE:
        envelope = parse_envelope(text)
        if envelope is not None:
            return envelope
    return PlainText(text=text.strip())
