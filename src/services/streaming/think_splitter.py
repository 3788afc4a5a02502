"""Incremental splitter separating ``<think>`` trace text from visible text.

The upstream bot streams its answer token by token and may wrap a reasoning
trace in ``<think>...</think>``. Fragments arrive at arbitrary boundaries, so a
marker can be split across several fragments. The splitter keeps an unflushed
tail of ``holdback`` characters until it can no longer be the start of a
marker; the concatenated output does not depend on how the input was
fragmented.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ThinkMarkers:
    start: str = "<think>"
    end: str = "</think>"

    @property
    def holdback(self) -> int:
        """Characters held back between fragments; always covers a full marker."""
        return max(10, len(self.start), len(self.end))

    def truncated_end_suffixes(self) -> tuple[str, ...]:
        """Proper prefixes of the end marker, longest first (``</think`` .. ``<``)."""
        return tuple(self.end[:size] for size in range(len(self.end) - 1, 0, -1))


DEFAULT_MARKERS = ThinkMarkers()


@dataclass(frozen=True)
class SplitResult:
    thinking_delta: str = ""
    visible_delta: str = ""


def _scan(
    buffer: str, inside_span: bool, markers: ThinkMarkers
) -> tuple[str, list[str], list[str], bool, int]:
    """Consume every complete marker in ``buffer``.

    Returns the remaining buffer, the thinking and visible pieces found in
    order, the span state afterwards and how many spans were closed.
    """
    thinking: list[str] = []
    visible: list[str] = []
    closed = 0
    while True:
        if inside_span:
            index = buffer.find(markers.end)
            if index == -1:
                break
            thinking.append(buffer[:index])
            buffer = buffer[index + len(markers.end) :]
            inside_span = False
            closed += 1
        else:
            index = buffer.find(markers.start)
            if index == -1:
                break
            visible.append(buffer[:index])
            buffer = buffer[index + len(markers.start) :]
            inside_span = True
    return buffer, thinking, visible, inside_span, closed


def _flush_safe(
    buffer: str, is_final: bool, markers: ThinkMarkers
) -> tuple[str, str]:
    """Split ``buffer`` into (flushable, kept). Everything flushes when final."""
    keep = 0 if is_final else markers.holdback
    safe_length = max(0, len(buffer) - keep)
    return buffer[:safe_length], buffer[safe_length:]


def process_fragment(
    buffer: str,
    fragment: str,
    inside_span: bool,
    is_final: bool,
    markers: ThinkMarkers = DEFAULT_MARKERS,
) -> tuple[str, str, str, bool]:
    """Pure step function of the splitter.

    Returns ``(new_buffer, thinking_delta, visible_delta, new_inside_span)``.
    """
    buffer, thinking, visible, inside_span, _ = _scan(
        buffer + fragment, inside_span, markers
    )
    flushed, buffer = _flush_safe(buffer, is_final, markers)
    if flushed:
        (thinking if inside_span else visible).append(flushed)
    return buffer, "".join(thinking), "".join(visible), inside_span


def remove_markers(text: str, markers: ThinkMarkers = DEFAULT_MARKERS) -> str:
    return text.replace(markers.start, "").replace(markers.end, "")


def strip_truncated_end_marker(
    text: str, markers: ThinkMarkers = DEFAULT_MARKERS
) -> str:
    """Drop a trailing partial end marker such as ``</thin`` (one suffix only)."""
    for suffix in markers.truncated_end_suffixes():
        if text.endswith(suffix):
            return text[: -len(suffix)]
    return text


class ThinkSplitter:
    """Stateful wrapper accumulating thinking and visible text for one response."""

    def __init__(self, markers: ThinkMarkers | None = None):
        self.markers = markers or DEFAULT_MARKERS
        self.buffer = ""
        self.inside_span = False
        self.thinking_text = ""
        self.visible_text = ""
        self.thinking_complete = False
        self.finished = False

    @property
    def is_thinking(self) -> bool:
        return self.inside_span

    def process(self, fragment: str, *, final: bool = False) -> SplitResult:
        buffer, thinking, visible, inside_span, closed = _scan(
            self.buffer + fragment, self.inside_span, self.markers
        )
        flushed, buffer = _flush_safe(buffer, final, self.markers)
        if flushed:
            (thinking if inside_span else visible).append(flushed)

        self.buffer = buffer
        self.inside_span = inside_span
        if closed:
            self.thinking_complete = True

        result = SplitResult(
            thinking_delta="".join(thinking), visible_delta="".join(visible)
        )
        self.thinking_text += result.thinking_delta
        self.visible_text += result.visible_delta
        return result

    def append_visible(self, text: str) -> None:
        """Append text that bypasses marker scanning (audio transcripts).

        A held-back visible tail is flushed first so the transcript lands after
        it; a marker split around the transcript is no longer recognized.
        """
        if not self.inside_span:
            self.visible_text += self.buffer
            self.buffer = ""
        self.visible_text += text

    def pending_visible(self) -> str:
        """Unflushed visible tail that can no longer turn into a start marker."""
        if self.inside_span or not self.buffer:
            return ""
        start = self.markers.start
        for size in range(min(len(start), len(self.buffer)), 0, -1):
            if self.buffer.endswith(start[:size]):
                return self.buffer[:-size]
        return self.buffer

    def finish(self) -> SplitResult:
        """Flush everything and clean marker residue from both texts."""
        result = self.process("", final=True)
        thinking = remove_markers(self.thinking_text, self.markers)
        self.thinking_text = strip_truncated_end_marker(thinking, self.markers).strip()
        self.visible_text = remove_markers(self.visible_text, self.markers).strip()
        self.inside_span = False
        self.thinking_complete = True
        self.finished = True
        return result
