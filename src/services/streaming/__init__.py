"""Streaming reply parsing: think splitter, JSON envelope and event dispatch."""

from .dispatcher import StreamEventDispatcher, parse_stream_event
from .envelope import Envelope, PlainText, ResponseMode, resolve_display
from .think_splitter import ThinkMarkers, ThinkSplitter, process_fragment


__all__ = [
    "Envelope",
    "PlainText",
    "ResponseMode",
    "StreamEventDispatcher",
    "ThinkMarkers",
    "ThinkSplitter",
    "parse_stream_event",
    "process_fragment",
    "resolve_display",
]
