"""Data models for the stream watcher."""

from stream_watcher.models.config import WatcherConfig
from stream_watcher.models.events import NativeValue, ParsedEvent, RawEvent
from stream_watcher.models.records import (
    CancelSummary,
    StreamRecord,
    StreamStatus,
    WatcherState,
    WatcherStatus,
)

__all__ = [
    "WatcherConfig",
    "NativeValue", "ParsedEvent", "RawEvent",
    "CancelSummary", "StreamRecord", "StreamStatus",
    "WatcherState", "WatcherStatus",
]
