"""Protocol interfaces for stream_watcher components."""

from stream_watcher.interfaces.source import LedgerSource
from stream_watcher.interfaces.store import StreamStore

__all__ = ["LedgerSource", "StreamStore"]
