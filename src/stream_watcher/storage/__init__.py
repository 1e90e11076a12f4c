"""Persistent stream storage."""

from stream_watcher.storage.sqlite import SQLiteStreamStore

__all__ = ["SQLiteStreamStore"]
