"""Exception types raised by stream_watcher components."""

from __future__ import annotations


class WatcherError(Exception):
    """Base class for all stream_watcher errors."""


class ConfigError(WatcherError):
    """Configuration is missing a required value or holds an invalid one."""


class DecodeError(WatcherError):
    """A contract event's top-level XDR value could not be decoded."""

    def __init__(self, message: str, event_id: str | None = None) -> None:
        super().__init__(message)
        self.event_id = event_id
