"""Stream lifecycle records and watcher runtime state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StreamStatus(str, Enum):
    """Lifecycle status of a payment stream."""

    CREATED = "created"
    ACTIVE = "active"  # at least one withdrawal applied
    CANCELED = "canceled"
    COMPLETED = "completed"  # fully withdrawn


class WatcherStatus(str, Enum):
    """Run state of the event watcher."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class StreamRecord:
    """A payment stream as persisted in the stream store.

    Amounts are arbitrary-precision ints in memory and decimal strings
    on disk.
    """

    stream_id: str
    tx_hash: str
    sender: str
    receiver: str
    total_amount: int
    withdrawn: int = 0
    duration: int = 0  # seconds
    created_at: str = ""  # ISO 8601
    closed_at: str | None = None
    status: StreamStatus = StreamStatus.CREATED
    final_streamed_amount: int | None = None
    remaining_unstreamed_amount: int | None = None
    last_ledger: int = 0
    updated_at: str = ""

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None


@dataclass(frozen=True)
class CancelSummary:
    """Outcome of a stream cancellation, logged by the event handler."""

    stream_id: str
    closed_at: str
    final_streamed_amount: int  # to_receiver
    original_total_amount: int
    remaining_unstreamed_amount: int  # to_sender


@dataclass
class WatcherState:
    """Mutable state owned by the event watcher's poll loop."""

    last_processed_ledger: int = 0
    is_running: bool = False
    error_count: int = 0
    last_error: Exception | None = None

    @property
    def status(self) -> WatcherStatus:
        return WatcherStatus.RUNNING if self.is_running else WatcherStatus.STOPPED
