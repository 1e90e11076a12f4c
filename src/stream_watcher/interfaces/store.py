"""StreamStore protocol - persists stream records and the ledger cursor."""

from __future__ import annotations

from typing import Protocol

from stream_watcher.models.records import StreamRecord, StreamStatus


class StreamStore(Protocol):
    """Key-value-like table of stream records addressed by stream_id."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        """Close the database connection."""
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        ...

    async def set_cursor(self, ledger: int) -> None:
        ...

    # ── Streams ────────────────────────────────────────────

    async def create_stream(self, record: StreamRecord) -> None:
        """Insert a new record. Fails if stream_id already exists."""
        ...

    async def get_stream(self, stream_id: str) -> StreamRecord | None:
        ...

    async def update_stream(self, record: StreamRecord) -> None:
        """Overwrite the mutable fields of an existing record."""
        ...

    async def list_streams(
        self, limit: int = 50, status: StreamStatus | None = None
    ) -> list[StreamRecord]:
        ...
