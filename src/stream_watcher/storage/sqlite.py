"""SQLite implementation of the StreamStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from stream_watcher.models.records import StreamRecord, StreamStatus

# Amounts are TEXT: on-chain values are i128 and overflow SQLite INTEGER.
SCHEMA = """
-- Last processed ledger
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_ledger INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Payment streams, one row per on-chain stream_id
CREATE TABLE IF NOT EXISTS streams (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stream_id TEXT NOT NULL UNIQUE,
    tx_hash TEXT NOT NULL,
    sender TEXT NOT NULL,
    receiver TEXT NOT NULL,
    total_amount TEXT NOT NULL,
    withdrawn TEXT NOT NULL DEFAULT '0',
    duration INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'created',
    created_at TEXT NOT NULL,
    closed_at TEXT,
    final_streamed_amount TEXT,
    remaining_unstreamed_amount TEXT,
    last_ledger INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_streams_status ON streams(status);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _opt_text(value: int | None) -> str | None:
    return None if value is None else str(value)


def _opt_int(value: str | None) -> int | None:
    return None if value is None else int(value)


class SQLiteStreamStore:
    """SQLite-backed implementation of the StreamStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT last_ledger FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["last_ledger"] if row else None

    async def set_cursor(self, ledger: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, last_ledger, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET last_ledger=excluded.last_ledger,"
            " updated_at=excluded.updated_at",
            (ledger, _now()),
        )
        await self.db.commit()

    # ── Streams ────────────────────────────────────────────

    async def create_stream(self, record: StreamRecord) -> None:
        await self.db.execute(
            "INSERT INTO streams"
            " (stream_id, tx_hash, sender, receiver, total_amount, withdrawn,"
            "  duration, status, created_at, closed_at, final_streamed_amount,"
            "  remaining_unstreamed_amount, last_ledger, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.stream_id, record.tx_hash, record.sender, record.receiver,
                str(record.total_amount), str(record.withdrawn), record.duration,
                record.status.value, record.created_at, record.closed_at,
                _opt_text(record.final_streamed_amount),
                _opt_text(record.remaining_unstreamed_amount),
                record.last_ledger, record.updated_at or _now(),
            ),
        )
        await self.db.commit()

    async def get_stream(self, stream_id: str) -> StreamRecord | None:
        async with self.db.execute(
            "SELECT * FROM streams WHERE stream_id=?", (stream_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_stream(row) if row else None

    async def update_stream(self, record: StreamRecord) -> None:
        await self.db.execute(
            "UPDATE streams SET tx_hash=?, sender=?, receiver=?, total_amount=?,"
            " withdrawn=?, duration=?, status=?, created_at=?, closed_at=?,"
            " final_streamed_amount=?, remaining_unstreamed_amount=?,"
            " last_ledger=?, updated_at=? WHERE stream_id=?",
            (
                record.tx_hash, record.sender, record.receiver,
                str(record.total_amount), str(record.withdrawn), record.duration,
                record.status.value, record.created_at, record.closed_at,
                _opt_text(record.final_streamed_amount),
                _opt_text(record.remaining_unstreamed_amount),
                record.last_ledger, record.updated_at or _now(), record.stream_id,
            ),
        )
        await self.db.commit()

    async def list_streams(
        self, limit: int = 50, status: StreamStatus | None = None
    ) -> list[StreamRecord]:
        if status is not None:
            async with self.db.execute(
                "SELECT * FROM streams WHERE status=? ORDER BY id DESC LIMIT ?",
                (status.value, limit),
            ) as cur:
                return [_row_to_stream(row) async for row in cur]
        async with self.db.execute(
            "SELECT * FROM streams ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_stream(row) async for row in cur]


# ── Row converters ─────────────────────────────────────────


def _row_to_stream(row: aiosqlite.Row) -> StreamRecord:
    return StreamRecord(
        stream_id=row["stream_id"],
        tx_hash=row["tx_hash"],
        sender=row["sender"],
        receiver=row["receiver"],
        total_amount=int(row["total_amount"]),
        withdrawn=int(row["withdrawn"]),
        duration=row["duration"],
        created_at=row["created_at"],
        closed_at=row["closed_at"],
        status=StreamStatus(row["status"]),
        final_streamed_amount=_opt_int(row["final_streamed_amount"]),
        remaining_unstreamed_amount=_opt_int(row["remaining_unstreamed_amount"]),
        last_ledger=row["last_ledger"],
        updated_at=row["updated_at"],
    )
