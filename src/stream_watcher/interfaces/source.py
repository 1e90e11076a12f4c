"""LedgerSource protocol - reads ledgers and contract events from a node."""

from __future__ import annotations

from typing import Protocol

from stream_watcher.models.events import RawEvent


class LedgerSource(Protocol):
    """Read-only view of a Soroban RPC node, pre-filtered to one contract."""

    async def get_latest_ledger(self) -> int:
        """Return the sequence number of the node's latest ledger."""
        ...

    async def get_events(self, start_ledger: int) -> list[RawEvent]:
        """Fetch contract events with ledger >= start_ledger, oldest first."""
        ...

    async def close(self) -> None:
        ...
