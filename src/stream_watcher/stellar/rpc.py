"""Soroban RPC ledger source - fetches payment-stream contract events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from stellar_sdk import SorobanServerAsync
from stellar_sdk.soroban_rpc import EventFilter, EventFilterType, EventInfo

from stream_watcher.models.events import RawEvent

log = logging.getLogger(__name__)


def to_iso(dt: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def raw_event_from_info(info: EventInfo) -> RawEvent:
    """Convert an SDK EventInfo into our RawEvent."""
    closed_at = info.ledger_close_at
    return RawEvent(
        id=info.id,
        type=str(info.event_type),
        ledger=info.ledger,
        ledger_closed_at=to_iso(closed_at) if isinstance(closed_at, datetime) else str(closed_at),
        contract_id=str(info.contract_id) if info.contract_id else "unknown",
        topics=list(info.topic),
        value=info.value,
        tx_hash=info.transaction_hash or "unknown",
        in_successful_contract_call=info.in_successful_contract_call,
    )


class SorobanLedgerSource:
    """Reads the latest ledger and contract events from a Soroban RPC node.

    Events are filtered server-side to a single contract ID. The server
    is created lazily from rpc_url unless one is injected.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_id: str,
        limit: int = 100,
        server: SorobanServerAsync | None = None,
    ) -> None:
        self._server = server if server is not None else SorobanServerAsync(rpc_url)
        self._contract_id = contract_id
        self._limit = limit
        self._filters = [
            EventFilter(
                event_type=EventFilterType.CONTRACT,
                contract_ids=[contract_id],
            )
        ]

    async def get_latest_ledger(self) -> int:
        response = await self._server.get_latest_ledger()
        return response.sequence

    async def get_events(self, start_ledger: int) -> list[RawEvent]:
        response = await self._server.get_events(
            start_ledger=start_ledger,
            filters=self._filters,
            limit=self._limit,
        )
        infos = response.events or []
        log.debug("getEvents(start_ledger=%d) returned %d events", start_ledger, len(infos))
        return [raw_event_from_info(info) for info in infos]

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        await self._server.close()
