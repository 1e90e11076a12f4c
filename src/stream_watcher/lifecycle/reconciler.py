"""Stream lifecycle reconciler - applies created/withdrawn/canceled transitions."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from stream_watcher.interfaces.store import StreamStore
from stream_watcher.models.records import CancelSummary, StreamRecord, StreamStatus

log = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _derive_status(current: StreamStatus, withdrawn: int, total_amount: int) -> StreamStatus:
    """Status implied by the withdrawn amount. CANCELED is terminal."""
    if current == StreamStatus.CANCELED:
        return current
    if withdrawn == 0:
        return StreamStatus.CREATED
    if withdrawn == total_amount:
        return StreamStatus.COMPLETED
    return StreamStatus.ACTIVE


class StreamLifecycleReconciler:
    """Reconciles decoded lifecycle events into persisted StreamRecords.

    Every operation validates its inputs and turns a missing field or an
    unknown stream into a logged no-op, so one bad event never aborts a
    batch. Events may be redelivered: creation and cancellation converge
    to the same record, withdrawals accumulate.
    """

    def __init__(self, store: StreamStore) -> None:
        self._store = store

    async def upsert_created_stream(
        self,
        stream_id: str | None,
        tx_hash: str,
        sender: str,
        receiver: str,
        total_amount: int | None,
        created_at: str,
        ledger: int,
        duration: int = 0,
    ) -> StreamRecord | None:
        """Create a stream, or refresh its creation fields on redelivery."""
        if not stream_id:
            log.warning("Cannot index created stream: missing stream_id (tx %s)", tx_hash)
            return None
        if total_amount is None or total_amount < 0:
            log.warning(
                "Cannot index created stream %s: missing total_amount (tx %s)",
                stream_id, tx_hash,
            )
            return None

        existing = await self._store.get_stream(stream_id)
        if existing is not None:
            if total_amount < existing.withdrawn:
                log.warning(
                    "Redelivered create for stream %s reports total %d below withdrawn %d, "
                    "keeping stored total %d",
                    stream_id, total_amount, existing.withdrawn, existing.total_amount,
                )
                total_amount = existing.total_amount
            updated = replace(
                existing,
                tx_hash=tx_hash,
                sender=sender,
                receiver=receiver,
                total_amount=total_amount,
                status=_derive_status(existing.status, existing.withdrawn, total_amount),
                duration=duration,
                created_at=created_at,
                last_ledger=max(existing.last_ledger, ledger),
                updated_at=_now(),
            )
            await self._store.update_stream(updated)
            log.info("Stream %s already indexed, creation fields refreshed", stream_id)
            return updated

        record = StreamRecord(
            stream_id=stream_id,
            tx_hash=tx_hash,
            sender=sender,
            receiver=receiver,
            total_amount=total_amount,
            withdrawn=0,
            duration=duration,
            created_at=created_at,
            status=StreamStatus.CREATED,
            last_ledger=ledger,
            updated_at=_now(),
        )
        await self._store.create_stream(record)
        log.info(
            "Stream %s created: total=%d sender=%s receiver=%s",
            stream_id, total_amount, sender[:16], receiver[:16],
        )
        return record

    async def register_withdrawal(
        self, stream_id: str | None, amount: int | None, ledger: int
    ) -> StreamRecord | None:
        """Add a withdrawal to the stream's running withdrawn total.

        Withdrawals are not de-duplicated: redelivering the same event
        counts it again, up to the stream's total amount.
        """
        if not stream_id:
            log.warning("Cannot register withdrawal: missing stream_id")
            return None
        if amount is None or amount < 0:
            log.warning("Cannot register withdrawal on stream %s: missing amount", stream_id)
            return None

        record = await self._store.get_stream(stream_id)
        if record is None:
            log.warning("Stream not found for withdrawal: %s", stream_id)
            return None

        withdrawn = record.withdrawn + amount
        if withdrawn > record.total_amount:
            log.warning(
                "Withdrawal of %d on stream %s exceeds total (%d + %d > %d), ignored",
                amount, stream_id, record.withdrawn, amount, record.total_amount,
            )
            return None

        updated = replace(
            record,
            withdrawn=withdrawn,
            status=_derive_status(record.status, withdrawn, record.total_amount),
            last_ledger=max(record.last_ledger, ledger),
            updated_at=_now(),
        )
        await self._store.update_stream(updated)
        log.info(
            "Stream %s withdrawn amount updated: +%d, total withdrawn %d",
            stream_id, amount, withdrawn,
        )
        return updated

    async def cancel_stream(
        self,
        stream_id: str | None,
        to_receiver: int | None,
        to_sender: int | None,
        closed_at: str,
        ledger: int,
    ) -> CancelSummary | None:
        """Close a stream with the receiver/sender split reported on-chain.

        The split is stored as reported; withdrawn is left untouched.
        """
        if not stream_id:
            log.warning("Cannot cancel stream: missing stream_id")
            return None
        if to_receiver is None or to_sender is None:
            log.warning(
                "Cannot cancel stream %s: missing %s",
                stream_id, "to_receiver" if to_receiver is None else "to_sender",
            )
            return None

        record = await self._store.get_stream(stream_id)
        if record is None:
            log.warning("Stream not found for cancellation: %s", stream_id)
            return None

        updated = replace(
            record,
            status=StreamStatus.CANCELED,
            closed_at=closed_at,
            final_streamed_amount=to_receiver,
            remaining_unstreamed_amount=to_sender,
            last_ledger=max(record.last_ledger, ledger),
            updated_at=_now(),
        )
        await self._store.update_stream(updated)

        return CancelSummary(
            stream_id=stream_id,
            closed_at=closed_at,
            final_streamed_amount=to_receiver,
            original_total_amount=record.total_amount,
            remaining_unstreamed_amount=to_sender,
        )
