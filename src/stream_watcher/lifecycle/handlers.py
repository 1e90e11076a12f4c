"""Lifecycle event handlers - route decoded contract events to the reconciler."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from stream_watcher.lifecycle.payload import (
    read_duration,
    read_stream_id,
    read_string_or_unknown,
    resolve_timestamp_iso,
    to_amount,
)
from stream_watcher.lifecycle.reconciler import StreamLifecycleReconciler
from stream_watcher.models.events import ParsedEvent

log = logging.getLogger(__name__)

# Event kinds as emitted by the contract (first topic symbol)
CREATED_KINDS = frozenset({"create", "stream_created"})
WITHDRAWN_KINDS = frozenset({"claim", "withdraw", "stream_withdrawn"})
CANCELLED_KINDS = frozenset({"cancel", "cancelled", "stream_cancelled"})


class LifecycleEventHandler:
    """Extracts lifecycle fields from decoded payloads and applies them.

    Payloads with missing or unparseable required fields are skipped with
    a warning naming the field; they never raise.
    """

    def __init__(self, reconciler: StreamLifecycleReconciler) -> None:
        self._reconciler = reconciler

    async def handle(self, event_type: str, event: ParsedEvent) -> None:
        payload = event.value
        if not isinstance(payload, dict):
            log.debug(
                "Event payload is not a map; skipping lifecycle indexing (%s, tx %s)",
                event_type, event.tx_hash,
            )
            return

        kind = event_type.lower()
        if kind in CREATED_KINDS:
            log.info("Stream created event detected (tx %s, ledger %d)", event.tx_hash, event.ledger)
            await self._handle_created(event, payload)
        elif kind in WITHDRAWN_KINDS:
            log.info("Withdrawal event detected (tx %s, ledger %d)", event.tx_hash, event.ledger)
            await self._handle_withdrawn(event, payload)
        elif kind in CANCELLED_KINDS:
            log.info("Cancellation event detected (tx %s, ledger %d)", event.tx_hash, event.ledger)
            await self._handle_cancelled(event, payload)
        else:
            log.debug("Unhandled event type: %s", kind)

    async def _handle_created(self, event: ParsedEvent, payload: Mapping[str, Any]) -> None:
        stream_id = read_stream_id(payload)
        total_amount = to_amount(payload.get("total_amount"))
        if total_amount is None:
            total_amount = to_amount(payload.get("amount"))

        if not stream_id or total_amount is None:
            log.warning(
                "Unable to index stream_created event due to missing fields: "
                "tx=%s stream_id=%s hasTotalAmount=%s",
                event.tx_hash, stream_id, total_amount is not None,
            )
            return

        sender = read_string_or_unknown(payload.get("sender"))
        if sender == "unknown" and len(event.topics) > 1:
            # create events carry the sender as the second topic
            sender = read_string_or_unknown(event.topics[1])

        await self._reconciler.upsert_created_stream(
            stream_id=stream_id,
            tx_hash=event.tx_hash,
            sender=sender,
            receiver=read_string_or_unknown(payload.get("receiver")),
            total_amount=total_amount,
            created_at=resolve_timestamp_iso(payload.get("timestamp"), event.ledger_closed_at),
            ledger=event.ledger,
            duration=read_duration(payload),
        )

    async def _handle_withdrawn(self, event: ParsedEvent, payload: Mapping[str, Any]) -> None:
        stream_id = read_stream_id(payload)
        amount = to_amount(payload.get("amount"))
        if not stream_id or amount is None:
            log.warning(
                "Unable to index stream_withdrawn event due to missing fields: "
                "tx=%s stream_id=%s hasAmount=%s",
                event.tx_hash, stream_id, amount is not None,
            )
            return

        await self._reconciler.register_withdrawal(
            stream_id=stream_id, amount=amount, ledger=event.ledger,
        )

    async def _handle_cancelled(self, event: ParsedEvent, payload: Mapping[str, Any]) -> None:
        stream_id = read_stream_id(payload)
        to_receiver = to_amount(payload.get("to_receiver"))
        to_sender = to_amount(payload.get("to_sender"))
        if not stream_id or to_receiver is None or to_sender is None:
            log.warning(
                "Unable to index stream_cancelled event due to missing fields: "
                "tx=%s stream_id=%s hasToReceiver=%s hasToSender=%s",
                event.tx_hash, stream_id, to_receiver is not None, to_sender is not None,
            )
            return

        summary = await self._reconciler.cancel_stream(
            stream_id=stream_id,
            to_receiver=to_receiver,
            to_sender=to_sender,
            closed_at=resolve_timestamp_iso(payload.get("timestamp"), event.ledger_closed_at),
            ledger=event.ledger,
        )
        if summary is None:
            return

        log.info(
            "Stream cancellation persisted: stream_id=%s status=CANCELED closed_at=%s "
            "final_streamed_amount=%d original_total_amount=%d remaining_unstreamed_amount=%d",
            summary.stream_id,
            summary.closed_at,
            summary.final_streamed_amount,
            summary.original_total_amount,
            summary.remaining_unstreamed_amount,
        )
