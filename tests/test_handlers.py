"""Decoded contract events routed through the lifecycle handler."""

from __future__ import annotations

import logging

from stellar_sdk import scval

from stream_watcher.models.records import StreamStatus
from stream_watcher.stellar.decoder import extract_event_type, parse_contract_event

from tests.factories import (
    LEDGER_CLOSED_AT,
    RECEIVER,
    SENDER,
    cancelled_value,
    created_value,
    make_raw_event,
    to_map,
    withdrawn_value,
)


async def _dispatch(handler, raw):
    await handler.handle(extract_event_type(raw.topics), parse_contract_event(raw))


# ── stream_created ────────────────────────────────────────────────


async def test_created_event_indexes_stream(handler, store):
    await _dispatch(handler, make_raw_event("stream_created", created_value()))

    stored = await store.get_stream("42")
    assert stored is not None
    assert stored.total_amount == 100_000
    assert stored.withdrawn == 0
    assert stored.sender == SENDER
    assert stored.receiver == RECEIVER
    assert stored.tx_hash == "tx_abc123"
    assert stored.created_at == LEDGER_CLOSED_AT
    assert stored.last_ledger == 1001
    assert stored.status == StreamStatus.CREATED


async def test_created_event_falls_back_to_amount(handler, store):
    value = created_value(total_amount=None, amount=scval.to_int128(5000))
    await _dispatch(handler, make_raw_event("create", value))

    stored = await store.get_stream("42")
    assert stored.total_amount == 5000


async def test_created_event_prefers_total_amount(handler, store):
    value = created_value(total_amount=7000, amount=scval.to_int128(5000))
    await _dispatch(handler, make_raw_event("create", value))

    stored = await store.get_stream("42")
    assert stored.total_amount == 7000


async def test_created_event_missing_amount_warns_once(handler, store, caplog):
    value = created_value(total_amount=None)
    with caplog.at_level(logging.WARNING):
        await _dispatch(handler, make_raw_event("stream_created", value))

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "missing fields" in warnings[0].getMessage()
    assert await store.list_streams() == []


async def test_created_event_sender_from_topic(handler, store):
    value = created_value(sender=None)
    raw = make_raw_event("create", value, extra_topics=(scval.to_address(SENDER),))
    await _dispatch(handler, raw)

    stored = await store.get_stream("42")
    assert stored.sender == SENDER


async def test_created_event_without_sender_is_unknown(handler, store):
    await _dispatch(handler, make_raw_event("create", created_value(sender=None, receiver=None)))

    stored = await store.get_stream("42")
    assert stored.sender == "unknown"
    assert stored.receiver == "unknown"


async def test_created_event_duration_from_time_range(handler, store):
    value = created_value(
        start_time=scval.to_uint64(1_700_000_000),
        end_time=scval.to_uint64(1_700_003_600),
        timestamp=1_700_000_000,
    )
    await _dispatch(handler, make_raw_event("create", value))

    stored = await store.get_stream("42")
    assert stored.duration == 3600
    assert stored.created_at == "2023-11-14T22:13:20.000Z"


# ── stream_withdrawn ──────────────────────────────────────────────


async def test_withdraw_events_accumulate(handler, store):
    await _dispatch(handler, make_raw_event("stream_created", created_value(total_amount=1000)))
    await _dispatch(handler, make_raw_event("stream_withdrawn", withdrawn_value(amount=300), ledger=1002))
    await _dispatch(handler, make_raw_event("claim", withdrawn_value(amount=200), ledger=1003))

    stored = await store.get_stream("42")
    assert stored.withdrawn == 500
    assert stored.status == StreamStatus.ACTIVE


async def test_withdraw_missing_amount_is_skipped(handler, store, caplog):
    await _dispatch(handler, make_raw_event("stream_created", created_value()))
    value = to_map({"stream_id": scval.to_uint64(42)})
    with caplog.at_level(logging.WARNING):
        await _dispatch(handler, make_raw_event("withdraw", value, ledger=1002))

    assert "hasAmount=False" in caplog.text
    assert (await store.get_stream("42")).withdrawn == 0


# ── stream_cancelled ──────────────────────────────────────────────


async def test_cancel_event_closes_stream(handler, store, caplog):
    await _dispatch(handler, make_raw_event("stream_created", created_value(total_amount=1000)))
    with caplog.at_level(logging.INFO):
        await _dispatch(
            handler,
            make_raw_event("cancel", cancelled_value(timestamp=1_700_000_000), ledger=1005),
        )

    stored = await store.get_stream("42")
    assert stored.status == StreamStatus.CANCELED
    assert stored.closed_at == "2023-11-14T22:13:20.000Z"
    assert stored.final_streamed_amount == 400
    assert stored.remaining_unstreamed_amount == 600
    assert "Stream cancellation persisted: stream_id=42 status=CANCELED" in caplog.text


async def test_cancel_event_without_timestamp_uses_ledger_close(handler, store):
    await _dispatch(handler, make_raw_event("stream_created", created_value()))
    await _dispatch(handler, make_raw_event("stream_cancelled", cancelled_value(), ledger=1005))

    stored = await store.get_stream("42")
    assert stored.closed_at == LEDGER_CLOSED_AT


# ── Other payloads ────────────────────────────────────────────────


async def test_non_map_payload_is_ignored(handler, store):
    await _dispatch(handler, make_raw_event("stream_created", scval.to_uint32(1)))
    assert await store.list_streams() == []


async def test_unknown_kind_is_ignored(handler, store):
    await _dispatch(handler, make_raw_event("transfer", created_value()))
    assert await store.list_streams() == []


async def test_kind_is_case_insensitive(handler, store):
    await _dispatch(handler, make_raw_event("Stream_Created", created_value()))
    assert await store.get_stream("42") is not None
