"""Soroban SCVal decoding - turns XDR event topics and values into native data.

Every function here is pure: nothing is logged, failures either fall back
to the offending value's base64 XDR or raise DecodeError for the caller
to report.
"""

from __future__ import annotations

import json
from typing import Sequence

from stellar_sdk import scval, xdr

from stream_watcher.errors import DecodeError
from stream_watcher.models.events import NativeValue, ParsedEvent, RawEvent

UNKNOWN_EVENT_TYPE = "unknown"
CONTRACT_INSTANCE = "ContractInstance"

_T = xdr.SCValType


def _join_128(hi: int, lo: int) -> int:
    """Combine the 64-bit halves of a (u|i)128. A signed hi yields a signed result."""
    return (hi << 64) | lo


def as_text(value: NativeValue) -> str:
    """Render a decoded value as text (map keys, event kinds)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _decode(val: xdr.SCVal) -> NativeValue:
    t = val.type

    if t in (_T.SCV_VOID, _T.SCV_LEDGER_KEY_CONTRACT_INSTANCE):
        return None
    if t == _T.SCV_BOOL:
        return bool(val.b)
    if t == _T.SCV_U32:
        return val.u32.uint32
    if t == _T.SCV_I32:
        return val.i32.int32

    # 64-bit and wider integers are always decimal strings
    if t == _T.SCV_U64:
        return str(val.u64.uint64)
    if t == _T.SCV_I64:
        return str(val.i64.int64)
    if t == _T.SCV_U128:
        return str(_join_128(val.u128.hi.uint64, val.u128.lo.uint64))
    if t == _T.SCV_I128:
        return str(_join_128(val.i128.hi.int64, val.i128.lo.uint64))
    if t in (_T.SCV_U256, _T.SCV_I256):
        # Not reconstructed numerically; kept as the original XDR.
        return val.to_xdr()

    if t == _T.SCV_BYTES:
        return bytes(val.bytes.sc_bytes).hex()
    if t == _T.SCV_STRING:
        return val.str.sc_string.decode("utf-8")
    if t == _T.SCV_SYMBOL:
        return val.sym.sc_symbol.decode("utf-8")

    if t == _T.SCV_VEC:
        if val.vec is None:
            return []
        return [decode_scval(item) for item in val.vec.sc_vec]
    if t == _T.SCV_MAP:
        if val.map is None:
            return {}
        result: dict[str, NativeValue] = {}
        for entry in val.map.sc_map:
            result[as_text(decode_scval(entry.key))] = decode_scval(entry.val)
        return result

    if t == _T.SCV_ADDRESS:
        return scval.from_address(val).address
    if t == _T.SCV_CONTRACT_INSTANCE:
        return CONTRACT_INSTANCE

    return val.to_xdr()


def decode_scval(val: xdr.SCVal) -> NativeValue:
    """Decode an SCVal recursively.

    Never raises: a value (or nested sub-value) that cannot be decoded is
    replaced by its own base64 XDR encoding.
    """
    try:
        return _decode(val)
    except Exception:
        return val.to_xdr()


def decode_xdr(value_xdr: str) -> NativeValue:
    """Parse a base64 XDR SCVal and decode it.

    Raises DecodeError if the XDR itself is malformed.
    """
    try:
        val = xdr.SCVal.from_xdr(value_xdr)
    except Exception as exc:
        raise DecodeError(f"malformed SCVal XDR: {exc}") from exc
    return decode_scval(val)


def _decode_topic(topic_xdr: str) -> NativeValue:
    try:
        return decode_xdr(topic_xdr)
    except DecodeError:
        return topic_xdr


def parse_contract_event(raw: RawEvent) -> ParsedEvent:
    """Decode a raw contract event's topics and value.

    A malformed value raises DecodeError; a malformed topic is kept as
    its base64 string.
    """
    try:
        value = decode_xdr(raw.value)
    except DecodeError as exc:
        raise DecodeError(f"event {raw.id}: {exc}", event_id=raw.id) from exc

    return ParsedEvent(
        id=raw.id,
        type=raw.type,
        ledger=raw.ledger,
        ledger_closed_at=raw.ledger_closed_at,
        contract_id=raw.contract_id,
        topics=[_decode_topic(t) for t in raw.topics],
        value=value,
        tx_hash=raw.tx_hash,
        in_successful_contract_call=raw.in_successful_contract_call,
        raw_topics=list(raw.topics),
    )


def extract_event_type(topics: Sequence[str]) -> str:
    """Event kind from the first topic (usually a symbol like "create")."""
    if not topics:
        return UNKNOWN_EVENT_TYPE
    try:
        return as_text(decode_xdr(topics[0]))
    except DecodeError:
        return UNKNOWN_EVENT_TYPE
