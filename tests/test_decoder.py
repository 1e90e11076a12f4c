"""SCVal decoding, event-kind extraction and contract event parsing."""

from __future__ import annotations

from dataclasses import replace

import pytest
from stellar_sdk import scval, xdr

from stream_watcher.errors import DecodeError
from stream_watcher.stellar.decoder import (
    decode_scval,
    decode_xdr,
    extract_event_type,
    parse_contract_event,
)

from tests.factories import RECEIVER, SENDER, created_value, make_raw_event, to_map


# ── Scalars ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "val, expected",
    [
        (scval.to_void(), None),
        (scval.to_bool(True), True),
        (scval.to_bool(False), False),
        (scval.to_uint32(4_000_000_000), 4_000_000_000),
        (scval.to_int32(-5), -5),
        (scval.to_uint64(2**64 - 1), "18446744073709551615"),
        (scval.to_int64(-9), "-9"),
        (scval.to_bytes(b"\x00\xab\xff"), "00abff"),
        (scval.to_string("héllo"), "héllo"),
        (scval.to_symbol("stream_created"), "stream_created"),
        (scval.to_address(SENDER), SENDER),
    ],
)
def test_decode_scalars(val, expected):
    assert decode_scval(val) == expected


def test_64_bit_integers_are_strings():
    assert isinstance(decode_scval(scval.to_uint64(1)), str)
    assert isinstance(decode_scval(scval.to_int64(1)), str)


@pytest.mark.parametrize("x", [0, 1, 2**64 - 1, 2**64, 2**64 + 1, 2**127, 2**128 - 1])
def test_u128_round_trip(x):
    assert decode_scval(scval.to_uint128(x)) == str(x)


@pytest.mark.parametrize("x", [-(2**127), -(2**64), -1, 0, 2**63, 2**127 - 1])
def test_i128_round_trip(x):
    assert decode_scval(scval.to_int128(x)) == str(x)


def test_256_bit_integers_stay_as_xdr():
    val = scval.to_uint256(2**200)
    assert decode_scval(val) == val.to_xdr()

    signed = scval.to_int256(-1)
    assert decode_scval(signed) == signed.to_xdr()


# ── Containers ────────────────────────────────────────────────────


def test_decode_nested_vec_and_map():
    val = scval.to_vec([
        scval.to_uint32(1),
        to_map({"amount": scval.to_int128(10**30), "tags": scval.to_vec([scval.to_symbol("a")])}),
    ])
    assert decode_scval(val) == [
        1,
        {"amount": str(10**30), "tags": ["a"]},
    ]


def test_map_keys_are_stringified():
    val = xdr.SCVal(
        type=xdr.SCValType.SCV_MAP,
        map=xdr.SCMap([
            xdr.SCMapEntry(key=scval.to_uint32(7), val=scval.to_bool(True)),
            xdr.SCMapEntry(key=scval.to_bool(False), val=scval.to_void()),
        ]),
    )
    assert decode_scval(val) == {"7": True, "false": None}


def test_absent_vec_and_map_decode_empty():
    assert decode_scval(xdr.SCVal(type=xdr.SCValType.SCV_VEC, vec=None)) == []
    assert decode_scval(xdr.SCVal(type=xdr.SCValType.SCV_MAP, map=None)) == {}
    assert decode_scval(scval.to_vec([])) == []


def test_bad_sub_value_falls_back_to_its_xdr():
    bad = scval.to_string(b"\xff\xfe")  # not UTF-8
    val = scval.to_vec([scval.to_uint32(1), bad])
    assert decode_scval(val) == [1, bad.to_xdr()]


def test_decode_xdr_rejects_garbage():
    with pytest.raises(DecodeError):
        decode_xdr("garbage")


# ── Event kind ────────────────────────────────────────────────────


def test_extract_event_type_empty_topics():
    assert extract_event_type([]) == "unknown"


def test_extract_event_type_garbage_topic():
    assert extract_event_type(["garbage"]) == "unknown"


def test_extract_event_type_symbol_and_number():
    assert extract_event_type([scval.to_symbol("create").to_xdr()]) == "create"
    assert extract_event_type([scval.to_uint32(7).to_xdr()]) == "7"


# ── Contract events ───────────────────────────────────────────────


def test_parse_contract_event_decodes_topics_and_value():
    raw = make_raw_event(
        "create",
        value=created_value(stream_id=42, total_amount=100_000),
        extra_topics=(scval.to_address(SENDER),),
        ledger=777,
    )
    parsed = parse_contract_event(raw)

    assert parsed.id == raw.id
    assert parsed.ledger == 777
    assert parsed.topics == ["create", SENDER]
    assert parsed.raw_topics == raw.topics
    assert parsed.value == {
        "stream_id": "42",
        "sender": SENDER,
        "receiver": RECEIVER,
        "total_amount": "100000",
    }


def test_parse_contract_event_bad_value_raises():
    raw = make_raw_event(value_xdr="garbage")
    with pytest.raises(DecodeError) as exc_info:
        parse_contract_event(raw)
    assert exc_info.value.event_id == raw.id


def test_parse_contract_event_keeps_bad_topic_verbatim():
    raw = make_raw_event()
    raw = replace(raw, topics=raw.topics + ["garbage"])
    parsed = parse_contract_event(raw)
    assert parsed.topics == ["stream_created", "garbage"]


def test_audit_record_shape():
    raw = make_raw_event(value=scval.to_uint32(5))
    record = parse_contract_event(raw).audit_record()
    assert record == {
        "id": raw.id,
        "type": "contract",
        "ledger": raw.ledger,
        "ledgerClosedAt": raw.ledger_closed_at,
        "contractId": raw.contract_id,
        "txHash": raw.tx_hash,
        "topics": raw.topics,
        "value": 5,
        "inSuccessfulContractCall": True,
    }
