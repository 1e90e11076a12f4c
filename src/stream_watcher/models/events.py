"""Contract event models: raw RPC events and their decoded form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

# Decoded SCVal. Integers wider than 32 bits are decimal strings,
# byte blobs are lowercase hex, 256-bit and unknown tags are base64 XDR.
NativeValue = Union[None, bool, int, str, "list[Any]", "dict[str, Any]"]


@dataclass(frozen=True)
class RawEvent:
    """A contract event as returned by the Soroban RPC getEvents call."""

    id: str
    type: str
    ledger: int
    ledger_closed_at: str  # ISO 8601
    contract_id: str
    topics: list[str] = field(default_factory=list)  # base64 XDR SCVals
    value: str = ""  # base64 XDR SCVal
    tx_hash: str = "unknown"
    in_successful_contract_call: bool = True


@dataclass(frozen=True)
class ParsedEvent:
    """A RawEvent with its topics and value decoded to native values."""

    id: str
    type: str
    ledger: int
    ledger_closed_at: str
    contract_id: str
    topics: list[NativeValue]
    value: NativeValue
    tx_hash: str
    in_successful_contract_call: bool
    raw_topics: list[str] = field(default_factory=list)

    def audit_record(self) -> dict[str, Any]:
        """Structured record emitted to the audit log for every decoded event."""
        return {
            "id": self.id,
            "type": self.type,
            "ledger": self.ledger,
            "ledgerClosedAt": self.ledger_closed_at,
            "contractId": self.contract_id,
            "txHash": self.tx_hash,
            "topics": list(self.raw_topics),
            "value": self.value,
            "inSuccessfulContractCall": self.in_successful_contract_call,
        }
