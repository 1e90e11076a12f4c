"""Stellar/Soroban integration components."""

from stream_watcher.stellar.rpc import SorobanLedgerSource
from stream_watcher.stellar.watcher import EventWatcher

__all__ = ["SorobanLedgerSource", "EventWatcher"]
