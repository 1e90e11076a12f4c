"""Configuration model for the stream watcher."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_NETWORK_PASSPHRASE = "Test SDF Network ; September 2015"


@dataclass
class WatcherConfig:
    """Complete watcher configuration."""

    # Stellar
    rpc_url: str = ""
    contract_id: str = ""  # payment-stream contract ID
    network: str = "testnet"
    network_passphrase: str = DEFAULT_NETWORK_PASSPHRASE

    # Watcher
    poll_interval_ms: int = 5000
    max_retries: int = 3  # consecutive failures before the watcher stops
    retry_delay_ms: int = 2000  # base of the exponential backoff
    max_backoff_ms: int = 30_000
    event_limit: int = 100  # events per getEvents request
    log_level: str = "info"

    # Storage
    db_path: str = "~/.stream_watcher/streams.db"
