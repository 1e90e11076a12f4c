"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Mapping

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from stream_watcher.errors import ConfigError
from stream_watcher.models.config import WatcherConfig

log = logging.getLogger(__name__)

CONTRACT_ID_PATTERN = re.compile(r"^C[A-Z0-9]{55}$")

NETWORK_PASSPHRASES = {
    "testnet": "Test SDF Network ; September 2015",
    "mainnet": "Public Global Stellar Network ; September 2015",
}


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> WatcherConfig:
    """Load watcher configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (STELLAR_RPC_URL, CONTRACT_ID, ...)
        2. TOML config file
        3. Defaults from WatcherConfig
    """
    env = os.environ if environ is None else environ

    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = WatcherConfig()
    passphrase_set = False

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := stellar.get("contract_id"):
        cfg.contract_id = str(v)
    if v := stellar.get("network"):
        cfg.network = str(v)
    if v := stellar.get("network_passphrase"):
        cfg.network_passphrase = str(v)
        passphrase_set = True

    # ── Watcher section ────────────────────────────────────
    watcher = raw.get("watcher", {})
    if v := watcher.get("poll_interval_ms"):
        cfg.poll_interval_ms = int(v)
    if v := watcher.get("max_retries"):
        cfg.max_retries = int(v)
    if v := watcher.get("retry_delay_ms"):
        cfg.retry_delay_ms = int(v)
    if v := watcher.get("max_backoff_ms"):
        cfg.max_backoff_ms = int(v)
    if v := watcher.get("event_limit"):
        cfg.event_limit = int(v)
    if v := watcher.get("log_level"):
        cfg.log_level = str(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if v := env.get("STELLAR_RPC_URL"):
        cfg.rpc_url = v
    if v := env.get("CONTRACT_ID"):
        cfg.contract_id = v
    if v := env.get("STELLAR_NETWORK"):
        cfg.network = v
    if v := env.get("STELLAR_NETWORK_PASSPHRASE"):
        cfg.network_passphrase = v
        passphrase_set = True
    if v := env.get("POLL_INTERVAL_MS"):
        cfg.poll_interval_ms = _env_int("POLL_INTERVAL_MS", v)
    if v := env.get("MAX_RETRIES"):
        cfg.max_retries = _env_int("MAX_RETRIES", v)
    if v := env.get("RETRY_DELAY_MS"):
        cfg.retry_delay_ms = _env_int("RETRY_DELAY_MS", v)
    if v := env.get("STREAM_WATCHER_DB_PATH"):
        cfg.db_path = v
    if v := env.get("LOG_LEVEL"):
        cfg.log_level = v

    if not passphrase_set:
        cfg.network_passphrase = NETWORK_PASSPHRASES.get(cfg.network, cfg.network_passphrase)

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def validate_config(cfg: WatcherConfig) -> None:
    """Check required settings. An unusual contract ID only warns."""
    missing = [
        name for name, value in (("rpc_url", cfg.rpc_url), ("contract_id", cfg.contract_id))
        if not value
    ]
    if missing:
        raise ConfigError(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set STELLAR_RPC_URL and CONTRACT_ID or the [stellar] section of the config file."
        )

    if not CONTRACT_ID_PATTERN.match(cfg.contract_id):
        log.warning(
            "CONTRACT_ID format looks unusual: %s (expected C followed by 55 alphanumeric characters)",
            cfg.contract_id,
        )

    for name in ("poll_interval_ms", "retry_delay_ms", "max_backoff_ms", "event_limit", "max_retries"):
        if getattr(cfg, name) <= 0:
            raise ConfigError(f"{name} must be positive, got {getattr(cfg, name)}")
