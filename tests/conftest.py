"""Shared fixtures for stream_watcher tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from stream_watcher.lifecycle.handlers import LifecycleEventHandler
from stream_watcher.lifecycle.reconciler import StreamLifecycleReconciler
from stream_watcher.models.config import WatcherConfig
from stream_watcher.stellar.watcher import EventWatcher
from stream_watcher.storage.sqlite import SQLiteStreamStore

from tests.factories import CONTRACT_ID
from tests.mocks import MockLedgerSource


def pytest_configure(config):
    """Add network info to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stellar Testnet (mocked)"
    meta["Stream Contract"] = CONTRACT_ID


def make_test_config(**overrides) -> WatcherConfig:
    """Build a WatcherConfig suitable for testing."""
    defaults = dict(
        rpc_url="https://soroban-testnet.stellar.org",
        contract_id=CONTRACT_ID,
        network="testnet",
        poll_interval_ms=5000,
        max_retries=3,
        retry_delay_ms=2000,
        max_backoff_ms=30_000,
        event_limit=100,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return WatcherConfig(**defaults)


def record_sleeps(watcher: EventWatcher, stop_after: int | None = None) -> list[int]:
    """Replace the watcher's sleep with a recorder. Optionally stop after N sleeps."""
    delays: list[int] = []

    async def _fake_sleep(delay_ms: int) -> None:
        delays.append(delay_ms)
        if stop_after is not None and len(delays) >= stop_after:
            await watcher.stop()

    watcher._sleep = _fake_sleep  # type: ignore[method-assign]
    return delays


@pytest.fixture
def test_config():
    """Default WatcherConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStreamStore."""
    s = SQLiteStreamStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def reconciler(store):
    return StreamLifecycleReconciler(store)


@pytest.fixture
def handler(reconciler):
    return LifecycleEventHandler(reconciler)


@pytest.fixture
def source():
    return MockLedgerSource(latest_ledger=1000)


@pytest.fixture
def watcher(source, handler, store, test_config):
    """EventWatcher wired to the mock source and an in-memory store."""
    return EventWatcher(source, handler, store, test_config)
