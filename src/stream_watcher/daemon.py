"""Watcher daemon - wires the ledger source, store and lifecycle handlers together."""

from __future__ import annotations

import asyncio
import logging
import signal

from stream_watcher.lifecycle.handlers import LifecycleEventHandler
from stream_watcher.lifecycle.reconciler import StreamLifecycleReconciler
from stream_watcher.models.config import WatcherConfig
from stream_watcher.stellar.rpc import SorobanLedgerSource
from stream_watcher.stellar.watcher import EventWatcher
from stream_watcher.storage.sqlite import SQLiteStreamStore

log = logging.getLogger(__name__)


class WatcherDaemon:
    """Long-running stream indexer.

    Owns one store and one ledger source and runs a single EventWatcher
    over them until stopped.
    """

    def __init__(self, cfg: WatcherConfig) -> None:
        self._cfg = cfg

        self.store = SQLiteStreamStore(cfg.db_path)
        self.source = SorobanLedgerSource(cfg.rpc_url, cfg.contract_id, limit=cfg.event_limit)
        self.reconciler = StreamLifecycleReconciler(self.store)
        self.handler = LifecycleEventHandler(self.reconciler)
        self.watcher = EventWatcher(self.source, self.handler, self.store, cfg)

    async def start(self) -> None:
        """Initialize the store and run the watcher until it stops."""
        log.info("Starting stream watcher daemon")
        log.info("  Network:  %s", self._cfg.network)
        log.info("  Contract: %s", self._cfg.contract_id)
        log.info("  RPC:      %s", self._cfg.rpc_url)
        log.info("  DB:       %s", self._cfg.db_path)

        await self.store.initialize()

        saved_ledger = await self.store.get_cursor()
        if saved_ledger:
            log.info("Previous run stopped at ledger %d", saved_ledger)

        try:
            await self.watcher.start()
        finally:
            await self.source.close()
            await self.store.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the watcher to stop gracefully."""
        log.info("Stop requested")
        await self.watcher.stop()


async def run_daemon(cfg: WatcherConfig) -> None:
    """Entry point for running the daemon."""
    daemon = WatcherDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
