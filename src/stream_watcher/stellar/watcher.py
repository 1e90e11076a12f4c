"""Soroban event watcher - cursor-based polling loop with exponential backoff."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace

from stream_watcher.errors import DecodeError
from stream_watcher.interfaces.source import LedgerSource
from stream_watcher.interfaces.store import StreamStore
from stream_watcher.lifecycle.handlers import LifecycleEventHandler
from stream_watcher.models.config import WatcherConfig
from stream_watcher.models.events import RawEvent
from stream_watcher.models.records import WatcherState, WatcherStatus
from stream_watcher.stellar.decoder import extract_event_type, parse_contract_event

log = logging.getLogger(__name__)
events_log = logging.getLogger("stream_watcher.events")


class EventWatcher:
    """Polls a ledger source for contract events and feeds the lifecycle handler.

    The watcher owns a ledger cursor (last fully processed ledger) that
    only moves forward. Each cycle fetches events after the cursor,
    decodes and dispatches them one at a time, and advances the cursor
    after every event. Fetch failures back off exponentially; after
    max_retries consecutive failures the watcher stops itself.

    Only the two sleeps (poll interval and backoff) can be cut short by
    stop(); in-flight decode and dispatch work always completes.
    """

    def __init__(
        self,
        source: LedgerSource,
        handler: LifecycleEventHandler,
        store: StreamStore,
        config: WatcherConfig,
    ) -> None:
        self._source = source
        self._handler = handler
        self._store = store
        self._cfg = config
        self._state = WatcherState()
        self._wake = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop_task: asyncio.Task | None = None

        log.info(
            "EventWatcher initialized (contract=%s, poll_interval=%dms)",
            config.contract_id, config.poll_interval_ms,
        )

    @property
    def state(self) -> WatcherState:
        """Snapshot of the watcher state."""
        return replace(self._state)

    @property
    def status(self) -> WatcherStatus:
        return self._state.status

    # ── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        """Seed the cursor from the latest ledger and run until stopped."""
        if self._state.is_running:
            log.warning("EventWatcher is already running")
            return
        if not self._idle.is_set():
            # stop() was requested but the previous loop has not exited yet
            log.warning("EventWatcher is still stopping, start ignored")
            return

        self._state.is_running = True
        self._wake.clear()
        self._idle.clear()
        self._loop_task = asyncio.current_task()
        log.info("EventWatcher started")

        try:
            await self._initialize_cursor()
            await self._poll_loop()
        finally:
            self._state.is_running = False
            self._loop_task = None
            self._idle.set()

    async def stop(self) -> None:
        """Stop polling. Waits for the in-flight cycle when called from outside the loop."""
        if not self._state.is_running:
            return

        log.info("Stopping EventWatcher...")
        self._state.is_running = False
        self._wake.set()

        if self._loop_task is not None and self._loop_task is not asyncio.current_task():
            await self._idle.wait()

        log.info(
            "EventWatcher stopped (last_processed_ledger=%d, error_count=%d)",
            self._state.last_processed_ledger, self._state.error_count,
        )

    async def _initialize_cursor(self) -> None:
        try:
            self._state.last_processed_ledger = await self._source.get_latest_ledger()
            log.info("Cursor initialized at ledger %d", self._state.last_processed_ledger)
        except Exception as exc:
            log.error("Failed to initialize cursor, starting from ledger 0: %s", exc)
            self._state.last_processed_ledger = 0

    # ── Poll loop ─────────────────────────────────────────

    def backoff_delay_ms(self, error_count: int) -> int:
        """Delay before retrying after error_count consecutive failures."""
        delay = self._cfg.retry_delay_ms * 2 ** max(error_count - 1, 0)
        return min(delay, self._cfg.max_backoff_ms)

    async def _poll_loop(self) -> None:
        while self._state.is_running:
            try:
                await self.poll_once()
                self._state.error_count = 0
                await self._sleep(self._cfg.poll_interval_ms)

            except asyncio.CancelledError:
                log.info("Poll loop cancelled")
                break
            except Exception as exc:
                self._state.error_count += 1
                self._state.last_error = exc
                log.error(
                    "Error in poll loop (error_count=%d, last_processed_ledger=%d): %s",
                    self._state.error_count, self._state.last_processed_ledger, exc,
                    exc_info=True,
                )

                delay = self.backoff_delay_ms(self._state.error_count)
                log.info("Retrying in %dms...", delay)
                await self._sleep(delay)

                if self._state.error_count >= self._cfg.max_retries:
                    log.error("Max retries exceeded, stopping watcher")
                    await self.stop()

    async def _sleep(self, delay_ms: int) -> None:
        """Wait delay_ms, returning early if stop() is called."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            pass

    async def poll_once(self) -> int:
        """Run one fetch/decode/dispatch cycle. Returns the number of events fetched.

        Fetch and store errors propagate; per-event errors do not.
        """
        start_ledger = self._state.last_processed_ledger + 1
        log.debug("Fetching events from ledger %d", start_ledger)

        events = await self._source.get_events(start_ledger)

        if not events:
            log.debug("No new events found")
            # Keep the cursor moving through quiet periods
            latest = await self._source.get_latest_ledger()
            self._advance_cursor(latest)
        else:
            log.info("Found %d new events", len(events))
            for raw in events:
                await self._process_event(raw)
                self._advance_cursor(raw.ledger)
            log.debug(
                "Events processed: count=%d last_processed_ledger=%d",
                len(events), self._state.last_processed_ledger,
            )

        await self._store.set_cursor(self._state.last_processed_ledger)
        return len(events)

    def _advance_cursor(self, ledger: int) -> None:
        if ledger > self._state.last_processed_ledger:
            self._state.last_processed_ledger = ledger

    async def _process_event(self, raw: RawEvent) -> None:
        try:
            parsed = parse_contract_event(raw)
        except DecodeError as exc:
            log.warning("Skipping unparseable event %s: %s", raw.id, exc)
            return

        event_type = extract_event_type(raw.topics)
        events_log.info(
            "EVENT: %s %s", event_type, json.dumps(parsed.audit_record(), default=str),
        )

        if not parsed.in_successful_contract_call:
            log.debug("Event %s comes from a failed contract call, not indexed", raw.id)
            return

        try:
            await self._handler.handle(event_type, parsed)
        except Exception as exc:
            log.error(
                "Failed to process %s event %s: %s", event_type, raw.id, exc, exc_info=True,
            )
