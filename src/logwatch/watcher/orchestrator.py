"""Watch orchestrator - drives ticks, recovers from faults, owns the watch state."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

from logwatch.abi.decoder import EventDecoder
from logwatch.errors import DecodeError, FilterNotFound, UnsupportedMethod
from logwatch.interfaces.rpc import LedgerRPC
from logwatch.interfaces.source import PollSource
from logwatch.models.config import (
    DEFAULT_POLL_INTERVAL,
    ErrorCallback,
    LogsCallback,
    WatchOptions,
)
from logwatch.models.criteria import WatchCriteria
from logwatch.models.cursor import Cursor
from logwatch.models.logs import LogEntry, RawLog
from logwatch.models.state import FallbackRequired, FilterHandle, PollMode, WatchState
from logwatch.watcher.dispatcher import BatchingDispatcher, CallbackSink
from logwatch.watcher.filters import FilterHandleManager
from logwatch.watcher.sources import DirectModeSource, FilterModeSource

log = logging.getLogger(__name__)


class LogWatcher:
    """Turns point-in-time RPC polling into an ordered stream of log entries.

    The first tick reads the head, builds the cursor and tries to install a
    server-side filter, falling back to direct getLogs polling for the rest
    of the watch when that fails. Every later tick polls the active source
    and dispatches what it returned. No failure stops the watch; only
    ``stop()`` does, and it always wins over any recovery in progress.
    """

    def __init__(
        self,
        rpc: LedgerRPC,
        criteria: WatchCriteria,
        options: WatchOptions,
        decoder: EventDecoder | None = None,
    ) -> None:
        self._rpc = rpc
        self._criteria = criteria
        self._options = options
        self._decoder = decoder or EventDecoder(criteria.events)
        self._sink = CallbackSink(options.on_logs, options.on_error)
        self._dispatcher = BatchingDispatcher(self._sink, batch=options.batch)
        self._filters = FilterHandleManager(rpc, criteria)

        self._state = WatchState.IDLE
        self._source: PollSource | None = None
        self._cursor: Cursor | None = None
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._sleeping = False
        self._ticks = 0

    # ── State ──────────────────────────────────────────────

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def mode(self) -> PollMode | None:
        return self._source.mode if self._source is not None else None

    @property
    def cursor(self) -> Cursor | None:
        return self._cursor

    @property
    def filter_handle(self) -> FilterHandle | None:
        return self._filters.handle

    def is_live(self) -> bool:
        return self._state is not WatchState.STOPPED

    # ── Lifecycle ──────────────────────────────────────────

    def start(self) -> WatchHandle:
        """Schedule the tick loop on the running event loop."""
        if self._task is not None:
            raise RuntimeError("watch already started")
        if not self.is_live():
            raise RuntimeError("watch already stopped")
        self._task = asyncio.get_running_loop().create_task(self._run())
        return WatchHandle(self)

    def stop(self) -> None:
        """Stop immediately. Results of an in-flight tick are discarded."""
        if self._state is WatchState.STOPPED:
            return
        self._state = WatchState.STOPPED
        log.debug("Stop requested")
        if self._task is not None and self._sleeping:
            self._task.cancel()

    async def wait_stopped(self) -> None:
        """Wait for the tick loop to exit and the filter to be released."""
        if self._task is not None:
            await asyncio.wait({self._task})
        else:
            await self._filters.release()

    async def close(self) -> None:
        self.stop()
        await self.wait_stopped()

    async def _run(self) -> None:
        log.info(
            "Watch started: %d address(es), %d event(s), interval %.2fs, batch=%s",
            len(self._criteria.addresses), len(self._criteria.events),
            self._options.poll_interval, self._options.batch,
        )
        try:
            while self.is_live():
                await self.tick()
                if not self.is_live():
                    break
                self._sleeping = True
                try:
                    await asyncio.sleep(self._options.poll_interval)
                finally:
                    self._sleeping = False
        except asyncio.CancelledError:
            log.debug("Watch loop cancelled")
        finally:
            self._state = WatchState.STOPPED
            await self._filters.release()
            log.info("Watch stopped after %d ticks", self._ticks)

    # ── Ticks ──────────────────────────────────────────────

    async def tick(self) -> int:
        """Run one poll-and-dispatch cycle.

        Returns the number of ``on_logs`` invocations it made. Never raises
        for RPC, decode or callback failures; those go to ``on_error``.
        """
        async with self._tick_lock:
            if not self.is_live():
                return 0
            if self._state is WatchState.IDLE:
                self._state = WatchState.POLLING
            self._ticks += 1
            try:
                if self._source is None:
                    await self._initialize()
                    return 0
                return await self._poll_and_dispatch()
            except Exception as exc:
                log.error("Tick %d failed: %s", self._ticks, exc, exc_info=True)
                await self._report(exc)
                return 0

    async def _initialize(self) -> None:
        from_block = self._options.from_block
        head = None
        if from_block is None:
            try:
                head = await self._rpc.get_block_number()
            except Exception as exc:
                log.warning("Could not read head block, retrying next tick: %s", exc)
                await self._report(exc)
                return

        acquired = await self._filters.acquire(from_block=from_block)
        if not self.is_live():
            return

        self._cursor = Cursor.start(from_block, head)
        if isinstance(acquired, FallbackRequired):
            await self._use_direct_mode(acquired)
        else:
            self._source = self._filter_source(acquired, backfill=from_block is not None)
            log.info("Polling filter %s from block %d", acquired.id, self._cursor.position + 1)

    def _filter_source(self, handle: FilterHandle, backfill: bool) -> FilterModeSource:
        return FilterModeSource(
            self._rpc, handle, backfill=backfill, max_block_range=self._options.max_block_range,
        )

    async def _use_direct_mode(self, fallback: FallbackRequired) -> None:
        self._source = DirectModeSource(
            self._rpc, self._criteria, max_block_range=self._options.max_block_range,
        )
        log.info("Polling getLogs from block %d", self._cursor.position + 1)
        if not isinstance(fallback.cause, UnsupportedMethod):
            await self._report(fallback.cause)

    async def _poll_and_dispatch(self) -> int:
        source = self._source
        try:
            result = await source.poll(self._cursor)
        except FilterNotFound:
            if self.is_live():
                await self._recreate_filter()
            return 0
        except Exception as exc:
            if self.is_live():
                log.warning("%s poll failed: %s", source.mode.value, exc)
                await self._report(exc)
            return 0

        if not self.is_live():
            log.debug("Discarding %d logs polled after stop", len(result.logs))
            return 0

        self._cursor = result.cursor
        for exc in result.rejected:
            log.warning("%s", exc)
            await self._report(exc)
        entries = await self._decode(result.logs)
        return await self._dispatcher.dispatch(entries, self.is_live)

    async def _recreate_filter(self) -> None:
        acquired = await self._filters.recreate(from_block=self._cursor.position + 1)
        if not self.is_live():
            return
        if isinstance(acquired, FallbackRequired):
            await self._use_direct_mode(acquired)
        else:
            self._source = self._filter_source(acquired, backfill=True)

    async def _decode(self, logs: list[RawLog]) -> list[LogEntry]:
        entries = []
        for raw in logs:
            if not self._criteria.matches(raw):
                log.debug("Dropping non-matching log %s from %s", raw.log_index, raw.address)
                continue
            try:
                entries.append(self._decoder.decode(raw))
            except DecodeError as exc:
                log.warning("%s", exc)
                await self._report(exc)
        return entries

    async def _report(self, error: Exception) -> None:
        if self.is_live():
            await self._sink.report(error)


class WatchHandle:
    """Returned by ``watch``; ``unwatch()`` stops the watch synchronously."""

    def __init__(self, watcher: LogWatcher) -> None:
        self._watcher = watcher

    def unwatch(self) -> None:
        self._watcher.stop()

    __call__ = unwatch

    @property
    def state(self) -> WatchState:
        return self._watcher.state

    @property
    def mode(self) -> PollMode | None:
        return self._watcher.mode

    async def wait_stopped(self) -> None:
        await self._watcher.wait_stopped()


def watch(rpc: LedgerRPC, criteria: WatchCriteria, options: WatchOptions) -> WatchHandle:
    """Start watching ``criteria``; must be called with an event loop running."""
    return LogWatcher(rpc, criteria, options).start()


def watch_event(
    rpc: LedgerRPC,
    *,
    on_logs: LogsCallback,
    address: str | Iterable[str] | None = None,
    event: Mapping[str, Any] | None = None,
    events: Iterable[Mapping[str, Any]] | None = None,
    args: Mapping[str, Any] | None = None,
    on_error: ErrorCallback | None = None,
    batch: bool = True,
    poll_interval: float | None = None,
    from_block: int | None = None,
    max_block_range: int | None = None,
) -> WatchHandle:
    """Watch logs by address and/or JSON-ABI event definitions."""
    criteria = WatchCriteria.build(address=address, event=event, events=events, args=args)
    options = WatchOptions(
        on_logs=on_logs,
        on_error=on_error,
        batch=batch,
        poll_interval=DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval,
        from_block=from_block,
        max_block_range=max_block_range,
    )
    return watch(rpc, criteria, options)
