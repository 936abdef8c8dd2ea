"""Batching dispatcher - hands one tick's entries to the consumer callback."""

from __future__ import annotations

import inspect
import logging
from typing import Callable, Sequence

from logwatch.interfaces.sink import LogSink
from logwatch.models.config import ErrorCallback, LogsCallback
from logwatch.models.logs import LogEntry

log = logging.getLogger(__name__)


class CallbackSink:
    """Implements LogSink over plain ``on_logs`` / ``on_error`` callables.

    Callbacks may be sync functions or coroutine functions.
    """

    def __init__(self, on_logs: LogsCallback, on_error: ErrorCallback | None = None) -> None:
        self._on_logs = on_logs
        self._on_error = on_error

    async def deliver(self, entries: Sequence[LogEntry]) -> None:
        result = self._on_logs(entries)
        if inspect.isawaitable(result):
            await result

    async def report(self, error: Exception) -> None:
        if self._on_error is None:
            log.warning("Unhandled watch error: %s", error)
            return
        try:
            result = self._on_error(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("on_error callback raised")


class BatchingDispatcher:
    """Delivers entries in order: one call per tick, or one call per entry."""

    def __init__(self, sink: LogSink, batch: bool = True) -> None:
        self._sink = sink
        self._batch = batch

    async def dispatch(
        self, entries: Sequence[LogEntry], is_live: Callable[[], bool]
    ) -> int:
        """Deliver ``entries``; returns the number of callback invocations.

        ``is_live`` is checked before every invocation so a stop requested
        from inside a callback takes effect immediately.
        """
        if not entries:
            return 0
        if self._batch:
            if not is_live():
                return 0
            await self._deliver(list(entries), is_live)
            return 1

        calls = 0
        for entry in entries:
            if not is_live():
                break
            await self._deliver([entry], is_live)
            calls += 1
        return calls

    async def _deliver(self, entries: list[LogEntry], is_live: Callable[[], bool]) -> None:
        try:
            await self._sink.deliver(entries)
        except Exception as exc:
            log.error("on_logs callback raised: %s", exc, exc_info=True)
            if is_live():
                await self._sink.report(exc)
