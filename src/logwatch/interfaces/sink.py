"""LogSink protocol - the consumer side of a watch."""

from __future__ import annotations

from typing import Protocol, Sequence

from logwatch.models.logs import LogEntry


class LogSink(Protocol):
    """Receives delivered entries and reported errors."""

    async def deliver(self, entries: Sequence[LogEntry]) -> None:
        ...

    async def report(self, error: Exception) -> None:
        ...
