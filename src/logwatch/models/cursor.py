"""Range cursor: how far into the log sequence a watch has progressed."""

from __future__ import annotations

from dataclasses import dataclass, field

from logwatch.errors import DecodeError
from logwatch.models.logs import RawLog


@dataclass(frozen=True)
class Cursor:
    """Highest block already delivered (filter mode) or queried (direct mode).

    Values are immutable; every poll returns the next cursor instead of
    mutating this one.
    """

    position: int

    @classmethod
    def start(cls, from_block: int | None, head: int | None) -> Cursor:
        """Explicit start block wins; otherwise begin at the current head."""
        if from_block is not None:
            return cls(max(from_block - 1, -1))
        if head is None:
            raise ValueError("need a head block when no start block is given")
        return cls(head)

    def advance(self, block: int | None) -> Cursor:
        if block is None or block <= self.position:
            return self
        return Cursor(block)

    def advance_past(self, logs: list[RawLog]) -> Cursor:
        """Advance to the highest mined block among ``logs``."""
        blocks = [log.block_number for log in logs if log.block_number is not None]
        return self.advance(max(blocks)) if blocks else self

    def next_range(self, head: int) -> tuple[int, int] | None:
        """Inclusive block range for (position, head], or None when idle."""
        if head <= self.position:
            return None
        return (self.position + 1, head)


def split_range(
    start: int, end: int, max_span: int | None
) -> list[tuple[int, int]]:
    """Split an inclusive range into consecutive spans of at most ``max_span`` blocks."""
    if not max_span or max_span <= 0:
        return [(start, end)]
    spans = []
    lo = start
    while lo <= end:
        hi = min(lo + max_span - 1, end)
        spans.append((lo, hi))
        lo = hi + 1
    return spans


@dataclass(frozen=True)
class PollResult:
    """Logs produced by one poll, plus the cursor to thread into the next."""

    logs: list[RawLog]
    cursor: Cursor
    queried: bool = True  # False on an idle direct-mode tick
    rejected: list[DecodeError] = field(default_factory=list)  # unparseable log objects
