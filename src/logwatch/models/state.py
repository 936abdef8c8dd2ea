"""Watch lifecycle state and server-side filter handles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from logwatch.models.criteria import FilterKind, WatchCriteria


class WatchState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"  # terminal


class PollMode(str, Enum):
    FILTER = "filter"
    DIRECT = "direct"


@dataclass(frozen=True)
class FilterHandle:
    """Opaque server filter id plus what it was created with."""

    id: str
    kind: FilterKind
    criteria: WatchCriteria
    from_block: int | None = None


@dataclass(frozen=True)
class FallbackRequired:
    """Filter creation failed; the watch must poll with direct range queries.

    ``cause`` is the error from eth_newFilter. It is reported to the
    consumer unless it is an UnsupportedMethod.
    """

    cause: Exception
