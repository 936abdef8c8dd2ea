"""Data models for logwatch."""

from logwatch.models.logs import LogEntry, RawLog
from logwatch.models.criteria import EventInput, EventSignature, FilterKind, WatchCriteria
from logwatch.models.cursor import Cursor, PollResult
from logwatch.models.state import FallbackRequired, FilterHandle, PollMode, WatchState
from logwatch.models.config import WatcherConfig, WatchOptions

__all__ = [
    "LogEntry", "RawLog",
    "EventInput", "EventSignature", "FilterKind", "WatchCriteria",
    "Cursor", "PollResult",
    "FallbackRequired", "FilterHandle", "PollMode", "WatchState",
    "WatcherConfig", "WatchOptions",
]
