"""logwatch - poll-based log watching for EVM JSON-RPC nodes."""

from logwatch.errors import (
    ConfigError,
    DecodeError,
    FilterNotFound,
    LogWatchError,
    RPCResponseError,
    TransportError,
    UnsupportedMethod,
)
from logwatch.models import (
    LogEntry,
    RawLog,
    WatchCriteria,
    WatcherConfig,
    WatchOptions,
    WatchState,
)
from logwatch.rpc import HttpLedgerRPC
from logwatch.watcher import LogWatcher, WatchHandle, watch, watch_event

__version__ = "0.1.0"

__all__ = [
    "ConfigError", "DecodeError", "FilterNotFound", "LogWatchError",
    "RPCResponseError", "TransportError", "UnsupportedMethod",
    "LogEntry", "RawLog", "WatchCriteria", "WatcherConfig", "WatchOptions", "WatchState",
    "HttpLedgerRPC",
    "LogWatcher", "WatchHandle", "watch", "watch_event",
]
