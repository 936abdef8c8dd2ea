"""Log watching: cursor, filter handles, poll sources, dispatch, orchestration."""

from logwatch.watcher.dispatcher import BatchingDispatcher, CallbackSink
from logwatch.watcher.filters import FilterHandleManager
from logwatch.watcher.orchestrator import LogWatcher, WatchHandle, watch, watch_event
from logwatch.watcher.sources import DirectModeSource, FilterModeSource

__all__ = [
    "BatchingDispatcher", "CallbackSink",
    "FilterHandleManager",
    "LogWatcher", "WatchHandle", "watch", "watch_event",
    "DirectModeSource", "FilterModeSource",
]
