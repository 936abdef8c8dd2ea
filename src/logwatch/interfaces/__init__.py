"""Protocol interfaces for logwatch components."""

from logwatch.interfaces.rpc import LedgerRPC
from logwatch.interfaces.source import PollSource
from logwatch.interfaces.sink import LogSink

__all__ = ["LedgerRPC", "PollSource", "LogSink"]
