"""Error taxonomy for RPC faults, filter expiry and log decoding."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from logwatch.models.logs import RawLog


class LogWatchError(Exception):
    """Base class for every error raised by logwatch."""


class ConfigError(LogWatchError):
    """Invalid configuration or watch criteria."""


class TransportError(LogWatchError):
    """Network failure, timeout, HTTP fault or malformed JSON-RPC envelope.

    Reported to ``on_error``; the watch keeps going and the next tick
    retries the same call.
    """


class RPCResponseError(TransportError):
    """The node answered with a JSON-RPC ``error`` object."""

    def __init__(self, method: str, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"{method} failed ({code}): {message}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class UnsupportedMethod(RPCResponseError):
    """The node does not implement the method (no filter support)."""


class FilterNotFound(RPCResponseError):
    """The server dropped the filter handle; it must be recreated."""


class DecodeError(LogWatchError):
    """A single log could not be parsed or decoded against the watched events.

    ``log`` is the RawLog, or the raw JSON-RPC object when one of its
    fields could not be parsed.
    """

    def __init__(self, log: RawLog | Mapping[str, Any], reason: str) -> None:
        if isinstance(log, Mapping):
            where = f"log {log.get('logIndex')} in block {log.get('blockNumber')}"
        else:
            where = f"log {log.log_index} in block {log.block_number}"
        super().__init__(f"cannot decode {where}: {reason}")
        self.log = log
        self.reason = reason
