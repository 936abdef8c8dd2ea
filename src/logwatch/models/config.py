"""Configuration models for watches and the RPC client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, Union

from logwatch.models.logs import LogEntry

DEFAULT_POLL_INTERVAL = 4.0  # seconds

LogsCallback = Callable[[Sequence[LogEntry]], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


@dataclass
class WatcherConfig:
    """Process-level settings, loaded by ``logwatch.config.load_config``."""

    rpc_url: str = "http://127.0.0.1:8545"
    request_timeout: float = 30.0  # seconds
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_block_range: int | None = None  # cap on one eth_getLogs span
    log_level: str = "info"


@dataclass
class WatchOptions:
    """Per-watch delivery options.

    ``on_logs`` receives a sequence of LogEntry: the whole tick when
    ``batch`` is true, one entry at a time otherwise.
    """

    on_logs: LogsCallback
    on_error: ErrorCallback | None = None
    batch: bool = True
    poll_interval: float = DEFAULT_POLL_INTERVAL
    from_block: int | None = None
    max_block_range: int | None = None

    @classmethod
    def from_config(cls, cfg: WatcherConfig, **overrides: Any) -> WatchOptions:
        overrides.setdefault("poll_interval", cfg.poll_interval)
        overrides.setdefault("max_block_range", cfg.max_block_range)
        return cls(**overrides)
