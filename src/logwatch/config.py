"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from logwatch.errors import ConfigError
from logwatch.models.config import WatcherConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "LOGWATCH_",
) -> WatcherConfig:
    """Load watcher configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (LOGWATCH_RPC_URL, etc.)
        2. TOML config file ([rpc] and [watch] sections)
        3. Defaults from WatcherConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = WatcherConfig()

    try:
        # ── RPC section ────────────────────────────────────────
        rpc = raw.get("rpc", {})
        if v := rpc.get("url"):
            cfg.rpc_url = str(v)
        if v := rpc.get("request_timeout"):
            cfg.request_timeout = float(v)

        # ── Watch section ──────────────────────────────────────
        watch = raw.get("watch", {})
        if v := watch.get("poll_interval"):
            cfg.poll_interval = float(v)
        if v := watch.get("max_block_range"):
            cfg.max_block_range = int(v)
        if v := watch.get("log_level"):
            cfg.log_level = str(v)

        # ── Environment variable overrides (highest priority) ──
        if v := os.environ.get(f"{env_prefix}RPC_URL"):
            cfg.rpc_url = v
        if v := os.environ.get(f"{env_prefix}REQUEST_TIMEOUT"):
            cfg.request_timeout = float(v)
        if v := os.environ.get(f"{env_prefix}POLL_INTERVAL"):
            cfg.poll_interval = float(v)
        if v := os.environ.get(f"{env_prefix}MAX_BLOCK_RANGE"):
            cfg.max_block_range = int(v)
        if v := os.environ.get(f"{env_prefix}LOG_LEVEL"):
            cfg.log_level = v
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid configuration value: {exc}") from exc

    if cfg.poll_interval <= 0:
        raise ConfigError("poll_interval must be positive")
    if cfg.max_block_range is not None and cfg.max_block_range <= 0:
        raise ConfigError("max_block_range must be positive")

    return cfg


def configure_logging(cfg: WatcherConfig, verbose: bool = False) -> None:
    """Apply the log level from config (DEBUG when ``verbose``)."""
    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
