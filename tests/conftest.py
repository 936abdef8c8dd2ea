"""Shared fixtures for logwatch tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from logwatch.models.config import WatchOptions
from logwatch.models.criteria import WatchCriteria
from logwatch.watcher.orchestrator import LogWatcher

from tests.mocks import FakeLedger, Recorder

# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add backend info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Ledger"] = "in-memory FakeLedger (eth_* JSON-RPC semantics)"


@pytest.fixture
def ledger():
    """Node with filter support, head at block 9."""
    return FakeLedger(head=9)


@pytest.fixture
def no_filter_ledger():
    """Node that rejects eth_newFilter with 'method not found'."""
    return FakeLedger(head=9, supports_filters=False)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_watcher(recorder):
    """Build a LogWatcher wired to ``recorder``; ticks are driven by the test."""
    def _make(rpc, criteria: WatchCriteria | None = None, **options) -> LogWatcher:
        options.setdefault("on_logs", recorder.on_logs)
        options.setdefault("on_error", recorder.on_error)
        options.setdefault("poll_interval", 0.01)
        return LogWatcher(rpc, criteria or WatchCriteria(), WatchOptions(**options))

    return _make
