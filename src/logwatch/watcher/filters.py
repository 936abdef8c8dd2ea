"""Filter handle manager - creates, recreates and releases server-side filters."""

from __future__ import annotations

import logging

from logwatch.errors import UnsupportedMethod
from logwatch.interfaces.rpc import LedgerRPC
from logwatch.models.criteria import WatchCriteria
from logwatch.models.state import FallbackRequired, FilterHandle

log = logging.getLogger(__name__)


class FilterHandleManager:
    """Owns the single filter handle of one watch.

    Creation failures are not raised: ``acquire`` returns
    ``FallbackRequired`` and the watch switches to direct range queries.
    """

    def __init__(self, rpc: LedgerRPC, criteria: WatchCriteria) -> None:
        self._rpc = rpc
        self._criteria = criteria
        self._handle: FilterHandle | None = None

    @property
    def handle(self) -> FilterHandle | None:
        return self._handle

    async def acquire(self, from_block: int | None = None) -> FilterHandle | FallbackRequired:
        """Create a filter for the watch criteria starting at ``from_block``."""
        params = self._criteria.to_filter_params(from_block=from_block)
        try:
            filter_id = await self._rpc.create_filter(params)
        except UnsupportedMethod as exc:
            log.info("Node has no filter support (%s), using getLogs", exc.message)
            return FallbackRequired(exc)
        except Exception as exc:
            log.warning("Filter creation failed, using getLogs: %s", exc)
            return FallbackRequired(exc)

        self._handle = FilterHandle(
            id=filter_id,
            kind=self._criteria.kind,
            criteria=self._criteria,
            from_block=from_block,
        )
        log.debug(
            "Created %s filter %s (from block %s)",
            self._criteria.kind.value, filter_id, from_block,
        )
        return self._handle

    async def recreate(self, from_block: int | None) -> FilterHandle | FallbackRequired:
        """Replace a handle the server reported as gone."""
        stale, self._handle = self._handle, None
        if stale is not None:
            log.info("Filter %s not found on node, recreating from block %s", stale.id, from_block)
            await self._uninstall(stale)
        return await self.acquire(from_block)

    async def release(self) -> None:
        """Uninstall the current handle, if any. Never raises."""
        handle, self._handle = self._handle, None
        if handle is not None:
            await self._uninstall(handle)

    async def _uninstall(self, handle: FilterHandle) -> None:
        try:
            await self._rpc.uninstall_filter(handle.id)
        except Exception as exc:
            log.debug("Ignoring uninstall failure for filter %s: %s", handle.id, exc)
