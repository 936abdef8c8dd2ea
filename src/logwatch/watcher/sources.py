"""Poll sources - filter-handle mode and direct getLogs mode."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from logwatch.errors import DecodeError
from logwatch.interfaces.rpc import LedgerRPC
from logwatch.models.criteria import WatchCriteria
from logwatch.models.cursor import Cursor, PollResult, split_range
from logwatch.models.logs import RawLog
from logwatch.models.state import FilterHandle, PollMode

log = logging.getLogger(__name__)


def parse_logs(raw: Iterable[Mapping[str, Any]]) -> tuple[list[RawLog], list[DecodeError]]:
    """Parse node log objects one by one; malformed ones become DecodeErrors."""
    logs: list[RawLog] = []
    rejected: list[DecodeError] = []
    for obj in raw:
        try:
            logs.append(RawLog.from_rpc(obj))
        except (TypeError, ValueError) as exc:
            rejected.append(DecodeError(obj, f"malformed log object: {exc}"))
    return logs, rejected


async def get_logs_in_range(
    rpc: LedgerRPC,
    criteria: WatchCriteria,
    block_range: tuple[int, int],
    max_block_range: int | None = None,
) -> list[dict[str, Any]]:
    """eth_getLogs over an inclusive range, one call per span."""
    raw: list[dict[str, Any]] = []
    for start, end in split_range(*block_range, max_block_range):
        params = criteria.to_filter_params(from_block=start, to_block=end)
        raw.extend(await rpc.get_logs(params))
    return raw


def _without_duplicates(logs: list[RawLog]) -> list[RawLog]:
    seen = set()
    unique = []
    for entry in logs:
        key = (entry.block_hash, entry.transaction_hash, entry.log_index, entry.removed)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


class FilterModeSource:
    """Asks the node for everything that matched ``handle`` since the last call.

    Nodes only report logs mined after the filter was installed. A handle
    that starts behind the head is created with ``backfill=True``: its
    first successful poll also fetches (cursor, head] with getLogs.

    FilterNotFound propagates untouched so the watch can recreate the
    handle; so does every other error.
    """

    mode = PollMode.FILTER

    def __init__(
        self,
        rpc: LedgerRPC,
        handle: FilterHandle,
        backfill: bool = False,
        max_block_range: int | None = None,
    ) -> None:
        self._rpc = rpc
        self.handle = handle
        self._backfill = backfill
        self._max_block_range = max_block_range

    async def poll(self, cursor: Cursor) -> PollResult:
        raw: list[dict[str, Any]] = []
        head = None
        if self._backfill:
            head = await self._rpc.get_block_number()
            block_range = cursor.next_range(head)
            if block_range is not None:
                raw = await get_logs_in_range(
                    self._rpc, self.handle.criteria, block_range, self._max_block_range,
                )
                log.debug(
                    "Backfilled blocks %d-%d for filter %s: %d logs",
                    block_range[0], block_range[1], self.handle.id, len(raw),
                )

        raw.extend(await self._rpc.get_filter_changes(self.handle.id))
        logs, rejected = parse_logs(raw)
        if self._backfill:
            logs = sorted(_without_duplicates(logs), key=lambda entry: entry.position)
            self._backfill = False
        elif logs:
            log.debug("Filter %s returned %d logs", self.handle.id, len(logs))

        return PollResult(
            logs=logs,
            cursor=cursor.advance_past(logs).advance(head),
            rejected=rejected,
        )


class DirectModeSource:
    """Queries eth_getLogs over (cursor, head] on every tick.

    Used when the node cannot hold a filter. An idle tick (head unchanged)
    issues no log query.
    """

    mode = PollMode.DIRECT

    def __init__(
        self,
        rpc: LedgerRPC,
        criteria: WatchCriteria,
        max_block_range: int | None = None,
    ) -> None:
        self._rpc = rpc
        self._criteria = criteria
        self._max_block_range = max_block_range

    async def poll(self, cursor: Cursor) -> PollResult:
        head = await self._rpc.get_block_number()
        block_range = cursor.next_range(head)
        if block_range is None:
            return PollResult(logs=[], cursor=cursor, queried=False)

        raw = await get_logs_in_range(
            self._rpc, self._criteria, block_range, self._max_block_range,
        )
        logs, rejected = parse_logs(raw)
        log.debug(
            "getLogs blocks %d-%d returned %d logs", block_range[0], block_range[1], len(raw),
        )
        return PollResult(logs=logs, cursor=cursor.advance(head), rejected=rejected)
