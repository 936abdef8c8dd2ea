"""PollSource protocol - one way of asking the node for new logs."""

from __future__ import annotations

from typing import Protocol

from logwatch.models.cursor import Cursor, PollResult
from logwatch.models.state import PollMode


class PollSource(Protocol):
    """Selected once per watch; filter mode may be swapped for direct mode."""

    mode: PollMode

    async def poll(self, cursor: Cursor) -> PollResult:
        """Fetch logs newer than ``cursor`` and return the advanced cursor."""
        ...
