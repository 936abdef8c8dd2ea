"""LedgerRPC protocol - the request/response calls a watch needs from a node."""

from __future__ import annotations

from typing import Any, Protocol


class LedgerRPC(Protocol):
    """Point-in-time JSON-RPC queries against a ledger node.

    Implementations raise the logwatch error taxonomy: UnsupportedMethod,
    FilterNotFound, or TransportError for everything else.
    """

    async def create_filter(self, params: dict[str, Any]) -> str:
        """eth_newFilter. Returns the server filter id."""
        ...

    async def get_filter_changes(self, filter_id: str) -> list[dict[str, Any]]:
        """eth_getFilterChanges. Logs accumulated since the previous call."""
        ...

    async def get_logs(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """eth_getLogs over an explicit block range."""
        ...

    async def get_block_number(self) -> int:
        """eth_blockNumber. The current head."""
        ...

    async def uninstall_filter(self, filter_id: str) -> bool:
        """eth_uninstallFilter."""
        ...
