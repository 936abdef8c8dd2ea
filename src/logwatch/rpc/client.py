"""JSON-RPC ledger client - eth_* filter and log calls over HTTP via httpx."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from logwatch.errors import (
    FilterNotFound,
    RPCResponseError,
    TransportError,
    UnsupportedMethod,
)
from logwatch.models.config import WatcherConfig
from logwatch.models.logs import to_int

log = logging.getLogger(__name__)

# JSON-RPC 2.0 "method not found"
_METHOD_NOT_FOUND = -32601

_UNSUPPORTED_HINTS = (
    "method not found",
    "not supported",
    "not available",
    "does not exist",
    "unsupported method",
)


def _classify(method: str, error: dict[str, Any]) -> RPCResponseError:
    """Map a JSON-RPC error object onto the logwatch taxonomy."""
    code = int(error.get("code", 0))
    message = str(error.get("message", ""))
    data = error.get("data")
    lowered = message.lower()

    if "filter not found" in lowered:
        return FilterNotFound(method, code, message, data)
    if code == _METHOD_NOT_FOUND or any(h in lowered for h in _UNSUPPORTED_HINTS):
        return UnsupportedMethod(method, code, message, data)
    return RPCResponseError(method, code, message, data)


class HttpLedgerRPC:
    """Implements the LedgerRPC protocol against a JSON-RPC HTTP endpoint.

    Calls are independent, so one instance can serve any number of
    concurrent watches. Use as an async context manager or call
    ``aclose()`` when done.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = rpc_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, cfg: WatcherConfig) -> HttpLedgerRPC:
        return cls(cfg.rpc_url, timeout=cfg.request_timeout)

    async def __aenter__(self) -> HttpLedgerRPC:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10),
            )
        return self._client

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC call and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http().post(self._url, json=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        # Some nodes send JSON-RPC errors with a 4xx/5xx status.
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            err = _classify(method, body["error"])
            log.debug("%s error (HTTP %d): %s", method, resp.status_code, err)
            raise err
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{method} failed: HTTP {exc.response.status_code}"
            ) from exc

        if body is None:
            raise TransportError(f"{method} returned invalid JSON")
        if not isinstance(body, dict) or body.get("error") is not None:
            raise TransportError(f"{method} returned a malformed response")
        if "result" not in body:
            raise TransportError(f"{method} response has no result")
        return body["result"]

    # ── LedgerRPC ──────────────────────────────────────────

    async def create_filter(self, params: dict[str, Any]) -> str:
        return str(await self.request("eth_newFilter", [params]))

    async def get_filter_changes(self, filter_id: str) -> list[dict[str, Any]]:
        result = await self.request("eth_getFilterChanges", [filter_id])
        return list(result or [])

    async def get_logs(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        result = await self.request("eth_getLogs", [params])
        return list(result or [])

    async def get_block_number(self) -> int:
        raw = await self.request("eth_blockNumber", [])
        try:
            result = to_int(raw)
        except ValueError as exc:
            raise TransportError(f"eth_blockNumber returned {raw!r}") from exc
        if result is None:
            raise TransportError("eth_blockNumber returned null")
        return result

    async def uninstall_filter(self, filter_id: str) -> bool:
        return bool(await self.request("eth_uninstallFilter", [filter_id]))
