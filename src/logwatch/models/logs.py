"""Log records as returned by the node and as delivered to consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def to_int(value: Any) -> int | None:
    """Parse a JSON-RPC hex quantity ("0x1a") or plain int. None passes through."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


def to_hex(value: int) -> str:
    """Encode an int as a JSON-RPC hex quantity."""
    return hex(value)


@dataclass(frozen=True)
class RawLog:
    """One log object from eth_getLogs / eth_getFilterChanges."""

    address: str  # lower-cased hex with 0x
    topics: tuple[str, ...]  # lower-cased hex with 0x
    data: str  # hex with 0x (or "0x")
    block_number: int | None  # None while pending
    block_hash: str | None
    transaction_hash: str | None
    transaction_index: int | None
    log_index: int | None
    removed: bool = False

    @classmethod
    def from_rpc(cls, obj: Mapping[str, Any]) -> RawLog:
        return cls(
            address=str(obj.get("address", "")).lower(),
            topics=tuple(str(t).lower() for t in obj.get("topics") or ()),
            data=obj.get("data") or "0x",
            block_number=to_int(obj.get("blockNumber")),
            block_hash=obj.get("blockHash"),
            transaction_hash=obj.get("transactionHash"),
            transaction_index=to_int(obj.get("transactionIndex")),
            log_index=to_int(obj.get("logIndex")),
            removed=bool(obj.get("removed", False)),
        )

    @property
    def position(self) -> tuple[int, int]:
        """Sort key in the append-only log sequence."""
        return (self.block_number or 0, self.log_index or 0)


@dataclass(frozen=True)
class LogEntry:
    """A matched log, decoded when the watch names its event(s)."""

    log: RawLog
    event_name: str | None = None
    args: Mapping[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return self.log.address

    @property
    def block_number(self) -> int | None:
        return self.log.block_number

    @property
    def transaction_hash(self) -> str | None:
        return self.log.transaction_hash

    @property
    def log_index(self) -> int | None:
        return self.log.log_index

    @property
    def position(self) -> tuple[int, int]:
        return self.log.position
