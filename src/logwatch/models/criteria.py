"""Watch criteria: which addresses and events a watch matches."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Iterable, Mapping

from logwatch.abi.topics import canonical_type, encode_topic, event_topic, signature_text
from logwatch.errors import ConfigError
from logwatch.models.logs import RawLog, to_hex


class FilterKind(str, Enum):
    """How a server-side filter was created."""

    LOG = "log"  # generic log filter, no event constraint
    EVENT = "event"  # bound to one or more event signatures


@dataclass(frozen=True)
class EventInput:
    name: str
    type: str  # canonical ABI type
    indexed: bool


@dataclass(frozen=True)
class EventSignature:
    """A JSON-ABI event entry reduced to what matching and decoding need."""

    name: str
    inputs: tuple[EventInput, ...]
    signature: str
    topic0: str
    anonymous: bool = False

    @classmethod
    def from_abi(cls, abi: Mapping[str, Any]) -> EventSignature:
        if abi.get("type", "event") != "event":
            raise ConfigError(f"ABI item {abi.get('name')!r} is not an event")
        inputs = tuple(
            EventInput(
                name=inp.get("name") or f"arg{i}",
                type=canonical_type(inp),
                indexed=bool(inp.get("indexed", False)),
            )
            for i, inp in enumerate(abi.get("inputs", ()))
        )
        sig = signature_text(abi["name"], [i.type for i in inputs])
        return cls(
            name=abi["name"],
            inputs=inputs,
            signature=sig,
            topic0=event_topic(sig),
            anonymous=bool(abi.get("anonymous", False)),
        )

    @property
    def indexed_inputs(self) -> tuple[EventInput, ...]:
        return tuple(i for i in self.inputs if i.indexed)

    @property
    def data_inputs(self) -> tuple[EventInput, ...]:
        return tuple(i for i in self.inputs if not i.indexed)


@dataclass(frozen=True)
class WatchCriteria:
    """Immutable match criteria shared by filter creation and direct queries.

    ``addresses`` and ``events`` are OR-sets; an empty set matches anything.
    ``args`` constrains indexed arguments of a single event: each value is
    either one value or a list of alternatives.
    """

    addresses: tuple[str, ...] = ()
    events: tuple[EventSignature, ...] = ()
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        addresses = (self.addresses,) if isinstance(self.addresses, str) else self.addresses
        object.__setattr__(
            self, "addresses", tuple(dict.fromkeys(a.lower() for a in addresses))
        )
        object.__setattr__(self, "events", tuple(self.events))
        for ev in self.events:
            if ev.anonymous:
                raise ConfigError(f"anonymous event {ev.name} cannot be watched by topic")
        if self.args:
            if len(self.events) != 1:
                raise ConfigError("args filters need exactly one event")
            indexed = {i.name for i in self.events[0].indexed_inputs}
            unknown = set(self.args) - indexed
            if unknown:
                raise ConfigError(
                    f"{', '.join(sorted(unknown))} not indexed on {self.events[0].name}"
                )
        # Encode eagerly so bad argument values fail at construction.
        self.topics

    @classmethod
    def build(
        cls,
        address: str | Iterable[str] | None = None,
        event: Mapping[str, Any] | None = None,
        events: Iterable[Mapping[str, Any]] | None = None,
        args: Mapping[str, Any] | None = None,
    ) -> WatchCriteria:
        """Build criteria from loose user input (ABI dicts, one or many addresses)."""
        if address is None:
            addresses: tuple[str, ...] = ()
        elif isinstance(address, str):
            addresses = (address,)
        else:
            addresses = tuple(address)

        abis = list(events or ())
        if event is not None:
            abis.insert(0, event)
        sigs = tuple(EventSignature.from_abi(a) for a in abis)
        return cls(addresses=addresses, events=sigs, args=dict(args or {}))

    @property
    def kind(self) -> FilterKind:
        return FilterKind.EVENT if self.events else FilterKind.LOG

    @cached_property
    def topics(self) -> list[Any]:
        """JSON-RPC topics array, trailing wildcards trimmed."""
        if not self.events:
            return []
        t0 = [e.topic0 for e in self.events]
        topics: list[Any] = [t0[0] if len(t0) == 1 else t0]

        if self.args:
            for inp in self.events[0].indexed_inputs:
                if inp.name not in self.args or self.args[inp.name] is None:
                    topics.append(None)
                    continue
                value = self.args[inp.name]
                if isinstance(value, (list, tuple, set)) and not inp.type.endswith("]"):
                    topics.append([encode_topic(inp.type, v) for v in value])
                else:
                    topics.append(encode_topic(inp.type, value))

        while topics and topics[-1] is None:
            topics.pop()
        return topics

    def to_filter_params(
        self, from_block: int | None = None, to_block: int | None = None
    ) -> dict[str, Any]:
        """Parameter object for eth_newFilter / eth_getLogs."""
        params: dict[str, Any] = {}
        if self.addresses:
            params["address"] = (
                self.addresses[0] if len(self.addresses) == 1 else list(self.addresses)
            )
        if self.topics:
            params["topics"] = self.topics
        if from_block is not None:
            params["fromBlock"] = to_hex(from_block)
        if to_block is not None:
            params["toBlock"] = to_hex(to_block)
        return params

    def matches(self, log: RawLog) -> bool:
        """Client-side match with the same semantics as the node's filter."""
        if self.addresses and log.address not in self.addresses:
            return False
        for i, expected in enumerate(self.topics):
            if expected is None:
                continue
            if i >= len(log.topics):
                return False
            options = expected if isinstance(expected, list) else [expected]
            if log.topics[i] not in options:
                return False
        return True
