"""Log decoder - turns raw logs into named events with typed arguments."""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from logwatch.abi.topics import is_hashed_type
from logwatch.errors import DecodeError
from logwatch.models.criteria import EventSignature
from logwatch.models.logs import LogEntry, RawLog


def _normalize(typ: str, value: Any) -> Any:
    """Checksum addresses, including inside address arrays."""
    if typ.startswith("address"):
        if isinstance(value, (list, tuple)):
            return [_normalize("address", v) for v in value]
        return to_checksum_address(value)
    return value


def _hex_to_bytes(text: str) -> bytes:
    return bytes.fromhex(text[2:] if text.startswith(("0x", "0X")) else text)


class EventDecoder:
    """Decodes logs against the watched event signatures.

    With no signatures, entries are passed through undecoded
    (``event_name`` None, empty ``args``).
    """

    def __init__(self, events: Sequence[EventSignature] = ()) -> None:
        self._by_topic = {e.topic0: e for e in events}

    def decode(self, raw: RawLog) -> LogEntry:
        if not self._by_topic:
            return LogEntry(log=raw)
        if not raw.topics:
            raise DecodeError(raw, "log has no topics")

        sig = self._by_topic.get(raw.topics[0])
        if sig is None:
            raise DecodeError(raw, f"unknown topic0 {raw.topics[0]}")

        indexed = sig.indexed_inputs
        if len(raw.topics) - 1 != len(indexed):
            raise DecodeError(
                raw,
                f"{sig.name} expects {len(indexed)} indexed topics, got {len(raw.topics) - 1}",
            )

        values: dict[str, Any] = {}
        try:
            for inp, topic in zip(indexed, raw.topics[1:]):
                if is_hashed_type(inp.type):
                    # Only the keccak hash of dynamic values is stored in the topic.
                    values[inp.name] = topic
                else:
                    (val,) = decode([inp.type], _hex_to_bytes(topic))
                    values[inp.name] = _normalize(inp.type, val)

            data_inputs = sig.data_inputs
            if data_inputs:
                decoded = decode([i.type for i in data_inputs], _hex_to_bytes(raw.data))
                for inp, val in zip(data_inputs, decoded):
                    values[inp.name] = _normalize(inp.type, val)
        except (DecodingError, ValueError, OverflowError) as exc:
            raise DecodeError(raw, f"{sig.name}: {exc}") from exc

        args = {inp.name: values[inp.name] for inp in sig.inputs}
        return LogEntry(log=raw, event_name=sig.name, args=args)
