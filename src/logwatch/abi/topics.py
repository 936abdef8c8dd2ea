"""Event signature hashing and indexed-argument topic encoding."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak, to_bytes

from logwatch.errors import ConfigError


def canonical_type(param: Mapping[str, Any]) -> str:
    """Canonical ABI type of an input, expanding tuple components."""
    typ = str(param["type"])
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", ()))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def signature_text(name: str, types: Sequence[str]) -> str:
    return f"{name}({','.join(types)})"


def event_topic(signature: str) -> str:
    """topic0 for a canonical event signature, e.g. ``Transfer(address,address,uint256)``."""
    return "0x" + keccak(text=signature).hex()


def is_hashed_type(typ: str) -> bool:
    """Indexed values of these types are stored as keccak hashes, not values."""
    return typ in ("string", "bytes") or typ.endswith("]") or typ.startswith("(")


def encode_topic(typ: str, value: Any) -> str:
    """Encode one indexed argument value as a 32-byte topic."""
    if typ == "string":
        return "0x" + keccak(text=str(value)).hex()
    if typ == "bytes":
        raw = to_bytes(hexstr=value) if isinstance(value, str) else bytes(value)
        return "0x" + keccak(raw).hex()
    if is_hashed_type(typ):
        raise ConfigError(f"filtering on indexed {typ} arguments is not supported")

    if typ == "address" and isinstance(value, str):
        value = value.lower()
    elif typ.startswith("bytes") and isinstance(value, str):
        value = to_bytes(hexstr=value)

    try:
        return "0x" + encode([typ], [value]).hex()
    except (EncodingError, TypeError, ValueError) as exc:
        raise ConfigError(f"cannot encode {value!r} as {typ}: {exc}") from exc
