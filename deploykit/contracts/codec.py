"""
Canonical Value Codec
=====================

Deterministic JSON encoding used for content hashes and journal payloads.

INVARIANTS:
- Same value → same canonical string → same hash
- Key order, tuple/list choice and whitespace never affect the hash
- Unsupported types fail loudly (TypeError), never str()-coerced
- Plain mappings may not use the tag keys, so decode is unambiguous
"""

from __future__ import annotations
from typing import Any, Mapping
import hashlib
import json

from .values import Future, Parameter


BYTES_TAG = "__bytes__"
FUTURE_TAG = "__future__"
PARAMETER_TAG = "__parameter__"
RESERVED_KEYS = frozenset({BYTES_TAG, FUTURE_TAG, PARAMETER_TAG})


def encode(value: Any) -> Any:
    """Convert a value into a JSON-compatible structure."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {BYTES_TAG: bytes(value).hex()}
    if isinstance(value, Future):
        return {FUTURE_TAG: [value.source_action_id, value.output_slot]}
    if isinstance(value, Parameter):
        return {
            PARAMETER_TAG: value.name,
            "default": encode(value.default),
            "has_default": value.has_default,
        }
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    if isinstance(value, Mapping):
        encoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Mapping keys must be strings, got {type(key).__name__}")
            if key in RESERVED_KEYS:
                raise TypeError(f"Mapping key '{key}' is reserved for tagged values")
            encoded[key] = encode(item)
        return encoded
    raise TypeError(f"Value of type {type(value).__name__} is not serializable")


def decode(data: Any) -> Any:
    """Inverse of encode. Tuples come back as lists."""
    if isinstance(data, list):
        return [decode(item) for item in data]
    if isinstance(data, dict):
        if set(data) == {BYTES_TAG}:
            return bytes.fromhex(data[BYTES_TAG])
        if set(data) == {FUTURE_TAG}:
            source, slot = data[FUTURE_TAG]
            return Future(source_action_id=source, output_slot=slot)
        if PARAMETER_TAG in data:
            return Parameter(
                name=data[PARAMETER_TAG],
                default=decode(data.get("default")),
                has_default=bool(data.get("has_default", False)),
            )
        return {key: decode(item) for key, item in data.items()}
    return data


def dumps(data: Any) -> str:
    """Canonical string for data that is already encoded."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), allow_nan=False)


def canonical_json(value: Any) -> str:
    return dumps(encode(value))


def digest(value: Any) -> str:
    """SHA-256 hex digest of the canonical encoding."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
