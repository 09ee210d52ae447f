"""
Deterministic helpers for correlation ids.

The hash is a logging aid, not an identifier: it is neither cryptographic nor
collision free.
"""

import json
import time
from typing import Any

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def stable_json(payload: Any) -> str:
    """Serialize ``payload`` so equal inputs always produce equal strings."""

    def to_serializable(obj):
        if hasattr(obj, "model_dump"):
            return obj.model_dump()
        if hasattr(obj, "__dict__"):
            return obj.__dict__
        return str(obj)

    try:
        return _dumps(payload, to_serializable)
    except TypeError:
        # sort_keys cannot order mixed key types such as {1: ..., "b": ...}
        return _dumps(
            _stringify_keys(payload), lambda obj: _stringify_keys(to_serializable(obj))
        )


def _dumps(payload: Any, default) -> str:
    return json.dumps(
        payload,
        default=default,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _stringify_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k): _stringify_keys(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [_stringify_keys(v) for v in obj]
    return obj


def rolling_hash(text: str) -> int:
    """32-bit ``h = h*31 + c`` over UTF-16 code units, as a signed integer."""
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code_unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def payload_hash(payload: Any) -> str:
    return to_base36(abs(rolling_hash(stable_json(payload))))


def generate_correlation_id(prefix: str, payload: Any, now_ms: int | None = None) -> str:
    """Build ``<prefix>_<unix millis>_<base36 hash of payload>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}_{now_ms}_{payload_hash(payload)}"
