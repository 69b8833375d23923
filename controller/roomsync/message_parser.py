"""Decoding helpers for metric payloads, stored records and command payloads."""
from __future__ import annotations

import json
from typing import Any

ON = b"ON"
OFF = b"OFF"


def command_payload(on: bool) -> bytes:
    return ON if on else OFF


def coerce_bool(value: Any) -> bool:
    """Interpret a loosely typed stored flag.

    Booleans are taken as-is and the exact string ``"true"`` counts as true.
    Everything else, including ``None``, other strings and numbers, is false.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value == "true"
    return False


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON and cannot be stored as JSONB.
    raise ValueError(f"Non-standard JSON constant {name!r}")


def parse_metrics_payload(payload: bytes | str) -> dict[str, Any] | None:
    """Decode a metrics message into a name -> value mapping.

    Returns ``None`` when the payload is not UTF-8 text holding a JSON object.
    """

    if isinstance(payload, (bytes, bytearray)):
        try:
            text_value = bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            return None
    else:
        text_value = payload

    try:
        data = json.loads(text_value, parse_constant=_reject_constant)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None
    return data
