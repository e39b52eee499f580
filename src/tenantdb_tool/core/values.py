"""Coercion of driver values into client-safe scalars.

Rows handed to callers hold only ``str`` or ``None`` so that every shape a
tenant schema can produce serializes the same way (JSON, CSV, table).
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any

TRUNCATION_MARKER = "…[truncated {size} bytes]"


def _binary_to_text(data: bytes, max_bytes: int) -> str:
    size = len(data)
    head = data[:max_bytes]
    try:
        text = head.decode("utf-8")
    except UnicodeDecodeError:
        text = "\\x" + head.hex()
    if size > max_bytes:
        text += TRUNCATION_MARKER.format(size=size)
    return text


def to_client_value(value: Any, max_bytes: int = 4096) -> str | None:
    """Render one value the way a client should see it."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _binary_to_text(bytes(value), max_bytes)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, ensure_ascii=False)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def to_client_row(
    columns: list[str], row: tuple[Any, ...], max_bytes: int = 4096
) -> dict[str, str | None]:
    return {
        name: to_client_value(val, max_bytes)
        for name, val in zip(columns, row, strict=True)
    }


def dedupe_column_names(names: list[str]) -> list[str]:
    """Make result column names unique: ``a, a`` becomes ``a, a_2``."""
    seen: dict[str, int] = {}
    taken = set(names)
    result: list[str] = []
    for name in names:
        if name not in seen:
            seen[name] = 1
            result.append(name)
            continue
        n = seen[name]
        candidate = name
        while candidate in taken:
            n += 1
            candidate = f"{name}_{n}"
        seen[name] = n
        taken.add(candidate)
        result.append(candidate)
    return result
