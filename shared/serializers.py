"""Compact JSON codec for wire records.

Output matches what ntfy clients expect byte for byte: no whitespace between
tokens and non-ASCII text passed through unescaped.
"""
from __future__ import annotations

import json
from typing import Any


class SerializationError(Exception):
    pass


class JsonSerializer:
    def dumps(self, obj: Any) -> str:
        try:
            return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
        except Exception as e:  # noqa: BLE001
            raise SerializationError(str(e)) from e

    def loads(self, data: str | bytes) -> Any:
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return json.loads(data)
        except Exception as e:  # noqa: BLE001
            raise SerializationError(str(e)) from e

    def dumps_line(self, obj: Any) -> str:
        """One JSON document terminated by a newline (NDJSON framing)."""
        return self.dumps(obj) + "\n"


json_serializer = JsonSerializer()


__all__ = ["JsonSerializer", "SerializationError", "json_serializer"]
