"""Shared JSON serialization utilities for type-safe JSON encoding."""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, Decimal):
        return True, float(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, Enum):
        return True, obj.value
    if isinstance(obj, BaseModel):
        return True, obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Lenient JSON serializer for log records.

    Keeps proper types instead of converting everything to strings:
    - datetime/date → ISO 8601 string
    - Decimal → float
    - Path → string
    - Enums → value
    - pydantic models → wire dict
    - Everything else → string (fallback)

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation with proper types
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


def strict_json_serializer(obj: Any) -> Any:
    """
    Strict JSON serializer for request bodies.

    Unlike json_serializer there is no string fallback: unknown types raise
    TypeError so a malformed payload never reaches the wire.
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode_json_body(body: Any) -> bytes:
    """
    Encode a request body as UTF-8 JSON.

    pydantic models use their wire aliases and omit unset optional fields.

    Raises:
        TypeError: body contains a value with no JSON representation
        ValueError: body contains NaN/Infinity or a circular reference
    """
    if isinstance(body, BaseModel):
        return body.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    return json.dumps(
        body,
        default=strict_json_serializer,
        allow_nan=False,
        separators=(",", ":"),
    ).encode("utf-8")


__all__ = ["json_serializer", "strict_json_serializer", "encode_json_body"]
