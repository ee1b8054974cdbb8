"""Core utility functions."""

from core.utils.json_serializers import (
    encode_json_body,
    json_serializer,
    strict_json_serializer,
)

__all__ = ["json_serializer", "strict_json_serializer", "encode_json_body"]
