"""Local file helpers for command payloads."""

import base64
from pathlib import Path


def read_and_encode_file(path: str | Path) -> str:
    """
    Read a local file and return its content base64 encoded.

    Raises:
        OSError: file missing or unreadable
    """
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


__all__ = ["read_and_encode_file"]
