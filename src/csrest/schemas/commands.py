"""
Command payload schemas.

BOF (beacon object file) execution comes in three argument flavours:
- string: one argument string parsed by the server
- packed: arguments already packed client-side, base64 encoded
- pack: a typed argument list the server packs itself

Binary values (the BOF itself, files, binary arguments) travel base64 encoded.
Files referenced from arguments use the ``@files/<name>`` convention and are
supplied in the ``files`` map.
"""

import base64
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class BinaryArg(BaseModel):
    type: Literal["binary"] = "binary"
    value: str  # base64 encoded

    @classmethod
    def from_bytes(cls, data: bytes) -> "BinaryArg":
        return cls(value=base64.b64encode(data).decode("ascii"))


class IntArg(BaseModel):
    type: Literal["int"] = "int"
    value: int = Field(..., ge=-(2**31), le=2**32 - 1)


class ShortArg(BaseModel):
    type: Literal["short"] = "short"
    value: int = Field(..., ge=-(2**15), le=2**16 - 1)


class StringArg(BaseModel):
    type: Literal["string"] = "string"
    value: str


class WStringArg(BaseModel):
    type: Literal["wstring"] = "wstring"
    value: str


BofArgument = Annotated[
    Union[BinaryArg, IntArg, ShortArg, StringArg, WStringArg],
    Field(discriminator="type"),
]


class InlineExecuteStringDto(BaseModel):
    """BOF execution with a single argument string."""

    bof: str
    entrypoint: str | None = None
    arguments: str | None = None
    files: dict[str, str] | None = None


class InlineExecutePackedDto(BaseModel):
    """BOF execution with arguments packed client-side (base64)."""

    bof: str
    entrypoint: str | None = None
    arguments: str | None = None
    files: dict[str, str] | None = None


class InlineExecutePackDto(BaseModel):
    """BOF execution with typed arguments packed by the server."""

    bof: str
    entrypoint: str | None = None
    arguments: list[BofArgument] | None = None
    files: dict[str, str] | None = None


class PowerShellDto(BaseModel):
    commandlet: str
    arguments: str | None = None


class UploadDto(BaseModel):
    """File upload; ``file`` references an entry of ``files`` as ``@files/<name>``."""

    file: str
    files: dict[str, str] | None = None


class EmptyDto(BaseModel):
    """Serializes to ``{}`` for commands that take no arguments."""
