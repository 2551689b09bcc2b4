"""
Borsh-compatible wire codec used for instruction payloads and account data.

All integers are little-endian, pubkeys are 32 raw bytes, strings carry a u32
byte-length prefix and `option<T>` a 0/1 presence byte. Field schemas are
declared once (see `intentfi.instructions` / `intentfi.accounts`) and the
same `Field` list drives both directions.

Decoding never reads past the buffer: every read goes through `Reader`, which
raises a `DecodeError` subclass that `decode_struct` turns into an `Err`.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Generic, Mapping, Optional, Sequence, Type, TypeVar, Union

from intentfi.errors import (
    DecodeError,
    InvalidEncodingError,
    InvalidLengthError,
    SerializationError,
    TruncatedDataError,
    UnknownVariantError,
)
from intentfi.pda import b58encode, to_pubkey

# Anything longer is treated as corruption, not as a real field.
MAX_STRING_LENGTH = 10_000

T = TypeVar("T")


class Reader:
    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, width: int) -> bytes:
        if self.offset + width > len(self.data):
            raise TruncatedDataError(self.offset, width, len(self.data))
        chunk = self.data[self.offset : self.offset + width]
        self.offset += width
        return chunk

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]


@dataclass(frozen=True)
class UnknownVariant:
    """An enum byte this client does not know; kept so newer programs degrade gracefully."""

    enum: str
    raw: int

    @property
    def name(self) -> str:
        return "Unknown"


class WireType:
    name = "?"

    def encode(self, value: Any, field: str) -> bytes:
        raise NotImplementedError

    def decode(self, reader: Reader) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.name


class Int(WireType):
    def __init__(self, name: str, fmt: str) -> None:
        self.name = name
        self.fmt = fmt
        bits = struct.calcsize(fmt) * 8
        if fmt[-1].islower():
            self.low, self.high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        else:
            self.low, self.high = 0, (1 << bits) - 1

    def encode(self, value: Any, field: str) -> bytes:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SerializationError(
                f"{field}: expected integer for {self.name}, got {type(value).__name__}", field
            )
        if not self.low <= value <= self.high:
            raise SerializationError(f"{field}: {value} does not fit in {self.name}", field)
        return struct.pack(self.fmt, value)

    def decode(self, reader: Reader) -> int:
        return reader.unpack(self.fmt)


U8 = Int("u8", "<B")
U16 = Int("u16", "<H")
U32 = Int("u32", "<I")
U64 = Int("u64", "<Q")
I64 = Int("i64", "<q")


class BoolType(WireType):
    name = "bool"

    def encode(self, value: Any, field: str) -> bytes:
        if not isinstance(value, bool):
            raise SerializationError(f"{field}: expected bool, got {type(value).__name__}", field)
        return b"\x01" if value else b"\x00"

    def decode(self, reader: Reader) -> bool:
        offset = reader.offset
        raw = reader.unpack("<B")
        if raw > 1:
            raise UnknownVariantError(f"bool byte {raw} at offset {offset}", offset)
        return raw == 1


class PubkeyType(WireType):
    name = "pubkey"

    def encode(self, value: Any, field: str) -> bytes:
        try:
            return to_pubkey(value)
        except ValueError as exc:
            raise SerializationError(f"{field}: {exc}", field) from exc

    def decode(self, reader: Reader) -> str:
        return b58encode(reader.take(32))


class String(WireType):
    name = "string"

    def __init__(self, max_length: Optional[int] = None) -> None:
        self.max_length = max_length

    def encode(self, value: Any, field: str) -> bytes:
        if not isinstance(value, str):
            raise SerializationError(f"{field}: expected str, got {type(value).__name__}", field)
        raw = value.encode("utf-8")
        if self.max_length is not None and len(raw) > self.max_length:
            raise SerializationError(
                f"{field}: {len(raw)} UTF-8 bytes exceeds limit of {self.max_length}", field
            )
        return struct.pack("<I", len(raw)) + raw

    def decode(self, reader: Reader) -> str:
        offset = reader.offset
        length = reader.unpack("<I")
        if length > MAX_STRING_LENGTH:
            raise InvalidLengthError(offset, length, MAX_STRING_LENGTH)
        raw = reader.take(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidEncodingError(f"string at offset {offset} is not UTF-8", offset) from exc


class Option(WireType):
    def __init__(self, inner: WireType) -> None:
        self.inner = inner
        self.name = f"option<{inner.name}>"

    def encode(self, value: Any, field: str) -> bytes:
        if value is None:
            return b"\x00"
        return b"\x01" + self.inner.encode(value, field)

    def decode(self, reader: Reader) -> Any:
        offset = reader.offset
        tag = reader.unpack("<B")
        if tag == 0:
            return None
        if tag != 1:
            raise UnknownVariantError(f"option tag {tag} at offset {offset}", offset)
        return self.inner.decode(reader)


class COption(WireType):
    """SPL-token style option: u32 tag followed by a fixed-size body that is always present."""

    def __init__(self, inner: WireType, width: int) -> None:
        self.inner = inner
        self.width = width
        self.name = f"coption<{inner.name}>"

    def encode(self, value: Any, field: str) -> bytes:
        if value is None:
            return b"\x00" * (4 + self.width)
        return struct.pack("<I", 1) + self.inner.encode(value, field)

    def decode(self, reader: Reader) -> Any:
        offset = reader.offset
        tag = reader.unpack("<I")
        if tag > 1:
            raise UnknownVariantError(f"coption tag {tag} at offset {offset}", offset)
        body = Reader(reader.take(self.width))
        return self.inner.decode(body) if tag == 1 else None


class EnumType(WireType):
    """Single-byte enum tag mapped through an explicit int -> member table."""

    def __init__(self, enum_cls: Type[enum.IntEnum]) -> None:
        self.enum_cls = enum_cls
        self.name = enum_cls.__name__
        self.table = {int(member): member for member in enum_cls}

    def encode(self, value: Any, field: str) -> bytes:
        if isinstance(value, UnknownVariant):
            raw = value.raw
        elif isinstance(value, self.enum_cls):
            raw = int(value)
        else:
            raise SerializationError(f"{field}: expected {self.name}, got {value!r}", field)
        return U8.encode(raw, field)

    def decode(self, reader: Reader) -> Union[enum.IntEnum, UnknownVariant]:
        raw = reader.unpack("<B")
        member = self.table.get(raw)
        if member is None:
            return UnknownVariant(self.name, raw)
        return member


BOOL = BoolType()
PUBKEY = PubkeyType()
STRING = String()


@dataclass(frozen=True)
class Field:
    name: str
    type: WireType


def encode_fields(fields: Sequence[Field], values: Mapping[str, Any]) -> bytes:
    expected = {f.name for f in fields}
    unexpected = sorted(set(values) - expected)
    if unexpected:
        raise SerializationError(f"unexpected fields: {', '.join(unexpected)}", unexpected[0])
    out = bytearray()
    for f in fields:
        if f.name not in values:
            raise SerializationError(f"missing field {f.name}", f.name)
        out += f.type.encode(values[f.name], f.name)
    return bytes(out)


def decode_fields(fields: Sequence[Field], reader: Reader) -> Dict[str, Any]:
    return {f.name: f.type.decode(reader) for f in fields}


# ---- tagged decode results ----


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: ClassVar[bool] = True

    def unwrap(self) -> T:
        return self.value

    def or_none(self) -> Optional[T]:
        return self.value


@dataclass(frozen=True)
class Err:
    error: DecodeError
    ok: ClassVar[bool] = False

    def unwrap(self) -> Any:
        raise self.error

    def or_none(self) -> None:
        return None


DecodeResult = Union[Ok[T], Err]


def decode_struct(fields: Sequence[Field], data: bytes, offset: int = 0) -> DecodeResult:
    try:
        return Ok(decode_fields(fields, Reader(data, offset)))
    except DecodeError as exc:
        return Err(exc)


__all__ = [
    "MAX_STRING_LENGTH",
    "Reader",
    "UnknownVariant",
    "WireType",
    "Int",
    "U8",
    "U16",
    "U32",
    "U64",
    "I64",
    "BOOL",
    "PUBKEY",
    "STRING",
    "String",
    "Option",
    "COption",
    "EnumType",
    "Field",
    "encode_fields",
    "decode_fields",
    "Ok",
    "Err",
    "DecodeResult",
    "decode_struct",
]
