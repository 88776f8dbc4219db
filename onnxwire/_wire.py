# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Tag/length/value wire grammar shared by all messages.

The grammar is the protobuf binary encoding: every field is a varint key
``(field_number << 3) | wire_type`` followed by a value whose layout is
determined by the wire type.
"""

from __future__ import annotations

__all__ = [
    "Field",
    "MalformedWireError",
    "Reader",
    "WireType",
    "Writer",
    "encode_tag",
    "encode_varint",
    "iter_fields",
    "to_int32",
    "to_int64",
    "unpack_fixed32_floats",
    "unpack_float",
    "unpack_varints",
]

import enum
import struct
from typing import Iterable, Iterator, Union

import numpy as np
from typing_extensions import TypeAlias

MAX_FIELD_NUMBER = (1 << 29) - 1
MAX_DEPTH = 100
_MAX_VARINT_BYTES = 10
_UINT64_MASK = (1 << 64) - 1

Buffer: TypeAlias = Union[bytes, bytearray, memoryview]


class WireType(enum.IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5

    def __repr__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.__repr__()


class MalformedWireError(ValueError):
    """Raised when a byte buffer does not follow the wire grammar.

    Attributes:
        offset: Byte offset in the top-level buffer where the problem was found,
            when known.
    """

    def __init__(self, message: str, offset: int | None = None):
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)
        self.offset = offset


def to_int64(value: int) -> int:
    """Reinterpret an unsigned 64-bit varint as a signed int64."""
    value &= _UINT64_MASK
    return value - (1 << 64) if value >= 1 << 63 else value


def to_int32(value: int) -> int:
    """Reinterpret a varint as a signed int32, keeping the low 32 bits."""
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def encode_varint(value: int) -> bytes:
    """Encode an integer as a base-128 varint.

    Negative values are encoded as their 64-bit two's complement, which always
    takes ten bytes.
    """
    if value < 0:
        value &= _UINT64_MASK
    if value > _UINT64_MASK:
        raise OverflowError(f"Value {value} does not fit in 64 bits")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_tag(number: int, wire_type: WireType) -> bytes:
    if not 1 <= number <= MAX_FIELD_NUMBER:
        raise ValueError(f"Invalid field number: {number}")
    return encode_varint((number << 3) | wire_type)


class Field:
    """One field read from a buffer.

    ``value`` holds an ``int`` for varints, a ``memoryview`` of the payload for
    length-delimited and fixed-width values, and ``None`` for groups. ``raw``
    is the verbatim tag and value, used to preserve unknown fields.
    """

    __slots__ = (
        "_data",
        "_end",
        "_start",
        "number",
        "offset",
        "value",
        "value_offset",
        "wire_type",
    )

    def __init__(
        self,
        number: int,
        wire_type: WireType,
        value: int | memoryview | None,
        data: memoryview,
        start: int,
        end: int,
        offset: int,
        value_offset: int,
    ):
        self.number = number
        self.wire_type = wire_type
        self.value = value
        self._data = data
        self._start = start
        self._end = end
        self.offset = offset
        self.value_offset = value_offset

    @property
    def raw(self) -> bytes:
        return bytes(self._data[self._start : self._end])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(number={self.number}, wire_type={self.wire_type!r}, offset={self.offset})"


class Reader:
    """Sequential reader over a buffer holding the fields of one message.

    Args:
        data: The encoded message.
        base_offset: Offset of ``data`` within the top-level buffer. Only used
            to report error locations.
        depth: Nesting depth of the message, used to bound recursion on
            untrusted input.
    """

    def __init__(self, data: Buffer, base_offset: int = 0, depth: int = 0):
        if depth > MAX_DEPTH:
            raise MalformedWireError(
                f"Message nesting exceeds the maximum depth of {MAX_DEPTH}", base_offset
            )
        self._data = memoryview(data)
        self._pos = 0
        self._base = base_offset
        self.depth = depth

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read_varint(self) -> int:
        start = self._pos
        result = 0
        shift = 0
        for _ in range(_MAX_VARINT_BYTES):
            if self._pos >= len(self._data):
                raise MalformedWireError("Truncated varint", self._base + start)
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if result > _UINT64_MASK:
                    raise MalformedWireError("Varint overflows 64 bits", self._base + start)
                return result
            shift += 7
        raise MalformedWireError(
            f"Varint exceeds the maximum width of {_MAX_VARINT_BYTES} bytes",
            self._base + start,
        )

    def read_bytes(self, length: int) -> memoryview:
        remaining = len(self._data) - self._pos
        if length > remaining:
            raise MalformedWireError(
                f"Declared length {length} exceeds the {remaining} bytes remaining",
                self._base + self._pos,
            )
        view = self._data[self._pos : self._pos + length]
        self._pos += length
        return view

    def _read_key(self) -> tuple[int, WireType]:
        start = self._pos
        key = self.read_varint()
        number = key >> 3
        if not 1 <= number <= MAX_FIELD_NUMBER:
            raise MalformedWireError(f"Invalid field number {number}", self._base + start)
        try:
            wire_type = WireType(key & 0x7)
        except ValueError:
            raise MalformedWireError(
                f"Invalid wire type {key & 0x7} for field {number}", self._base + start
            ) from None
        return number, wire_type

    def _skip_group(self, number: int, depth: int) -> None:
        if depth > MAX_DEPTH:
            raise MalformedWireError(
                f"Group nesting exceeds the maximum depth of {MAX_DEPTH}", self._base + self._pos
            )
        while True:
            if self.at_end():
                raise MalformedWireError(f"Unterminated group {number}", self._base + self._pos)
            start = self._pos
            inner_number, wire_type = self._read_key()
            if wire_type == WireType.END_GROUP:
                if inner_number != number:
                    raise MalformedWireError(
                        f"End-group tag {inner_number} does not match group {number}",
                        self._base + start,
                    )
                return
            self._skip_value(inner_number, wire_type, depth + 1)

    def _skip_value(self, number: int, wire_type: WireType, depth: int) -> None:
        if wire_type == WireType.VARINT:
            self.read_varint()
        elif wire_type == WireType.FIXED64:
            self.read_bytes(8)
        elif wire_type == WireType.LENGTH_DELIMITED:
            self.read_bytes(self.read_varint())
        elif wire_type == WireType.FIXED32:
            self.read_bytes(4)
        elif wire_type == WireType.START_GROUP:
            self._skip_group(number, depth)
        else:
            raise MalformedWireError(
                f"Unexpected end-group tag for field {number}", self._base + self._pos
            )

    def read_field(self) -> Field:
        start = self._pos
        number, wire_type = self._read_key()
        value: int | memoryview | None
        value_offset = self._pos
        if wire_type == WireType.VARINT:
            value = self.read_varint()
        elif wire_type == WireType.FIXED64:
            value = self.read_bytes(8)
        elif wire_type == WireType.LENGTH_DELIMITED:
            length = self.read_varint()
            value_offset = self._pos
            value = self.read_bytes(length)
        elif wire_type == WireType.FIXED32:
            value = self.read_bytes(4)
        elif wire_type == WireType.START_GROUP:
            self._skip_group(number, self.depth + 1)
            value = None
        else:
            raise MalformedWireError(
                f"Unexpected end-group tag for field {number}", self._base + start
            )
        return Field(
            number,
            wire_type,
            value,
            self._data,
            start,
            self._pos,
            offset=self._base + start,
            value_offset=self._base + value_offset,
        )

    def __iter__(self) -> Iterator[Field]:
        while not self.at_end():
            yield self.read_field()


def iter_fields(data: Buffer, base_offset: int = 0, depth: int = 0) -> Iterator[Field]:
    """Iterate over the fields of one encoded message."""
    return iter(Reader(data, base_offset, depth))


def unpack_float(view: memoryview) -> float:
    """Decode a little-endian IEEE-754 float32 from a fixed32 value."""
    return struct.unpack("<f", view)[0]


def unpack_fixed32_floats(view: memoryview, offset: int = 0) -> list[float]:
    """Decode a packed run of little-endian float32 values."""
    if len(view) % 4:
        raise MalformedWireError(
            f"Packed float run of {len(view)} bytes is not a multiple of 4", offset
        )
    return np.frombuffer(view, dtype="<f4").tolist()


def unpack_varints(view: memoryview, offset: int = 0) -> list[int]:
    """Decode a packed run of varints as unsigned integers."""
    reader = Reader(view, offset)
    values = []
    while not reader.at_end():
        values.append(reader.read_varint())
    return values


class Writer:
    """Accumulates encoded fields of one message."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write_raw(self, data: bytes) -> None:
        self._buffer += data

    def write_varint_field(self, number: int, value: int) -> None:
        self._buffer += encode_tag(number, WireType.VARINT)
        self._buffer += encode_varint(value)

    def write_float_field(self, number: int, value: float) -> None:
        self._buffer += encode_tag(number, WireType.FIXED32)
        self._buffer += struct.pack("<f", value)

    def write_bytes_field(self, number: int, value: bytes) -> None:
        self._buffer += encode_tag(number, WireType.LENGTH_DELIMITED)
        self._buffer += encode_varint(len(value))
        self._buffer += value

    def write_string_field(self, number: int, value: str) -> None:
        self.write_bytes_field(number, value.encode("utf-8"))

    def write_packed_varints(self, number: int, values: Iterable[int]) -> None:
        payload = b"".join(encode_varint(value) for value in values)
        if payload:
            self.write_bytes_field(number, payload)

    def write_packed_floats(self, number: int, values: Iterable[float]) -> None:
        payload = np.asarray(list(values), dtype="<f4").tobytes()
        if payload:
            self.write_bytes_field(number, payload)
