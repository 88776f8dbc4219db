# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Data structures for the in-memory message model."""

# NOTES for developers:
# NOTE: The classes here do not know how to encode themselves. Serialization
# lives in serde.py so that the model stays independent of the wire format.
#
# NOTE: Every message is an immutable value tree. Optional scalars use None for
# "absent on the wire", which is distinct from an explicit default such as "" or
# 0. Repeated fields are tuples; an empty tuple and an absent repeated field are
# the same thing on the wire.

from __future__ import annotations

__all__ = [
    "Attr",
    "Graph",
    "Node",
    "Segment",
    "SparseTensor",
    "Tensor",
    "UnknownField",
]

import dataclasses
import math
import typing
from typing import Any, Sequence

import numpy as np

from onnxwire import _enums, _invariants

if typing.TYPE_CHECKING:
    from typing_extensions import Self

_INT32_RANGE = (-(1 << 31), (1 << 31) - 1)
_INT64_RANGE = (-(1 << 63), (1 << 63) - 1)


def _set(obj: object, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


def _as_int(value: Any, bounds: tuple[int, int], what: str) -> int:
    if not isinstance(value, (int, np.integer)):
        raise _invariants.ConstructionError(f"{what} must be an integer, got {type(value)}")
    value = int(value)
    low, high = bounds
    if not low <= value <= high:
        raise _invariants.ConstructionError(f"{what} value {value} is out of range")
    return value


def _as_ints(values: Any, bounds: tuple[int, int], what: str) -> tuple[int, ...]:
    return tuple(_as_int(v, bounds, what) for v in _as_sequence(values, what))


def _as_float32(value: Any, what: str) -> float:
    if not isinstance(value, (int, float, np.integer, np.floating)):
        raise _invariants.ConstructionError(f"{what} must be a number, got {type(value)}")
    return float(np.float32(value))


def _as_float32s(values: Any, what: str) -> tuple[float, ...]:
    values = _as_sequence(values, what)
    for value in values:
        if not isinstance(value, (int, float, np.integer, np.floating)):
            raise _invariants.ConstructionError(f"{what} must hold numbers, got {type(value)}")
    return tuple(np.asarray(values, dtype=np.float32).tolist())


def _as_bytes(value: Any, what: str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise _invariants.ConstructionError(f"{what} must be str or bytes, got {type(value)}")


def _as_sequence(values: Any, what: str) -> Sequence[Any]:
    if isinstance(values, np.ndarray):
        return values.ravel().tolist()
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise _invariants.ConstructionError(f"{what} must be a sequence, got {type(values)}")
    return values


def _as_strs(values: Any, what: str) -> tuple[str, ...]:
    values = tuple(_as_sequence(values, what))
    for value in values:
        if not isinstance(value, str):
            raise _invariants.ConstructionError(f"{what} must hold str, got {type(value)}")
    return values


def _as_messages(values: Any, cls: type, what: str) -> tuple[Any, ...]:
    values = tuple(_as_sequence(values, what))
    for value in values:
        if not isinstance(value, cls):
            raise _invariants.ConstructionError(
                f"{what} must hold {cls.__name__}, got {type(value)}"
            )
    return values


def _as_optional_str(value: Any, what: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise _invariants.ConstructionError(f"{what} must be str or None, got {type(value)}")
    return value


class _Message:
    """Shared methods of all messages."""

    __slots__ = ()

    def replace(self, **changes: Any) -> Self:
        """Return a new message with ``changes`` applied. The original is unchanged.

        Example::

            >>> from onnxwire import Node
            >>> Node("Relu", ["X"], ["Y"]).replace(name="relu_0").name
            'relu_0'
        """
        return dataclasses.replace(self, **changes)  # type: ignore[type-var]


@dataclasses.dataclass(frozen=True)
class UnknownField:
    """A field that is not part of the schema, kept as its verbatim encoding.

    Attributes:
        number: The field number.
        wire_type: The wire type from the field key.
        raw: The encoded key and value, re-emitted as is during serialization.
    """

    number: int
    wire_type: int
    raw: bytes


def _coerce_attribute_value(type_: _enums.AttributeType, value: Any, what: str) -> Any:
    if type_ == _enums.AttributeType.UNDEFINED:
        if value is not None:
            raise _invariants.ConstructionError(f"{what} is UNDEFINED but has a value")
        return None
    if value is None:
        raise _invariants.ConstructionError(f"{what} of type {type_} requires a value")
    if type_ == _enums.AttributeType.FLOAT:
        return _as_float32(value, what)
    if type_ == _enums.AttributeType.INT:
        return _as_int(value, _INT64_RANGE, what)
    if type_ == _enums.AttributeType.STRING:
        return _as_bytes(value, what)
    if type_ == _enums.AttributeType.TENSOR:
        if not isinstance(value, Tensor):
            raise _invariants.ConstructionError(f"{what} must be a Tensor, got {type(value)}")
        return value
    if type_ == _enums.AttributeType.GRAPH:
        if not isinstance(value, Graph):
            raise _invariants.ConstructionError(f"{what} must be a Graph, got {type(value)}")
        return value
    if type_ == _enums.AttributeType.FLOATS:
        return _as_float32s(value, what)
    if type_ == _enums.AttributeType.INTS:
        return _as_ints(value, _INT64_RANGE, what)
    if type_ == _enums.AttributeType.STRINGS:
        return tuple(_as_bytes(v, what) for v in _as_sequence(value, what))
    if type_ == _enums.AttributeType.TENSORS:
        return _as_messages(value, Tensor, what)
    # GRAPHS
    return _as_messages(value, Graph, what)


@dataclasses.dataclass(frozen=True)
class Attr(_Message):
    """A named attribute holding exactly one of nine kinds of value.

    The nine optional content fields of AttributeProto are modeled as a closed
    tagged union: ``type`` selects the variant and ``value`` holds its payload.

    ==========  ===================
    type        value
    ==========  ===================
    FLOAT       ``float`` (float32)
    INT         ``int`` (int64)
    STRING      ``bytes``
    TENSOR      :class:`Tensor`
    GRAPH       :class:`Graph`
    FLOATS      ``tuple[float, ...]``
    INTS        ``tuple[int, ...]``
    STRINGS     ``tuple[bytes, ...]``
    TENSORS     ``tuple[Tensor, ...]``
    GRAPHS      ``tuple[Graph, ...]``
    UNDEFINED   ``None``
    ==========  ===================

    Raises:
        ConstructionError: If the value does not fit the type.
    """

    name: str | None
    type: _enums.AttributeType
    value: Any = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        what = f"Attribute {self.name!r}"
        _as_optional_str(self.name, f"{what} name")
        try:
            type_ = _enums.AttributeType(self.type)
        except ValueError:
            raise _invariants.ConstructionError(
                f"{what} has unknown type {self.type!r}"
            ) from None
        _set(self, "type", type_)
        _set(self, "value", _coerce_attribute_value(type_, self.value, what))
        _set(self, "unknown_fields", tuple(self.unknown_fields))

    @classmethod
    def from_slots(
        cls,
        name: str | None,
        *,
        unknown_fields: Sequence[UnknownField] = (),
        **slots: Any,
    ) -> Attr:
        """Create an attribute from AttributeProto content fields.

        ``slots`` are keyed by field name (``f``, ``i``, ``s``, ``t``, ``g``,
        ``floats``, ``ints``, ``strings``, ``tensors``, ``graphs``). A slot set
        to None is not populated.

        Raises:
            ConstructionError: If more than one slot is populated.
            TypeError: If a slot name is not an AttributeProto content field.
        """
        populated = []
        for slot, value in slots.items():
            try:
                _enums.AttributeType.from_slot(slot)
            except KeyError:
                raise TypeError(f"Unknown attribute slot: '{slot}'") from None
            if value is not None:
                populated.append(slot)
        if len(populated) > 1:
            raise _invariants.ConstructionError(
                f"Attribute {name!r} has more than one value: {', '.join(populated)}"
            )
        if not populated:
            return cls(name, _enums.AttributeType.UNDEFINED, None, unknown_fields)
        slot = populated[0]
        return cls(name, _enums.AttributeType.from_slot(slot), slots[slot], unknown_fields)

    def __str__(self) -> str:
        return f"{self.name}={self.value!r}"


@dataclasses.dataclass(frozen=True)
class Node(_Message):
    """An operator invocation.

    Inputs and outputs refer to tensors by name. An empty string marks an
    omitted optional input or output.
    """

    op_type: str | None = None
    inputs: Sequence[str] = ()
    outputs: Sequence[str] = ()
    attributes: Sequence[Attr] = ()
    name: str | None = None
    doc_string: str | None = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        what = f"Node {self.name!r}"
        _as_optional_str(self.op_type, f"{what} op_type")
        _as_optional_str(self.name, f"{what} name")
        _as_optional_str(self.doc_string, f"{what} doc_string")
        _set(self, "inputs", _as_strs(self.inputs, f"{what} inputs"))
        _set(self, "outputs", _as_strs(self.outputs, f"{what} outputs"))
        _set(self, "attributes", _as_messages(self.attributes, Attr, f"{what} attributes"))
        _set(self, "unknown_fields", tuple(self.unknown_fields))

    def get_attribute(self, name: str) -> Attr | None:
        """Return the first attribute called ``name``, or None."""
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None


@dataclasses.dataclass(frozen=True)
class Graph(_Message):
    """A computation graph: nodes in execution order plus graph-level metadata."""

    nodes: Sequence[Node] = ()
    name: str | None = None
    inputs: Sequence[str] = ()
    outputs: Sequence[str] = ()
    initializers: Sequence[Tensor] = ()
    ir_version: int | None = None
    producer_version: int | None = None
    producer_tag: str | None = None
    domain: str | None = None
    doc_string: str | None = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        what = f"Graph {self.name!r}"
        _set(self, "nodes", _as_messages(self.nodes, Node, f"{what} nodes"))
        _as_optional_str(self.name, f"{what} name")
        _set(self, "inputs", _as_strs(self.inputs, f"{what} inputs"))
        _set(self, "outputs", _as_strs(self.outputs, f"{what} outputs"))
        _set(
            self,
            "initializers",
            _as_messages(self.initializers, Tensor, f"{what} initializers"),
        )
        for field in ("ir_version", "producer_version"):
            value = getattr(self, field)
            if value is not None:
                _set(self, field, _as_int(value, _INT64_RANGE, f"{what} {field}"))
        _as_optional_str(self.producer_tag, f"{what} producer_tag")
        _as_optional_str(self.domain, f"{what} domain")
        _as_optional_str(self.doc_string, f"{what} doc_string")
        _set(self, "unknown_fields", tuple(self.unknown_fields))

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


@dataclasses.dataclass(frozen=True)
class Segment(_Message):
    """The element range ``[begin, end)`` stored in one chunk of a large tensor."""

    begin: int | None = None
    end: int | None = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        for field in ("begin", "end"):
            value = getattr(self, field)
            if value is not None:
                _set(self, field, _as_int(value, _INT64_RANGE, f"Segment {field}"))
        _set(self, "unknown_fields", tuple(self.unknown_fields))


@dataclasses.dataclass(frozen=True, repr=False)
class Tensor(_Message):
    """A serialized tensor.

    The elements are stored either in the typed field matching ``data_type``
    or little-endian in ``raw_data``. Float data is stored as float32 and is
    rounded on construction.
    """

    dims: Sequence[int] = ()
    data_type: _enums.DataType | None = None
    segment: Segment | None = None
    float_data: Sequence[float] = ()
    int32_data: Sequence[int] = ()
    string_data: Sequence[bytes] = ()
    int64_data: Sequence[int] = ()
    name: str | None = None
    raw_data: bytes | None = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        what = f"Tensor {self.name!r}"
        _set(self, "dims", _as_ints(self.dims, _INT64_RANGE, f"{what} dims"))
        if self.data_type is not None:
            try:
                _set(self, "data_type", _enums.DataType(self.data_type))
            except ValueError:
                raise _invariants.ConstructionError(
                    f"{what} has unknown data type {self.data_type!r}"
                ) from None
        if self.segment is not None and not isinstance(self.segment, Segment):
            raise _invariants.ConstructionError(
                f"{what} segment must be a Segment, got {type(self.segment)}"
            )
        _set(self, "float_data", _as_float32s(self.float_data, f"{what} float_data"))
        _set(self, "int32_data", _as_ints(self.int32_data, _INT32_RANGE, f"{what} int32_data"))
        _set(
            self,
            "string_data",
            tuple(
                _as_bytes(v, f"{what} string_data")
                for v in _as_sequence(self.string_data, f"{what} string_data")
            ),
        )
        _set(self, "int64_data", _as_ints(self.int64_data, _INT64_RANGE, f"{what} int64_data"))
        _as_optional_str(self.name, f"{what} name")
        if self.raw_data is not None:
            _set(self, "raw_data", _as_bytes(self.raw_data, f"{what} raw_data"))
        _set(self, "unknown_fields", tuple(self.unknown_fields))

    def __repr__(self) -> str:
        # Tensors can be large; do not print the content
        dims = ",".join(str(d) for d in self.dims)
        return f"{self.__class__.__name__}<{self.data_type},[{dims}]>(name={self.name!r})"

    @property
    def size(self) -> int:
        """The number of elements implied by ``dims``."""
        return math.prod(self.dims)

    def populated_fields(self) -> list[str]:
        """Names of the data fields that hold content.

        A typed field counts when it is non-empty, ``raw_data`` counts when it
        is present, even if empty.
        """
        fields = [
            field
            for field in ("float_data", "int32_data", "string_data", "int64_data")
            if getattr(self, field)
        ]
        if self.raw_data is not None:
            fields.append("raw_data")
        return fields

    def numpy(self) -> np.ndarray:
        """Return the tensor content as a numpy array.

        The array has shape ``dims``, or is 1-D when the tensor holds a
        segment. FLOAT16 values stored in ``int32_data`` are reinterpreted from
        their 16-bit patterns. STRING tensors give an object array of bytes.

        Raises:
            ValueError: If the data type is unset or UNDEFINED, if a STRING
                tensor uses ``raw_data``, or if the content does not fit ``dims``.
        """
        dtype = self.data_type
        if dtype is None or dtype == _enums.DataType.UNDEFINED:
            raise ValueError("Cannot convert UNDEFINED tensor to numpy array.")
        shape: Sequence[int] = self.dims if self.segment is None else (-1,)
        if self.raw_data is not None:
            if dtype == _enums.DataType.STRING:
                raise ValueError("STRING tensors cannot be stored in raw_data.")
            array = np.frombuffer(self.raw_data, dtype=dtype.numpy().newbyteorder("<"))
        elif dtype == _enums.DataType.STRING:
            return np.array(self.string_data, dtype=object).reshape(shape)
        elif self.int32_data:
            array = np.array(self.int32_data, dtype=np.int32)
            if dtype == _enums.DataType.FLOAT16:
                array = array.astype(np.uint16).view(np.float16)
        elif self.int64_data:
            array = np.array(self.int64_data, dtype=np.int64)
        elif self.float_data:
            array = np.array(self.float_data, dtype=np.float32)
        else:
            array = np.array([], dtype=dtype.numpy())
        return array.astype(dtype.numpy()).reshape(shape)


@dataclasses.dataclass(frozen=True)
class SparseTensor(_Message):
    """A sparse tensor stored as a dense shape, a 2-D indices tensor and 1-D values."""

    dims: Sequence[int] = ()
    indices: Tensor | None = None
    values: Tensor | None = None
    unknown_fields: Sequence[UnknownField] = ()

    def __post_init__(self) -> None:
        _set(self, "dims", _as_ints(self.dims, _INT64_RANGE, "SparseTensor dims"))
        for field in ("indices", "values"):
            value = getattr(self, field)
            if value is not None and not isinstance(value, Tensor):
                raise _invariants.ConstructionError(
                    f"SparseTensor {field} must be a Tensor, got {type(value)}"
                )
        _set(self, "unknown_fields", tuple(self.unknown_fields))
