# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Serialize and deserialize the message model to/from the binary wire format."""

# NOTES for developers:
# NOTE: Field order
#     Known fields are written in ascending field number order, followed by the
#     unknown fields in the order they were read. This is the order every protobuf
#     writer produces, so re-encoding a decoded message reproduces its bytes.
#
# NOTE: Packed encoding
#     float_data, int32_data and int64_data are declared [packed = true] and are
#     written packed. dims, AttributeProto.floats and AttributeProto.ints are not,
#     and are written one tag per element. The reader accepts both forms for all
#     repeated numeric fields, as protobuf parsers do.

from __future__ import annotations

__all__ = [
    # Dispatch
    "decode",
    "encode",
    # Deserialization
    "deserialize_attribute",
    "deserialize_graph",
    "deserialize_node",
    "deserialize_segment",
    "deserialize_sparse_tensor",
    "deserialize_tensor",
    # Serialization
    "serialize_attribute",
    "serialize_attribute_into",
    "serialize_graph",
    "serialize_graph_into",
    "serialize_node",
    "serialize_node_into",
    "serialize_segment",
    "serialize_sparse_tensor",
    "serialize_tensor",
    "serialize_tensor_into",
]

import enum
import logging
import typing
from typing import Any, Callable, TypeVar

from onnxwire import _core, _enums, _invariants, _wire
from onnxwire._wire import MalformedWireError, WireType

logger = logging.getLogger(__name__)

_M = TypeVar("_M", _core.Graph, _core.Node, _core.Attr, _core.Tensor, _core.SparseTensor)


class _AttributeField(enum.IntEnum):
    NAME = 1
    F = 2
    I = 3  # noqa: E741
    S = 4
    T = 5
    G = 6
    FLOATS = 7
    INTS = 8
    STRINGS = 9
    TENSORS = 10
    GRAPHS = 11


class _NodeField(enum.IntEnum):
    INPUT = 1
    OUTPUT = 2
    NAME = 3
    OP_TYPE = 4
    ATTRIBUTE = 5
    DOC_STRING = 6


class _GraphField(enum.IntEnum):
    NODE = 1
    NAME = 2
    INPUT = 3
    OUTPUT = 4
    INITIALIZER = 5
    IR_VERSION = 6
    PRODUCER_VERSION = 7
    PRODUCER_TAG = 8
    DOMAIN = 9
    DOC_STRING = 10


class _TensorField(enum.IntEnum):
    DIMS = 1
    DATA_TYPE = 2
    SEGMENT = 3
    FLOAT_DATA = 4
    INT32_DATA = 5
    STRING_DATA = 6
    INT64_DATA = 7
    NAME = 8
    RAW_DATA = 9


class _SegmentField(enum.IntEnum):
    BEGIN = 1
    END = 2


class _SparseTensorField(enum.IntEnum):
    DIMS = 1
    INDICES = 2
    VALUES = 3


# Decoding helpers


def _expect(field: _wire.Field, wire_type: WireType, where: str) -> None:
    if field.wire_type != wire_type:
        raise MalformedWireError(
            f"{where} expects wire type {wire_type}, got {field.wire_type}", field.offset
        )


def _read_bytes(field: _wire.Field, where: str) -> bytes:
    _expect(field, WireType.LENGTH_DELIMITED, where)
    return bytes(field.value)  # type: ignore[arg-type]


def _read_string(field: _wire.Field, where: str) -> str:
    data = _read_bytes(field, where)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedWireError(f"{where} is not valid UTF-8", field.value_offset) from None


def _read_int64(field: _wire.Field, where: str) -> int:
    _expect(field, WireType.VARINT, where)
    return _wire.to_int64(field.value)  # type: ignore[arg-type]


def _read_int32(field: _wire.Field, where: str) -> int:
    _expect(field, WireType.VARINT, where)
    return _wire.to_int32(field.value)  # type: ignore[arg-type]


def _read_float(field: _wire.Field, where: str) -> float:
    _expect(field, WireType.FIXED32, where)
    return _wire.unpack_float(field.value)  # type: ignore[arg-type]


def _read_repeated_varints(
    field: _wire.Field, where: str, convert: Callable[[int], int]
) -> list[int]:
    if field.wire_type == WireType.VARINT:
        return [convert(field.value)]  # type: ignore[arg-type]
    if field.wire_type == WireType.LENGTH_DELIMITED:
        return [
            convert(value)
            for value in _wire.unpack_varints(field.value, field.value_offset)  # type: ignore[arg-type]
        ]
    raise MalformedWireError(
        f"{where} expects wire type VARINT or LENGTH_DELIMITED, got {field.wire_type}",
        field.offset,
    )


def _read_repeated_floats(field: _wire.Field, where: str) -> list[float]:
    if field.wire_type == WireType.FIXED32:
        return [_wire.unpack_float(field.value)]  # type: ignore[arg-type]
    if field.wire_type == WireType.LENGTH_DELIMITED:
        return _wire.unpack_fixed32_floats(field.value, field.value_offset)  # type: ignore[arg-type]
    raise MalformedWireError(
        f"{where} expects wire type FIXED32 or LENGTH_DELIMITED, got {field.wire_type}",
        field.offset,
    )


def _read_message(field: _wire.Field, where: str, depth: int, deserializer: Callable[..., Any]):
    _expect(field, WireType.LENGTH_DELIMITED, where)
    return deserializer(field.value, field.value_offset, depth + 1)


def _unknown(field: _wire.Field, message: str) -> _core.UnknownField:
    logger.debug(
        "Preserving unknown field %d (wire type %s) in %s", field.number, field.wire_type, message
    )
    return _core.UnknownField(field.number, int(field.wire_type), field.raw)


# Deserialization


def _deserialize_attribute(data: _wire.Buffer, offset: int, depth: int) -> _core.Attr:
    name = None
    slots: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        number = field.number
        if number == _AttributeField.NAME:
            name = _read_string(field, "AttributeProto.name")
        elif number == _AttributeField.F:
            slots["f"] = _read_float(field, "AttributeProto.f")
        elif number == _AttributeField.I:
            slots["i"] = _read_int64(field, "AttributeProto.i")
        elif number == _AttributeField.S:
            slots["s"] = _read_bytes(field, "AttributeProto.s")
        elif number == _AttributeField.T:
            slots["t"] = _read_message(field, "AttributeProto.t", depth, _deserialize_tensor)
        elif number == _AttributeField.G:
            slots["g"] = _read_message(field, "AttributeProto.g", depth, _deserialize_graph)
        elif number == _AttributeField.FLOATS:
            slots.setdefault("floats", []).extend(
                _read_repeated_floats(field, "AttributeProto.floats")
            )
        elif number == _AttributeField.INTS:
            slots.setdefault("ints", []).extend(
                _read_repeated_varints(field, "AttributeProto.ints", _wire.to_int64)
            )
        elif number == _AttributeField.STRINGS:
            slots.setdefault("strings", []).append(
                _read_bytes(field, "AttributeProto.strings")
            )
        elif number == _AttributeField.TENSORS:
            slots.setdefault("tensors", []).append(
                _read_message(field, "AttributeProto.tensors", depth, _deserialize_tensor)
            )
        elif number == _AttributeField.GRAPHS:
            slots.setdefault("graphs", []).append(
                _read_message(field, "AttributeProto.graphs", depth, _deserialize_graph)
            )
        else:
            unknown_fields.append(_unknown(field, "AttributeProto"))
    return _core.Attr.from_slots(name, unknown_fields=unknown_fields, **slots)


def _deserialize_node(data: _wire.Buffer, offset: int, depth: int) -> _core.Node:
    inputs = []
    outputs = []
    attributes = []
    fields: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        number = field.number
        if number == _NodeField.INPUT:
            inputs.append(_read_string(field, "NodeProto.input"))
        elif number == _NodeField.OUTPUT:
            outputs.append(_read_string(field, "NodeProto.output"))
        elif number == _NodeField.NAME:
            fields["name"] = _read_string(field, "NodeProto.name")
        elif number == _NodeField.OP_TYPE:
            fields["op_type"] = _read_string(field, "NodeProto.op_type")
        elif number == _NodeField.ATTRIBUTE:
            attributes.append(
                _read_message(field, "NodeProto.attribute", depth, _deserialize_attribute)
            )
        elif number == _NodeField.DOC_STRING:
            fields["doc_string"] = _read_string(field, "NodeProto.doc_string")
        else:
            unknown_fields.append(_unknown(field, "NodeProto"))
    return _core.Node(
        inputs=inputs,
        outputs=outputs,
        attributes=attributes,
        unknown_fields=unknown_fields,
        **fields,
    )


def _deserialize_graph(data: _wire.Buffer, offset: int, depth: int) -> _core.Graph:
    nodes = []
    inputs = []
    outputs = []
    initializers = []
    fields: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        number = field.number
        if number == _GraphField.NODE:
            nodes.append(_read_message(field, "GraphProto.node", depth, _deserialize_node))
        elif number == _GraphField.NAME:
            fields["name"] = _read_string(field, "GraphProto.name")
        elif number == _GraphField.INPUT:
            inputs.append(_read_string(field, "GraphProto.input"))
        elif number == _GraphField.OUTPUT:
            outputs.append(_read_string(field, "GraphProto.output"))
        elif number == _GraphField.INITIALIZER:
            initializers.append(
                _read_message(field, "GraphProto.initializer", depth, _deserialize_tensor)
            )
        elif number == _GraphField.IR_VERSION:
            fields["ir_version"] = _read_int64(field, "GraphProto.ir_version")
        elif number == _GraphField.PRODUCER_VERSION:
            fields["producer_version"] = _read_int64(field, "GraphProto.producer_version")
        elif number == _GraphField.PRODUCER_TAG:
            fields["producer_tag"] = _read_string(field, "GraphProto.producer_tag")
        elif number == _GraphField.DOMAIN:
            fields["domain"] = _read_string(field, "GraphProto.domain")
        elif number == _GraphField.DOC_STRING:
            fields["doc_string"] = _read_string(field, "GraphProto.doc_string")
        else:
            unknown_fields.append(_unknown(field, "GraphProto"))
    return _core.Graph(
        nodes=nodes,
        inputs=inputs,
        outputs=outputs,
        initializers=initializers,
        unknown_fields=unknown_fields,
        **fields,
    )


def _deserialize_segment(data: _wire.Buffer, offset: int, depth: int) -> _core.Segment:
    fields: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        if field.number == _SegmentField.BEGIN:
            fields["begin"] = _read_int64(field, "TensorProto.Segment.begin")
        elif field.number == _SegmentField.END:
            fields["end"] = _read_int64(field, "TensorProto.Segment.end")
        else:
            unknown_fields.append(_unknown(field, "TensorProto.Segment"))
    return _core.Segment(unknown_fields=unknown_fields, **fields)


def _deserialize_tensor(data: _wire.Buffer, offset: int, depth: int) -> _core.Tensor:
    dims: list[int] = []
    float_data: list[float] = []
    int32_data: list[int] = []
    string_data: list[bytes] = []
    int64_data: list[int] = []
    fields: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        number = field.number
        if number == _TensorField.DIMS:
            dims.extend(_read_repeated_varints(field, "TensorProto.dims", _wire.to_int64))
        elif number == _TensorField.DATA_TYPE:
            value = _read_int32(field, "TensorProto.data_type")
            try:
                fields["data_type"] = _enums.DataType(value)
            except ValueError:
                # Closed enum: values this schema does not know are kept as unknown fields
                unknown_fields.append(_unknown(field, f"TensorProto (data_type {value})"))
        elif number == _TensorField.SEGMENT:
            fields["segment"] = _read_message(
                field, "TensorProto.segment", depth, _deserialize_segment
            )
        elif number == _TensorField.FLOAT_DATA:
            float_data.extend(_read_repeated_floats(field, "TensorProto.float_data"))
        elif number == _TensorField.INT32_DATA:
            int32_data.extend(
                _read_repeated_varints(field, "TensorProto.int32_data", _wire.to_int32)
            )
        elif number == _TensorField.STRING_DATA:
            string_data.append(_read_bytes(field, "TensorProto.string_data"))
        elif number == _TensorField.INT64_DATA:
            int64_data.extend(
                _read_repeated_varints(field, "TensorProto.int64_data", _wire.to_int64)
            )
        elif number == _TensorField.NAME:
            fields["name"] = _read_string(field, "TensorProto.name")
        elif number == _TensorField.RAW_DATA:
            fields["raw_data"] = _read_bytes(field, "TensorProto.raw_data")
        else:
            unknown_fields.append(_unknown(field, "TensorProto"))
    return _core.Tensor(
        dims=dims,
        float_data=float_data,
        int32_data=int32_data,
        string_data=string_data,
        int64_data=int64_data,
        unknown_fields=unknown_fields,
        **fields,
    )


def _deserialize_sparse_tensor(
    data: _wire.Buffer, offset: int, depth: int
) -> _core.SparseTensor:
    dims: list[int] = []
    fields: dict[str, Any] = {}
    unknown_fields = []
    for field in _wire.iter_fields(data, offset, depth):
        number = field.number
        if number == _SparseTensorField.DIMS:
            dims.extend(
                _read_repeated_varints(field, "SparseTensorProto.dims", _wire.to_int64)
            )
        elif number == _SparseTensorField.INDICES:
            fields["indices"] = _read_message(
                field, "SparseTensorProto.indices", depth, _deserialize_tensor
            )
        elif number == _SparseTensorField.VALUES:
            fields["values"] = _read_message(
                field, "SparseTensorProto.values", depth, _deserialize_tensor
            )
        else:
            unknown_fields.append(_unknown(field, "SparseTensorProto"))
    return _core.SparseTensor(dims=dims, unknown_fields=unknown_fields, **fields)


def deserialize_attribute(data: _wire.Buffer) -> _core.Attr:
    """Decode an encoded AttributeProto.

    Raises:
        MalformedWireError: If the bytes do not follow the wire grammar.
        ConstructionError: If more than one content slot is populated.
    """
    return _deserialize_attribute(data, 0, 0)


def deserialize_node(data: _wire.Buffer) -> _core.Node:
    return _deserialize_node(data, 0, 0)


def deserialize_graph(data: _wire.Buffer) -> _core.Graph:
    """Decode an encoded GraphProto.

    Raises:
        MalformedWireError: If the bytes do not follow the wire grammar.
        ConstructionError: If an attribute in the graph has more than one value.
    """
    return _deserialize_graph(data, 0, 0)


def deserialize_segment(data: _wire.Buffer) -> _core.Segment:
    return _deserialize_segment(data, 0, 0)


def deserialize_tensor(data: _wire.Buffer) -> _core.Tensor:
    return _deserialize_tensor(data, 0, 0)


def deserialize_sparse_tensor(data: _wire.Buffer) -> _core.SparseTensor:
    return _deserialize_sparse_tensor(data, 0, 0)


# Serialization


def _write_unknown_fields(writer: _wire.Writer, message: Any) -> None:
    for field in message.unknown_fields:
        writer.write_raw(field.raw)


def _attribute_has_value(writer: _wire.Writer, attr: _core.Attr) -> str | None:
    del writer  # Unused
    if attr.type == _enums.AttributeType.UNDEFINED:
        return f"Attribute {attr.name!r} has no value and cannot be serialized"
    if attr.type.is_repeated() and not attr.value:
        # An empty repeated slot is indistinguishable from no slot on the wire
        return f"Attribute {attr.name!r} of type {attr.type} is empty and cannot be serialized"
    return None


@_invariants.requires(_attribute_has_value)
def serialize_attribute_into(writer: _wire.Writer, attr: _core.Attr) -> None:
    """Write the fields of ``attr`` to ``writer``.

    Raises:
        ConstructionError: If the attribute is UNDEFINED.
    """
    if attr.name is not None:
        writer.write_string_field(_AttributeField.NAME, attr.name)
    type_ = attr.type
    value = attr.value
    if type_ == _enums.AttributeType.FLOAT:
        writer.write_float_field(_AttributeField.F, value)
    elif type_ == _enums.AttributeType.INT:
        writer.write_varint_field(_AttributeField.I, value)
    elif type_ == _enums.AttributeType.STRING:
        writer.write_bytes_field(_AttributeField.S, value)
    elif type_ == _enums.AttributeType.TENSOR:
        writer.write_bytes_field(_AttributeField.T, serialize_tensor(value))
    elif type_ == _enums.AttributeType.GRAPH:
        writer.write_bytes_field(_AttributeField.G, serialize_graph(value))
    elif type_ == _enums.AttributeType.FLOATS:
        for v in value:
            writer.write_float_field(_AttributeField.FLOATS, v)
    elif type_ == _enums.AttributeType.INTS:
        for v in value:
            writer.write_varint_field(_AttributeField.INTS, v)
    elif type_ == _enums.AttributeType.STRINGS:
        for v in value:
            writer.write_bytes_field(_AttributeField.STRINGS, v)
    elif type_ == _enums.AttributeType.TENSORS:
        for v in value:
            writer.write_bytes_field(_AttributeField.TENSORS, serialize_tensor(v))
    elif type_ == _enums.AttributeType.GRAPHS:
        for v in value:
            writer.write_bytes_field(_AttributeField.GRAPHS, serialize_graph(v))
    _write_unknown_fields(writer, attr)


def serialize_attribute(attr: _core.Attr) -> bytes:
    writer = _wire.Writer()
    serialize_attribute_into(writer, attr)
    return writer.getvalue()


def serialize_node_into(writer: _wire.Writer, node: _core.Node) -> None:
    for input_ in node.inputs:
        writer.write_string_field(_NodeField.INPUT, input_)
    for output in node.outputs:
        writer.write_string_field(_NodeField.OUTPUT, output)
    if node.name is not None:
        writer.write_string_field(_NodeField.NAME, node.name)
    if node.op_type is not None:
        writer.write_string_field(_NodeField.OP_TYPE, node.op_type)
    for attr in node.attributes:
        writer.write_bytes_field(_NodeField.ATTRIBUTE, serialize_attribute(attr))
    if node.doc_string is not None:
        writer.write_string_field(_NodeField.DOC_STRING, node.doc_string)
    _write_unknown_fields(writer, node)


def serialize_node(node: _core.Node) -> bytes:
    writer = _wire.Writer()
    serialize_node_into(writer, node)
    return writer.getvalue()


def serialize_graph_into(writer: _wire.Writer, graph: _core.Graph) -> None:
    for node in graph.nodes:
        writer.write_bytes_field(_GraphField.NODE, serialize_node(node))
    if graph.name is not None:
        writer.write_string_field(_GraphField.NAME, graph.name)
    for input_ in graph.inputs:
        writer.write_string_field(_GraphField.INPUT, input_)
    for output in graph.outputs:
        writer.write_string_field(_GraphField.OUTPUT, output)
    for initializer in graph.initializers:
        writer.write_bytes_field(_GraphField.INITIALIZER, serialize_tensor(initializer))
    if graph.ir_version is not None:
        writer.write_varint_field(_GraphField.IR_VERSION, graph.ir_version)
    if graph.producer_version is not None:
        writer.write_varint_field(_GraphField.PRODUCER_VERSION, graph.producer_version)
    if graph.producer_tag is not None:
        writer.write_string_field(_GraphField.PRODUCER_TAG, graph.producer_tag)
    if graph.domain is not None:
        writer.write_string_field(_GraphField.DOMAIN, graph.domain)
    if graph.doc_string is not None:
        writer.write_string_field(_GraphField.DOC_STRING, graph.doc_string)
    _write_unknown_fields(writer, graph)


def serialize_graph(graph: _core.Graph) -> bytes:
    """Encode ``graph`` and everything it owns.

    Raises:
        ConstructionError: If an attribute in the graph is UNDEFINED.
    """
    writer = _wire.Writer()
    serialize_graph_into(writer, graph)
    return writer.getvalue()


def serialize_segment(segment: _core.Segment) -> bytes:
    writer = _wire.Writer()
    if segment.begin is not None:
        writer.write_varint_field(_SegmentField.BEGIN, segment.begin)
    if segment.end is not None:
        writer.write_varint_field(_SegmentField.END, segment.end)
    _write_unknown_fields(writer, segment)
    return writer.getvalue()


def serialize_tensor_into(writer: _wire.Writer, tensor: _core.Tensor) -> None:
    for dim in tensor.dims:
        writer.write_varint_field(_TensorField.DIMS, dim)
    if tensor.data_type is not None:
        writer.write_varint_field(_TensorField.DATA_TYPE, tensor.data_type)
    if tensor.segment is not None:
        writer.write_bytes_field(_TensorField.SEGMENT, serialize_segment(tensor.segment))
    writer.write_packed_floats(_TensorField.FLOAT_DATA, tensor.float_data)
    writer.write_packed_varints(_TensorField.INT32_DATA, tensor.int32_data)
    for value in tensor.string_data:
        writer.write_bytes_field(_TensorField.STRING_DATA, value)
    writer.write_packed_varints(_TensorField.INT64_DATA, tensor.int64_data)
    if tensor.name is not None:
        writer.write_string_field(_TensorField.NAME, tensor.name)
    if tensor.raw_data is not None:
        writer.write_bytes_field(_TensorField.RAW_DATA, tensor.raw_data)
    _write_unknown_fields(writer, tensor)


def serialize_tensor(tensor: _core.Tensor) -> bytes:
    writer = _wire.Writer()
    serialize_tensor_into(writer, tensor)
    return writer.getvalue()


def serialize_sparse_tensor(sparse_tensor: _core.SparseTensor) -> bytes:
    writer = _wire.Writer()
    for dim in sparse_tensor.dims:
        writer.write_varint_field(_SparseTensorField.DIMS, dim)
    if sparse_tensor.indices is not None:
        writer.write_bytes_field(
            _SparseTensorField.INDICES, serialize_tensor(sparse_tensor.indices)
        )
    if sparse_tensor.values is not None:
        writer.write_bytes_field(
            _SparseTensorField.VALUES, serialize_tensor(sparse_tensor.values)
        )
    _write_unknown_fields(writer, sparse_tensor)
    return writer.getvalue()


_SERIALIZERS: dict[type, Callable[[Any], bytes]] = {
    _core.Graph: serialize_graph,
    _core.Node: serialize_node,
    _core.Attr: serialize_attribute,
    _core.Tensor: serialize_tensor,
    _core.Segment: serialize_segment,
    _core.SparseTensor: serialize_sparse_tensor,
}

_DESERIALIZERS: dict[type, Callable[[_wire.Buffer], Any]] = {
    _core.Graph: deserialize_graph,
    _core.Node: deserialize_node,
    _core.Attr: deserialize_attribute,
    _core.Tensor: deserialize_tensor,
    _core.Segment: deserialize_segment,
    _core.SparseTensor: deserialize_sparse_tensor,
}


def encode(
    message: _core.Graph | _core.Node | _core.Attr | _core.Tensor | _core.SparseTensor,
) -> bytes:
    """Serialize a message to bytes.

    Raises:
        ConstructionError: If an attribute in the message is UNDEFINED.
        TypeError: If ``message`` is not a message of this package.
    """
    serializer = _SERIALIZERS.get(type(message))
    if serializer is None:
        raise TypeError(f"Serialization of {type(message)} is not supported.")
    return serializer(message)


@typing.overload
def decode(data: _wire.Buffer) -> _core.Graph: ...
@typing.overload
def decode(data: _wire.Buffer, message_type: type[_M]) -> _M: ...
def decode(data: _wire.Buffer, message_type: type = _core.Graph) -> Any:
    """Deserialize bytes into a message of ``message_type``.

    An artifact is one encoded GraphProto, which is the default.

    Example::

        >>> from onnxwire import Node, serde
        >>> serde.decode(serde.encode(Node("Relu", ["X"], ["Y"])), Node).op_type
        'Relu'

    Raises:
        MalformedWireError: If the bytes do not follow the wire grammar.
        ConstructionError: If an attribute has more than one value.
        TypeError: If ``message_type`` is not a message of this package.
    """
    deserializer = _DESERIALIZERS.get(message_type)
    if deserializer is None:
        raise TypeError(f"Deserialization of {message_type} is not supported.")
    return deserializer(data)
