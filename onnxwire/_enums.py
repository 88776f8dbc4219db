# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Enums that match the legacy ONNX schema."""

from __future__ import annotations

import enum

import numpy as np


class AttributeType(enum.IntEnum):
    """Enum for the nine content slots of an ONNX attribute.

    ``UNDEFINED`` marks an attribute with no populated slot. It only exists
    transiently during construction; a valid attribute never carries it.
    """

    UNDEFINED = 0
    FLOAT = 1
    INT = 2
    STRING = 3
    TENSOR = 4
    GRAPH = 5
    FLOATS = 6
    INTS = 7
    STRINGS = 8
    TENSORS = 9
    GRAPHS = 10

    @property
    def slot(self) -> str:
        """The name of the AttributeProto field that holds values of this type."""
        if self not in _ATTRIBUTE_TYPE_TO_SLOT:
            raise TypeError(f"Attribute type {self} does not have a content slot")
        return _ATTRIBUTE_TYPE_TO_SLOT[self]

    @classmethod
    def from_slot(cls, slot: str) -> AttributeType:
        """Returns the attribute type stored in the AttributeProto field ``slot``.

        Raises:
            KeyError: If ``slot`` is not one of the nine content fields.
        """
        return _SLOT_TO_ATTRIBUTE_TYPE[slot]

    def is_repeated(self) -> bool:
        return self in _REPEATED_ATTRIBUTE_TYPES

    def __repr__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.__repr__()


class DataType(enum.IntEnum):
    """Enum for the data types of tensors, defined in ``TensorProto.DataType``."""

    UNDEFINED = 0
    FLOAT = 1
    UINT8 = 2
    INT8 = 3
    UINT16 = 4
    INT16 = 5
    INT32 = 6
    INT64 = 7
    STRING = 8
    BOOL = 9
    FLOAT16 = 10

    @classmethod
    def from_numpy(cls, dtype: np.dtype) -> DataType:
        """Returns the ONNX data type for the numpy dtype.

        Raises:
            TypeError: If the data type is not supported by the format.
        """
        dtype = np.dtype(dtype)
        if dtype in _NP_TYPE_TO_DATA_TYPE:
            return cls(_NP_TYPE_TO_DATA_TYPE[dtype])
        if np.issubdtype(dtype, np.str_) or np.issubdtype(dtype, np.bytes_):
            return DataType.STRING
        raise TypeError(f"Unsupported numpy data type: {dtype}")

    @property
    def itemsize(self) -> int:
        """Returns the size of one element in ``raw_data`` in bytes.

        Raises:
            TypeError: If elements of the data type have no fixed size.
        """
        if self not in _ITEMSIZE_MAP:
            raise TypeError(f"Data type {self} does not have a fixed item size")
        return _ITEMSIZE_MAP[self]

    @property
    def typed_data_field(self) -> str | None:
        """The TensorProto field that stores elements of this type, if any.

        8 and 16 bit types, BOOL and FLOAT16 share ``int32_data``.
        """
        return _DATA_TYPE_TO_FIELD.get(self)

    def numpy(self) -> np.dtype:
        """Returns the numpy dtype for the ONNX data type.

        Raises:
            TypeError: If the data type is not supported by numpy.
        """
        if self not in _DATA_TYPE_TO_NP_TYPE:
            raise TypeError(f"Numpy does not support ONNX data type: {self}")
        return _DATA_TYPE_TO_NP_TYPE[self]

    def is_integer(self) -> bool:
        return self in _INTEGER_TYPES

    def __repr__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.__repr__()


class Version(enum.IntEnum):
    """Version constants of the IR.

    Versions use the layout ``xx(major) - xx(minor) - xxxx(bugfix)``. See
    :func:`make_version` and :func:`split_version`.
    """

    IR_VERSION = 1


def make_version(major: int, minor: int, bugfix: int) -> int:
    """Packs a version triple into the integer layout used by ``ir_version``."""
    if not 0 <= minor < 100 or not 0 <= bugfix < 10000 or major < 0:
        raise ValueError(f"Version component out of range: {major}.{minor}.{bugfix}")
    return major * 1000000 + minor * 10000 + bugfix


def split_version(version: int) -> tuple[int, int, int]:
    """Unpacks an ``ir_version`` or ``producer_version`` into (major, minor, bugfix)."""
    if version < 0:
        raise ValueError(f"Version must be non-negative, got {version}")
    major, rest = divmod(version, 1000000)
    minor, bugfix = divmod(rest, 10000)
    return major, minor, bugfix


_ATTRIBUTE_TYPE_TO_SLOT = {
    AttributeType.FLOAT: "f",
    AttributeType.INT: "i",
    AttributeType.STRING: "s",
    AttributeType.TENSOR: "t",
    AttributeType.GRAPH: "g",
    AttributeType.FLOATS: "floats",
    AttributeType.INTS: "ints",
    AttributeType.STRINGS: "strings",
    AttributeType.TENSORS: "tensors",
    AttributeType.GRAPHS: "graphs",
}

_SLOT_TO_ATTRIBUTE_TYPE = {v: k for k, v in _ATTRIBUTE_TYPE_TO_SLOT.items()}

_REPEATED_ATTRIBUTE_TYPES = frozenset(
    (
        AttributeType.FLOATS,
        AttributeType.INTS,
        AttributeType.STRINGS,
        AttributeType.TENSORS,
        AttributeType.GRAPHS,
    )
)

_ITEMSIZE_MAP = {
    DataType.FLOAT: 4,
    DataType.UINT8: 1,
    DataType.INT8: 1,
    DataType.UINT16: 2,
    DataType.INT16: 2,
    DataType.INT32: 4,
    DataType.INT64: 8,
    DataType.BOOL: 1,
    DataType.FLOAT16: 2,
}

_DATA_TYPE_TO_FIELD = {
    DataType.FLOAT: "float_data",
    DataType.UINT8: "int32_data",
    DataType.INT8: "int32_data",
    DataType.UINT16: "int32_data",
    DataType.INT16: "int32_data",
    DataType.INT32: "int32_data",
    DataType.BOOL: "int32_data",
    DataType.FLOAT16: "int32_data",
    DataType.INT64: "int64_data",
    DataType.STRING: "string_data",
}

_INTEGER_TYPES = frozenset(
    (
        DataType.UINT8,
        DataType.INT8,
        DataType.UINT16,
        DataType.INT16,
        DataType.INT32,
        DataType.INT64,
    )
)

_NP_TYPE_TO_DATA_TYPE = {
    np.dtype("bool"): DataType.BOOL,
    np.dtype("float16"): DataType.FLOAT16,
    np.dtype("float32"): DataType.FLOAT,
    np.dtype("int16"): DataType.INT16,
    np.dtype("int32"): DataType.INT32,
    np.dtype("int64"): DataType.INT64,
    np.dtype("int8"): DataType.INT8,
    np.dtype("object"): DataType.STRING,
    np.dtype("uint16"): DataType.UINT16,
    np.dtype("uint8"): DataType.UINT8,
}

# ONNX DataType to Numpy dtype.
_DATA_TYPE_TO_NP_TYPE = {v: k for k, v in _NP_TYPE_TO_DATA_TYPE.items()}
