# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Codec and validator for the legacy ONNX interchange format."""

__all__ = [
    # Modules
    "checker",
    "serde",
    # Message classes
    "Attr",
    "Graph",
    "Node",
    "Segment",
    "SparseTensor",
    "Tensor",
    "UnknownField",
    # Enums
    "AttributeType",
    "DataType",
    "Namespace",
    "ValidationErrorKind",
    "Version",
    # Namespaces
    "NamespaceRegistry",
    # Errors
    "ConstructionError",
    "DuplicateNameError",
    "MalformedWireError",
    "ValidationError",
    # Conversion functions
    "decode",
    "encode",
    "validate",
    # Convenience constructors
    "attribute",
    "node",
    "tensor",
    # Versions
    "make_version",
    "split_version",
    # IO
    "load",
    "read_delimited",
    "save",
    "write_delimited",
]

from onnxwire import checker, serde
from onnxwire._convenience import attribute, node, tensor
from onnxwire._core import Attr, Graph, Node, Segment, SparseTensor, Tensor, UnknownField
from onnxwire._enums import AttributeType, DataType, Version, make_version, split_version
from onnxwire._invariants import (
    ConstructionError,
    DuplicateNameError,
    ValidationError,
    ValidationErrorKind,
)
from onnxwire._io import load, read_delimited, save, write_delimited
from onnxwire._namespaces import Namespace, NamespaceRegistry
from onnxwire._wire import MalformedWireError
from onnxwire.checker import validate
from onnxwire.serde import decode, encode


def __set_module() -> None:
    """Set the module of all functions in this module to this public module."""
    global_dict = globals()
    for name in __all__:
        global_dict[name].__module__ = __name__


__set_module()
