# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Semantic validation of messages.

The wire format cannot express most of the rules a well formed graph follows.
This module checks them on the in-memory model::

    >>> from onnxwire import Graph, Node, checker
    >>> graph = Graph([Node("Relu", ["X"], ["Y"])], name="g", inputs=["X"], outputs=["Y"])
    >>> checker.validate(graph)
    []

Each violation is reported as a :class:`ValidationError` whose ``path``
locates the offending element, e.g. ``graph.node[2].attribute[0]``.
"""

from __future__ import annotations

__all__ = [
    "check_attribute",
    "check_graph",
    "check_node",
    "check_sparse_tensor",
    "check_tensor",
    "validate",
]

import logging
from typing import AbstractSet, Union

import numpy as np
from typing_extensions import TypeAlias

from onnxwire import _core, _enums, _invariants, _namespaces
from onnxwire._invariants import ValidationError, ValidationErrorKind
from onnxwire._namespaces import Namespace

logger = logging.getLogger(__name__)

Checkable: TypeAlias = Union[
    _core.Graph, _core.Node, _core.Attr, _core.Tensor, _core.SparseTensor
]

# Values a narrow data type may hold when stored in int32_data
_INT32_DATA_BOUNDS = {
    _enums.DataType.UINT8: (0, (1 << 8) - 1),
    _enums.DataType.INT8: (-(1 << 7), (1 << 7) - 1),
    _enums.DataType.UINT16: (0, (1 << 16) - 1),
    _enums.DataType.INT16: (-(1 << 15), (1 << 15) - 1),
    _enums.DataType.BOOL: (0, 1),
    _enums.DataType.FLOAT16: (0, (1 << 16) - 1),
}

_ROOT_PATHS = {
    _core.Graph: "graph",
    _core.Node: "node",
    _core.Attr: "attribute",
    _core.Tensor: "tensor",
    _core.SparseTensor: "sparse_tensor",
}


def _element_count(tensor: _core.Tensor) -> int:
    """Number of elements a 1-D tensor stores, which is its segment when it has one."""
    segment = tensor.segment
    if segment is None or segment.begin is None or segment.end is None:
        return tensor.dims[0]
    return segment.end - segment.begin


class _StopChecking(Exception):
    """Unwinds the checker once the first violation is found."""


class _Checker:
    def __init__(self, accumulate: bool):
        self.accumulate = accumulate
        self.errors: list[ValidationError] = []

    def report(self, kind: ValidationErrorKind, path: str, message: str) -> None:
        self.add(ValidationError(kind, path, message))

    def add(self, error: ValidationError) -> None:
        self.errors.append(error)
        if not self.accumulate:
            raise _StopChecking()

    def register(
        self,
        registry: _namespaces.NamespaceRegistry,
        namespace: Namespace,
        name: str,
        path: str,
    ) -> None:
        try:
            registry.register(namespace, name, path=path)
        except _invariants.DuplicateNameError as e:
            self.add(e)

    def check_graph(
        self,
        graph: _core.Graph,
        path: str,
        registry: _namespaces.NamespaceRegistry,
        outer_names: AbstractSet[str],
    ) -> None:
        if graph.name:
            self.register(registry, Namespace.GRAPH, graph.name, path)

        for i, input_ in enumerate(graph.inputs):
            if input_:
                self.register(registry, Namespace.TENSOR, input_, f"{path}.input[{i}]")

        declared_inputs = set(graph.inputs)
        bound_inputs: set[str] = set()
        for i, initializer in enumerate(graph.initializers):
            initializer_path = f"{path}.initializer[{i}]"
            self.check_tensor(initializer, initializer_path)
            name = initializer.name
            if not name:
                self.report(
                    ValidationErrorKind.INITIALIZER_BINDING,
                    initializer_path,
                    "Initializer must have a name",
                )
            elif name not in declared_inputs:
                self.report(
                    ValidationErrorKind.INITIALIZER_BINDING,
                    initializer_path,
                    f"Initializer '{name}' does not name a graph input",
                )
            elif name in bound_inputs:
                self.report(
                    ValidationErrorKind.INITIALIZER_BINDING,
                    initializer_path,
                    f"Graph input '{name}' has more than one initializer",
                )
            if name:
                bound_inputs.add(name)

        defined = set(outer_names)
        defined.update(name for name in graph.inputs if name)
        defined.update(bound_inputs)

        for i, node in enumerate(graph.nodes):
            node_path = f"{path}.node[{i}]"
            for j, input_ in enumerate(node.inputs):
                if input_ and input_ not in defined:
                    self.report(
                        ValidationErrorKind.DEFINITION_BEFORE_USE,
                        f"{node_path}.input[{j}]",
                        f"Tensor '{input_}' is used before it is defined",
                    )
            self.check_node(node, node_path, registry, frozenset(defined))
            defined.update(output for output in node.outputs if output)

        for i, output in enumerate(graph.outputs):
            if output and output not in defined:
                self.report(
                    ValidationErrorKind.DEFINITION_BEFORE_USE,
                    f"{path}.output[{i}]",
                    f"Graph output '{output}' is not produced by any node or input",
                )

    def check_node(
        self,
        node: _core.Node,
        path: str,
        registry: _namespaces.NamespaceRegistry,
        outer_names: AbstractSet[str],
    ) -> None:
        if node.name:
            self.register(registry, Namespace.NODE, node.name, path)
        if node.op_type:
            self.register(registry, Namespace.OPERATOR, node.op_type, path)
        registry.reset_attribute_scope()
        for i, attr in enumerate(node.attributes):
            self.check_attribute(attr, f"{path}.attribute[{i}]", registry, outer_names)
        for i, output in enumerate(node.outputs):
            if output:
                self.register(registry, Namespace.TENSOR, output, f"{path}.output[{i}]")

    def check_attribute(
        self,
        attr: _core.Attr,
        path: str,
        registry: _namespaces.NamespaceRegistry,
        outer_names: AbstractSet[str],
    ) -> None:
        if attr.name:
            self.register(registry, Namespace.ATTRIBUTE, attr.name, path)
        else:
            self.report(
                ValidationErrorKind.NAMESPACE_UNIQUENESS, path, "Attribute must have a name"
            )

        type_ = attr.type
        if type_ == _enums.AttributeType.UNDEFINED:
            self.report(
                ValidationErrorKind.UNION_EXCLUSIVITY,
                path,
                f"Attribute '{attr.name}' has no value",
            )
        elif type_.is_repeated() and not attr.value:
            self.report(
                ValidationErrorKind.UNION_EXCLUSIVITY,
                path,
                f"Attribute '{attr.name}' of type {type_} is empty and has no populated slot",
            )
        elif type_ == _enums.AttributeType.TENSOR:
            self.check_tensor(attr.value, f"{path}.t")
        elif type_ == _enums.AttributeType.TENSORS:
            for i, tensor in enumerate(attr.value):
                self.check_tensor(tensor, f"{path}.tensors[{i}]")
        elif type_ == _enums.AttributeType.GRAPH:
            self.check_graph(attr.value, f"{path}.g", registry.subgraph_scope(), outer_names)
        elif type_ == _enums.AttributeType.GRAPHS:
            for i, graph in enumerate(attr.value):
                self.check_graph(
                    graph, f"{path}.graphs[{i}]", registry.subgraph_scope(), outer_names
                )

    def check_dims(self, dims: tuple[int, ...], path: str, kind: ValidationErrorKind) -> bool:
        valid = True
        for i, dim in enumerate(dims):
            if dim < 0:
                self.report(
                    kind, f"{path}.dims[{i}]", f"Dimension must be non-negative, got {dim}"
                )
                valid = False
        return valid

    def check_tensor(self, tensor: _core.Tensor, path: str) -> None:
        kind = ValidationErrorKind.TENSOR_CONSISTENCY
        if not self.check_dims(tensor.dims, path, kind):
            return

        populated = tensor.populated_fields()
        dtype = tensor.data_type
        if dtype is None or dtype == _enums.DataType.UNDEFINED:
            if populated:
                self.report(kind, path, f"Tensor {tensor!r} has data but no data type")
            return
        if len(populated) > 1:
            self.report(
                kind,
                path,
                f"Tensor {tensor!r} has more than one data field: {', '.join(populated)}",
            )
            return

        count = 0
        field = populated[0] if populated else None
        if tensor.raw_data is not None:
            if dtype == _enums.DataType.STRING:
                self.report(kind, path, "STRING tensors cannot be stored in raw_data")
                return
            if len(tensor.raw_data) % dtype.itemsize:
                self.report(
                    kind,
                    path,
                    f"raw_data has {len(tensor.raw_data)} bytes, which is not a "
                    f"multiple of the {dtype} item size {dtype.itemsize}",
                )
                return
            count = len(tensor.raw_data) // dtype.itemsize
        elif field is not None:
            if field != dtype.typed_data_field:
                self.report(
                    kind,
                    path,
                    f"{dtype} data must be stored in {dtype.typed_data_field}, not {field}",
                )
                return
            count = len(getattr(tensor, field))

        if tensor.segment is not None:
            expected = self._segment_size(tensor.segment, tensor.size, f"{path}.segment")
            if expected is None:
                return
        else:
            expected = tensor.size
        if count != expected:
            self.report(
                kind,
                path,
                f"Tensor {tensor!r} holds {count} elements, expected {expected}",
            )
            return

        if field == "int32_data" and dtype in _INT32_DATA_BOUNDS:
            low, high = _INT32_DATA_BOUNDS[dtype]
            for i, value in enumerate(tensor.int32_data):
                if not low <= value <= high:
                    self.report(
                        kind,
                        f"{path}.int32_data[{i}]",
                        f"Value {value} is out of range for {dtype}",
                    )
                    return

    def _segment_size(self, segment: _core.Segment, size: int, path: str) -> int | None:
        kind = ValidationErrorKind.TENSOR_CONSISTENCY
        if segment.begin is None or segment.end is None:
            self.report(kind, path, "Segment must have both begin and end")
            return None
        if not 0 <= segment.begin <= segment.end <= size:
            self.report(
                kind,
                path,
                f"Segment [{segment.begin}, {segment.end}) is outside the "
                f"{size} elements of the tensor",
            )
            return None
        return segment.end - segment.begin

    def check_sparse_tensor(self, sparse_tensor: _core.SparseTensor, path: str) -> None:
        kind = ValidationErrorKind.SPARSE_TENSOR_CONSISTENCY
        dims = sparse_tensor.dims
        if not self.check_dims(dims, path, kind):
            return
        indices = sparse_tensor.indices
        values = sparse_tensor.values
        if indices is None or values is None:
            missing = "indices" if indices is None else "values"
            self.report(kind, path, f"Sparse tensor is missing {missing}")
            return

        error_count = len(self.errors)
        self.check_tensor(indices, f"{path}.indices")
        self.check_tensor(values, f"{path}.values")
        if len(self.errors) > error_count:
            return

        if values.data_type is None or values.data_type == _enums.DataType.UNDEFINED:
            self.report(kind, f"{path}.values", "Sparse tensor values must have a data type")
            return
        if len(values.dims) != 1:
            self.report(
                kind,
                f"{path}.values",
                f"Sparse tensor values must be 1-D, got shape {list(values.dims)}",
            )
            return
        if indices.data_type is None or not indices.data_type.is_integer():
            self.report(
                kind,
                f"{path}.indices",
                f"Sparse tensor indices must be integers, got {indices.data_type}",
            )
            return
        nnz = _element_count(values)
        rank = len(dims)
        if len(indices.dims) != 2 or indices.dims[1] != rank:
            self.report(
                kind,
                f"{path}.indices",
                f"Sparse tensor indices must have shape [nnz, {rank}], got {list(indices.dims)}",
            )
            return
        if indices.dims[0] != nnz:
            self.report(
                kind,
                f"{path}.indices",
                f"Sparse tensor has {indices.dims[0]} index rows but {nnz} values",
            )
            return
        if indices.segment is not None or nnz == 0:
            return

        index_array = indices.numpy().astype(np.int64).reshape(nnz, rank)
        out_of_bounds = (index_array < 0) | (index_array >= np.asarray(dims, dtype=np.int64))
        if out_of_bounds.any():
            row, column = (int(i) for i in np.argwhere(out_of_bounds)[0])
            self.report(
                kind,
                f"{path}.indices",
                f"Index {index_array[row].tolist()} of value {row} is out of bounds "
                f"for dimension {column} of size {dims[column]}",
            )

    def check(self, obj: Checkable, path: str) -> None:
        if isinstance(obj, _core.Graph):
            self.check_graph(obj, path, _namespaces.NamespaceRegistry(), frozenset())
        elif isinstance(obj, _core.Node):
            self.check_node(obj, path, _namespaces.NamespaceRegistry(), frozenset())
        elif isinstance(obj, _core.Attr):
            self.check_attribute(obj, path, _namespaces.NamespaceRegistry(), frozenset())
        elif isinstance(obj, _core.Tensor):
            self.check_tensor(obj, path)
        elif isinstance(obj, _core.SparseTensor):
            self.check_sparse_tensor(obj, path)
        else:
            raise TypeError(f"Validation of {type(obj)} is not supported.")


def validate(obj: Checkable, *, accumulate: bool = False) -> list[ValidationError]:
    """Check the semantic invariants of a message.

    Args:
        obj: A graph, node, attribute, tensor or sparse tensor.
        accumulate: Report every violation instead of stopping at the first.

    Returns:
        The violations found. An empty list means the message is valid.
    """
    checker = _Checker(accumulate)
    try:
        checker.check(obj, _ROOT_PATHS.get(type(obj), "message"))
    except _StopChecking:
        pass
    logger.debug("Validated %r: %d violation(s)", type(obj).__name__, len(checker.errors))
    return checker.errors


def _raise_first(obj: Checkable) -> None:
    errors = validate(obj)
    if errors:
        raise errors[0]


def check_graph(graph: _core.Graph) -> None:
    """Raise the first violation found in ``graph``.

    Raises:
        ValidationError: If the graph is invalid.
    """
    _raise_first(graph)


def check_node(node: _core.Node) -> None:
    _raise_first(node)


def check_attribute(attr: _core.Attr) -> None:
    _raise_first(attr)


def check_tensor(tensor: _core.Tensor) -> None:
    _raise_first(tensor)


def check_sparse_tensor(sparse_tensor: _core.SparseTensor) -> None:
    _raise_first(sparse_tensor)
