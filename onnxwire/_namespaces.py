# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Bookkeeping for the naming namespaces of a graph."""

from __future__ import annotations

__all__ = ["Namespace", "NamespaceRegistry"]

import enum

from onnxwire import _invariants


class Namespace(enum.Enum):
    """The namespaces names live in.

    A name may appear in more than one namespace, e.g. a graph can have the
    same name as a tensor.
    """

    NODE = "Node"
    GRAPH = "Graph"
    ATTRIBUTE = "Attribute"
    OPERATOR = "Operator"
    TENSOR = "Tensor"

    def __str__(self) -> str:
        return self.value


# Operators are defined by an external registry. Many nodes reference the same
# operator, so registering an operator name records a use instead of a definition.
_REFERENCE_NAMESPACES = frozenset((Namespace.OPERATOR,))


class NamespaceRegistry:
    """Tracks the names defined in one graph.

    The registry is scoped to a single graph instance. Attribute names are
    only unique within a node; call :meth:`reset_attribute_scope` before
    registering the attributes of the next node. Nested graphs get their own
    registry from :meth:`subgraph_scope`, which shares the Graph namespace with
    the parent so graph names stay unique across the whole artifact.
    """

    def __init__(self, graph_names: set[str] | None = None):
        self._names: dict[Namespace, set[str]] = {namespace: set() for namespace in Namespace}
        if graph_names is not None:
            self._names[Namespace.GRAPH] = graph_names

    def register(self, namespace: Namespace, name: str, *, path: str = "") -> None:
        """Define ``name`` in ``namespace``.

        Raises:
            DuplicateNameError: If the name is already defined in the namespace.
        """
        names = self._names[namespace]
        if name in names and namespace not in _REFERENCE_NAMESPACES:
            raise _invariants.DuplicateNameError(namespace, name, path)
        names.add(name)

    def lookup(self, namespace: Namespace, name: str) -> bool:
        """Return whether ``name`` is defined in ``namespace``."""
        return name in self._names[namespace]

    def names(self, namespace: Namespace) -> frozenset[str]:
        return frozenset(self._names[namespace])

    def reset_attribute_scope(self) -> None:
        self._names[Namespace.ATTRIBUTE] = set()

    def subgraph_scope(self) -> NamespaceRegistry:
        """Create the registry for a graph nested in an attribute of this graph."""
        return NamespaceRegistry(graph_names=self._names[Namespace.GRAPH])
