# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
import unittest

from onnxwire import _invariants, _namespaces
from onnxwire._namespaces import Namespace


class NamespaceRegistryTest(unittest.TestCase):
    def setUp(self):
        self.registry = _namespaces.NamespaceRegistry()

    def test_register_then_lookup(self):
        self.registry.register(Namespace.NODE, "conv_0")
        self.assertTrue(self.registry.lookup(Namespace.NODE, "conv_0"))
        self.assertFalse(self.registry.lookup(Namespace.TENSOR, "conv_0"))

    def test_duplicate_name_raises_duplicate_name_error(self):
        self.registry.register(Namespace.TENSOR, "X")
        with self.assertRaises(_invariants.DuplicateNameError) as cm:
            self.registry.register(Namespace.TENSOR, "X", path="graph.node[0].output[0]")
        self.assertEqual(cm.exception.namespace, Namespace.TENSOR)
        self.assertEqual(cm.exception.name, "X")
        self.assertEqual(cm.exception.path, "graph.node[0].output[0]")
        self.assertEqual(cm.exception.kind, _invariants.ValidationErrorKind.NAMESPACE_UNIQUENESS)

    def test_same_name_in_different_namespaces_is_allowed(self):
        for namespace in Namespace:
            self.registry.register(namespace, "shared")
        self.assertEqual(self.registry.names(Namespace.GRAPH), frozenset({"shared"}))

    def test_operator_names_can_be_referenced_many_times(self):
        self.registry.register(Namespace.OPERATOR, "Conv")
        self.registry.register(Namespace.OPERATOR, "Conv")
        self.assertTrue(self.registry.lookup(Namespace.OPERATOR, "Conv"))

    def test_reset_attribute_scope(self):
        self.registry.register(Namespace.ATTRIBUTE, "axis")
        self.registry.reset_attribute_scope()
        self.registry.register(Namespace.ATTRIBUTE, "axis")

    def test_subgraph_scope_shares_graph_namespace(self):
        self.registry.register(Namespace.GRAPH, "main")
        self.registry.register(Namespace.TENSOR, "X")
        subgraph = self.registry.subgraph_scope()
        subgraph.register(Namespace.TENSOR, "X")
        with self.assertRaises(_invariants.DuplicateNameError):
            subgraph.register(Namespace.GRAPH, "main")
        subgraph.register(Namespace.GRAPH, "body")
        self.assertTrue(self.registry.lookup(Namespace.GRAPH, "body"))

    def test_str_is_namespace_name(self):
        self.assertEqual(str(Namespace.TENSOR), "Tensor")


if __name__ == "__main__":
    unittest.main()
