# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
import dataclasses
import unittest

import numpy as np
import parameterized

from onnxwire import _core, _enums, _invariants


class AttrTest(unittest.TestCase):
    @parameterized.parameterized.expand(
        [
            ("float", _enums.AttributeType.FLOAT, 0.5, 0.5),
            ("int", _enums.AttributeType.INT, np.int64(3), 3),
            ("string", _enums.AttributeType.STRING, "abc", b"abc"),
            ("floats", _enums.AttributeType.FLOATS, [1, 2.5], (1.0, 2.5)),
            ("ints", _enums.AttributeType.INTS, [1, -2], (1, -2)),
            ("strings", _enums.AttributeType.STRINGS, ["a", b"b"], (b"a", b"b")),
        ]
    )
    def test_value_is_coerced_to_type(self, _: str, attr_type, value, expected):
        attr = _core.Attr("a", attr_type, value)
        self.assertEqual(attr.value, expected)

    def test_float_is_rounded_to_float32(self):
        attr = _core.Attr("alpha", _enums.AttributeType.FLOAT, 0.1)
        self.assertEqual(attr.value, float(np.float32(0.1)))

    @parameterized.parameterized.expand(
        [
            ("int_for_float", _enums.AttributeType.INT, 1.5),
            ("int_overflow", _enums.AttributeType.INT, 1 << 63),
            ("tensor_for_graph", _enums.AttributeType.GRAPH, _core.Tensor()),
            ("missing_value", _enums.AttributeType.TENSOR, None),
            ("value_for_undefined", _enums.AttributeType.UNDEFINED, 1),
            ("string_for_ints", _enums.AttributeType.INTS, "12"),
        ]
    )
    def test_invalid_value_raises_construction_error(self, _: str, attr_type, value):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Attr("a", attr_type, value)

    def test_unknown_type_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Attr("a", 42, 1)

    def test_from_slots_selects_the_populated_slot(self):
        attr = _core.Attr.from_slots("axis", i=1, f=None)
        self.assertEqual(attr.type, _enums.AttributeType.INT)
        self.assertEqual(attr.value, 1)

    def test_from_slots_with_two_slots_raises_construction_error(self):
        with self.assertRaisesRegex(_invariants.ConstructionError, "more than one value"):
            _core.Attr.from_slots("a", i=1, f=2.0)

    def test_from_slots_without_slots_is_undefined(self):
        attr = _core.Attr.from_slots("a")
        self.assertEqual(attr.type, _enums.AttributeType.UNDEFINED)
        self.assertIsNone(attr.value)

    def test_from_slots_raises_type_error_for_unknown_slot(self):
        with self.assertRaises(TypeError):
            _core.Attr.from_slots("a", sparse_tensor=1)

    def test_attr_is_immutable(self):
        attr = _core.Attr("a", _enums.AttributeType.INT, 1)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            attr.value = 2  # type: ignore[misc]


class NodeTest(unittest.TestCase):
    def test_sequences_are_stored_as_tuples(self):
        node = _core.Node("Add", ["A", "B"], ["C"])
        self.assertEqual(node.inputs, ("A", "B"))
        self.assertEqual(node.outputs, ("C",))
        self.assertEqual(node.attributes, ())

    def test_absent_and_empty_name_are_distinct(self):
        self.assertIsNone(_core.Node("Relu").name)
        self.assertEqual(_core.Node("Relu", name="").name, "")

    def test_replace_returns_new_node_and_keeps_original(self):
        node = _core.Node("Relu", ["X"], ["Y"])
        renamed = node.replace(name="relu")
        self.assertEqual(renamed.name, "relu")
        self.assertIsNone(node.name)
        self.assertEqual(renamed.inputs, node.inputs)

    def test_get_attribute(self):
        attr = _core.Attr("axis", _enums.AttributeType.INT, 0)
        node = _core.Node("Concat", attributes=[attr])
        self.assertIs(node.get_attribute("axis"), attr)
        self.assertIsNone(node.get_attribute("missing"))

    def test_non_string_input_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Node("Relu", [1], ["Y"])

    def test_string_as_inputs_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Node("Relu", "X", ["Y"])


class GraphTest(unittest.TestCase):
    def test_iterates_over_nodes(self):
        nodes = [_core.Node("Relu", ["X"], ["Y"]), _core.Node("Neg", ["Y"], ["Z"])]
        graph = _core.Graph(nodes, name="g")
        self.assertEqual(list(graph), nodes)
        self.assertEqual(len(graph), 2)

    def test_non_tensor_initializer_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Graph(initializers=[_core.Node()])

    def test_equality_is_structural(self):
        self.assertEqual(
            _core.Graph([_core.Node("Relu")], name="g"),
            _core.Graph([_core.Node("Relu")], name="g"),
        )


class TensorTest(unittest.TestCase):
    def test_repr_does_not_print_content(self):
        tensor = _core.Tensor(dims=[2, 3], data_type=_enums.DataType.FLOAT, name="w")
        self.assertEqual(repr(tensor), "Tensor<FLOAT,[2,3]>(name='w')")

    def test_size_is_product_of_dims(self):
        self.assertEqual(_core.Tensor(dims=[2, 3, 4]).size, 24)
        self.assertEqual(_core.Tensor().size, 1)

    def test_int32_data_out_of_range_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Tensor(int32_data=[1 << 31])

    def test_unknown_data_type_raises_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.Tensor(data_type=99)

    def test_populated_fields_counts_empty_raw_data(self):
        tensor = _core.Tensor(float_data=[1.0], raw_data=b"")
        self.assertEqual(tensor.populated_fields(), ["float_data", "raw_data"])

    @parameterized.parameterized.expand(
        [
            ("float", np.array([[1.5, 2.0]], dtype=np.float32), "float_data"),
            ("int8", np.array([-1, 2, 3], dtype=np.int8), "int32_data"),
            ("bool", np.array([True, False]), "int32_data"),
            ("int64", np.array([[1], [2]], dtype=np.int64), "int64_data"),
        ]
    )
    def test_numpy_from_typed_data(self, _: str, array: np.ndarray, field: str):
        tensor = _core.Tensor(
            dims=array.shape,
            data_type=_enums.DataType.from_numpy(array.dtype),
            **{field: array.ravel().tolist()},
        )
        np.testing.assert_array_equal(tensor.numpy(), array)
        self.assertEqual(tensor.numpy().dtype, array.dtype)

    def test_numpy_from_float16_bit_patterns(self):
        array = np.array([1.0, -2.5], dtype=np.float16)
        tensor = _core.Tensor(
            dims=[2],
            data_type=_enums.DataType.FLOAT16,
            int32_data=array.view(np.uint16).tolist(),
        )
        np.testing.assert_array_equal(tensor.numpy(), array)

    def test_numpy_from_raw_data(self):
        array = np.arange(6, dtype=np.int16).reshape(2, 3)
        tensor = _core.Tensor(
            dims=[2, 3], data_type=_enums.DataType.INT16, raw_data=array.astype("<i2").tobytes()
        )
        np.testing.assert_array_equal(tensor.numpy(), array)

    def test_numpy_of_segment_is_1d(self):
        tensor = _core.Tensor(
            dims=[2, 3],
            data_type=_enums.DataType.FLOAT,
            segment=_core.Segment(2, 4),
            float_data=[1.0, 2.0],
        )
        np.testing.assert_array_equal(tensor.numpy(), np.array([1.0, 2.0], dtype=np.float32))

    def test_numpy_of_string_tensor(self):
        tensor = _core.Tensor(dims=[2], data_type=_enums.DataType.STRING, string_data=["a", b"b"])
        self.assertEqual(tensor.numpy().tolist(), [b"a", b"b"])

    def test_numpy_of_undefined_tensor_raises(self):
        with self.assertRaises(ValueError):
            _core.Tensor(dims=[1]).numpy()


class SparseTensorTest(unittest.TestCase):
    def test_non_tensor_values_raise_construction_error(self):
        with self.assertRaises(_invariants.ConstructionError):
            _core.SparseTensor(dims=[3], values=[1.0])  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
