# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
import unittest

import numpy as np
import onnx
import parameterized

from onnxwire import _enums


class DataTypeTest(unittest.TestCase):
    def test_enums_are_the_same_as_onnx(self):
        self.assertEqual(_enums.DataType.UNDEFINED, onnx.TensorProto.UNDEFINED)
        self.assertEqual(_enums.DataType.FLOAT, onnx.TensorProto.FLOAT)
        self.assertEqual(_enums.DataType.UINT8, onnx.TensorProto.UINT8)
        self.assertEqual(_enums.DataType.INT8, onnx.TensorProto.INT8)
        self.assertEqual(_enums.DataType.UINT16, onnx.TensorProto.UINT16)
        self.assertEqual(_enums.DataType.INT16, onnx.TensorProto.INT16)
        self.assertEqual(_enums.DataType.INT32, onnx.TensorProto.INT32)
        self.assertEqual(_enums.DataType.INT64, onnx.TensorProto.INT64)
        self.assertEqual(_enums.DataType.STRING, onnx.TensorProto.STRING)
        self.assertEqual(_enums.DataType.BOOL, onnx.TensorProto.BOOL)
        self.assertEqual(_enums.DataType.FLOAT16, onnx.TensorProto.FLOAT16)

    def test_from_numpy_takes_np_dtype_and_returns_data_type(self):
        array = np.array([], dtype=np.int16)
        self.assertEqual(_enums.DataType.from_numpy(array.dtype), _enums.DataType.INT16)

    def test_from_numpy_maps_str_to_string(self):
        self.assertEqual(_enums.DataType.from_numpy(np.dtype("U3")), _enums.DataType.STRING)

    def test_from_numpy_raises_for_unsupported_dtype(self):
        with self.assertRaises(TypeError):
            _enums.DataType.from_numpy(np.dtype(np.float64))

    def test_numpy_returns_np_dtype(self):
        self.assertEqual(_enums.DataType.FLOAT16.numpy(), np.dtype(np.float16))

    def test_numpy_raises_for_undefined(self):
        with self.assertRaises(TypeError):
            _enums.DataType.UNDEFINED.numpy()

    def test_itemsize_returns_size_of_data_type_in_bytes(self):
        self.assertEqual(_enums.DataType.INT64.itemsize, 8)
        self.assertEqual(_enums.DataType.FLOAT16.itemsize, 2)
        self.assertEqual(_enums.DataType.BOOL.itemsize, 1)

    def test_itemsize_raises_for_string(self):
        with self.assertRaises(TypeError):
            _ = _enums.DataType.STRING.itemsize

    @parameterized.parameterized.expand(
        [
            (_enums.DataType.FLOAT, "float_data"),
            (_enums.DataType.UINT8, "int32_data"),
            (_enums.DataType.INT8, "int32_data"),
            (_enums.DataType.UINT16, "int32_data"),
            (_enums.DataType.INT16, "int32_data"),
            (_enums.DataType.INT32, "int32_data"),
            (_enums.DataType.BOOL, "int32_data"),
            (_enums.DataType.FLOAT16, "int32_data"),
            (_enums.DataType.INT64, "int64_data"),
            (_enums.DataType.STRING, "string_data"),
            (_enums.DataType.UNDEFINED, None),
        ]
    )
    def test_typed_data_field(self, dtype: _enums.DataType, field):
        self.assertEqual(dtype.typed_data_field, field)

    def test_repr_and_str_return_name(self):
        self.assertEqual(str(_enums.DataType.FLOAT16), "FLOAT16")
        self.assertEqual(repr(_enums.DataType.FLOAT16), "FLOAT16")


class AttributeTypeTest(unittest.TestCase):
    def test_enums_are_the_same_as_onnx(self):
        self.assertEqual(_enums.AttributeType.UNDEFINED, onnx.AttributeProto.UNDEFINED)
        self.assertEqual(_enums.AttributeType.FLOAT, onnx.AttributeProto.FLOAT)
        self.assertEqual(_enums.AttributeType.INT, onnx.AttributeProto.INT)
        self.assertEqual(_enums.AttributeType.STRING, onnx.AttributeProto.STRING)
        self.assertEqual(_enums.AttributeType.TENSOR, onnx.AttributeProto.TENSOR)
        self.assertEqual(_enums.AttributeType.GRAPH, onnx.AttributeProto.GRAPH)
        self.assertEqual(_enums.AttributeType.FLOATS, onnx.AttributeProto.FLOATS)
        self.assertEqual(_enums.AttributeType.INTS, onnx.AttributeProto.INTS)
        self.assertEqual(_enums.AttributeType.STRINGS, onnx.AttributeProto.STRINGS)
        self.assertEqual(_enums.AttributeType.TENSORS, onnx.AttributeProto.TENSORS)
        self.assertEqual(_enums.AttributeType.GRAPHS, onnx.AttributeProto.GRAPHS)

    def test_slot_and_from_slot_are_inverse(self):
        for attr_type in _enums.AttributeType:
            if attr_type == _enums.AttributeType.UNDEFINED:
                continue
            self.assertEqual(_enums.AttributeType.from_slot(attr_type.slot), attr_type)

    def test_undefined_has_no_slot(self):
        with self.assertRaises(TypeError):
            _ = _enums.AttributeType.UNDEFINED.slot

    def test_from_slot_raises_for_unknown_slot(self):
        with self.assertRaises(KeyError):
            _enums.AttributeType.from_slot("sparse_tensor")

    def test_is_repeated(self):
        self.assertTrue(_enums.AttributeType.INTS.is_repeated())
        self.assertFalse(_enums.AttributeType.TENSOR.is_repeated())


class VersionTest(unittest.TestCase):
    def test_make_version_packs_components(self):
        self.assertEqual(_enums.make_version(1, 2, 3), 1020003)

    def test_split_version_is_inverse_of_make_version(self):
        self.assertEqual(_enums.split_version(_enums.make_version(0, 99, 9999)), (0, 99, 9999))

    def test_make_version_rejects_out_of_range_minor(self):
        with self.assertRaises(ValueError):
            _enums.make_version(1, 100, 0)

    def test_ir_version(self):
        self.assertEqual(_enums.Version.IR_VERSION, 1)


if __name__ == "__main__":
    unittest.main()
