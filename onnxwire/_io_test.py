# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
import io
import os
import tempfile
import unittest
from unittest import mock

from onnxwire import _core, _flags, _invariants, _io, _wire, serde


def _create_simple_graph(name: str = "main") -> _core.Graph:
    return _core.Graph(
        [_core.Node("Relu", ["X"], ["Y"], name="relu")],
        name=name,
        inputs=["X"],
        outputs=["Y"],
    )


def _create_invalid_graph() -> _core.Graph:
    return _core.Graph([_core.Node("Relu", ["X"], ["Y"])], name="invalid")


class IOFunctionsTest(unittest.TestCase):
    def test_load(self):
        graph = _create_simple_graph()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            with open(path, "wb") as f:
                f.write(serde.encode(graph))
            self.assertEqual(_io.load(path), graph)

    def test_save_writes_one_graph_without_framing(self):
        graph = _create_simple_graph()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            _io.save(graph, path)
            with open(path, "rb") as f:
                self.assertEqual(f.read(), serde.encode(graph))

    def test_save_and_load_round_trip(self):
        graph = _create_simple_graph()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            _io.save(graph, path)
            self.assertEqual(_io.load(path, check=True), graph)

    def test_save_checks_graph_by_default(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            with self.assertRaises(_invariants.ValidationError):
                _io.save(_create_invalid_graph(), path)
            self.assertFalse(os.path.exists(path))

    def test_save_without_check_writes_invalid_graph(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            _io.save(_create_invalid_graph(), path, check=False)
            self.assertEqual(_io.load(path), _create_invalid_graph())

    def test_load_with_check_raises_for_invalid_graph(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            _io.save(_create_invalid_graph(), path, check=False)
            with self.assertRaises(_invariants.ValidationError):
                _io.load(path, check=True)

    def test_check_on_load_flag_is_used_when_check_is_none(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            _io.save(_create_invalid_graph(), path, check=False)
            with mock.patch.object(_flags, "CHECK_ON_LOAD", True):
                with self.assertRaises(_invariants.ValidationError):
                    _io.load(path)

    def test_load_raises_for_malformed_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "graph.onnx")
            with open(path, "wb") as f:
                f.write(b"\x0a\x05ab")
            with self.assertRaises(_wire.MalformedWireError):
                _io.load(path)


class DelimitedStreamTest(unittest.TestCase):
    def test_write_then_read_multiple_graphs(self):
        graphs = [_create_simple_graph("a"), _core.Graph(), _create_simple_graph("b")]
        stream = io.BytesIO()
        self.assertEqual(_io.write_delimited(stream, graphs), 3)
        stream.seek(0)
        self.assertEqual(list(_io.read_delimited(stream)), graphs)

    def test_frame_is_length_prefixed(self):
        graph = _create_simple_graph()
        stream = io.BytesIO()
        _io.write_delimited(stream, [graph])
        data = serde.encode(graph)
        self.assertEqual(stream.getvalue(), _wire.encode_varint(len(data)) + data)

    def test_empty_stream_has_no_graphs(self):
        self.assertEqual(list(_io.read_delimited(io.BytesIO(b""))), [])

    def test_truncated_frame_raises(self):
        stream = io.BytesIO()
        _io.write_delimited(stream, [_create_simple_graph()])
        truncated = io.BytesIO(stream.getvalue()[:-1])
        with self.assertRaisesRegex(_wire.MalformedWireError, "Frame declares"):
            list(_io.read_delimited(truncated))

    def test_truncated_length_prefix_raises(self):
        with self.assertRaisesRegex(_wire.MalformedWireError, "length prefix"):
            list(_io.read_delimited(io.BytesIO(b"\x80")))


if __name__ == "__main__":
    unittest.main()
