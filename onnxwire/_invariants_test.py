# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
from __future__ import annotations

import unittest

from onnxwire import _invariants, _namespaces


def _positive(x: int) -> str | None:
    if x <= 0:
        return f"{x} is not positive"
    return None


@_invariants.requires(_positive)
def _double(x: int) -> int:
    return 2 * x


class RequiresTest(unittest.TestCase):
    def test_function_runs_when_precondition_holds(self):
        self.assertEqual(_double(2), 4)

    def test_construction_error_when_precondition_fails(self):
        with self.assertRaisesRegex(_invariants.ConstructionError, "-1 is not positive"):
            _double(-1)

    def test_wrapper_keeps_function_name(self):
        self.assertEqual(_double.__name__, "_double")


class ValidationErrorTest(unittest.TestCase):
    def test_message_includes_kind_and_path(self):
        error = _invariants.ValidationError(
            _invariants.ValidationErrorKind.TENSOR_CONSISTENCY, "graph.initializer[0]", "bad"
        )
        self.assertEqual(str(error), "[TENSOR_CONSISTENCY] graph.initializer[0]: bad")
        self.assertEqual(error.message, "bad")

    def test_duplicate_name_error_is_a_validation_error(self):
        error = _invariants.DuplicateNameError(_namespaces.Namespace.NODE, "n", "graph.node[1]")
        self.assertIsInstance(error, _invariants.ValidationError)
        self.assertEqual(
            str(error),
            "[NAMESPACE_UNIQUENESS] graph.node[1]: Duplicate name 'n' in the Node namespace",
        )


if __name__ == "__main__":
    unittest.main()
