# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Test with different environment configuration with nox.

Documentation:
    https://nox.thea.codes/
"""

import nox

nox.options.error_on_missing_interpreters = False


COMMON_TEST_DEPENDENCIES = (
    "numpy",
    "parameterized",
    "pytest!=7.1.0",
    "typing_extensions>=4.10",
)
ONNX = "onnx==1.17"


@nox.session(tags=["build"])
def build(session):
    """Build package."""
    session.install("build", "wheel")
    session.run("python", "-m", "build")


@nox.session(tags=["test"])
def test(session):
    """Test onnxwire and its docstring examples."""
    session.install(*COMMON_TEST_DEPENDENCIES, ONNX)
    session.install(".", "--no-deps")
    session.run("pip", "list")
    session.run("pytest", "onnxwire", "--doctest-modules", *session.posargs)


@nox.session(tags=["test-onnx-weekly"])
def test_onnx_weekly(session):
    """Test with ONNX weekly (preview) build."""
    session.install(*COMMON_TEST_DEPENDENCIES)
    session.install("--pre", "onnx-weekly")
    session.install(".", "--no-deps")
    session.run("pip", "list")
    session.run("pytest", "onnxwire", "--doctest-modules", *session.posargs)
