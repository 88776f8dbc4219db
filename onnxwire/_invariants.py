# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Errors for invariant violations and utilities to enforce them."""

from __future__ import annotations

import enum
import functools
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from onnxwire._namespaces import Namespace


class ConstructionError(ValueError):
    """Raised when a message cannot be constructed or encoded unambiguously."""


class ValidationErrorKind(enum.Enum):
    """The semantic check that found a violation."""

    UNION_EXCLUSIVITY = "union_exclusivity"
    NAMESPACE_UNIQUENESS = "namespace_uniqueness"
    DEFINITION_BEFORE_USE = "definition_before_use"
    TENSOR_CONSISTENCY = "tensor_consistency"
    SPARSE_TENSOR_CONSISTENCY = "sparse_tensor_consistency"
    INITIALIZER_BINDING = "initializer_binding"

    def __repr__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.__repr__()


class ValidationError(Exception):
    """Raised when a message violates a semantic invariant.

    Attributes:
        kind: The check that failed.
        path: Dotted path to the offending element, e.g. ``graph.node[2].attribute[0]``.
        message: Human readable description of the violation.
    """

    def __init__(self, kind: ValidationErrorKind, path: str, message: str):
        super().__init__(f"[{kind}] {path}: {message}")
        self.kind = kind
        self.path = path
        self.message = message


class DuplicateNameError(ValidationError):
    """Raised when a name is registered twice in the same namespace."""

    def __init__(self, namespace: Namespace, name: str, path: str = ""):
        super().__init__(
            ValidationErrorKind.NAMESPACE_UNIQUENESS,
            path,
            f"Duplicate name '{name}' in the {namespace} namespace",
        )
        self.namespace = namespace
        self.name = name


def requires(
    preconditions: Callable[..., str | None],
) -> Callable[..., Callable[..., Any]]:
    """Decorator to enforce preconditions on a function.

    ``preconditions`` receives the arguments of the decorated function and
    returns an error message when they are not satisfied. The message is raised
    as a :class:`ConstructionError` before the function runs.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            message = preconditions(*args, **kwargs)
            if message is not None:
                raise ConstructionError(message)
            return func(*args, **kwargs)

        return wrapper

    return decorator
