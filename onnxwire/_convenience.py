# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Convenience constructors for messages from plain Python and numpy values."""

from __future__ import annotations

__all__ = [
    "attribute",
    "node",
    "tensor",
]

import typing
from typing import Any, Mapping, Sequence, Union

import numpy as np
from typing_extensions import TypeAlias

from onnxwire import _core, _enums

if typing.TYPE_CHECKING:
    import numpy.typing as npt

SupportedAttrTypes: TypeAlias = Union[
    float,
    int,
    str,
    bytes,
    _core.Tensor,
    _core.Graph,
    Sequence[float],
    Sequence[int],
    Sequence[str],
    Sequence[bytes],
    Sequence[_core.Tensor],
    Sequence[_core.Graph],
    _core.Attr,
]


def _is_string_like(value: Any) -> bool:
    return isinstance(value, (str, bytes))


def tensor(
    value: npt.ArrayLike | _core.Tensor,
    dtype: _enums.DataType | None = None,
    name: str | None = None,
    *,
    raw: bool = False,
) -> _core.Tensor:
    """Create a tensor from an ArrayLike object.

    The elements are stored in the typed data field that matches the data type,
    or little-endian in ``raw_data`` when ``raw`` is True. STRING tensors are
    always stored in ``string_data``.

    Example::

        >>> import numpy as np
        >>> from onnxwire import DataType, tensor
        >>> tensor(np.array([1, 2, 3], dtype=np.int16))
        Tensor<INT16,[3]>(name=None)
        >>> tensor([1.0, 2.0], name="w").float_data
        (1.0, 2.0)
        >>> tensor([1, 2], dtype=DataType.INT8, raw=True).raw_data
        b'\\x01\\x02'

    Args:
        value: A numpy array, a plain Python object, or a Tensor.
        dtype: The data type of the tensor. Inferred from the value when None.
        name: The name of the tensor.
        raw: Store the elements in ``raw_data``.

    Returns:
        A tensor.

    Raises:
        ValueError: If ``dtype`` does not match a numpy array or Tensor value,
            or if ``value`` is an empty sequence and ``dtype`` is None.
        TypeError: If the data type of the value is not supported.
    """
    if isinstance(value, _core.Tensor):
        if dtype is not None and dtype != value.data_type:
            raise ValueError(
                f"The dtype must match the value when value is a Tensor. dtype={dtype}, value.data_type={value.data_type}. "
                "You do not have to specify the dtype when value is a Tensor."
            )
        if name is not None:
            return value.replace(name=name)
        return value

    if isinstance(value, np.ndarray):
        if dtype is not None and value.dtype != object and dtype != _enums.DataType.from_numpy(
            value.dtype
        ):
            raise ValueError(
                f"The dtype must match the value when value is a numpy array. dtype={dtype}, value.dtype={value.dtype}"
            )
        numpy_dtype = None
    elif dtype is not None:
        numpy_dtype = None if dtype == _enums.DataType.STRING else dtype.numpy()
    elif isinstance(value, Sequence) and not _is_string_like(value) and not value:
        raise ValueError("dtype must be specified when value is an empty sequence.")
    elif isinstance(value, bool):
        numpy_dtype = np.dtype(np.bool_)
    elif isinstance(value, int):
        # Specify int64 for ints because on Windows this may be int32
        numpy_dtype = np.dtype(np.int64)
    elif isinstance(value, float):
        numpy_dtype = np.dtype(np.float32)
    elif isinstance(value, Sequence) and not _is_string_like(value):
        if all((isinstance(elem, int) and not isinstance(elem, bool)) for elem in value):
            numpy_dtype = np.dtype(np.int64)
        elif all(isinstance(elem, float) for elem in value):
            numpy_dtype = np.dtype(np.float32)
        else:
            numpy_dtype = None
    else:
        numpy_dtype = None

    if (
        dtype == _enums.DataType.STRING
        or _is_string_like(value)
        or (
            isinstance(value, Sequence)
            and value
            and all(_is_string_like(elem) for elem in value)
        )
        or (isinstance(value, np.ndarray) and value.dtype.kind in "OSU")
    ):
        array = np.array(value, dtype=object)
        strings = [
            elem.encode("utf-8") if isinstance(elem, str) else bytes(elem)
            for elem in array.ravel().tolist()
        ]
        return _core.Tensor(
            dims=array.shape,
            data_type=_enums.DataType.STRING,
            string_data=strings,
            name=name,
        )

    array = np.asarray(value, dtype=numpy_dtype)
    if numpy_dtype is None and not isinstance(value, np.ndarray):
        # Python floats and ints in nested lists map to FLOAT and INT64
        if array.dtype.kind == "f":
            array = array.astype(np.float32)
        elif array.dtype.kind == "i":
            array = array.astype(np.int64)
    data_type = _enums.DataType.from_numpy(array.dtype)
    if raw:
        raw_data = array.astype(array.dtype.newbyteorder("<")).tobytes()
        return _core.Tensor(dims=array.shape, data_type=data_type, raw_data=raw_data, name=name)

    field = data_type.typed_data_field
    flat = array.ravel()
    if data_type == _enums.DataType.FLOAT16:
        # FLOAT16 is stored as its bit pattern
        data = flat.view(np.uint16).astype(np.int32).tolist()
    elif field == "int32_data":
        data = flat.astype(np.int32).tolist()
    else:
        data = flat.tolist()
    assert field is not None
    return _core.Tensor(dims=array.shape, data_type=data_type, name=name, **{field: data})


def _infer_attribute_type(attr: SupportedAttrTypes) -> _enums.AttributeType:
    """Infer the attribute type based on the type of the Python object."""
    if isinstance(attr, (int, np.integer)):
        return _enums.AttributeType.INT
    if isinstance(attr, (float, np.floating)):
        return _enums.AttributeType.FLOAT
    if isinstance(attr, (str, bytes)):
        return _enums.AttributeType.STRING
    if isinstance(attr, _core.Attr):
        return attr.type
    if isinstance(attr, (_core.Tensor, np.ndarray)):
        return _enums.AttributeType.TENSOR
    if isinstance(attr, _core.Graph):
        return _enums.AttributeType.GRAPH
    if isinstance(attr, Sequence) and all(isinstance(x, (int, np.integer)) for x in attr):
        return _enums.AttributeType.INTS
    if isinstance(attr, Sequence) and all(
        isinstance(x, (int, float, np.integer, np.floating)) for x in attr
    ):
        return _enums.AttributeType.FLOATS
    if isinstance(attr, Sequence) and all(isinstance(x, (str, bytes)) for x in attr):
        return _enums.AttributeType.STRINGS
    if isinstance(attr, Sequence) and all(isinstance(x, _core.Tensor) for x in attr):
        return _enums.AttributeType.TENSORS
    if isinstance(attr, Sequence) and all(isinstance(x, _core.Graph) for x in attr):
        return _enums.AttributeType.GRAPHS
    raise TypeError(f"Unsupported attribute type: '{type(attr)}'")


def attribute(
    name: str,
    value: SupportedAttrTypes,
    attr_type: _enums.AttributeType | None = None,
) -> _core.Attr:
    """Convert a Python object to an :class:`Attr`.

    The attribute type is inferred from the Python value. Integers in a list
    of mixed ints and floats make the attribute FLOATS. An empty list is INTS
    unless ``attr_type`` says otherwise.

    Example::

        >>> from onnxwire import attribute
        >>> attribute("axes", [0, 1])
        Attr(name='axes', type=INTS, value=(0, 1), unknown_fields=())

    Args:
        name: The name of the attribute.
        value: The value of the attribute.
        attr_type: The type of the attribute. When provided, it overrides the inferred type.

    Returns:
        An ``Attr`` object.

    Raises:
        TypeError: If the type of the value is not supported.
        ConstructionError: If the value does not fit ``attr_type``.
    """
    if isinstance(value, _core.Attr):
        if value.name != name:
            return value.replace(name=name)
        return value
    if attr_type is None:
        attr_type = _infer_attribute_type(value)
    if attr_type == _enums.AttributeType.TENSOR and not isinstance(value, _core.Tensor):
        value = tensor(value)  # type: ignore[arg-type]
    elif attr_type == _enums.AttributeType.TENSORS:
        value = [
            x if isinstance(x, _core.Tensor) else tensor(x)
            for x in value  # type: ignore[union-attr]
        ]
    return _core.Attr(name, attr_type, value)


def node(
    op_type: str,
    inputs: Sequence[str | None],
    outputs: Sequence[str],
    attributes: Mapping[str, SupportedAttrTypes] | None = None,
    *,
    name: str | None = None,
    doc_string: str | None = None,
) -> _core.Node:
    """Create a :class:`Node`.

    This is a convenience constructor that supports Python objects as attributes.

    Example::

        >>> from onnxwire import node
        >>> n = node("Conv", ["X", "W", None], ["Y"], {"strides": [1, 1]}, name="conv_0")
        >>> n.inputs
        ('X', 'W', '')
        >>> n.get_attribute("strides").value
        (1, 1)

    Args:
        op_type: The name of the operator.
        inputs: The input tensor names. None marks an omitted optional input.
        outputs: The output tensor names.
        attributes: The attributes, keyed by name.
        name: The name of the node.
        doc_string: The documentation string.

    Returns:
        A node.
    """
    if attributes is None:
        attrs: Sequence[_core.Attr] = ()
    else:
        attrs = [attribute(key, value) for key, value in attributes.items()]
    return _core.Node(
        op_type,
        inputs=["" if input_ is None else input_ for input_ in inputs],
        outputs=outputs,
        attributes=attrs,
        name=name,
        doc_string=doc_string,
    )
