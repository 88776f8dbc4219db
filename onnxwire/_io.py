# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Load and save graphs."""

from __future__ import annotations

__all__ = ["load", "read_delimited", "save", "write_delimited"]

import logging
import os
from typing import BinaryIO, Iterable, Iterator

from onnxwire import _core, _flags, _wire, checker, serde

logger = logging.getLogger(__name__)


def load(path: str | os.PathLike, *, check: bool | None = None) -> _core.Graph:
    """Load a graph from a file.

    The file holds exactly one encoded GraphProto with no framing.

    Args:
        path: The path to the file.
        check: Whether to validate the loaded graph. If None, the
            ``ONNXWIRE_CHECK_ON_LOAD`` environment variable decides.

    Returns:
        The loaded graph.

    Raises:
        MalformedWireError: If the file content does not follow the wire grammar.
        ValidationError: If ``check`` is enabled and the graph is invalid.
    """
    with open(path, "rb") as f:
        data = f.read()
    graph = serde.deserialize_graph(data)
    logger.info("Loaded graph %r from %s (%d bytes)", graph.name, path, len(data))
    if check is None:
        check = _flags.CHECK_ON_LOAD
    if check:
        checker.check_graph(graph)
    return graph


def save(graph: _core.Graph, path: str | os.PathLike, *, check: bool | None = None) -> None:
    """Save a graph to a file.

    Args:
        graph: The graph to save.
        path: The path to save the graph to.
        check: Whether to validate the graph before writing. If None, the
            ``ONNXWIRE_CHECK_ON_SAVE`` environment variable decides.

    Raises:
        ValidationError: If ``check`` is enabled and the graph is invalid.
            Nothing is written in this case.
        ConstructionError: If an attribute in the graph is UNDEFINED.
    """
    if check is None:
        check = _flags.CHECK_ON_SAVE
    if check:
        checker.check_graph(graph)
    data = serde.serialize_graph(graph)
    with open(path, "wb") as f:
        f.write(data)
    logger.info("Saved graph %r to %s (%d bytes)", graph.name, path, len(data))


def write_delimited(stream: BinaryIO, graphs: Iterable[_core.Graph]) -> int:
    """Write graphs to a stream, each prefixed with its length as a varint.

    Returns:
        The number of graphs written.
    """
    count = 0
    for graph in graphs:
        data = serde.serialize_graph(graph)
        stream.write(_wire.encode_varint(len(data)))
        stream.write(data)
        count += 1
    return count


def _read_length(stream: BinaryIO, offset: int) -> tuple[int, int] | None:
    """Read a varint length prefix and return it with its size in bytes.

    Returns None at a clean end of stream.
    """
    prefix = bytearray()
    while True:
        byte = stream.read(1)
        if not byte:
            if prefix:
                raise _wire.MalformedWireError("Truncated length prefix", offset)
            return None
        prefix += byte
        if not byte[0] & 0x80:
            break
        if len(prefix) >= 10:
            raise _wire.MalformedWireError("Length prefix exceeds 10 bytes", offset)
    return _wire.Reader(prefix, offset).read_varint(), len(prefix)


def read_delimited(stream: BinaryIO) -> Iterator[_core.Graph]:
    """Read graphs written by :func:`write_delimited`.

    Raises:
        MalformedWireError: If a frame is truncated or a graph is malformed.
    """
    offset = 0
    while True:
        prefix = _read_length(stream, offset)
        if prefix is None:
            return
        length, prefix_size = prefix
        offset += prefix_size
        data = stream.read(length)
        if len(data) != length:
            raise _wire.MalformedWireError(
                f"Frame declares {length} bytes but only {len(data)} remain", offset
            )
        yield serde.deserialize_graph(data)
        offset += length
