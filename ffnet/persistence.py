"""Binary model file format.

Fields, in the writer's native byte order::

    uint16          endianness marker, always 1
    uint64          input width
    uint64          layer count
    uint64[count]   layer widths
    uint64          float width in bytes (8 for float64)
    float[...]      weight arena, layer by layer, row-major
    float[...]      bias arena, layer by layer

A reader on a machine of the other endianness sees the marker as ``0x0100``
and byte-swaps every field.  There is no checksum, so corruption only shows
up as a length mismatch.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import List

import numpy as np

from .core.network import Network, allocate
from .core.types import FLOAT_DTYPE
from .errors import FormatMismatchError, PersistenceError

logger = logging.getLogger(__name__)

ENDIANNESS_MARKER = 1
_SWAPPED_MARKER = 0x0100
_MARKER_SIZE = np.dtype(np.uint16).itemsize
_FIELD_SIZE = np.dtype(np.uint64).itemsize


def _encode(network: Network) -> List[bytes]:
    header = np.array(
        [
            network.input_width,
            network.layer_count,
            *network.layer_widths,
            FLOAT_DTYPE.itemsize,
        ],
        dtype=np.uint64,
    )
    return [
        np.array([ENDIANNESS_MARKER], dtype=np.uint16).tobytes(),
        header.tobytes(),
        network.weight_arena.tobytes(),
        network.bias_arena.tobytes(),
    ]


def save_bytes(network: Network) -> bytes:
    """Return the model file contents for ``network``."""

    return b"".join(_encode(network))


def load_bytes(data: bytes) -> Network:
    """Rebuild a network from model file contents."""

    if len(data) < _MARKER_SIZE + 2 * _FIELD_SIZE:
        raise PersistenceError(f"Model data is truncated ({len(data)} bytes)")
    marker = int(np.frombuffer(data, dtype=np.uint16, count=1)[0])
    if marker == ENDIANNESS_MARKER:
        order = "="
    elif marker == _SWAPPED_MARKER:
        order = "S"
    else:
        raise FormatMismatchError(f"Unknown endianness marker 0x{marker:04x}")
    u64 = np.dtype(np.uint64).newbyteorder(order)
    f64 = FLOAT_DTYPE.newbyteorder(order)

    offset = _MARKER_SIZE

    def _fields(count: int) -> List[int]:
        nonlocal offset
        end = offset + count * _FIELD_SIZE
        if end > len(data):
            raise PersistenceError("Model data is truncated inside the header")
        values = np.frombuffer(data, dtype=u64, count=count, offset=offset)
        offset = end
        return [int(v) for v in values]

    input_width, layer_count = _fields(2)
    if layer_count == 0:
        raise FormatMismatchError("Model file declares no layers")
    widths = _fields(layer_count)
    (float_width,) = _fields(1)
    if float_width != FLOAT_DTYPE.itemsize:
        raise FormatMismatchError(
            f"Model file stores {float_width}-byte floats, "
            f"this platform uses {FLOAT_DTYPE.itemsize}-byte floats"
        )
    if input_width == 0 or 0 in widths:
        raise FormatMismatchError(f"Model file declares empty layers {widths}")

    fan_in = [input_width, *widths[:-1]]
    weight_total = sum(rows * cols for rows, cols in zip(widths, fan_in))
    neuron_total = sum(widths)
    expected = offset + (weight_total + neuron_total) * float_width
    if len(data) < expected:
        raise PersistenceError(
            f"Model data is truncated: {len(data)} of {expected} bytes"
        )
    if len(data) > expected:
        raise PersistenceError(
            f"Model data has {len(data) - expected} unexpected trailing bytes"
        )

    network = allocate(input_width, widths)
    network.weight_arena[:] = np.frombuffer(
        data, dtype=f64, count=weight_total, offset=offset
    )
    offset += weight_total * float_width
    network.bias_arena[:] = np.frombuffer(
        data, dtype=f64, count=neuron_total, offset=offset
    )
    return network


def save(network: Network, path: str | Path) -> Path:
    """Write ``network`` to ``path``.

    The data goes to a temporary file next to ``path`` which replaces it only
    once fully written, so an interrupted save never leaves a partial model.
    """

    path = Path(path)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        with os.fdopen(fd, "wb") as handle:
            for chunk in _encode(network):
                handle.write(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise PersistenceError(f"Failed to finish writing to {str(path)!r}: {exc}") from exc
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
    logger.info("Saved %r to %s", network, path)
    return path


def load(path: str | Path) -> Network:
    """Read a network written by :func:`save`."""

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise PersistenceError(f"Failed to read {str(path)!r}: {exc}") from exc
    network = load_bytes(data)
    logger.info("Loaded %r from %s", network, path)
    return network


__all__ = ["ENDIANNESS_MARKER", "load", "load_bytes", "save", "save_bytes"]
