"""Reader and writer for the IDX image/label file format.

An images file starts with four big-endian ``uint32`` fields (magic
``0x00000803``, count, rows, cols) followed by one byte per pixel.  A labels
file starts with two (magic ``0x00000801``, count) followed by one byte per
label.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from ..core.types import Array
from ..errors import DatasetFormatError

logger = logging.getLogger(__name__)

IMAGES_MAGIC = 0x00000803
LABELS_MAGIC = 0x00000801
_IMAGES_HEADER = struct.Struct(">IIII")
_LABELS_HEADER = struct.Struct(">II")


@dataclass(frozen=True)
class Dataset:
    """Raw pixels and labels of one split."""

    pixels: Array
    labels: Array
    rows: int
    cols: int

    def __post_init__(self) -> None:
        if self.pixels.ndim != 2 or self.pixels.shape[1] != self.rows * self.cols:
            raise DatasetFormatError(
                f"Pixels of shape {self.pixels.shape} do not match "
                f"{self.rows}x{self.cols} images"
            )
        if self.labels.shape != (self.pixels.shape[0],):
            raise DatasetFormatError(
                f"{self.labels.shape[0]} labels for {self.pixels.shape[0]} images"
            )

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    @property
    def input_width(self) -> int:
        return self.rows * self.cols

    @property
    def geometry(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def sample(self, index: int, out: Optional[Array] = None) -> Array:
        """Return image ``index`` normalised to ``[0, 1]``, written into ``out``."""

        if out is None:
            out = np.empty(self.input_width, dtype=np.float64)
        np.divide(self.pixels[index], 255.0, out=out)
        return out

    @classmethod
    def from_arrays(cls, images: Array, labels: Array) -> "Dataset":
        """Build a dataset from ``(count, rows, cols)`` or ``(count, n)`` bytes."""

        images = np.asarray(images, dtype=np.uint8)
        if images.ndim == 2:
            rows, cols = 1, images.shape[1]
        elif images.ndim == 3:
            rows, cols = images.shape[1], images.shape[2]
        else:
            raise DatasetFormatError(f"Unsupported image array shape {images.shape}")
        return cls(
            pixels=images.reshape(images.shape[0], rows * cols),
            labels=np.asarray(labels, dtype=np.int64).reshape(-1),
            rows=int(rows),
            cols=int(cols),
        )


def _read_bytes(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise DatasetFormatError(f"Failed to read {what} from {str(path)!r}: {exc}") from exc


def _check_magic(found: int, expected: int, what: str, path: Path) -> None:
    if found != expected:
        raise DatasetFormatError(
            f"{str(path)!r} is not an IDX {what} file "
            f"(magic 0x{found:08x}, expected 0x{expected:08x})"
        )


def read_images(path: str | Path) -> Tuple[Array, int, int]:
    """Return ``(pixels, rows, cols)`` with pixels shaped ``(count, rows*cols)``."""

    path = Path(path)
    raw = _read_bytes(path, "images")
    if len(raw) < _IMAGES_HEADER.size:
        raise DatasetFormatError(f"{str(path)!r} is too short for an IDX images header")
    magic, count, rows, cols = _IMAGES_HEADER.unpack_from(raw)
    _check_magic(magic, IMAGES_MAGIC, "images", path)
    expected = count * rows * cols
    payload = np.frombuffer(raw, dtype=np.uint8, offset=_IMAGES_HEADER.size)
    if payload.size < expected:
        raise DatasetFormatError(
            f"{str(path)!r} is truncated: {payload.size} of {expected} pixel bytes"
        )
    pixels = payload[:expected].reshape(count, rows * cols)
    return pixels, int(rows), int(cols)


def read_labels(path: str | Path) -> Array:
    """Return the labels of an IDX labels file as ``int64``."""

    path = Path(path)
    raw = _read_bytes(path, "labels")
    if len(raw) < _LABELS_HEADER.size:
        raise DatasetFormatError(f"{str(path)!r} is too short for an IDX labels header")
    magic, count = _LABELS_HEADER.unpack_from(raw)
    _check_magic(magic, LABELS_MAGIC, "labels", path)
    payload = np.frombuffer(raw, dtype=np.uint8, offset=_LABELS_HEADER.size)
    if payload.size < count:
        raise DatasetFormatError(
            f"{str(path)!r} is truncated: {payload.size} of {count} labels"
        )
    return payload[:count].astype(np.int64)


def load_dataset(images_path: str | Path, labels_path: str | Path) -> Dataset:
    """Read one split; a count mismatch keeps the shorter of the two."""

    pixels, rows, cols = read_images(images_path)
    labels = read_labels(labels_path)
    logger.info(
        "Loaded %d images (%d x %d) from %s", pixels.shape[0], cols, rows, images_path
    )
    if pixels.shape[0] != labels.shape[0]:
        logger.warning(
            "%s holds %d images but %s holds %d labels; using the first %d",
            images_path,
            pixels.shape[0],
            labels_path,
            labels.shape[0],
            min(pixels.shape[0], labels.shape[0]),
        )
        count = min(pixels.shape[0], labels.shape[0])
        pixels, labels = pixels[:count], labels[:count]
    return Dataset(pixels=pixels, labels=labels, rows=rows, cols=cols)


def check_compatible(train: Dataset, test: Dataset) -> None:
    """Raise if the two splits do not share the same image geometry."""

    if train.geometry != test.geometry:
        raise DatasetFormatError(
            "Test dataset was formatted incorrectly: "
            f"{test.cols}x{test.rows} images, training uses {train.cols}x{train.rows}"
        )


def write_images(path: str | Path, images: Array) -> Path:
    """Write ``(count, rows, cols)`` bytes as an IDX images file."""

    images = np.asarray(images, dtype=np.uint8)
    if images.ndim != 3:
        raise ValueError(f"Expected a (count, rows, cols) array, got {images.shape}")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        handle.write(_IMAGES_HEADER.pack(IMAGES_MAGIC, *images.shape))
        handle.write(np.ascontiguousarray(images).tobytes())
    return path


def write_labels(path: str | Path, labels: Array) -> Path:
    """Write single-byte labels as an IDX labels file."""

    labels = np.asarray(labels).reshape(-1)
    if labels.size and (labels.min() < 0 or labels.max() > 255):
        raise ValueError("IDX labels must fit in one byte")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        handle.write(_LABELS_HEADER.pack(LABELS_MAGIC, labels.size))
        handle.write(labels.astype(np.uint8).tobytes())
    return path


__all__ = [
    "Dataset",
    "IMAGES_MAGIC",
    "LABELS_MAGIC",
    "check_compatible",
    "load_dataset",
    "read_images",
    "read_labels",
    "write_images",
    "write_labels",
]
