import logging
import struct

import numpy as np
import pytest

from ffnet.data.idx import (
    IMAGES_MAGIC,
    Dataset,
    check_compatible,
    load_dataset,
    read_images,
    read_labels,
    write_images,
    write_labels,
)
from ffnet.errors import DatasetFormatError


def _images(count=3, rows=2, cols=3):
    return (np.arange(count * rows * cols) * 7 % 256).astype(np.uint8).reshape(count, rows, cols)


def test_images_roundtrip_and_big_endian_header(tmp_path):
    images = _images()
    path = write_images(tmp_path / "train-images.idx3-ubyte", images)
    raw = path.read_bytes()
    assert raw[:16] == struct.pack(">IIII", 0x803, 3, 2, 3)

    pixels, rows, cols = read_images(path)
    assert (rows, cols) == (2, 3)
    assert pixels.shape == (3, 6)
    assert np.array_equal(pixels, images.reshape(3, 6))


def test_labels_roundtrip(tmp_path):
    path = write_labels(tmp_path / "labels.idx1-ubyte", [3, 1, 4, 1, 5])
    assert path.read_bytes()[:8] == struct.pack(">II", 0x801, 5)
    labels = read_labels(path)
    assert labels.dtype == np.int64
    assert labels.tolist() == [3, 1, 4, 1, 5]


def test_label_loader_rejects_images_magic(tmp_path):
    path = tmp_path / "bogus.idx1-ubyte"
    path.write_bytes(struct.pack(">II", IMAGES_MAGIC, 2) + bytes([1, 2]))
    with pytest.raises(DatasetFormatError, match="magic"):
        read_labels(path)


def test_image_loader_rejects_labels_file(tmp_path):
    path = write_labels(tmp_path / "labels.idx1-ubyte", [0] * 20)
    with pytest.raises(DatasetFormatError):
        read_images(path)


def test_truncated_files(tmp_path):
    images = write_images(tmp_path / "images", _images())
    images.write_bytes(images.read_bytes()[:-1])
    with pytest.raises(DatasetFormatError, match="truncated"):
        read_images(images)

    labels = tmp_path / "labels"
    labels.write_bytes(struct.pack(">II", 0x801, 4) + bytes([1, 2]))
    with pytest.raises(DatasetFormatError, match="truncated"):
        read_labels(labels)

    short = tmp_path / "short"
    short.write_bytes(b"\x00\x00\x08")
    with pytest.raises(DatasetFormatError):
        read_images(short)


def test_missing_file_is_dataset_error(tmp_path):
    with pytest.raises(DatasetFormatError):
        read_labels(tmp_path / "absent")


def test_count_mismatch_uses_shorter_with_warning(tmp_path, caplog):
    images = write_images(tmp_path / "images", _images(count=4))
    labels = write_labels(tmp_path / "labels", [0, 1, 2])
    with caplog.at_level(logging.WARNING, logger="ffnet.data.idx"):
        dataset = load_dataset(images, labels)
    assert len(dataset) == 3
    assert dataset.pixels.shape == (3, 6)
    assert any("using the first 3" in record.getMessage() for record in caplog.records)


def test_sample_is_normalised(tmp_path):
    dataset = Dataset.from_arrays(np.array([[[0, 255], [51, 102]]]), [1])
    out = np.empty(4)
    sample = dataset.sample(0, out=out)
    assert sample is out
    assert np.allclose(sample, [0.0, 1.0, 0.2, 0.4])
    assert dataset.input_width == 4


def test_geometry_mismatch_between_splits():
    train = Dataset.from_arrays(np.zeros((2, 2, 3)), [0, 1])
    test = Dataset.from_arrays(np.zeros((2, 3, 2)), [0, 1])
    check_compatible(train, train)
    with pytest.raises(DatasetFormatError):
        check_compatible(train, test)


def test_dataset_rejects_inconsistent_arrays():
    with pytest.raises(DatasetFormatError):
        Dataset(pixels=np.zeros((2, 4), dtype=np.uint8), labels=np.zeros(3, dtype=np.int64), rows=2, cols=2)
