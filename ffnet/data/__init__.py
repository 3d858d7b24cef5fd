"""Dataset readers for ffnet."""

from .idx import (
    Dataset,
    check_compatible,
    load_dataset,
    read_images,
    read_labels,
    write_images,
    write_labels,
)

__all__ = [
    "Dataset",
    "check_compatible",
    "load_dataset",
    "read_images",
    "read_labels",
    "write_images",
    "write_labels",
]
