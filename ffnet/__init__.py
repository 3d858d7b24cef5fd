"""ffnet public API."""

from . import config, persistence
from .core import activations, types
from .core.network import Network, allocate, initialize_weights
from .core.passes import back_propagate, descend, forward_pass, one_hot, train_sample
from .data.idx import Dataset, load_dataset
from .errors import (
    AllocationError,
    ConfigFormatError,
    DatasetFormatError,
    FFNetError,
    FormatMismatchError,
    ParseError,
    PersistenceError,
)
from .persistence import load, save
from .training.trainer import Trainer

__version__ = "0.1.0"

__all__ = [
    "AllocationError",
    "ConfigFormatError",
    "Dataset",
    "DatasetFormatError",
    "FFNetError",
    "FormatMismatchError",
    "Network",
    "ParseError",
    "PersistenceError",
    "Trainer",
    "activations",
    "allocate",
    "back_propagate",
    "config",
    "descend",
    "forward_pass",
    "initialize_weights",
    "load",
    "load_dataset",
    "one_hot",
    "persistence",
    "save",
    "train_sample",
    "types",
]
