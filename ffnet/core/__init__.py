"""Core numerical primitives for ffnet."""

from . import activations, network, passes, types
from .network import Network, allocate, initialize_weights
from .passes import back_propagate, descend, forward_pass, one_hot, train_sample

__all__ = [
    "Network",
    "activations",
    "allocate",
    "back_propagate",
    "descend",
    "forward_pass",
    "initialize_weights",
    "network",
    "one_hot",
    "passes",
    "train_sample",
    "types",
]
