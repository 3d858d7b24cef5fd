"""Forward pass, back-propagation and gradient descent for one sample."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .activations import cost_prime_wrt_deactivated, relu, sigmoid
from .network import Network
from .types import Array


def forward_pass(network: Network, inputs: Array) -> Array:
    """Populate every layer's deactivated and activated vectors.

    ``inputs`` must have ``network.input_width`` entries; this is not checked.
    Returns the output layer's activated view.
    """

    last = network.layer_count - 1
    source = inputs
    for idx, (W, b, z, a) in enumerate(
        zip(network.weights, network.biases, network.deactivated, network.activated)
    ):
        np.matmul(W, source, out=z)
        z += b
        if idx < last:
            relu(z, out=a)
        else:
            sigmoid(z, out=a)
        source = a
    return network.output


def back_propagate(network: Network, target: Array) -> None:
    """Populate every layer's error jacobian ``dCost/d(deactivated)``.

    Must follow a :func:`forward_pass` on the same input.
    """

    last = network.layer_count - 1
    cost_prime_wrt_deactivated(network.activated[last], target, out=network.jacobians[last])
    for idx in reversed(range(last)):
        delta = network.jacobians[idx]
        np.matmul(network.weights[idx + 1].T, network.jacobians[idx + 1], out=delta)
        # Same as multiplying by relu_prime: zero wherever z < 0.
        np.putmask(delta, network.deactivated[idx] < 0.0, 0.0)


def descend(network: Network, inputs: Array, learning_rate: float) -> None:
    """Apply one stochastic gradient-descent step in place."""

    source = inputs
    for W, b, delta, a in zip(
        network.weights, network.biases, network.jacobians, network.activated
    ):
        step = learning_rate * delta
        W -= np.outer(step, source)
        b -= step
        source = a


def one_hot(label: int, width: int, out: Optional[Array] = None) -> Array:
    """Return the target vector with 1.0 at ``label`` and 0.0 elsewhere."""

    if out is None:
        out = np.zeros(width, dtype=np.float64)
    else:
        out.fill(0.0)
    out[int(label)] = 1.0
    return out


def train_sample(
    network: Network, inputs: Array, target: Array, learning_rate: float
) -> Array:
    """Forward, backward and descend on one sample; return the prediction used."""

    output = forward_pass(network, inputs)
    back_propagate(network, target)
    descend(network, inputs, learning_rate)
    return output


__all__ = ["back_propagate", "descend", "forward_pass", "one_hot", "train_sample"]
