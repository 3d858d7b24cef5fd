"""Activation and cost functions with their hand-derived derivatives.

The hidden layers use ReLU and the output layer uses the logistic sigmoid.
The cost is the total squared error.  :func:`cost_prime_wrt_deactivated`
folds the sigmoid derivative into the cost derivative, so it is only valid
for this exact output activation and cost pairing.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .types import Array


def relu(x: Array, out: Optional[Array] = None) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0, out=out)


def relu_prime(x: Array) -> Array:
    """Step derivative of :func:`relu`; 1 where ``x >= 0`` else 0."""

    return (x >= 0.0).astype(np.float64)


def sigmoid(x: Array, out: Optional[Array] = None) -> Array:
    """Numerically stable logistic sigmoid ``1 / (1 + exp(-x))``."""

    x = np.asarray(x, dtype=np.float64)
    if out is None:
        out = np.empty_like(x)
    # exp(-|x|) never overflows; pick the branch that keeps it in (0, 1].
    z = np.exp(-np.abs(x))
    positive = x >= 0.0
    np.divide(1.0, 1.0 + z, out=out, where=positive)
    np.divide(z, 1.0 + z, out=out, where=~positive)
    return out


def sigmoid_prime_from_output(activated: Array) -> Array:
    """Sigmoid derivative expressed through its output ``a * (1 - a)``."""

    return activated * (1.0 - activated)


def squared_error(output: Array, target: Array) -> float:
    """Total squared error ``sum((output - target) ** 2)``."""

    diff = np.asarray(output, dtype=np.float64) - target
    return float(np.dot(diff, diff))


def cost_prime_wrt_deactivated(
    activated: Array, target: Array, out: Optional[Array] = None
) -> Array:
    """Jacobian of :func:`squared_error` w.r.t. the deactivated output layer.

    ``d/dz sum((sigmoid(z) - t)^2) = 2 (a - t) a (1 - a)`` with ``a = sigmoid(z)``.
    """

    if out is None:
        out = np.empty_like(activated)
    np.subtract(activated, target, out=out)
    out *= 2.0
    out *= sigmoid_prime_from_output(activated)
    return out


__all__ = [
    "cost_prime_wrt_deactivated",
    "relu",
    "relu_prime",
    "sigmoid",
    "sigmoid_prime_from_output",
    "squared_error",
]
