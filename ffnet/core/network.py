"""Arena-backed storage for a fully-connected feed-forward network.

Every buffer kind (weights, biases, deactivated outputs, activated outputs
and error jacobians) lives in one contiguous float64 arena.  Per-layer
access goes through numpy views into those arenas, so writing through a
layer view updates the arena and the arenas can be serialised in one call.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..errors import AllocationError
from .types import FLOAT_DTYPE, Array, ModelDescription

logger = logging.getLogger(__name__)


def _arena(purpose: str, size: int) -> Array:
    try:
        return np.zeros(size, dtype=FLOAT_DTYPE)
    except (MemoryError, OverflowError, ValueError) as exc:
        raise AllocationError(purpose, size) from exc


def _split(arena: Array, sizes: Sequence[int]) -> List[Array]:
    views: List[Array] = []
    offset = 0
    for size in sizes:
        views.append(arena[offset : offset + size])
        offset += size
    return views


class Network:
    """Parameters and working buffers of a feed-forward network.

    Use :func:`allocate` to build one; the constructor expects arenas that
    already have the right sizes.
    """

    def __init__(
        self,
        input_width: int,
        layer_widths: Sequence[int],
        *,
        weight_arena: Array,
        bias_arena: Array,
        deactivated_arena: Array,
        activated_arena: Array,
        jacobian_arena: Array,
    ) -> None:
        self._input_width = int(input_width)
        self._layer_widths = tuple(int(w) for w in layer_widths)
        self.weight_arena = weight_arena
        self.bias_arena = bias_arena
        self.deactivated_arena = deactivated_arena
        self.activated_arena = activated_arena
        self.jacobian_arena = jacobian_arena
        self._bind_views()

    def _bind_views(self) -> None:
        widths = self._layer_widths
        fan_in = self.fan_in
        self.weights = [
            flat.reshape(rows, cols)
            for flat, rows, cols in zip(
                _split(self.weight_arena, [r * c for r, c in zip(widths, fan_in)]),
                widths,
                fan_in,
            )
        ]
        self.biases = _split(self.bias_arena, widths)
        self.deactivated = _split(self.deactivated_arena, widths)
        self.activated = _split(self.activated_arena, widths)
        self.jacobians = _split(self.jacobian_arena, widths)

    # ------------------------------------------------------------------
    # Shape information

    @property
    def input_width(self) -> int:
        return self._input_width

    @property
    def layer_widths(self) -> tuple[int, ...]:
        return self._layer_widths

    @property
    def layer_count(self) -> int:
        return len(self._layer_widths)

    @property
    def output_width(self) -> int:
        return self._layer_widths[-1]

    @property
    def fan_in(self) -> List[int]:
        """Column count of every layer's weight matrix."""

        return [self._input_width, *self._layer_widths[:-1]]

    @property
    def weight_count(self) -> int:
        return int(self.weight_arena.size)

    @property
    def neuron_count(self) -> int:
        return int(self.bias_arena.size)

    @property
    def output(self) -> Array:
        """Activated output of the final layer (the prediction)."""

        return self.activated[-1]

    def describe(self) -> ModelDescription:
        return ModelDescription(
            input_width=self._input_width, layer_widths=list(self._layer_widths)
        )

    def parameter_count(self) -> int:
        return self.weight_count + self.neuron_count

    def copy(self) -> "Network":
        """Return an independent network with the same parameters."""

        clone = allocate(self._input_width, self._layer_widths)
        clone.weight_arena[:] = self.weight_arena
        clone.bias_arena[:] = self.bias_arena
        return clone

    def __repr__(self) -> str:
        dims = " -> ".join(str(d) for d in self.describe().layer_dims)
        return f"Network({dims})"


def allocate(input_width: int, layer_widths: Sequence[int]) -> Network:
    """Allocate a network with zeroed parameters and buffers.

    Raises :class:`~ffnet.errors.AllocationError` naming the arena that could
    not be obtained; nothing usable is returned in that case.
    """

    widths = [int(w) for w in layer_widths]
    if not widths:
        raise ValueError("A network needs at least one layer")
    if int(input_width) <= 0 or any(w <= 0 for w in widths):
        raise ValueError(
            f"Layer widths must be positive, got input {input_width} and {widths}"
        )
    fan_in = [int(input_width), *widths[:-1]]
    weight_total = sum(rows * cols for rows, cols in zip(widths, fan_in))
    neuron_total = sum(widths)

    network = Network(
        input_width,
        widths,
        weight_arena=_arena("weights", weight_total),
        bias_arena=_arena("biases", neuron_total),
        deactivated_arena=_arena("deactivated neurons", neuron_total),
        activated_arena=_arena("activated neurons", neuron_total),
        jacobian_arena=_arena("bias jacobians", neuron_total),
    )
    logger.debug(
        "Allocated %r: %d weights, %d neurons", network, weight_total, neuron_total
    )
    return network


def initialize_weights(network: Network, seed: Optional[int] = None) -> int:
    """He-initialise the weights and zero the biases.

    Each weight is ``sqrt(2 / fan_in) * (u - 0.5)`` with ``u`` uniform in
    ``[0, 1)``.  Returns the seed that was used; when ``seed`` is ``None`` a
    fresh one is drawn from OS entropy so the run can still be reproduced.
    """

    if seed is None:
        seed = int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])
    rng = np.random.default_rng(seed)
    for weights, fan_in in zip(network.weights, network.fan_in):
        scale = np.sqrt(2.0 / fan_in)
        weights[...] = scale * (rng.random(weights.shape) - 0.5)
    network.bias_arena.fill(0.0)
    return seed


__all__ = ["Network", "allocate", "initialize_weights"]
