"""Epoch-driven training and evaluation loop."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, replace
from typing import Iterator, List, Mapping, Optional, Sequence

import numpy as np

from ..core.activations import squared_error
from ..core.network import Network
from ..core.passes import forward_pass, one_hot, train_sample
from ..core.types import EpochReport
from ..data.idx import Dataset
from ..errors import DatasetFormatError
from .checkpoint import CheckpointPolicy, NoCheckpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """Result of one evaluation pass."""

    correct: int
    total_cost: float
    samples: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.samples if self.samples else float("nan")

    @property
    def mean_cost(self) -> float:
        return self.total_cost / self.samples if self.samples else float("nan")


class Trainer:
    """Run per-sample SGD epochs, each followed by an evaluation pass.

    The loop has no built-in stopping criterion: :meth:`epochs` yields
    reports forever and :meth:`run` only stops when ``max_epochs`` is given.
    """

    def __init__(
        self,
        network: Network,
        learning_rate: float,
        multiplier: float = 1.0,
        *,
        callbacks: Sequence[object] | None = None,
        checkpoint: CheckpointPolicy | None = None,
    ) -> None:
        self.network = network
        self.learning_rate = float(learning_rate)
        self.multiplier = float(multiplier)
        self.callbacks = list(callbacks or [])
        self.checkpoint = checkpoint or NoCheckpoint()
        self.epoch = 0
        self._inputs = np.zeros(network.input_width, dtype=np.float64)
        self._target = np.zeros(network.output_width, dtype=np.float64)

    # ------------------------------------------------------------------
    # Phases

    def train_epoch(self, dataset: Dataset) -> None:
        """One pass of forward, backward and descend over ``dataset`` in order."""

        network = self.network
        for index in range(len(dataset)):
            dataset.sample(index, out=self._inputs)
            one_hot(dataset.labels[index], network.output_width, out=self._target)
            train_sample(network, self._inputs, self._target, self.learning_rate)

    def evaluate(self, dataset: Dataset) -> Evaluation:
        """Forward-only pass; classify by arg-max, first index wins ties."""

        network = self.network
        correct = 0
        total_cost = 0.0
        for index in range(len(dataset)):
            dataset.sample(index, out=self._inputs)
            output = forward_pass(network, self._inputs)
            label = int(dataset.labels[index])
            one_hot(label, network.output_width, out=self._target)
            total_cost += squared_error(output, self._target)
            if int(np.argmax(output)) == label:
                correct += 1
        return Evaluation(correct=correct, total_cost=total_cost, samples=len(dataset))

    # ------------------------------------------------------------------
    # Loop

    def epochs(self, train: Dataset, test: Dataset) -> Iterator[EpochReport]:
        """Yield one :class:`EpochReport` per epoch, without end."""

        self.check_dataset(train, "training")
        self.check_dataset(test, "testing")
        while True:
            yield self.step(train, test)

    def step(self, train: Dataset, test: Dataset) -> EpochReport:
        """Run a single epoch and return its report."""

        self.epoch += 1
        rate = self.learning_rate
        start = time.perf_counter()
        self.train_epoch(train)
        train_ms = (time.perf_counter() - start) * 1000.0
        self.learning_rate *= self.multiplier

        start = time.perf_counter()
        evaluation = self.evaluate(test)
        test_ms = (time.perf_counter() - start) * 1000.0

        report = EpochReport(
            epoch=self.epoch,
            learning_rate=rate,
            accuracy=evaluation.accuracy,
            mean_cost=evaluation.mean_cost,
            correct=evaluation.correct,
            train_samples=len(train),
            test_samples=evaluation.samples,
            train_ms=train_ms,
            test_ms=test_ms,
        )
        logger.info(
            "Epoch %d: accuracy %.4f, avg cost %.4f "
            "(training %.0fms, testing %.0fms, learning rate %g)",
            report.epoch,
            report.accuracy,
            report.mean_cost,
            train_ms,
            test_ms,
            rate,
        )
        self._emit_epoch(report.epoch, report.as_metrics())

        path = self.checkpoint.offer(self.network, report)
        if path is not None:
            report = replace(report, checkpoint=str(path))
        return report

    def run(
        self,
        train: Dataset,
        test: Dataset,
        max_epochs: Optional[int] = None,
    ) -> List[EpochReport]:
        """Train until ``max_epochs`` epochs have run, or forever if ``None``."""

        reports = self.epochs(train, test)
        if max_epochs is not None:
            reports = itertools.islice(reports, max_epochs)
        return list(reports)

    def check_dataset(self, dataset: Dataset, split: str) -> None:
        """Raise :class:`DatasetFormatError` if ``dataset`` does not fit the network."""

        if dataset.input_width != self.network.input_width:
            raise DatasetFormatError(
                f"{split} images have {dataset.input_width} pixels, "
                f"the network expects {self.network.input_width} inputs"
            )
        labels = dataset.labels
        if labels.size and (labels.min() < 0 or labels.max() >= self.network.output_width):
            raise DatasetFormatError(
                f"{split} labels span {labels.min()}..{labels.max()}, "
                f"the output layer only has {self.network.output_width} neurons"
            )

    # ------------------------------------------------------------------
    # Internal helpers

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Evaluation", "Trainer"]
