"""Core typing contracts for ffnet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

Array = np.ndarray

FLOAT_DTYPE = np.dtype(np.float64)
"""Floating type of every arena; its item size is recorded in model files."""


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    input_width: int
    layer_widths: List[int]

    @property
    def layer_dims(self) -> List[int]:
        return [self.input_width, *self.layer_widths]


@dataclass(frozen=True)
class EpochReport:
    """Summary of one training epoch and the evaluation that follows it."""

    epoch: int
    learning_rate: float
    accuracy: float
    mean_cost: float
    correct: int
    train_samples: int
    test_samples: int
    train_ms: float
    test_ms: float
    checkpoint: Optional[str] = None

    def as_metrics(self) -> Dict[str, float]:
        metrics = {
            "learning_rate": float(self.learning_rate),
            "accuracy": float(self.accuracy),
            "loss": float(self.mean_cost),
            "correct": float(self.correct),
            "train_samples": float(self.train_samples),
            "test_samples": float(self.test_samples),
            "train_ms": float(self.train_ms),
            "test_ms": float(self.test_ms),
        }
        return metrics
