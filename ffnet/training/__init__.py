"""Training loop and checkpoint policies."""

from .checkpoint import CheckpointPolicy, EveryEpoch, NoCheckpoint, PromptCheckpoint
from .trainer import Evaluation, Trainer

__all__ = [
    "CheckpointPolicy",
    "Evaluation",
    "EveryEpoch",
    "NoCheckpoint",
    "PromptCheckpoint",
    "Trainer",
]
