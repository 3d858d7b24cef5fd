"""Checkpoint policies deciding whether to persist the network after an epoch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from .. import persistence
from ..core.network import Network
from ..core.types import EpochReport
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

Saver = Callable[[Network, str], Path]

SAVE_PROMPT = "\tEnter a filename to save this network to disk (.nn extension recommended): "


class CheckpointPolicy(Protocol):
    """Protocol implemented by checkpoint policies."""

    def offer(self, network: Network, report: EpochReport) -> Optional[Path]:
        """Persist ``network`` if the policy wants to; return the path written."""


class NoCheckpoint:
    """Never save."""

    def offer(self, network: Network, report: EpochReport) -> Optional[Path]:
        return None


@dataclass
class EveryEpoch:
    """Save after every epoch to ``template`` formatted with ``epoch``.

    A failed save is logged and training carries on.
    """

    template: str
    saver: Saver = persistence.save

    def offer(self, network: Network, report: EpochReport) -> Optional[Path]:
        target = self.template.format(epoch=report.epoch)
        try:
            return self.saver(network, target)
        except PersistenceError as exc:
            logger.error("Checkpoint after epoch %d failed: %s", report.epoch, exc)
            return None


@dataclass
class PromptCheckpoint:
    """Ask for a filename after every epoch; blank input skips the save.

    When saving fails the error is shown and the question asked again.
    """

    input_fn: Callable[[str], str] = input
    output_fn: Callable[[str], None] = print
    saver: Saver = persistence.save

    def offer(self, network: Network, report: EpochReport) -> Optional[Path]:
        while True:
            try:
                filename = self.input_fn(SAVE_PROMPT).strip()
            except EOFError:
                return None
            if not filename:
                return None
            try:
                path = self.saver(network, filename)
            except PersistenceError as exc:
                self.output_fn(f"\t{exc}")
                continue
            self.output_fn(f"\tSuccessfully written to the file {filename!r}.")
            return path


__all__ = ["CheckpointPolicy", "EveryEpoch", "NoCheckpoint", "PromptCheckpoint"]
