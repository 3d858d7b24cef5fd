"""Per-epoch metrics sinks."""

from __future__ import annotations

import csv
import json
import math
import subprocess
from pathlib import Path
from typing import Mapping


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def _numeric(metrics: Mapping[str, float]) -> dict:
    row = {}
    for key, value in metrics.items():
        if isinstance(value, (int, float)):
            value = float(value)
            # JSON has no NaN; an empty test split reports null instead.
            row[key] = None if math.isnan(value) else value
    return row


class JsonlSink:
    """Append-only JSONL writer for epoch metrics."""

    def __init__(
        self,
        path: str | Path,
        *,
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self.sha = sha or _git_sha()

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record = {"epoch": int(epoch), "seed": self.seed, "sha": self.sha}
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Write epoch metrics to CSV with a stable schema."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row = {"epoch": int(epoch)}
        row.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row.keys()))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


def make_sink(path: str | Path, *, seed: int | None = None) -> JsonlSink | CsvSink:
    """Pick a sink from the file suffix: ``.csv`` for CSV, JSONL otherwise."""

    if Path(path).suffix == ".csv":
        return CsvSink(path)
    return JsonlSink(path, seed=seed)


__all__ = ["CsvSink", "JsonlSink", "make_sink"]
