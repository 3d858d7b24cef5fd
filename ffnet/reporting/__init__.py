"""Reporting utilities for ffnet."""

from .metrics import CsvSink, JsonlSink, make_sink

__all__ = ["CsvSink", "JsonlSink", "make_sink"]
