"""Exception hierarchy shared by every ffnet module."""

from __future__ import annotations


class FFNetError(Exception):
    """Base class for all ffnet errors."""


class AllocationError(FFNetError, MemoryError):
    """A network arena could not be obtained."""

    def __init__(self, purpose: str, size: int) -> None:
        super().__init__(f"Failed to allocate memory for {purpose} ({size} values)")
        self.purpose = purpose
        self.size = size


class DatasetFormatError(FFNetError, ValueError):
    """An IDX file is malformed or two splits do not agree."""


class ConfigFormatError(FFNetError, ValueError):
    """The run configuration is malformed beyond repair."""


class ParseError(ConfigFormatError):
    """A single configuration field could not be parsed."""

    def __init__(self, field: str, text: str, reason: str) -> None:
        super().__init__(f"Invalid value {text!r} for {field}: {reason}")
        self.field = field
        self.text = text
        self.reason = reason


class PersistenceError(FFNetError, OSError):
    """Saving or loading a model file failed."""


class FormatMismatchError(PersistenceError):
    """A model file was written with an incompatible layout."""


__all__ = [
    "AllocationError",
    "ConfigFormatError",
    "DatasetFormatError",
    "FFNetError",
    "FormatMismatchError",
    "ParseError",
    "PersistenceError",
]
