"""Run configuration: config file parsing and interactive prompting.

The plain config format is line oriented, in this fixed order::

    learning rate
    learning rate multiplier
    layer count
    <one layer width per line>
    training images path
    training labels path
    testing images path
    testing labels path

Blank or missing lines leave a field unset; unset fields are asked for on
the terminal by :func:`prompt_missing`.  Files ending in ``.json``, ``.yml``
or ``.yaml`` are read as a mapping with the same field names instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Iterator, List, Mapping, Optional

from .errors import ConfigFormatError, ParseError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "config.cfg"
MAX_UINT64 = 2**64 - 1
MIN_LAYERS = 2

PATH_FIELDS = (
    "training_images",
    "training_labels",
    "testing_images",
    "testing_labels",
)

_PROMPTS = {
    "training_images": "Enter the filename of the training image data file (.idx3-ubyte): ",
    "training_labels": "Enter the filename of the training label data file (.idx1-ubyte): ",
    "testing_images": "Enter the filename of the testing image data file (.idx3-ubyte): ",
    "testing_labels": "Enter the filename of the testing label data file (.idx1-ubyte): ",
    "layer_count": (
        "Enter the number of network layers "
        "(excluding the input layer, including the output layer): "
    ),
    "learning_rate": "Enter the learning rate for network training: ",
    "learning_rate_multiplier": (
        "Enter the learning rate multiplier, to be applied to the learning rate each epoch: "
    ),
}


@dataclass
class RunConfig:
    """Hyperparameters and dataset paths; ``None`` means not set yet."""

    learning_rate: Optional[float] = None
    learning_rate_multiplier: Optional[float] = None
    layer_widths: Optional[List[int]] = None
    training_images: Optional[str] = None
    training_labels: Optional[str] = None
    testing_images: Optional[str] = None
    testing_labels: Optional[str] = None
    source: Optional[str] = field(default=None, compare=False)

    def missing(self) -> List[str]:
        return [
            f.name
            for f in fields(self)
            if f.name != "source" and getattr(self, f.name) is None
        ]

    def require_complete(self) -> "RunConfig":
        missing = self.missing()
        if missing:
            raise ConfigFormatError(f"Missing configuration fields: {', '.join(missing)}")
        validate_layer_widths(self.layer_widths or [])
        return self

    def merge(self, override: Mapping[str, Any]) -> "RunConfig":
        """Return a copy with every non-``None`` value in ``override`` applied."""

        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in override.items():
            if key not in values:
                raise ConfigFormatError(f"Unknown configuration field {key!r}")
            if value is not None:
                values[key] = value
        return RunConfig(**values)


# ----------------------------------------------------------------------
# Field parsers


def parse_decimal(text: str, *, name: str = "value") -> float:
    """Parse a non-negative decimal such as ``0.01`` or ``1``."""

    stripped = text.strip()
    try:
        value = float(stripped)
    except ValueError:
        raise ParseError(name, text, "not a decimal number") from None
    if value != value or value in (float("inf"), float("-inf")):
        raise ParseError(name, text, "must be finite")
    if value < 0.0:
        raise ParseError(name, text, "must not be negative")
    return value


def parse_count(text: str, *, name: str = "value") -> int:
    """Parse a non-negative integer that fits in 64 bits.

    Values above ``2**64 - 1`` are rejected instead of being silently clipped.
    """

    stripped = text.strip()
    if not (stripped.isascii() and stripped.isdigit()):
        raise ParseError(name, text, "not a non-negative integer")
    value = int(stripped)
    if value > MAX_UINT64:
        raise ParseError(name, text, f"exceeds {MAX_UINT64}")
    return value


def validate_layer_widths(widths: List[int]) -> List[int]:
    if len(widths) < MIN_LAYERS:
        raise ConfigFormatError(
            f"Invalid number of layers: {len(widths)} (at least {MIN_LAYERS} required)"
        )
    for idx, width in enumerate(widths, start=1):
        if width <= 0:
            raise ConfigFormatError(f"Layer {idx} must have a positive width, got {width}")
    return widths


# ----------------------------------------------------------------------
# Config files


def _try_parse(parser: Callable[..., Any], line: str, name: str) -> Any:
    if not line.strip():
        return None
    try:
        return parser(line, name=name)
    except ParseError as exc:
        logger.warning("Ignoring config value: %s", exc)
        return None


def parse_config_text(text: str, *, source: Optional[str] = None) -> RunConfig:
    """Parse the line-oriented config format."""

    lines: Iterator[str] = iter(text.splitlines())
    config = RunConfig(source=source)

    def _next() -> Optional[str]:
        return next(lines, None)

    line = _next()
    if line is None:
        return config
    config.learning_rate = _try_parse(parse_decimal, line, "learning rate")

    line = _next()
    if line is None:
        return config
    config.learning_rate_multiplier = _try_parse(
        parse_decimal, line, "learning rate multiplier"
    )

    line = _next()
    if line is None:
        return config
    layer_count = _try_parse(parse_count, line, "layer count")
    if layer_count is None:
        # Without a count the width lines cannot be told apart from paths.
        return config
    if layer_count < MIN_LAYERS:
        raise ConfigFormatError(
            f"Invalid number of layers from config file {source or '<text>'!r}: {layer_count}"
        )

    widths: List[Optional[int]] = []
    for idx in range(layer_count):
        line = _next()
        if line is None:
            raise ConfigFormatError(
                f"Config file {source or '<text>'!r} ends after {idx} of "
                f"{layer_count} layer widths"
            )
        widths.append(_try_parse(parse_count, line, f"layer {idx + 1} width"))
    if any(not width for width in widths):
        logger.warning("Config file layer widths are incomplete; they will be prompted")
    else:
        config.layer_widths = [int(width) for width in widths if width]

    for name in PATH_FIELDS:
        line = _next()
        if line is None:
            break
        setattr(config, name, line.strip() or None)
    return config


def _from_mapping(data: Mapping[str, Any], source: str) -> RunConfig:
    if not isinstance(data, Mapping):
        raise ConfigFormatError(f"Config file {source!r} must hold a mapping")
    config = RunConfig(source=source)
    for key, value in data.items():
        if value is None:
            continue
        if key in ("learning_rate", "learning_rate_multiplier"):
            setattr(config, key, parse_decimal(str(value), name=key))
        elif key == "layer_widths":
            if not isinstance(value, (list, tuple)):
                raise ConfigFormatError("layer_widths must be a list of integers")
            config.layer_widths = validate_layer_widths(
                [parse_count(str(v), name="layer width") for v in value]
            )
        elif key in PATH_FIELDS:
            setattr(config, key, str(value))
        else:
            raise ConfigFormatError(f"Unknown configuration field {key!r} in {source!r}")
    return config


def load_config(path: str | Path = DEFAULT_CONFIG_FILENAME) -> RunConfig:
    """Load ``path``; a missing file yields an empty config to be prompted."""

    path = Path(path)
    if not path.exists():
        logger.info("No config file at %s; all settings will be prompted", path)
        return RunConfig(source=None)
    try:
        text = path.read_text()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigFormatError(f"Failed to read config file {str(path)!r}: {exc}") from exc

    if path.suffix in {".yml", ".yaml"}:
        import yaml

        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigFormatError(f"Invalid YAML in {str(path)!r}: {exc}") from exc
        return _from_mapping(data, str(path))
    if path.suffix == ".json":
        try:
            data = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigFormatError(f"Invalid JSON in {str(path)!r}: {exc}") from exc
        return _from_mapping(data, str(path))
    return parse_config_text(text, source=str(path))


# ----------------------------------------------------------------------
# Interactive prompting


def _ask(
    prompt: str,
    parser: Callable[[str], Any],
    input_fn: Callable[[str], str],
    output_fn: Callable[[str], None],
) -> Any:
    while True:
        try:
            answer = input_fn(prompt)
        except EOFError:
            raise ConfigFormatError(f"Input ended while asking: {prompt.strip()}") from None
        try:
            return parser(answer)
        except ParseError as exc:
            output_fn(f"{exc}. Try again.")


def _path(answer: str) -> str:
    answer = answer.strip()
    if not answer:
        raise ParseError("path", answer, "must not be empty")
    return answer


def prompt_paths(
    config: RunConfig,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> RunConfig:
    """Ask for every unset dataset path."""

    for name in PATH_FIELDS:
        if getattr(config, name) is None:
            setattr(config, name, _ask(_PROMPTS[name], _path, input_fn, output_fn))
    return config


def prompt_hyperparameters(
    config: RunConfig,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> RunConfig:
    """Ask for the layer layout and learning rates if they are unset."""

    if config.layer_widths is None:

        def _layer_count(answer: str) -> int:
            count = parse_count(answer, name="layer count")
            if count < MIN_LAYERS:
                raise ParseError(
                    "layer count", answer, f"at least {MIN_LAYERS} layers are required"
                )
            return count

        count = _ask(_PROMPTS["layer_count"], _layer_count, input_fn, output_fn)
        output_fn("Enter the length of each layer:")

        def _width(answer: str) -> int:
            width = parse_count(answer, name="layer width")
            if width == 0:
                raise ParseError("layer width", answer, "must be positive")
            return width

        config.layer_widths = [
            _ask(f"\tLayer {idx}: ", _width, input_fn, output_fn)
            for idx in range(1, count + 1)
        ]
    if config.learning_rate is None:
        config.learning_rate = _ask(
            _PROMPTS["learning_rate"],
            lambda a: parse_decimal(a, name="learning rate"),
            input_fn,
            output_fn,
        )
    if config.learning_rate_multiplier is None:
        config.learning_rate_multiplier = _ask(
            _PROMPTS["learning_rate_multiplier"],
            lambda a: parse_decimal(a, name="learning rate multiplier"),
            input_fn,
            output_fn,
        )
    return config


def prompt_missing(
    config: RunConfig,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> RunConfig:
    """Fill every unset field interactively and return the complete config."""

    prompt_paths(config, input_fn, output_fn)
    prompt_hyperparameters(config, input_fn, output_fn)
    return config.require_complete()


__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "RunConfig",
    "load_config",
    "parse_config_text",
    "parse_count",
    "parse_decimal",
    "prompt_hyperparameters",
    "prompt_missing",
    "prompt_paths",
    "validate_layer_widths",
]
