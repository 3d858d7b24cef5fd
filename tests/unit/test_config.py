import json

import pytest

from ffnet.config import (
    RunConfig,
    load_config,
    parse_config_text,
    parse_count,
    parse_decimal,
    prompt_missing,
)
from ffnet.errors import ConfigFormatError, ParseError

FULL = """0.01
0.9
3
128
64
10
train-images.idx3-ubyte
train-labels.idx1-ubyte
t10k-images.idx3-ubyte
t10k-labels.idx1-ubyte
"""


class _Answers:
    """Scripted replacement for ``input`` that records every prompt."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


def test_full_config_file():
    config = parse_config_text(FULL)
    assert config.learning_rate == pytest.approx(0.01)
    assert config.learning_rate_multiplier == pytest.approx(0.9)
    assert config.layer_widths == [128, 64, 10]
    assert config.training_images == "train-images.idx3-ubyte"
    assert config.testing_labels == "t10k-labels.idx1-ubyte"
    assert config.missing() == []
    assert config.require_complete() is config


def test_blank_fields_stay_unset():
    text = "\n0.5\n2\n16\n10\n\ntrain-labels\n"
    config = parse_config_text(text)
    assert config.learning_rate is None
    assert config.learning_rate_multiplier == 0.5
    assert config.layer_widths == [16, 10]
    assert config.training_images is None
    assert config.training_labels == "train-labels"
    assert config.missing() == [
        "learning_rate",
        "training_images",
        "testing_images",
        "testing_labels",
    ]


def test_short_file_leaves_rest_for_prompting():
    config = parse_config_text("0.1\n")
    assert config.learning_rate == pytest.approx(0.1)
    assert config.layer_widths is None


def test_missing_layer_widths_is_fatal():
    with pytest.raises(ConfigFormatError, match="ends after 1 of 3"):
        parse_config_text("0.1\n1.0\n3\n32\n")


def test_too_few_layers_is_fatal():
    with pytest.raises(ConfigFormatError, match="Invalid number of layers"):
        parse_config_text("0.1\n1.0\n1\n10\n")


def test_unparseable_value_is_prompted_later(caplog):
    config = parse_config_text("fast\n1.0\n2\n8\nten\n")
    assert config.learning_rate is None
    assert config.layer_widths is None
    assert "Ignoring config value" in caplog.text


def test_parsers_reject_overflow_and_negatives():
    assert parse_count(" 42 ") == 42
    assert parse_count(str(2**64 - 1)) == 2**64 - 1
    with pytest.raises(ParseError, match="exceeds"):
        parse_count(str(2**64))
    with pytest.raises(ParseError):
        parse_count("-3")
    with pytest.raises(ParseError):
        parse_count("1.5")
    assert parse_decimal("1") == 1.0
    assert parse_decimal(".25") == 0.25
    with pytest.raises(ParseError):
        parse_decimal("-0.1")
    with pytest.raises(ParseError):
        parse_decimal("nan")


def test_missing_file_yields_empty_config(tmp_path):
    config = load_config(tmp_path / "config.cfg")
    assert config == RunConfig()


def test_json_and_yaml_configs(tmp_path):
    payload = {
        "learning_rate": 0.05,
        "learning_rate_multiplier": 0.95,
        "layer_widths": [32, 10],
        "training_images": "a",
        "training_labels": "b",
        "testing_images": "c",
        "testing_labels": "d",
    }
    json_path = tmp_path / "run.json"
    json_path.write_text(json.dumps(payload))
    from_json = load_config(json_path)
    assert from_json.layer_widths == [32, 10]
    assert from_json.missing() == []

    yaml_path = tmp_path / "run.yaml"
    yaml_path.write_text("learning_rate: 0.05\nlayer_widths: [32, 10]\n")
    from_yaml = load_config(yaml_path)
    assert from_yaml.learning_rate == pytest.approx(0.05)
    assert from_yaml.layer_widths == [32, 10]
    assert from_yaml.training_images is None

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"epochs": 3}))
    with pytest.raises(ConfigFormatError, match="epochs"):
        load_config(bad)


def test_merge_overrides_only_given_values():
    config = parse_config_text(FULL).merge({"learning_rate": 0.5, "layer_widths": None})
    assert config.learning_rate == 0.5
    assert config.layer_widths == [128, 64, 10]


def test_prompt_missing_asks_in_order_and_retries():
    answers = _Answers(
        "imgs", "lbls", "timgs", "tlbls",
        "1", "2",          # one layer is rejected, then two
        "x", "16", "10",   # bad width, then the widths
        "0.1", "0.99",
    )
    messages = []
    config = prompt_missing(RunConfig(), input_fn=answers, output_fn=messages.append)

    assert config.training_images == "imgs"
    assert config.testing_labels == "tlbls"
    assert config.layer_widths == [16, 10]
    assert config.learning_rate == pytest.approx(0.1)
    assert config.learning_rate_multiplier == pytest.approx(0.99)
    assert sum("Try again" in m for m in messages) == 2
    assert answers.prompts[0].startswith("Enter the filename of the training image")


def test_prompt_eof_is_fatal():
    with pytest.raises(ConfigFormatError, match="Input ended"):
        prompt_missing(RunConfig(), input_fn=_Answers("imgs"), output_fn=lambda _: None)
