import json
import logging
from pathlib import Path

import numpy as np
import pytest

from cli.main import main, parse_args, run
from ffnet import persistence
from ffnet.core.network import allocate
from ffnet.data.idx import write_images, write_labels


def _write_split(root: Path, prefix: str, count: int, seed: int) -> tuple[Path, Path]:
    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 3, size=count)
    images = np.zeros((count, 3, 3), dtype=np.uint8)
    for idx, label in enumerate(labels):
        images[idx, label, :] = 200
    images += rng.integers(0, 20, size=images.shape, dtype=np.uint8)
    return (
        write_images(root / f"{prefix}-images.idx3-ubyte", images),
        write_labels(root / f"{prefix}-labels.idx1-ubyte", labels),
    )


@pytest.fixture
def config_file(tmp_path):
    train_images, train_labels = _write_split(tmp_path, "train", 30, seed=0)
    test_images, test_labels = _write_split(tmp_path, "t10k", 10, seed=1)
    path = tmp_path / "config.cfg"
    path.write_text(
        "\n".join(
            [
                "0.1",
                "0.95",
                "2",
                "6",
                "3",
                str(train_images),
                str(train_labels),
                str(test_images),
                str(test_labels),
            ]
        )
        + "\n"
    )
    return path


def test_cli_trains_and_saves(tmp_path, config_file):
    template = str(tmp_path / "model-{epoch}.nn")
    metrics = tmp_path / "metrics.jsonl"
    main(
        [
            "--config", str(config_file),
            "--epochs", "3",
            "--seed", "7",
            "--save-every", template,
            "--metrics", str(metrics),
        ]
    )
    records = [json.loads(line) for line in metrics.read_text().splitlines()]
    assert [r["epoch"] for r in records] == [1, 2, 3]
    assert all(r["seed"] == 7 for r in records)
    network = persistence.load(tmp_path / "model-3.nn")
    assert network.input_width == 9
    assert network.layer_widths == (6, 3)


def test_cli_resume_and_evaluate(tmp_path, config_file, caplog):
    main(["--config", str(config_file), "--epochs", "1", "--seed", "1",
          "--save-every", str(tmp_path / "first.nn")])
    caplog.clear()
    with caplog.at_level(logging.INFO):
        main(["--config", str(config_file), "--load", str(tmp_path / "first.nn"),
              "--evaluate-only"])
    assert "Accuracy:" in caplog.text

    args = parse_args(["--config", str(config_file), "--load", str(tmp_path / "first.nn"),
                       "--epochs", "2", "--no-save-prompt"])
    reports = run(args)
    assert len(reports) == 2


def test_cli_prompts_for_save_filename(tmp_path, config_file):
    answers = iter([str(tmp_path / "prompted.nn"), ""])
    args = parse_args(["--config", str(config_file), "--epochs", "2", "--seed", "3"])
    reports = run(args, input_fn=lambda _: next(answers), output_fn=lambda _: None)
    assert reports[0].checkpoint == str(tmp_path / "prompted.nn")
    assert reports[1].checkpoint is None


def test_cli_layer_override(tmp_path, config_file):
    args = parse_args(["--config", str(config_file), "--epochs", "1",
                       "--layers", "4,4,3", "--no-save-prompt",
                       "--save-every", str(tmp_path / "m.nn")])
    run(args)
    assert persistence.load(tmp_path / "m.nn").layer_widths == (4, 4, 3)


def test_cli_setup_errors_exit_nonzero(tmp_path, config_file):
    text = config_file.read_text().splitlines()
    text[2] = "1"
    bad = tmp_path / "bad.cfg"
    bad.write_text("\n".join(text) + "\n")
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(bad), "--epochs", "1", "--no-save-prompt"])
    assert excinfo.value.code == 1

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config_file), "--evaluate-only"])
    assert excinfo.value.code == 1


def test_cli_evaluate_only_rejects_labels_beyond_output_layer(tmp_path, config_file):
    lines = config_file.read_text().splitlines()
    write_labels(Path(lines[8]), np.arange(10) % 3)
    narrow = allocate(9, [6, 2])
    persistence.save(narrow, tmp_path / "narrow.nn")
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config_file), "--load", str(tmp_path / "narrow.nn"),
              "--evaluate-only"])
    assert excinfo.value.code == 1


@pytest.mark.parametrize("flag", ["--learning-rate", "--multiplier"])
@pytest.mark.parametrize("value", ["nan", "inf"])
def test_cli_rejects_non_finite_rates(config_file, capsys, flag, value):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config_file), flag, value, "--epochs", "1",
              "--no-save-prompt"])
    assert excinfo.value.code == 2
    assert "must be finite" in capsys.readouterr().err


def test_cli_rejects_wrong_magic(tmp_path, config_file):
    lines = config_file.read_text().splitlines()
    lines[6] = lines[5]  # images file where labels are expected
    bad = tmp_path / "swapped.cfg"
    bad.write_text("\n".join(lines) + "\n")
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(bad), "--epochs", "1", "--no-save-prompt"])
    assert excinfo.value.code == 1
