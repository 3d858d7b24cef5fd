"""Command line entry point: train an ffnet network on IDX data."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Iterable

from ffnet import persistence
from ffnet.config import (
    DEFAULT_CONFIG_FILENAME,
    load_config,
    parse_count,
    parse_decimal,
    prompt_hyperparameters,
    prompt_paths,
    validate_layer_widths,
)
from ffnet.core.network import allocate, initialize_weights
from ffnet.data.idx import check_compatible, load_dataset
from ffnet.errors import ConfigFormatError, DatasetFormatError, FFNetError
from ffnet.reporting.metrics import make_sink
from ffnet.training.checkpoint import EveryEpoch, NoCheckpoint, PromptCheckpoint
from ffnet.training.trainer import Trainer

logger = logging.getLogger("ffnet.cli")


def _decimal(text: str) -> float:
    try:
        return parse_decimal(text)
    except FFNetError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _layer_list(text: str) -> list[int]:
    try:
        return [parse_count(part, name="layer width") for part in text.split(",")]
    except FFNetError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILENAME),
        help="Line-oriented config file, or a JSON/YAML mapping",
    )
    parser.add_argument("--learning-rate", type=_decimal, help="Override the learning rate")
    parser.add_argument(
        "--multiplier", type=_decimal, help="Override the per-epoch learning rate multiplier"
    )
    parser.add_argument(
        "--layers",
        type=_layer_list,
        help="Comma separated layer widths, output layer last (e.g. 128,10)",
    )
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation")
    parser.add_argument(
        "--epochs", type=int, help="Stop after this many epochs (default: run until stopped)"
    )
    parser.add_argument("--load", type=Path, help="Resume from a saved model file")
    parser.add_argument(
        "--evaluate-only",
        action="store_true",
        help="Evaluate the --load model on the testing split and exit",
    )
    parser.add_argument(
        "--save-every",
        metavar="TEMPLATE",
        help="Save after every epoch to TEMPLATE, e.g. 'model-{epoch}.nn'",
    )
    parser.add_argument(
        "--no-save-prompt",
        action="store_true",
        help="Do not ask for a filename to save to after each epoch",
    )
    parser.add_argument("--metrics", type=Path, help="Write epoch metrics to .jsonl or .csv")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def run(
    args: argparse.Namespace,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> list:
    """Set everything up from ``args`` and train; returns the epoch reports."""

    if args.evaluate_only and args.load is None:
        raise ConfigFormatError("--evaluate-only requires --load")

    config = load_config(args.config).merge(
        {
            "learning_rate": args.learning_rate,
            "learning_rate_multiplier": args.multiplier,
            "layer_widths": args.layers,
        }
    )

    logger.info("Retrieving training data...")
    prompt_paths(config, input_fn, output_fn)
    train = load_dataset(config.training_images, config.training_labels)
    test = load_dataset(config.testing_images, config.testing_labels)
    check_compatible(train, test)

    logger.info("Initialising network...")
    if args.load is not None:
        network = persistence.load(args.load)
        if network.input_width != train.input_width:
            raise DatasetFormatError(
                f"{args.load} expects {network.input_width} inputs, "
                f"the datasets have {train.input_width} pixels per image"
            )
        config.layer_widths = list(network.layer_widths)
    if args.evaluate_only:
        evaluator = Trainer(network, 0.0)
        evaluator.check_dataset(test, "testing")
        evaluation = evaluator.evaluate(test)
        logger.info(
            "Accuracy: %.4f, avg cost: %.4f over %d images",
            evaluation.accuracy,
            evaluation.mean_cost,
            evaluation.samples,
        )
        return []

    prompt_hyperparameters(config, input_fn, output_fn)
    if args.load is None:
        network = allocate(train.input_width, validate_layer_widths(config.layer_widths))
        seed = initialize_weights(network, args.seed)
        logger.info("Initialised %r with seed %d", network, seed)
    else:
        seed = args.seed

    if args.save_every:
        checkpoint = EveryEpoch(args.save_every)
    elif args.no_save_prompt:
        checkpoint = NoCheckpoint()
    else:
        checkpoint = PromptCheckpoint(input_fn=input_fn, output_fn=output_fn)
    callbacks = [make_sink(args.metrics, seed=seed)] if args.metrics else []

    trainer = Trainer(
        network,
        config.learning_rate,
        config.learning_rate_multiplier,
        callbacks=callbacks,
        checkpoint=checkpoint,
    )
    logger.info("Training...")
    return trainer.run(train, test, max_epochs=args.epochs)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(message)s")
    try:
        run(args)
    except FFNetError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
