#!/usr/bin/env python3
"""
Train and apply Hoeffding trees from the command line.

A Hoeffding tree is grown from a stream of labelled examples: every leaf keeps
compact statistics of the examples routed to it and is split as soon as the
Hoeffding bound says the best candidate split is, with high confidence, better
than the runner-up. Categorical columns are detected automatically; numeric
columns are split with the 'binary' or 'domingos' strategy.

Usage:
    python hoeffding_tree_main.py -t train.csv -l train_labels.csv -M model.json
    python hoeffding_tree_main.py -m model.json -T test.csv -L test_labels.csv -p preds.csv
    python hoeffding_tree_main.py -t train.csv -N domingos -B 20 -o 500 -i -M model.json
"""

import argparse
import logging
import sys
from typing import List, Optional

from data_utils import (accuracy, load_dataset, load_labels, split_label_column,
                        write_predictions, write_probabilities)
from errors import HoeffdingTreeError
from schema import DatasetSchema, DimensionInfo, DimensionType
from tree_config import HoeffdingTreeConfig
from tree_model import HoeffdingTreeModel

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description="Train a Hoeffding tree on streaming data and classify test points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Train on a dataset and save the model
  python hoeffding_tree_main.py -t data.csv -l labels.csv -M tree.json

  # Labels in the last column of the training file, information gain, 3 passes
  python hoeffding_tree_main.py -t data.csv -i -s 3 -M tree.json

  # Classify a test set with a saved model
  python hoeffding_tree_main.py -m tree.json -T test.csv -L test_labels.csv -p predictions.csv
        """
    )

    parser.add_argument('--training', '-t',
                        help='Training dataset CSV (headerless)')
    parser.add_argument('--labels', '-l',
                        help='Labels for the training set; if omitted the last training column is used')
    parser.add_argument('--confidence', '-c', type=float, default=0.95,
                        help='Confidence before splitting (default: 0.95)')
    parser.add_argument('--max_samples', '-n', type=int, default=5000,
                        help='Samples after which a leaf splits regardless of the bound (default: 5000)')
    parser.add_argument('--min_samples', '-I', type=int, default=100,
                        help='Minimum number of samples before a leaf may split (default: 100)')
    parser.add_argument('--input_model', '-m',
                        help='Previously saved model (JSON) to train further or classify with')
    parser.add_argument('--output_model', '-M',
                        help='Where to save the trained model (JSON)')
    parser.add_argument('--test', '-T',
                        help='Test dataset CSV to classify')
    parser.add_argument('--test_labels', '-L',
                        help='Labels of the test set, to report test accuracy')
    parser.add_argument('--predictions', '-p',
                        help='Where to write the predicted labels of the test set')
    parser.add_argument('--probabilities', '-P',
                        help='Where to write the class probabilities of the test set')
    parser.add_argument('--numeric_split_strategy', '-N', default='binary',
                        help="Numeric split strategy: 'binary' or 'domingos' (default: binary)")
    parser.add_argument('--batch_mode', '-b', action='store_true',
                        help='Train in batch mode instead of streaming')
    parser.add_argument('--info_gain', '-i', action='store_true',
                        help='Use information gain instead of Gini impurity')
    parser.add_argument('--passes', '-s', type=int, default=1,
                        help='Number of passes over the training data (default: 1)')
    parser.add_argument('--bins', '-B', type=int, default=10,
                        help="Number of bins of the 'domingos' strategy (default: 10)")
    parser.add_argument('--observations_before_binning', '-o', type=int, default=100,
                        help="Observations before 'domingos' bins are fixed (default: 100)")
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    return parser.parse_args(argv)


def validate_arguments(args) -> bool:
    """
    Check argument combinations and warn about ignored options.

    Args:
        args: Parsed command line arguments

    Returns:
        bool: True if the arguments are usable
    """
    if not args.training and not args.input_model:
        print("ERROR: One of --training or --input_model must be specified")
        return False

    if args.labels and not args.training:
        logger.warning("--labels ignored because --training is not specified")

    if args.test_labels and not args.test:
        logger.warning("--test_labels ignored because --test is not specified")

    if (args.predictions or args.probabilities) and not args.test:
        logger.warning("--predictions and --probabilities ignored because --test is not specified")

    if not args.output_model and not args.predictions and not args.probabilities:
        logger.warning("Neither --output_model, --predictions nor --probabilities are specified; "
                       "no output will be saved")

    if args.batch_mode and args.passes > 1:
        logger.warning("--batch_mode ignored because --passes is greater than 1")

    if args.numeric_split_strategy.lower() != 'domingos' and \
            (args.bins != 10 or args.observations_before_binning != 100):
        logger.warning("--bins and --observations_before_binning only apply to the 'domingos' strategy")

    return True


def build_config(args) -> HoeffdingTreeConfig:
    """
    Turn the parsed arguments into a validated configuration.

    Raises:
        InvalidConfigurationError: If a value is out of range
    """
    return HoeffdingTreeConfig(
        confidence=args.confidence,
        max_samples=args.max_samples,
        min_samples=args.min_samples,
        numeric_split_strategy=args.numeric_split_strategy,
        criterion='info_gain' if args.info_gain else 'gini',
        bins=args.bins,
        observations_before_binning=args.observations_before_binning,
        batch_mode=args.batch_mode,
        passes=args.passes,
    )


def run(args) -> HoeffdingTreeModel:
    """
    Load or train a model, report its accuracy and write the requested outputs.

    Returns:
        HoeffdingTreeModel: The trained or loaded model
    """
    if args.input_model:
        model = HoeffdingTreeModel.load(args.input_model)
    else:
        model = HoeffdingTreeModel(build_config(args))

    if args.training:
        resume = model.tree is not None
        training_schema = None
        if resume:
            training_schema = model.schema
            if not args.labels:
                training_schema = DatasetSchema(model.schema.dimensions + [DimensionInfo(DimensionType.NUMERIC)])

        examples, schema = load_dataset(args.training, schema=training_schema)
        if args.labels:
            labels = load_labels(args.labels)
        else:
            examples, labels, schema = split_label_column(examples, schema)

        if resume:
            batch = args.batch_mode and args.passes == 1
            if model.is_frozen:
                model.thaw()
            for _ in range(args.passes):
                model.train(examples, labels, batch=batch)
        else:
            model.fit(examples, labels, schema=schema)

        correct, total, ratio = accuracy(model.classify(examples), labels)
        print(f"{correct} out of {total} correct on training set ({ratio:.2%}).")

    summary = model.summary()
    print(f"Model has {summary['num_nodes']} nodes ({summary['num_leaves']} leaves, "
          f"max depth {summary['max_depth']}).")
    logger.info("Model summary: %s", summary)

    if args.test:
        test_examples, _ = load_dataset(args.test, schema=model.schema)
        predictions, probabilities = model.classify(test_examples, return_probabilities=True)

        if args.test_labels:
            test_labels = load_labels(args.test_labels)
            correct, total, ratio = accuracy(predictions, test_labels)
            print(f"{correct} out of {total} correct on test set ({ratio:.2%}).")

        if args.predictions:
            write_predictions(args.predictions, predictions)
        if args.probabilities:
            write_probabilities(args.probabilities, probabilities)

    if args.output_model:
        model.save(args.output_model)

    return model


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to process command line arguments and run the tree.

    Returns:
        int: Process exit code
    """
    args = parse_arguments(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    if not validate_arguments(args):
        return 1

    try:
        run(args)
    except (HoeffdingTreeError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
