import unittest
import io
import os
import tempfile
from contextlib import redirect_stdout

import numpy as np

import sys
# Add parent directory to path so we can import the tree modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hoeffding_tree_main import main, parse_arguments, validate_arguments, build_config
from tree_config import NumericSplitStrategy
from tree_model import HoeffdingTreeModel


CITIES = ['Mumbai', 'Pune', 'Delhi']


def write_dataset(path, n, seed, with_labels=True, labels_path=None):
    """City (categorical) and fare (numeric); the label is 1 for Delhi or fares above 50."""
    rng = np.random.RandomState(seed)
    labels = []
    with open(path, 'w') as f:
        for i in range(n):
            city = CITIES[i % 3]
            fare = rng.uniform(0, 100)
            label = int(city == 'Delhi' or fare > 50)
            labels.append(label)
            row = f"{city},{fare:.4f}"
            if with_labels:
                row += f",{label}"
            f.write(row + "\n")
    if labels_path is not None:
        with open(labels_path, 'w') as f:
            f.write("\n".join(str(label) for label in labels) + "\n")
    return labels


class TestCommandLine(unittest.TestCase):
    """Test the command line entry point end to end."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def path(self, name):
        return os.path.join(self.temp_dir.name, name)

    def run_main(self, argv):
        output = io.StringIO()
        with redirect_stdout(output):
            code = main(argv)
        return code, output.getvalue()

    def test_defaults(self):
        args = parse_arguments(['-t', 'train.csv'])
        self.assertEqual(args.confidence, 0.95)
        self.assertEqual(args.max_samples, 5000)
        self.assertEqual(args.min_samples, 100)
        self.assertEqual(args.numeric_split_strategy, 'binary')
        self.assertEqual(args.passes, 1)
        self.assertEqual(args.bins, 10)
        self.assertEqual(args.observations_before_binning, 100)
        self.assertFalse(args.batch_mode)
        self.assertFalse(args.info_gain)

    def test_build_config(self):
        args = parse_arguments(['-t', 'train.csv', '-c', '0.99', '-N', 'domingos', '-i', '-B', '4', '-s', '2'])
        config = build_config(args)
        self.assertEqual(config.confidence, 0.99)
        self.assertEqual(config.numeric_split_strategy, NumericSplitStrategy.DOMINGOS)
        self.assertEqual(config.criterion.value, 'info_gain')
        self.assertEqual(config.bins, 4)
        self.assertEqual(config.passes, 2)

    def test_requires_training_or_model(self):
        code, output = self.run_main(['-T', 'test.csv'])
        self.assertEqual(code, 1)
        self.assertIn('--training or --input_model', output)

    def test_warns_about_ignored_options(self):
        args = parse_arguments(['-t', 'train.csv', '-b', '-s', '3'])
        with self.assertLogs('hoeffding_tree_main', level='WARNING') as logs:
            self.assertTrue(validate_arguments(args))
        messages = "\n".join(logs.output)
        self.assertIn('--batch_mode ignored', messages)
        self.assertIn('no output will be saved', messages)

    def test_train_test_and_save(self):
        write_dataset(self.path('train.csv'), 600, seed=0)
        write_dataset(self.path('test.csv'), 150, seed=1, with_labels=False,
                      labels_path=self.path('test_labels.csv'))

        code, output = self.run_main([
            '-t', self.path('train.csv'), '-I', '30',
            '-T', self.path('test.csv'), '-L', self.path('test_labels.csv'),
            '-p', self.path('predictions.csv'), '-P', self.path('probabilities.csv'),
            '-M', self.path('model.json'),
        ])

        self.assertEqual(code, 0)
        self.assertIn('correct on training set', output)
        self.assertIn('correct on test set', output)
        self.assertIn('Model has', output)
        self.assertIn('leaves, max depth', output)

        predictions = np.loadtxt(self.path('predictions.csv'), dtype=int)
        probabilities = np.loadtxt(self.path('probabilities.csv'), delimiter=',')
        self.assertEqual(predictions.shape, (150,))
        self.assertEqual(probabilities.shape, (150, 2))

        model = HoeffdingTreeModel.load(self.path('model.json'))
        self.assertGreater(model.num_nodes(), 1)
        self.assertEqual(model.config.min_samples, 30)
        self.assertEqual(model.schema.dimensions[0].mapping, {'Mumbai': 0, 'Pune': 1, 'Delhi': 2})

    def test_separate_labels_file(self):
        write_dataset(self.path('train.csv'), 300, seed=2, with_labels=False,
                      labels_path=self.path('labels.csv'))
        code, _ = self.run_main(['-t', self.path('train.csv'), '-l', self.path('labels.csv'),
                                 '-M', self.path('model.json')])
        self.assertEqual(code, 0)
        self.assertEqual(HoeffdingTreeModel.load(self.path('model.json')).schema.num_dimensions, 2)

    def test_continue_training_saved_model(self):
        write_dataset(self.path('train.csv'), 300, seed=3)
        write_dataset(self.path('more.csv'), 300, seed=4)
        self.assertEqual(self.run_main(['-t', self.path('train.csv'), '-M', self.path('model.json')])[0], 0)

        code, _ = self.run_main(['-m', self.path('model.json'), '-t', self.path('more.csv'),
                                 '-M', self.path('model2.json')])
        self.assertEqual(code, 0)
        model = HoeffdingTreeModel.load(self.path('model2.json'))
        self.assertEqual(model.samples_seen, 600)
        self.assertEqual(model.passes_completed, 2)

    def test_invalid_configuration_fails_cleanly(self):
        write_dataset(self.path('train.csv'), 50, seed=5)
        code, output = self.run_main(['-t', self.path('train.csv'), '-c', '1.5'])
        self.assertEqual(code, 1)
        self.assertIn('ERROR', output)

    def test_missing_training_file(self):
        code, output = self.run_main(['-t', self.path('missing.csv')])
        self.assertEqual(code, 1)
        self.assertIn('not found', output)


if __name__ == '__main__':
    unittest.main(verbosity=2)
