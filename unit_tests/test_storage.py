import os
import shutil
import tempfile
import unittest

import numpy as np

from binbow import storage as mod
from binbow.bow import BowVector, transform
from binbow.builder import build_vocabulary
from binbow.errors import FormatError
from synthetic import grouped_corpus


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        groups, _ = grouped_corpus(seed=3, n_super=3, n_sub=2)
        self.groups = groups
        self.vocabulary = build_vocabulary(groups, k=3, depth=2, seed=12345)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_vocabulary_round_trip(self):
        path = os.path.join(self.tmp, "nested", "vocabulary.npz")
        mod.save_vocabulary(self.vocabulary, path)
        self.assertTrue(os.path.exists(path))
        loaded = mod.load_vocabulary(path)
        self.assertEqual(loaded, self.vocabulary)
        self.assertEqual(loaded.seed, 12345)
        self.assertEqual(loaded.training_item_count, len(self.groups))
        np.testing.assert_array_equal(loaded.word_weights, self.vocabulary.word_weights)
        d = np.concatenate(self.groups)
        np.testing.assert_array_equal(loaded.route_many(d), self.vocabulary.route_many(d))

    def test_large_seed_survives(self):
        big = 2 ** 100 + 7
        v = build_vocabulary(self.groups[:2], k=2, depth=1, seed=big)
        path = os.path.join(self.tmp, "big.npz")
        mod.save_vocabulary(v, path)
        self.assertEqual(mod.load_vocabulary(path).seed, big)

    def test_bow_round_trip(self):
        bow = transform(self.vocabulary, self.groups[0], norm="l1")
        path = os.path.join(self.tmp, "bow.npz")
        mod.save_bow(bow, path)
        self.assertEqual(mod.load_bow(path), bow)

        empty_path = os.path.join(self.tmp, "empty.npz")
        mod.save_bow(BowVector.empty(), empty_path)
        self.assertTrue(mod.load_bow(empty_path).is_empty)

    def test_version_mismatch(self):
        arrays = mod.vocabulary_to_arrays(self.vocabulary)
        arrays["format_version"] = np.array(mod.FORMAT_VERSION + 1)
        with self.assertRaises(FormatError):
            mod.vocabulary_from_arrays(arrays)

    def test_missing_field(self):
        arrays = mod.bow_to_arrays(BowVector([1], [1.0]))
        del arrays["norm"]
        with self.assertRaises(FormatError):
            mod.bow_from_arrays(arrays)

    def test_unknown_node_kind(self):
        arrays = mod.vocabulary_to_arrays(self.vocabulary)
        arrays["kinds"] = arrays["kinds"].copy()
        arrays["kinds"][0] = 9
        with self.assertRaises(FormatError):
            mod.vocabulary_from_arrays(arrays)

    def test_unknown_norm(self):
        arrays = mod.bow_to_arrays(BowVector([1], [1.0]))
        arrays["norm"] = np.array("l3")
        with self.assertRaises(FormatError) as ctx:
            mod.bow_from_arrays(arrays)
        self.assertEqual(ctx.exception.stage, "load")

    def test_corrupted_tree_structure(self):
        arrays = mod.vocabulary_to_arrays(self.vocabulary)
        arrays["child_indices"] = np.ones_like(arrays["child_indices"])
        with self.assertRaises(FormatError) as ctx:
            mod.vocabulary_from_arrays(arrays)
        self.assertEqual(ctx.exception.stage, "load")

    def test_truncated_node_arrays(self):
        arrays = mod.vocabulary_to_arrays(self.vocabulary)
        arrays["weights"] = arrays["weights"][:-1]
        with self.assertRaises(FormatError):
            mod.vocabulary_from_arrays(arrays)


if __name__ == "__main__":
    unittest.main()
