import unittest

import numpy as np

from binbow import brute_force as mod
from binbow.builder import build_vocabulary
from synthetic import grouped_corpus, random_descriptors, two_word_vocabulary


class TestBruteForce(unittest.TestCase):
    def test_depth_one_tree_agrees_with_exhaustive_search(self):
        v = two_word_vocabulary()
        d = random_descriptors(np.random.default_rng(0), 40)
        np.testing.assert_array_equal(mod.brute_force_words(v, d), v.route_many(d))
        result = mod.evaluate_agreement(v, d)
        self.assertEqual(result["num_descriptors"], 40)
        self.assertEqual(result["word_agreement"], 1.0)
        self.assertEqual(result["distance_agreement"], 1.0)
        self.assertEqual(result["mean_extra_distance"], 0.0)

    def test_clustered_corpus(self):
        groups, _ = grouped_corpus(seed=0)
        v = build_vocabulary(groups, k=5, depth=2, seed=7, init="kmeans++", n_init=10)
        result = mod.evaluate_agreement(v, np.concatenate(groups))
        self.assertEqual(result["word_agreement"], 1.0)
        self.assertGreaterEqual(result["greedy_time_ms"], 0.0)

    def test_greedy_distance_never_beats_exhaustive(self):
        rng = np.random.default_rng(4)
        corpus = random_descriptors(rng, 300)
        v = build_vocabulary(corpus, k=3, depth=3, seed=1)
        result = mod.evaluate_agreement(v, random_descriptors(rng, 100))
        self.assertGreaterEqual(result["mean_extra_distance"], 0.0)
        self.assertLessEqual(result["word_agreement"], result["distance_agreement"])

    def test_empty(self):
        v = two_word_vocabulary()
        self.assertEqual(len(mod.brute_force_words(v, np.empty((0, 32), dtype=np.uint8))), 0)
        self.assertEqual(mod.evaluate_agreement(v, np.empty((0, 32), dtype=np.uint8))["word_agreement"], 0.0)


if __name__ == "__main__":
    unittest.main()
