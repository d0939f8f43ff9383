import unittest

import numpy as np

from binbow import scoring as mod
from binbow.bow import BowVector, transform
from binbow.builder import build_vocabulary
from binbow.errors import InvalidConfiguration
from synthetic import grouped_corpus


class TestScore(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(0)
        weights = rng.random(6)
        self.a = BowVector([0, 2, 4, 6, 8, 10], weights / np.linalg.norm(weights))
        weights = rng.random(4)
        self.b = BowVector([1, 2, 3, 4], weights / np.linalg.norm(weights))

    def test_self_score_is_one(self):
        self.assertEqual(mod.score(self.a, self.a), 1.0)
        l1 = BowVector([1, 5], [0.25, 0.75], norm="l1")
        self.assertEqual(mod.score(l1, l1), 1.0)

    def test_symmetric(self):
        self.assertAlmostEqual(mod.score(self.a, self.b), mod.score(self.b, self.a), places=12)
        self.assertAlmostEqual(mod.score(self.a, self.b, "l1"), mod.score(self.b, self.a, "l1"), places=12)

    def test_in_unit_range(self):
        s = mod.score(self.a, self.b)
        self.assertTrue(0.0 <= s < 1.0)

    def test_disjoint_l2_vectors_score_zero(self):
        self.assertEqual(mod.score(BowVector([0], [1.0]), BowVector([1], [1.0])), 0.0)

    def test_l1_formula(self):
        a = BowVector([0, 1], [0.5, 0.5], norm="l1")
        b = BowVector([0, 2], [0.5, 0.5], norm="l1")
        self.assertAlmostEqual(mod.score(a, b), 0.5)

    def test_l2_formula(self):
        a = BowVector([0], [1.0])
        b = BowVector([0, 1], [0.6, 0.8])
        expected = 1.0 - np.sqrt(0.4 ** 2 + 0.8 ** 2) / np.sqrt(2.0)
        self.assertAlmostEqual(mod.score(a, b), expected)

    def test_empty_vector_scores_zero(self):
        self.assertEqual(mod.score(BowVector.empty(), self.a), 0.0)
        self.assertEqual(mod.score(BowVector.empty(), BowVector.empty()), 0.0)

    def test_norm_mismatch(self):
        with self.assertRaises(InvalidConfiguration):
            mod.score(self.a, BowVector([0], [1.0], norm="l1"))


class TestRank(unittest.TestCase):
    def test_order_and_top_k(self):
        q = BowVector([0, 1], [0.6, 0.8])
        candidates = [BowVector([5], [1.0]), q, BowVector([1], [1.0])]
        ranking = mod.rank(q, candidates)
        self.assertEqual([i for i, _ in ranking], [1, 2, 0])
        self.assertEqual(ranking[0][1], 1.0)
        self.assertEqual(mod.rank(q, candidates, top_k=1), [(1, 1.0)])

    def test_ties_keep_candidate_order(self):
        q = BowVector([0], [1.0])
        other = BowVector([3], [1.0])
        ranking = mod.rank(q, [other, other, other])
        self.assertEqual([i for i, _ in ranking], [0, 1, 2])

    def test_near_duplicate_ranks_between_self_and_unrelated(self):
        groups, _ = grouped_corpus(seed=0)
        vocabulary = build_vocabulary(groups, k=5, depth=2, seed=7, init="kmeans++", n_init=10)

        image_a = np.concatenate(groups[:5])
        # B shares 37 of its 40 descriptors with A
        image_b = np.concatenate([image_a[:-3], groups[5][:3]])
        image_c = np.concatenate(groups[20:25])

        a, b, c = (transform(vocabulary, d) for d in (image_a, image_b, image_c))
        ranking = mod.rank(a, [a, b, c])
        self.assertEqual([i for i, _ in ranking], [0, 1, 2])
        self.assertEqual(ranking[0][1], 1.0)
        self.assertGreater(ranking[1][1], ranking[2][1])


if __name__ == "__main__":
    unittest.main()
