import unittest

import numpy as np

from binbow import descriptors as mod
from binbow.errors import DimensionMismatch


class TestAsDescriptors(unittest.TestCase):
    def test_packed_rows_pass_through(self):
        d = np.arange(64, dtype=np.uint8).reshape(2, 32)
        out = mod.as_descriptors(d)
        self.assertEqual(out.shape, (2, 32))
        self.assertEqual(out.dtype, np.uint8)
        np.testing.assert_array_equal(out, d)

    def test_single_descriptor_becomes_one_row(self):
        out = mod.as_descriptors(np.zeros(32, dtype=np.uint8))
        self.assertEqual(out.shape, (1, 32))

    def test_bool_bits_are_packed_msb_first(self):
        bits = np.zeros(256, dtype=bool)
        bits[0] = True  # MSB of the first byte
        out = mod.as_descriptors(bits)
        self.assertEqual(out[0, 0], 0x80)
        self.assertEqual(int(out[0, 1:].sum()), 0)

    def test_bytes_input(self):
        out = mod.as_descriptors([b"\x01" * 32, b"\x02" * 32])
        self.assertEqual(out.shape, (2, 32))
        self.assertEqual(out[1, 5], 2)
        self.assertEqual(mod.as_descriptors(b"\xff" * 32).shape, (1, 32))

    def test_empty_input(self):
        self.assertEqual(mod.as_descriptors(np.empty((0, 32), dtype=np.uint8)).shape, (0, 32))
        self.assertEqual(mod.as_descriptors([]).shape, (0, 32))

    def test_wrong_width_is_rejected(self):
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.zeros((3, 31), dtype=np.uint8))
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.zeros((3, 255), dtype=bool))
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(b"\x00" * 33)
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.empty((0, 16), dtype=np.uint8))

    def test_rows_without_bytes_are_rejected(self):
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.zeros((5, 0), dtype=np.uint8))
        self.assertEqual(mod.as_descriptors(np.empty((0, 0), dtype=np.uint8)).shape, (0, 32))

    def test_ragged_rows_are_rejected_with_context(self):
        ragged = [np.zeros(32, dtype=np.uint8), np.zeros(16, dtype=np.uint8)]
        with self.assertRaises(DimensionMismatch) as ctx:
            mod.as_descriptors(ragged, stage="query", index=3)
        self.assertEqual(ctx.exception.stage, "query")
        self.assertEqual(ctx.exception.index, 3)

    def test_bad_values_and_dtypes_are_rejected(self):
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.full((1, 32), 300, dtype=np.int32))
        with self.assertRaises(DimensionMismatch):
            mod.as_descriptors(np.zeros((1, 32), dtype=np.float32))

    def test_error_carries_context(self):
        with self.assertRaises(DimensionMismatch) as ctx:
            mod.as_descriptors(np.zeros((1, 8), dtype=np.uint8), stage="training", index=7)
        self.assertEqual(ctx.exception.stage, "training")
        self.assertEqual(ctx.exception.index, 7)
        self.assertIn("index=7", str(ctx.exception))
        self.assertIsInstance(ctx.exception, ValueError)


class TestHamming(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(3)
        self.a = self.rng.integers(0, 256, 32, dtype=np.uint8)
        self.b = self.rng.integers(0, 256, 32, dtype=np.uint8)

    def test_self_distance_is_zero(self):
        self.assertEqual(mod.hamming(self.a, self.a), 0)

    def test_symmetric(self):
        self.assertEqual(mod.hamming(self.a, self.b), mod.hamming(self.b, self.a))

    def test_known_values(self):
        zeros = np.zeros(32, dtype=np.uint8)
        one_byte = zeros.copy()
        one_byte[10] = 0xFF
        self.assertEqual(mod.hamming(zeros, one_byte), 8)
        self.assertEqual(mod.hamming(zeros, np.full(32, 255, dtype=np.uint8)), 256)

    def test_matches_unpacked_count(self):
        expected = int((np.unpackbits(self.a) != np.unpackbits(self.b)).sum())
        self.assertEqual(mod.hamming(self.a, self.b), expected)

    def test_requires_single_descriptors(self):
        with self.assertRaises(DimensionMismatch):
            mod.hamming(np.zeros((2, 32), dtype=np.uint8), self.a)

    def test_matrix(self):
        d = self.rng.integers(0, 256, (5, 32), dtype=np.uint8)
        c = self.rng.integers(0, 256, (3, 32), dtype=np.uint8)
        m = mod.hamming_matrix(d, c)
        self.assertEqual(m.shape, (5, 3))
        self.assertEqual(m.dtype, np.int64)
        for i in range(5):
            for j in range(3):
                self.assertEqual(m[i, j], mod.hamming(d[i], c[j]))


class TestMajorityCentroid(unittest.TestCase):
    def test_single_descriptor_is_its_own_centroid(self):
        d = np.random.default_rng(0).integers(0, 256, (1, 32), dtype=np.uint8)
        np.testing.assert_array_equal(mod.majority_centroid(d), d[0])

    def test_even_split_resolves_to_zero(self):
        d = np.stack([np.zeros(32, dtype=np.uint8), np.full(32, 255, dtype=np.uint8)])
        np.testing.assert_array_equal(mod.majority_centroid(d), np.zeros(32, dtype=np.uint8))

    def test_strict_majority(self):
        d = np.zeros((3, 32), dtype=np.uint8)
        d[0, 0] = d[1, 0] = 0x80
        d[0, 1] = 0x01
        out = mod.majority_centroid(d)
        self.assertEqual(out[0], 0x80)
        self.assertEqual(out[1], 0)


if __name__ == "__main__":
    unittest.main()
