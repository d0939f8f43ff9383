import shutil
import tempfile
import unittest
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from binbow import feature_extraction as mod


def textured_image(seed=0, size=160):
    """Random blocky pattern, plenty of corners for ORB."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, size=(size // 8, size // 8), dtype=np.uint8)
    return cv2.resize(blocks, (size, size), interpolation=cv2.INTER_NEAREST)


class TestExtraction(unittest.TestCase):
    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_blank_image_gives_empty_set(self):
        out = mod.extract_orb(np.zeros((64, 64), dtype=np.uint8))
        self.assertEqual(out.shape, (0, 32))
        self.assertEqual(out.dtype, np.uint8)

    def test_textured_image(self):
        out = mod.extract_orb(textured_image())
        self.assertGreater(len(out), 0)
        self.assertEqual(out.shape[1], 32)
        self.assertEqual(out.dtype, np.uint8)

    def test_load_gray_accepts_paths_pil_and_rgb(self):
        rgb = np.stack([textured_image()] * 3, axis=-1)
        path = self.tmp / "img.png"
        Image.fromarray(rgb).save(path)
        from_path = mod.load_gray(path)
        self.assertEqual(from_path.shape, (160, 160))
        self.assertEqual(mod.load_gray(Image.open(path)).shape, (160, 160))
        self.assertEqual(mod.load_gray(rgb).shape, (160, 160))

    def test_load_gray_accepts_rgba_arrays(self):
        gray = textured_image()
        rgba = np.dstack([gray, gray, gray, np.full_like(gray, 255)])
        out = mod.load_gray(rgba)
        self.assertEqual(out.shape, gray.shape)
        self.assertEqual(out.dtype, np.uint8)
        np.testing.assert_array_equal(out, gray)

    def test_extract_directory(self):
        for i in range(3):
            Image.fromarray(textured_image(seed=i)).save(self.tmp / f"{i}.png")
        (self.tmp / "notes.txt").write_text("not an image")
        sets, paths = mod.extract_directory(self.tmp, n_features=100)
        self.assertEqual(len(sets), 3)
        self.assertEqual([Path(p).name for p in paths], ["0.png", "1.png", "2.png"])
        self.assertTrue(all(s.shape[1] == 32 for s in sets))
        self.assertEqual(len(mod.extract_directory(self.tmp, max_images=2)[0]), 2)

    def test_descriptor_file_round_trip(self):
        rng = np.random.default_rng(0)
        sets = [rng.integers(0, 256, (3, 32), dtype=np.uint8),
                np.empty((0, 32), dtype=np.uint8),
                rng.integers(0, 256, (2, 32), dtype=np.uint8)]
        out = self.tmp / "sub" / "descriptors.npz"
        mod.save(out, sets, ["a.png", "b.png", "c.png"])
        loaded, paths = mod.load_descriptor_sets(out)
        self.assertEqual(paths, ["a.png", "b.png", "c.png"])
        self.assertEqual([len(s) for s in loaded], [3, 0, 2])
        for a, b in zip(sets, loaded):
            np.testing.assert_array_equal(a, b)


if __name__ == "__main__":
    unittest.main()
