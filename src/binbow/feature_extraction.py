#!/usr/bin/env python3
"""
Minimal ORB descriptor extractor.

Produces one (N, 32) uint8 descriptor set per image and stores them in a
single .npz file (all descriptors concatenated plus per-image counts).
"""
import argparse
from pathlib import Path

import cv2
import numpy as np
from PIL import Image
from tqdm import tqdm

from binbow.descriptors import DESCRIPTOR_BYTES

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".ppm", ".pgm", ".tif", ".tiff"}


def build_orb(n_features=500):
    return cv2.ORB_create(nfeatures=n_features)


def load_gray(image):
    """Path, PIL image or array -> 2-D uint8 grayscale array."""
    if isinstance(image, (str, Path)):
        image = Image.open(image)
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("L"), dtype=np.uint8)
    arr = np.asarray(image)
    if arr.ndim == 3:
        # RGB, RGBA or LA arrays, converted like images read from disk
        if arr.shape[2] == 1:
            arr = arr[:, :, 0]
        else:
            return np.asarray(Image.fromarray(arr.astype(np.uint8)).convert("L"), dtype=np.uint8)
    return arr.astype(np.uint8)


def extract_orb(image, orb=None) -> np.ndarray:
    """
    ORB descriptors of one image.

    Args:
        image: Image path, PIL image or array
        orb: cv2.ORB instance to reuse (a default one is created otherwise)

    Returns:
        np.ndarray of shape (N, 32), dtype uint8; N is 0 when no keypoints are found
    """
    orb = orb or build_orb()
    _, descriptors = orb.detectAndCompute(load_gray(image), None)
    if descriptors is None:
        return np.empty((0, DESCRIPTOR_BYTES), dtype=np.uint8)
    return np.ascontiguousarray(descriptors, dtype=np.uint8)


def list_images(image_dir, max_images=None):
    paths = sorted(p for p in Path(image_dir).rglob("*") if p.suffix.lower() in IMAGE_SUFFIXES)
    return paths[:max_images] if max_images else paths


def extract_directory(image_dir, n_features=500, max_images=None):
    """
    Extract ORB descriptors for every image below ``image_dir``.

    Returns:
        (descriptor_sets, paths) with one (N_i, 32) array per image
    """
    orb = build_orb(n_features)
    descriptor_sets = []
    paths = []
    for path in tqdm(list_images(image_dir, max_images), desc="extract"):
        descriptor_sets.append(extract_orb(path, orb))
        paths.append(str(path))
    return descriptor_sets, paths


def save(out, descriptor_sets, paths):
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    counts = np.array([len(d) for d in descriptor_sets], dtype=np.int64)
    if descriptor_sets:
        descriptors = np.concatenate([np.asarray(d, dtype=np.uint8).reshape(-1, DESCRIPTOR_BYTES)
                                      for d in descriptor_sets])
    else:
        descriptors = np.empty((0, DESCRIPTOR_BYTES), dtype=np.uint8)
    np.savez_compressed(out, descriptors=descriptors, counts=counts, paths=np.array(paths, dtype=str))
    print(f"[INFO] saved {len(descriptors)} descriptors from {len(counts)} images to {out}")


def load_descriptor_sets(path):
    """Inverse of save(): returns (descriptor_sets, paths)."""
    with np.load(path, allow_pickle=False) as data:
        descriptors = data["descriptors"]
        counts = data["counts"]
        paths = [str(p) for p in data["paths"]]
    descriptor_sets = np.split(descriptors, np.cumsum(counts)[:-1]) if len(counts) else []
    return descriptor_sets, paths


# CLI
def parse_args():
    p = argparse.ArgumentParser(description="Extract ORB descriptors from a directory of images")
    p.add_argument("--image-dir", required=True, help="Directory searched recursively for images")
    p.add_argument("--output", default="data/descriptors/orb_descriptors.npz")
    p.add_argument("--n-features", type=int, default=500)
    p.add_argument("--max-images", type=int, default=None)
    return p.parse_args()


def main():
    args = parse_args()
    descriptor_sets, paths = extract_directory(args.image_dir, args.n_features, args.max_images)
    save(args.output, descriptor_sets, paths)


if __name__ == "__main__":
    main()
