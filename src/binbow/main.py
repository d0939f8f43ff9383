#!/usr/bin/env python3
"""
Main pipeline for image matching with binary bag-of-words vocabulary trees.

Usage:
    binbow --extract --image-dir data/images
    binbow --build --tree-k 10 --tree-depth 3
    binbow --query --query-idx 0
    binbow --evaluate --num-queries 100
"""

import argparse
import logging
import time
from pathlib import Path

import numpy as np

from binbow.bow import Norm, transform, transform_many
from binbow.builder import build_vocabulary
from binbow.config import DEFAULT_VOCABULARY_PARAMS, INIT_METHODS, VocabularyConfig, Weighting
from binbow.errors import BowError
from binbow.feature_extraction import extract_directory, load_descriptor_sets, save
from binbow.scoring import rank
from binbow.storage import load_vocabulary, save_vocabulary


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_or_extract_descriptors(args):
    """Load descriptor sets from file or extract them from the image directory."""
    descriptors_path = Path(args.descriptors_path)

    if descriptors_path.exists() and not args.extract:
        print(f"[INFO] Loading existing descriptors from {descriptors_path}")
        descriptor_sets, paths = load_descriptor_sets(descriptors_path)
        print(f"[INFO] Loaded {sum(len(d) for d in descriptor_sets)} descriptors from {len(paths)} images")
        return descriptor_sets, paths

    if not args.image_dir:
        raise SystemExit(f"[ERROR] {descriptors_path} not found and no --image-dir given")
    print(f"[INFO] Extracting ORB descriptors from {args.image_dir}")
    descriptor_sets, paths = extract_directory(args.image_dir, args.n_features, args.max_images)
    save(descriptors_path, descriptor_sets, paths)
    return descriptor_sets, paths


def build_tree(descriptor_sets, args):
    """Build vocabulary tree from descriptor sets."""
    config = VocabularyConfig.from_params({
        "k": args.tree_k,
        "depth": args.tree_depth,
        "seed": args.seed,
        "weighting": args.weighting,
        "init": args.init,
        "n_init": args.n_init,
        "n_jobs": args.n_jobs,
    })
    print(f"[INFO] Building vocabulary tree with k={config.k}, depth={config.depth}")
    start = time.time()
    vocabulary = build_vocabulary(descriptor_sets, config=config, progress=True)
    elapsed = time.time() - start
    print(f"[INFO] Tree built in {elapsed:.2f}s (seed={vocabulary.seed})")
    print(vocabulary.stats())
    return vocabulary


def perturb(descriptors, rng, drop_ratio=0.1, flip_bits=4):
    """Simulate a revisit: drop some descriptors and flip a few bits in the rest."""
    keep = rng.random(len(descriptors)) >= drop_ratio
    kept = np.unpackbits(descriptors[keep], axis=1)
    for row in kept:
        row[rng.choice(row.size, size=flip_bits, replace=False)] ^= 1
    return np.packbits(kept, axis=1)


def evaluate_retrieval(vocabulary, descriptor_sets, norm, num_queries=100, seed=42, n_jobs=1):
    """
    Evaluate place recognition with perturbed revisits.

    Each query is a perturbed copy of a database image; it counts as correct
    when the source image ranks first.

    Returns:
        dict with recall_at_1, correct, total and the average / median query
        time in milliseconds
    """
    rng = np.random.default_rng(seed)
    database = transform_many(vocabulary, descriptor_sets, norm, n_jobs=n_jobs)
    candidates = [i for i, d in enumerate(descriptor_sets) if len(d)]
    if not candidates:
        print("[ERROR] No image has descriptors to query with")
        return {"recall_at_1": 0.0, "correct": 0, "total": 0,
                "avg_query_time_ms": 0.0, "median_query_time_ms": 0.0}
    query_indices = rng.choice(candidates, size=min(num_queries, len(candidates)), replace=False)

    correct = 0
    query_times = []
    print(f"\n[EVAL] Running {len(query_indices)} queries...")
    for q_idx in query_indices:
        query_desc = perturb(descriptor_sets[q_idx], rng)
        start = time.time()
        ranking = rank(transform(vocabulary, query_desc, norm), database, top_k=1)
        query_times.append(time.time() - start)
        if ranking and ranking[0][0] == q_idx:
            correct += 1

    n = len(query_indices)
    accuracy = correct / n
    avg_time = float(np.mean(query_times))
    median_time = float(np.median(query_times))

    print(f"\n{'='*50}")
    print("EVALUATION RESULTS")
    print(f"{'='*50}")
    print(f"Total queries:     {n}")
    print(f"Correct matches:   {correct}")
    print(f"Recall@1:          {accuracy*100:.2f}%")
    print(f"Avg query time:    {avg_time*1000:.4f}ms")
    print(f"{'='*50}\n")

    return {"recall_at_1": accuracy, "correct": correct, "total": n,
            "avg_query_time_ms": avg_time * 1000, "median_query_time_ms": median_time * 1000}


def run_single_query(args, vocabulary, descriptor_sets, paths, norm):
    """Rank every image against one query image."""
    query_idx = args.query_idx
    if query_idx < 0 or query_idx >= len(descriptor_sets):
        print(f"[ERROR] Invalid query index {query_idx}. Must be 0-{len(descriptor_sets)-1}")
        return

    database = transform_many(vocabulary, descriptor_sets, norm)
    start = time.time()
    ranking = rank(database[query_idx], database, top_k=args.top_k)
    elapsed = time.time() - start

    print(f"\n{'='*50}")
    print(f"QUERY {query_idx}: {paths[query_idx]}")
    print(f"{'='*50}")
    for position, (idx, score) in enumerate(ranking, start=1):
        print(f"Rank #{position}: {paths[idx]} (score: {score:.6f})")
    print(f"Time:  {elapsed*1000:.4f}ms")
    print(f"{'='*50}\n")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Image matching pipeline using binary bag-of-words vocabulary trees"
    )

    # Mode selection
    p.add_argument("--extract", action="store_true", help="(Re-)extract descriptors from --image-dir")
    p.add_argument("--build", action="store_true", help="Build vocabulary from descriptors")
    p.add_argument("--query", action="store_true", help="Run a single query")
    p.add_argument("--evaluate", action="store_true", help="Evaluate retrieval on perturbed revisits")

    # Paths
    p.add_argument("--image-dir", default=None, help="Directory of images to extract from")
    p.add_argument("--descriptors-path", default="data/descriptors/orb_descriptors.npz")
    p.add_argument("--vocabulary-path", default="data/vocabularies/vocabulary.npz")

    # Tree parameters
    p.add_argument("--tree-k", type=int, default=10, help="Branching factor for vocabulary tree")
    p.add_argument("--tree-depth", type=int, default=3, help="Depth of vocabulary tree")
    p.add_argument("--weighting", choices=[w.value for w in Weighting], default=Weighting.TF_IDF.value)
    p.add_argument("--norm", choices=[n.value for n in Norm], default=Norm.L2.value)
    p.add_argument("--init", choices=INIT_METHODS, default=DEFAULT_VOCABULARY_PARAMS["init"],
                   help="Centroid seeding for each cluster step")
    p.add_argument("--n-init", type=int, default=DEFAULT_VOCABULARY_PARAMS["n_init"],
                   help="Seeded runs per cluster step, the lowest-distortion one is kept")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--n-jobs", type=int, default=1)

    # Query / evaluation parameters
    p.add_argument("--query-idx", type=int, default=0, help="Index of image to use as query")
    p.add_argument("--top-k", type=int, default=10)
    p.add_argument("--num-queries", type=int, default=100, help="Number of queries for evaluation")

    # Feature extraction parameters
    p.add_argument("--n-features", type=int, default=500)
    p.add_argument("--max-images", type=int, default=None)

    p.add_argument("--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    if not (args.extract or args.build or args.query or args.evaluate):
        print("[INFO] No mode selected. Use --extract, --build, --query, or --evaluate")
        print("[INFO] Running full pipeline: build + evaluate")
        args.build = True
        args.evaluate = True

    descriptor_sets, paths = load_or_extract_descriptors(args)
    vocabulary_path = Path(args.vocabulary_path)
    norm = Norm(args.norm)

    try:
        if args.build:
            vocabulary = build_tree(descriptor_sets, args)
            save_vocabulary(vocabulary, vocabulary_path)
            print(f"[INFO] Vocabulary saved to {vocabulary_path}")
        elif args.query or args.evaluate:
            if not vocabulary_path.exists():
                print(f"[ERROR] Vocabulary not found at {vocabulary_path}. Run with --build first.")
                return 1
            vocabulary = load_vocabulary(vocabulary_path)
            print(f"[INFO] Vocabulary loaded from {vocabulary_path}: {vocabulary!r}")

        if args.query:
            run_single_query(args, vocabulary, descriptor_sets, paths, norm)
        if args.evaluate:
            evaluate_retrieval(vocabulary, descriptor_sets, norm, num_queries=args.num_queries,
                               seed=args.seed if args.seed is not None else 42)
    except BowError as e:
        print(f"[ERROR] {e}")
        logging.debug("Pipeline failed", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
