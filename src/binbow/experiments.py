#!/usr/bin/env python3
"""
Experiment runner for binary bag-of-words vocabularies.

Builds vocabularies for several (k, depth) configurations and reports build
time, word count, greedy-descent quality against brute force, query time and
recall@1 on perturbed revisits.

Usage:
    binbow-experiments --quick          # Quick test with fewer configs
    binbow-experiments --full           # Full experiment suite
    binbow-experiments --custom --k-values 5 10 --depths 2 3 --num-queries 200
"""

import argparse
import csv
import json
import logging
import time
from datetime import datetime
from itertools import product
from pathlib import Path

import numpy as np

from binbow.bow import Norm
from binbow.brute_force import evaluate_agreement
from binbow.builder import build_vocabulary
from binbow.config import DEFAULT_VOCABULARY_PARAMS, INIT_METHODS
from binbow.feature_extraction import load_descriptor_sets
from binbow.main import evaluate_retrieval


class ExperimentRunner:
    """Runs experiments with different configurations."""

    def __init__(self, args):
        self.args = args
        self.results_dir = Path(args.results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.norm = Norm(args.norm)

        self.descriptor_sets = None
        self.paths = None
        self.sample = None

    def load_descriptors(self):
        """Load descriptor sets and draw the sample used for brute-force comparison."""
        print(f"[INFO] Loading descriptors from {self.args.descriptors_path}")
        self.descriptor_sets, self.paths = load_descriptor_sets(self.args.descriptors_path)
        corpus = np.concatenate(self.descriptor_sets) if self.descriptor_sets else np.empty((0, 32), np.uint8)
        print(f"[INFO] Loaded {len(corpus)} descriptors from {len(self.paths)} images")

        rng = np.random.default_rng(self.args.seed)
        size = min(self.args.agreement_sample, len(corpus))
        self.sample = corpus[rng.choice(len(corpus), size=size, replace=False)]

    def run_single_experiment(self, k, depth, num_queries):
        """Run a single experiment with given k and depth."""
        print(f"\n{'='*60}")
        print(f"EXPERIMENT: k={k}, depth={depth}, queries={num_queries}")
        print(f"{'='*60}")

        build_start = time.time()
        vocabulary = build_vocabulary(self.descriptor_sets, k=k, depth=depth, seed=self.args.seed,
                                      init=self.args.init, n_init=self.args.n_init,
                                      n_jobs=self.args.n_jobs)
        build_time = time.time() - build_start
        print(f"[INFO] Tree built in {build_time:.2f}s: {vocabulary!r}")

        agreement = evaluate_agreement(vocabulary, self.sample)
        retrieval = evaluate_retrieval(vocabulary, self.descriptor_sets, self.norm,
                                       num_queries=num_queries, seed=self.args.seed,
                                       n_jobs=self.args.n_jobs)
        num_queries = retrieval["total"]
        correct = retrieval["correct"]
        recall = retrieval["recall_at_1"]
        stats = vocabulary.stats()

        result = {
            "k": k,
            "depth": depth,
            "seed": str(vocabulary.seed),
            "num_words": stats.word_count,
            "num_nodes": stats.node_count,
            "mean_word_cluster_size": stats.mean_cluster_size,
            "tree_build_time_s": build_time,
            "word_agreement": agreement["word_agreement"],
            "distance_agreement": agreement["distance_agreement"],
            "mean_extra_distance": agreement["mean_extra_distance"],
            "greedy_time_ms": agreement["greedy_time_ms"],
            "brute_time_ms": agreement["brute_time_ms"],
            "num_queries": num_queries,
            "correct": correct,
            "recall_at_1": recall,
            "avg_query_time_ms": retrieval["avg_query_time_ms"],
            "median_query_time_ms": retrieval["median_query_time_ms"],
        }

        print(f"\nResults for k={k}, depth={depth}:")
        print(f"  Words:                {stats.word_count}")
        print(f"  Recall@1:             {recall*100:.2f}% ({correct}/{num_queries})")
        print(f"  Word agreement:       {agreement['word_agreement']*100:.2f}%")
        print(f"  Tree build time:      {build_time:.2f}s")
        print(f"  Avg query time:       {result['avg_query_time_ms']:.4f}ms")

        return result

    def run_experiments(self, configs, num_queries):
        """Run experiments for all (k, depth) configurations."""
        print(f"\n{'#'*60}")
        print("STARTING EXPERIMENT SUITE")
        print(f"{'#'*60}")
        print(f"Configurations: {configs}")
        print(f"Queries per experiment: {num_queries}")

        all_results = []
        total_start = time.time()
        for k, depth in configs:
            all_results.append(self.run_single_experiment(k, depth, num_queries))
        total_time = time.time() - total_start

        print(f"\n{'#'*60}")
        print(f"ALL EXPERIMENTS COMPLETED in {total_time:.2f}s")
        print(f"{'#'*60}")
        return all_results

    def save_results(self, results):
        """Save results to CSV and JSON files."""
        json_path = self.results_dir / f"experiment_results_{self.timestamp}.json"
        with open(json_path, "w") as f:
            json.dump(results, f, indent=2)
        print(f"[INFO] Results saved to {json_path}")

        csv_path = self.results_dir / f"experiment_results_{self.timestamp}.csv"
        if results:
            with open(csv_path, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=results[0].keys())
                writer.writeheader()
                writer.writerows(results)
            print(f"[INFO] Results saved to {csv_path}")

        return json_path, csv_path

    def print_summary_table(self, results):
        """Print a formatted summary table."""
        if not results:
            return
        print(f"\n{'='*100}")
        print("EXPERIMENT SUMMARY")
        print(f"{'='*100}")
        print(
            f"{'k':>4} | {'depth':>5} | {'Words':>8} | {'Recall@1':>9} | {'Word agr.':>9} | "
            f"{'Build Time':>10} | {'Avg Query':>12}"
        )
        print("-" * 100)
        for r in results:
            print(
                f"{r['k']:>4} | {r['depth']:>5} | {r['num_words']:>8} | "
                f"{r['recall_at_1']*100:>8.2f}% | {r['word_agreement']*100:>8.2f}% | "
                f"{r['tree_build_time_s']:>9.2f}s | {r['avg_query_time_ms']:>10.4f}ms"
            )
        print("-" * 100)

        best_recall = max(results, key=lambda x: x["recall_at_1"])
        best_speed = min(results, key=lambda x: x["avg_query_time_ms"])
        print(f"\nBest recall@1:   k={best_recall['k']}, depth={best_recall['depth']} "
              f"({best_recall['recall_at_1']*100:.2f}%)")
        print(f"Fastest queries: k={best_speed['k']}, depth={best_speed['depth']} "
              f"({best_speed['avg_query_time_ms']:.4f}ms avg)")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Run experiments on binary BoW vocabularies")

    p.add_argument("--quick", action="store_true", help="Quick test with fewer configurations")
    p.add_argument("--full", action="store_true", help="Full experiment suite")
    p.add_argument("--custom", action="store_true", help="Custom experiment with specified parameters")

    p.add_argument("--k-values", type=int, nargs="+", default=[5, 10],
                   help="Branching factors to test")
    p.add_argument("--depths", type=int, nargs="+", default=[2, 3], help="Tree depths to test")
    p.add_argument("--num-queries", type=int, default=100, help="Number of queries per experiment")
    p.add_argument("--agreement-sample", type=int, default=5000,
                   help="Descriptors compared against brute force per experiment")
    p.add_argument("--norm", choices=[n.value for n in Norm], default=Norm.L2.value)
    p.add_argument("--init", choices=INIT_METHODS, default=DEFAULT_VOCABULARY_PARAMS["init"],
                   help="Centroid seeding for each cluster step")
    p.add_argument("--n-init", type=int, default=DEFAULT_VOCABULARY_PARAMS["n_init"])
    p.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility")
    p.add_argument("--n-jobs", type=int, default=1)

    p.add_argument("--descriptors-path", default="data/descriptors/orb_descriptors.npz")
    p.add_argument("--results-dir", default="data/results", help="Directory to save results")
    p.add_argument("--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if args.quick:
        configs = [(5, 2), (10, 2)]
        num_queries = 50
        print("[MODE] Quick experiment")
    elif args.full:
        configs = list(product([2, 4, 6, 8, 10, 16], [2, 3, 4]))
        num_queries = 200
        print("[MODE] Full experiment suite")
    elif args.custom:
        configs = list(product(args.k_values, args.depths))
        num_queries = args.num_queries
        print("[MODE] Custom experiment")
    else:
        configs = [(5, 3), (10, 2), (10, 3)]
        num_queries = 100
        print("[MODE] Default experiment")

    runner = ExperimentRunner(args)
    runner.load_descriptors()
    results = runner.run_experiments(configs, num_queries)
    runner.save_results(results)
    runner.print_summary_table(results)

    print("\n[DONE] Experiments completed!")


if __name__ == "__main__":
    main()
