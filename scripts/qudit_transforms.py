"""Apply each qudit transformation to a random state and report the result.

Usage:
    python scripts/qudit_transforms.py --dimension 37 --seed 7
    python scripts/qudit_transforms.py --dimension 8 --plot bars.png --output transforms.json
"""

from __future__ import annotations

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np

from singularis.core.export import FigureExporter
from singularis.simulation.qudit import (
    MAX_DIMENSIONS, TransformationType, measure_quantum_state, transform_state,
)


def run_transforms(dimension: int, shots: int, seed: int) -> list[dict]:
    rng = np.random.default_rng(seed)
    state = rng.random(dimension)
    state = (state / np.linalg.norm(state)).tolist()

    results = []
    for kind in TransformationType:
        out = transform_state(state, kind)
        probs = np.square(out)
        outcomes = np.bincount(
            [measure_quantum_state(out, rng)[0] for _ in range(shots)],
            minlength=dimension,
        )
        results.append({
            "transformation": kind.value,
            "norm": float(np.sqrt(probs.sum())),
            "max_probability": float(probs.max()),
            "most_likely": int(probs.argmax()),
            "sampled_counts": outcomes.tolist(),
            "state": out,
        })
    return results


def main():
    parser = argparse.ArgumentParser(description="Qudit transformation survey")
    parser.add_argument("--dimension", type=int, default=MAX_DIMENSIONS)
    parser.add_argument("--shots", type=int, default=256)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", type=str, default=None)
    parser.add_argument("--plot", type=str, default=None,
                        help="Write the FOURIER probability bars (.png or .svg)")
    args = parser.parse_args()

    print(f"Running qudit transforms: d={args.dimension}, shots={args.shots}, seed={args.seed}")
    results = run_transforms(args.dimension, args.shots, args.seed)

    if args.plot:
        fourier = next(r for r in results if r["transformation"] == TransformationType.FOURIER.value)
        FigureExporter.export_qudit_probabilities(
            np.square(fourier["state"]).tolist(), args.plot,
            title=f"FOURIER transform, d={args.dimension}")
        print(f"Figure saved to {args.plot}")

    output = {
        "experiment": "qudit_transforms",
        "dimension": args.dimension,
        "seed": args.seed,
        "results": results,
    }
    if args.output:
        with open(args.output, "w") as f:
            json.dump(output, f, indent=2)
        print(f"Results saved to {args.output}")
    else:
        print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
