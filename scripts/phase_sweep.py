"""Magnetic phase sweep: order parameter, susceptibility and gap vs a field.

Usage:
    python scripts/phase_sweep.py --model ising --size 8 --seed 42
    python scripts/phase_sweep.py --model heisenberg --start 0 --end 3 --steps 61 --plot scan.png
"""

from __future__ import annotations

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np

from singularis.core.export import FigureExporter
from singularis.simulation.magnetism import (
    HAMILTONIAN_TYPES, analyze_quantum_phases, create_magnetic_hamiltonian,
    simulate_quantum_magnetism,
)


def run_sweep(model: str, size: int, start: float, end: float, steps: int,
              seed: int) -> dict:
    rng = np.random.default_rng(seed)
    hamiltonian = create_magnetic_hamiltonian({
        "type": model,
        "systemSize": size,
        "transverseField": 1.0,
    })
    scan = analyze_quantum_phases(hamiltonian, start, end, steps, "h", rng)
    evolution = simulate_quantum_magnetism(hamiltonian, {"time": 5.0, "timeStep": 0.1}, rng)
    return {"hamiltonian": hamiltonian.to_dict(), "scan": scan, "evolution": evolution}


def main():
    parser = argparse.ArgumentParser(description="Magnetic phase sweep experiment")
    parser.add_argument("--model", choices=[m for m in HAMILTONIAN_TYPES if m != "custom"],
                        default="ising")
    parser.add_argument("--size", type=int, default=8)
    parser.add_argument("--start", type=float, default=0.0)
    parser.add_argument("--end", type=float, default=2.0)
    parser.add_argument("--steps", type=int, default=41)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", type=str, default=None)
    parser.add_argument("--plot", type=str, default=None,
                        help="Write the phase scan figure (.png or .svg)")
    args = parser.parse_args()

    print(f"Running phase sweep: model={args.model}, size={args.size}, "
          f"h=[{args.start:.3f}, {args.end:.3f}], steps={args.steps}, seed={args.seed}")

    result = run_sweep(args.model, args.size, args.start, args.end, args.steps, args.seed)
    scan = result["scan"]
    print(f"Critical points: {scan['criticalPoints']} ({scan['universalityClass']})")

    output = {
        "experiment": "phase_sweep",
        "model": args.model,
        "size": args.size,
        "seed": args.seed,
        "results": scan,
    }

    if args.plot:
        FigureExporter.export_phase_scan(scan, args.plot)
        print(f"Figure saved to {args.plot}")

    if args.output:
        with open(args.output, "w") as f:
            json.dump(output, f, indent=2)
        print(f"Results saved to {args.output}")
    else:
        print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
