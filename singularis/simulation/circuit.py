"""Circuit model sent by the circuit designer, plus a heuristic simulator.

The simulator never builds a state vector. It recognises a few circuit
shapes (Bell pair, GHZ, uniform superposition) and reports the textbook
distribution for each.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

SELF_INVERSE_GATES = frozenset({"H", "X", "Y", "Z", "CNOT", "CZ", "SWAP"})
ENTANGLING_GATES = frozenset({"CNOT", "CZ"})
OPTIMIZATION_GOALS = {
    "fidelity": "maximizing the accuracy of quantum operations",
    "gate_count": "reducing the total number of quantum gates",
    "depth": "minimizing circuit depth for faster execution",
    "error_mitigation": "reducing susceptibility to quantum errors",
    "execution_time": "optimizing for fastest possible execution",
    "explainability": "ensuring operations are transparent and auditable",
}
MAX_LISTED_STATES = 8


@dataclass
class CircuitGate:
    """A gate placed on the designer grid."""
    gate: str
    targets: list[int] = field(default_factory=list)
    controls: list[int] = field(default_factory=list)
    position: int = 0
    angle: float | None = None

    @property
    def wires(self) -> list[int]:
        return self.targets + self.controls

    def to_dict(self) -> dict:
        d = {
            "gate": self.gate,
            "targets": self.targets,
            "controls": self.controls,
            "position": self.position,
        }
        if self.angle is not None:
            d["angle"] = self.angle
        return d

    @classmethod
    def from_dict(cls, data: dict) -> CircuitGate:
        if "gate" not in data:
            raise ValueError("gate entry is missing 'gate'")
        angle = data.get("angle")
        return cls(
            gate=str(data["gate"]).upper(),
            targets=[int(q) for q in data.get("targets", [])],
            controls=[int(q) for q in data.get("controls", [])],
            position=int(data.get("position", 0)),
            angle=float(angle) if angle is not None else None,
        )


@dataclass
class Circuit:
    gates: list[CircuitGate] = field(default_factory=list)

    @property
    def num_qubits(self) -> int:
        wires = [q for g in self.gates for q in g.wires]
        return max(wires) + 1 if wires else 0

    @property
    def depth(self) -> int:
        return max((g.position for g in self.gates), default=0) + 1

    def gate_names(self) -> list[str]:
        """Distinct gate names in order of first appearance."""
        return list(dict.fromkeys(g.gate for g in self.gates))

    def ordered(self) -> list[CircuitGate]:
        return sorted(self.gates, key=lambda g: g.position)

    def to_dict(self) -> dict:
        return {"gates": [g.to_dict() for g in self.gates]}

    @classmethod
    def from_dict(cls, data: dict | list) -> Circuit:
        items = data if isinstance(data, list) else data.get("gates", [])
        return cls([CircuitGate.from_dict(g) for g in items])


def _bits(i: int, n: int) -> str:
    return format(i, f"0{n}b")


def simulate_circuit(
    circuit: Circuit,
    explain: bool = False,
    rng: np.random.Generator | None = None,
) -> dict:
    """Heuristic outcome distribution for ``circuit``.

    Returns
    -------
    dict
        ``probabilities`` (bitstring -> probability), ``visualization``,
        ``statistics`` (``entanglement``, ``complexity``, ``depth``) and,
        when ``explain`` is set, an ``explanation`` string.

    Raises
    ------
    ValueError
        If the circuit has no gates or no gate touches a qubit.
    """
    if not circuit.gates:
        raise ValueError("Circuit has no gates")
    n = circuit.num_qubits
    if n == 0:
        raise ValueError("No gate targets a qubit")
    rng = rng if rng is not None else np.random.default_rng()

    names = {g.gate for g in circuit.gates}
    has_h = "H" in names
    entangled = has_h and bool(names & ENTANGLING_GATES)

    probabilities: dict[str, float] = {}
    if entangled and n == 2:
        probabilities = {"00": 0.5, "11": 0.5}
    elif entangled and n == 3:
        probabilities = {"000": 0.5, "111": 0.5}
    elif entangled and n > 3:
        states = min(MAX_LISTED_STATES, 2 ** n)
        base = 1 / states
        for i in range(states // 2):
            bits = _bits(i, n)
            flipped = "".join("1" if b == "0" else "0" for b in bits)
            noise = float(rng.random() * 0.1 - 0.05)
            probabilities[bits] = base + noise
            probabilities[flipped] = base - noise
    elif has_h:
        states = min(MAX_LISTED_STATES, 2 ** n)
        probabilities = {_bits(i, n): 1 / states for i in range(states)}
    else:
        probabilities = {"0" * n: 1.0}

    entanglement = 0.8 + rng.random() * 0.2 if entangled else rng.random() * 0.3
    result = {
        "probabilities": probabilities,
        "visualization": "Circuit visualization data",
        "statistics": {
            "entanglement": float(entanglement),
            "complexity": len(circuit.gates) / (n * 3) * 0.8,
            "depth": circuit.depth,
        },
    }
    if explain:
        result["explanation"] = _explain(circuit, n, entangled, has_h)
    return result


def _explain(circuit: Circuit, n: int, entangled: bool, has_h: bool) -> str:
    if entangled and n == 2:
        return ("This circuit creates a Bell state (|00> + |11>)/sqrt(2), which demonstrates "
                "quantum entanglement between two qubits. Bell states are fundamental to "
                "quantum teleportation and superdense coding protocols.")
    if entangled and n == 3:
        return ("This circuit appears to create a GHZ state (|000> + |111>)/sqrt(2), a "
                "maximally entangled state of three qubits. GHZ states are useful for "
                "testing quantum nonlocality and in quantum error correction.")
    if has_h:
        return (f"This circuit creates a uniform superposition of {n} qubits, placing each "
                f"qubit in an equal probability of being measured as 0 or 1. This is a "
                f"fundamental building block for many quantum algorithms.")
    return (f"This {n}-qubit circuit applies a series of gates including "
            f"{', '.join(circuit.gate_names())}. The resulting quantum state shows the "
            f"probability distribution seen in the results.")


def _cancels(a: CircuitGate, b: CircuitGate) -> bool:
    return (a.gate == b.gate
            and a.gate in SELF_INVERSE_GATES
            and a.targets == b.targets
            and a.controls == b.controls)


def optimize_circuit(circuit: Circuit, goal: str = "gate_count") -> dict:
    """Cancel adjacent self-inverse pairs acting on identical wires.

    Two gates are adjacent when no gate between them (in position order)
    touches any of their wires.  Cancellation repeats until stable.
    """
    if goal not in OPTIMIZATION_GOALS:
        raise ValueError(f"Unknown optimization goal '{goal}'")

    gates = circuit.ordered()
    removed = 0
    changed = True
    while changed:
        changed = False
        for i, gate in enumerate(gates):
            partner = None
            for j in range(i + 1, len(gates)):
                if set(gates[j].wires) & set(gate.wires):
                    partner = j
                    break
            if partner is not None and _cancels(gate, gates[partner]):
                del gates[partner]
                del gates[i]
                removed += 2
                changed = True
                break

    optimized = Circuit(gates)
    logger.debug("Optimization (%s) removed %d gates", goal, removed)
    return {
        "goal": goal,
        "goalDescription": OPTIMIZATION_GOALS[goal],
        "circuit": optimized.to_dict(),
        "originalGateCount": len(circuit.gates),
        "optimizedGateCount": len(gates),
        "removedGates": removed,
        "originalDepth": circuit.depth,
        "optimizedDepth": optimized.depth if gates else 0,
    }
