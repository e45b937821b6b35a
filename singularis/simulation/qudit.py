"""Mocked high-dimensional quantum states (qudits).

States are real amplitude vectors: there are no complex numbers and no
tensor products here.  Two layers live in this module:

* plain-vector helpers (:func:`generate_initial_state`,
  :func:`transform_state`, :func:`generate_entangled_state`,
  :func:`measure_quantum_state`) used by the 37-dimensional demo, and
* :class:`HighDimensionalQudit`, which pairs amplitudes with phases and
  entanglement metadata.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = 37
MAX_DIMENSIONS = 37


class TransformationType(Enum):
    FOURIER = "FOURIER"
    HADAMARD_GEN = "HADAMARD_GEN"
    PHASE_SHIFT = "PHASE_SHIFT"
    CYCLIC = "CYCLIC"
    HYPERBOLIC = "HYPERBOLIC"


class EntanglementType(Enum):
    GHZ = "GHZ"
    W = "W"
    CLUSTER = "CLUSTER"
    HIGHD_BELL = "HIGHD_BELL"


QUDIT_ENTANGLEMENT_TYPES = ("bell_like", "ghz_like", "cluster_like", "maximum_entanglement")
QUDIT_TRANSFORMATIONS = ("fourier", "phase", "permutation", "custom")


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        names = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Unknown {enum_cls.__name__} '{value}'. Expected one of: {names}")


def _normalized(vec: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm < 1e-12:
        # Nothing left to normalise; fall back to the uniform state
        return np.full(len(vec), 1.0 / math.sqrt(len(vec)))
    return vec / norm


# ---------------------------------------------------------------------------
# Plain state vectors
# ---------------------------------------------------------------------------

def generate_initial_state(dimension: int) -> list[float]:
    """Uniform superposition over ``dimension`` basis states."""
    if dimension < 1:
        raise ValueError(f"dimension must be >= 1, got {dimension}")
    return [1.0 / math.sqrt(dimension)] * dimension


def transform_state(state, kind: TransformationType | str) -> list[float]:
    """Apply one of the demo transformations and renormalise.

    Parameters
    ----------
    state : sequence of float
        Amplitudes; not modified.
    kind : TransformationType or str
        ``FOURIER``, ``HADAMARD_GEN``, ``PHASE_SHIFT``, ``CYCLIC`` or
        ``HYPERBOLIC``.

    Returns
    -------
    list[float]
        A new amplitude list whose squares sum to 1.
    """
    kind = _coerce(TransformationType, kind)
    psi = np.asarray(state, dtype=float)
    d = len(psi)
    if d == 0:
        raise ValueError("state must not be empty")
    idx = np.arange(d)

    if kind is TransformationType.FOURIER:
        # Real part of the DFT only
        result = np.cos(2 * np.pi * np.outer(idx, idx) / d) @ psi / math.sqrt(d)
    elif kind is TransformationType.HADAMARD_GEN:
        signs = np.where((np.bitwise_and.outer(idx, idx) % 2) == 0, 1.0, -1.0)
        result = signs @ psi / math.sqrt(d)
    elif kind is TransformationType.PHASE_SHIFT:
        result = psi * np.cos(idx * np.pi / d)
    elif kind is TransformationType.CYCLIC:
        result = np.roll(psi, -1)
    else:
        factor = 1.0 / (1.0 + 0.1 * np.abs(idx - d // 2))
        result = psi * factor

    return _normalized(result).tolist()


def generate_entangled_state(dimension: int, kind: EntanglementType | str) -> list[float]:
    """Simplified entangled state of length ``2 * dimension``."""
    if dimension < 1:
        raise ValueError(f"dimension must be >= 1, got {dimension}")
    kind = _coerce(EntanglementType, kind)
    size = dimension * 2
    state = np.zeros(size)

    if kind is EntanglementType.GHZ:
        state[0] = state[-1] = 1 / math.sqrt(2)
    elif kind is EntanglementType.W:
        state[:dimension] = 1 / math.sqrt(dimension)
    elif kind is EntanglementType.CLUSTER:
        state[:] = 1 / math.sqrt(size)
    else:
        state[0::2] = 1 / math.sqrt(dimension)

    return state.tolist()


def measure_quantum_state(state, rng: np.random.Generator | None = None) -> tuple[int, list[float]]:
    """Sample an outcome with probability ``amp**2`` and collapse onto it."""
    probs = np.asarray(state, dtype=float) ** 2
    if probs.size == 0:
        raise ValueError("state must not be empty")
    rng = rng if rng is not None else np.random.default_rng()
    cumulative = np.cumsum(probs)
    outcome = int(np.searchsorted(cumulative, rng.random(), side="right"))
    outcome = min(outcome, len(probs) - 1)
    collapsed = [0.0] * len(probs)
    collapsed[outcome] = 1.0
    return outcome, collapsed


# ---------------------------------------------------------------------------
# HighDimensionalQudit
# ---------------------------------------------------------------------------

@dataclass
class HighDimensionalQudit:
    dimensions: int
    amplitudes: list[float]
    phases: list[float]
    entanglement_level: float = 0.0
    entangled_with: list[str] = field(default_factory=list)

    def __post_init__(self):
        if len(self.amplitudes) != self.dimensions or len(self.phases) != self.dimensions:
            raise ValueError(
                f"Qudit of dimension {self.dimensions} needs {self.dimensions} amplitudes "
                f"and phases, got {len(self.amplitudes)} and {len(self.phases)}")

    @property
    def probabilities(self) -> list[float]:
        return [a * a for a in self.amplitudes]

    def copy(self) -> HighDimensionalQudit:
        return HighDimensionalQudit(
            self.dimensions, list(self.amplitudes), list(self.phases),
            self.entanglement_level, list(self.entangled_with),
        )

    def to_dict(self) -> dict:
        return {
            "dimensions": self.dimensions,
            "amplitudes": self.amplitudes,
            "phases": self.phases,
            "entanglementLevel": self.entanglement_level,
            "entangledWith": self.entangled_with,
        }

    @classmethod
    def from_dict(cls, data: dict) -> HighDimensionalQudit:
        return cls(
            dimensions=int(data["dimensions"]),
            amplitudes=[float(a) for a in data["amplitudes"]],
            phases=[float(p) for p in data.get("phases", [0.0] * int(data["dimensions"]))],
            entanglement_level=float(data.get("entanglementLevel", 0.0)),
            entangled_with=list(data.get("entangledWith", [])),
        )


@dataclass
class QuditMeasurementResult:
    outcome: int
    probability: float
    collapsed_state: HighDimensionalQudit
    entanglement_preservation: float
    measured_basis: str

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "probability": self.probability,
            "collapsedState": self.collapsed_state.to_dict(),
            "entanglementPreservation": self.entanglement_preservation,
            "measuredBasis": self.measured_basis,
        }


def _entanglement_id(prefix: str, rng: np.random.Generator) -> str:
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    return prefix + "".join(alphabet[i] for i in rng.integers(0, len(alphabet), size=7))


def create_high_dimensional_qudit(
    dimensions: int = DEFAULT_DIMENSIONS,
    initial_state=None,
    initial_phases=None,
) -> HighDimensionalQudit:
    """Create a qudit in equal superposition (or ``initial_state``).

    Default phases follow ``pi * i * (i + 1) / d``.
    """
    if dimensions < 2 or dimensions > MAX_DIMENSIONS:
        raise ValueError(f"Dimensions must be between 2 and {MAX_DIMENSIONS}")

    if initial_state:
        values = np.zeros(dimensions)
        given = np.asarray(initial_state[:dimensions], dtype=float)
        values[:len(given)] = given
        amplitudes = _normalized(values).tolist()
    else:
        amplitudes = generate_initial_state(dimensions)

    if initial_phases is not None:
        phases = [float(p) for p in initial_phases]
    else:
        phases = [math.pi * i * (i + 1) / dimensions for i in range(dimensions)]

    return HighDimensionalQudit(dimensions, amplitudes, phases)


def create_equal_superposition(qudit: HighDimensionalQudit, weights=None) -> HighDimensionalQudit:
    result = qudit.copy()
    if weights is not None and len(weights) == qudit.dimensions:
        result.amplitudes = _normalized(np.asarray(weights, dtype=float)).tolist()
    else:
        result.amplitudes = generate_initial_state(qudit.dimensions)
    return result


def entangle_qudits(
    qudit1: HighDimensionalQudit,
    qudit2: HighDimensionalQudit,
    entanglement_type: str = "maximum_entanglement",
    rng: np.random.Generator | None = None,
) -> tuple[HighDimensionalQudit, HighDimensionalQudit]:
    """Entangle two qudits of equal dimension, returning new copies."""
    if qudit1.dimensions != qudit2.dimensions:
        raise ValueError(
            f"Cannot entangle qudits of different dimensions: "
            f"{qudit1.dimensions} and {qudit2.dimensions}")
    if entanglement_type not in QUDIT_ENTANGLEMENT_TYPES:
        raise ValueError(f"Unknown entanglement type '{entanglement_type}'")

    rng = rng if rng is not None else np.random.default_rng()
    d = qudit1.dimensions
    a, b = qudit1.copy(), qudit2.copy()

    if entanglement_type == "ghz_like":
        amps = [0.0] * d
        amps[0] = amps[1] = 1 / math.sqrt(2)
        a.amplitudes, b.amplitudes = list(amps), list(amps)
    elif entanglement_type == "cluster_like":
        a.amplitudes = generate_initial_state(d)
        b.amplitudes = generate_initial_state(d)
        b.phases = [(a.phases[i] + math.pi * i) % (2 * math.pi) for i in range(d)]
    else:
        # bell_like and maximum_entanglement share the diagonal state
        a.amplitudes = generate_initial_state(d)
        b.amplitudes = generate_initial_state(d)

    eid = _entanglement_id("qudit_", rng)
    for q in (a, b):
        q.entanglement_level = 1.0
        q.entangled_with = [eid]
    return a, b


def measure_qudit(
    qudit: HighDimensionalQudit,
    basis: str = "computational",
    rng: np.random.Generator | None = None,
) -> QuditMeasurementResult:
    outcome, collapsed = measure_quantum_state(qudit.amplitudes, rng)
    entangled = bool(qudit.entangled_with)
    state = HighDimensionalQudit(
        qudit.dimensions, collapsed, [0.0] * qudit.dimensions,
        entanglement_level=0.5 if entangled else 0.0,
    )
    return QuditMeasurementResult(
        outcome=outcome,
        probability=qudit.probabilities[outcome],
        collapsed_state=state,
        entanglement_preservation=0.5 if entangled else 1.0,
        measured_basis=basis,
    )


def apply_qudit_transformation(
    qudit: HighDimensionalQudit,
    transformation: str,
    phase: float | None = None,
    matrix=None,
) -> HighDimensionalQudit:
    """Return a transformed copy of ``qudit``.

    ``phase`` applies to ``"phase"`` (default ``pi / d``); ``matrix`` is a
    ``d x d`` real matrix for ``"custom"`` and is ignored when its shape
    does not match.
    """
    if transformation not in QUDIT_TRANSFORMATIONS:
        raise ValueError(f"Unknown transformation '{transformation}'")

    result = qudit.copy()
    d = qudit.dimensions
    amps = np.asarray(qudit.amplitudes, dtype=float)

    if transformation == "fourier":
        result.amplitudes = transform_state(amps, TransformationType.FOURIER)
    elif transformation == "phase":
        step = math.pi / d if phase is None else float(phase)
        result.phases = [(p + step * i) % (2 * math.pi) for i, p in enumerate(qudit.phases)]
    elif transformation == "permutation":
        result.amplitudes = np.roll(amps, 1).tolist()
        result.phases = np.roll(np.asarray(qudit.phases), 1).tolist()
    elif matrix is not None:
        m = np.asarray(matrix, dtype=float)
        if m.shape == (d, d):
            result.amplitudes = _normalized(m @ amps).tolist()
        else:
            logger.warning("Ignoring custom matrix of shape %s for %d-dim qudit", m.shape, d)

    return result


def calculate_entanglement_entropy(qudit: HighDimensionalQudit) -> float:
    """``ln(d) * entanglement_level`` for entangled qudits, else 0."""
    if not qudit.entangled_with:
        return 0.0
    return math.log(qudit.dimensions) * qudit.entanglement_level


def create_ghz_state(
    dimensions: int = DEFAULT_DIMENSIONS,
    qudit_count: int = 3,
    rng: np.random.Generator | None = None,
) -> list[HighDimensionalQudit]:
    if qudit_count < 1:
        raise ValueError("qudit_count must be >= 1")
    rng = rng if rng is not None else np.random.default_rng()
    eid = _entanglement_id("ghz_", rng)
    qudits = []
    for _ in range(qudit_count):
        q = create_high_dimensional_qudit(dimensions)
        q.entanglement_level = 1.0
        q.entangled_with = [eid]
        qudits.append(q)
    return qudits


def generate_qudit_code(qudit: HighDimensionalQudit) -> str:
    """Render SINGULARIS PRIME source that recreates ``qudit``."""
    d = qudit.dimensions
    amps = ",\n".join(f"      {a:.6f}" for a in qudit.amplitudes)
    phases = ",\n".join(f"      {p:.6f}" for p in qudit.phases)
    lines = [
        f"// SINGULARIS PRIME Code - High-Dimensional Qudit ({d}D)",
        "quantum module HighDimensionalQuditExample {",
        "  export function createSpecificQudit() {",
        f"    // Create a {d}-dimensional qudit",
        f"    quantum state q{d} = createQuantumState({d});",
        "",
        f"    q{d}.amplitudes = [",
        amps,
        "    ];",
        "",
        f"    q{d}.phases = [",
        phases,
        "    ];",
        "",
        f"    return q{d};",
        "  }",
    ]
    if qudit.entangled_with:
        lines += [
            "",
            "  // This qudit is entangled with others",
            f"  // Entanglement level: {qudit.entanglement_level:.2f}",
        ]
    lines.append("}")
    return "\n".join(lines)
