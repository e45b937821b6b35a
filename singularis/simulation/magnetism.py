"""Mocked quantum magnetism: Hamiltonian construction and fabricated dynamics.

A :class:`MagneticHamiltonian` is a list of interaction terms over a
:class:`Lattice` of sites.  The simulation functions do not diagonalise
or evolve anything; they produce plausible time series and phase scans
from closed-form curves plus seeded noise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from itertools import product

import numpy as np

logger = logging.getLogger(__name__)

HAMILTONIAN_TYPES = ("ising", "heisenberg", "xy", "dzyaloshinskii_moriya", "kitaev", "custom")
OBSERVABLES = ("magnetization", "correlation", "energy")
PAULI = ("X", "Y", "Z")

NOISE_AMPLITUDE = 0.05
EQUILIBRIUM_ENERGY = -2.0
# Distance from the critical point below which the correlation length is capped
CRITICAL_CUTOFF = 1e-3


class CouplingModel(Enum):
    NEAREST_NEIGHBOR = "nearest_neighbor"
    NEXT_NEAREST_NEIGHBOR = "next_nearest_neighbor"
    ALL_TO_ALL = "all_to_all"
    LATTICE_2D = "lattice_2d"
    LATTICE_3D = "lattice_3d"
    CUSTOM = "custom"


class MagneticPhase(Enum):
    FERROMAGNETIC = "ferromagnetic"
    ANTIFERROMAGNETIC = "antiferromagnetic"
    PARAMAGNETIC = "paramagnetic"
    QUANTUM_CRITICAL = "quantum_critical"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Lattice
# ---------------------------------------------------------------------------

@dataclass
class Lattice:
    """Sites of a chain, square or cubic lattice.

    Sites are filled row-major into the smallest hypercube of the given
    dimensionality that holds ``size`` points, so the last row may be
    partial.
    """

    kind: str
    sites: list[tuple[int, ...]]

    @classmethod
    def build(cls, size: int, dimensionality: int = 1) -> Lattice:
        if size < 1:
            raise ValueError(f"system size must be >= 1, got {size}")
        if dimensionality not in (1, 2, 3):
            raise ValueError(f"dimensionality must be 1, 2 or 3, got {dimensionality}")
        kind = {1: "chain", 2: "square", 3: "cubic"}[dimensionality]
        side = math.ceil(round(size ** (1.0 / dimensionality), 9))
        coords = list(product(range(side), repeat=dimensionality))[:size]
        return cls(kind, coords)

    @property
    def size(self) -> int:
        return len(self.sites)

    def neighbor_pairs(self) -> list[tuple[int, int]]:
        """Index pairs ``(i, j)``, ``i < j``, one lattice step apart."""
        index = {s: i for i, s in enumerate(self.sites)}
        pairs = []
        for i, site in enumerate(self.sites):
            for axis in range(len(site)):
                nxt = list(site)
                nxt[axis] += 1
                j = index.get(tuple(nxt))
                if j is not None:
                    pairs.append((min(i, j), max(i, j)))
        return sorted(pairs)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "sites": [list(s) for s in self.sites]}

    @classmethod
    def from_dict(cls, data: dict) -> Lattice:
        return cls(data["kind"], [tuple(s) for s in data["sites"]])


# ---------------------------------------------------------------------------
# Hamiltonian
# ---------------------------------------------------------------------------

@dataclass
class MagneticHamiltonian:
    type: str
    system_size: int
    terms: list[dict] = field(default_factory=list)
    lattice: Lattice | None = None
    coupling_model: CouplingModel = CouplingModel.NEAREST_NEIGHBOR
    coupling_strength: float = 1.0
    external_field: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.1])
    anisotropy: float = 0.0

    @property
    def coupling_terms(self) -> list[dict]:
        return [t for t in self.terms if t["type"] == "coupling"]

    @property
    def field_terms(self) -> list[dict]:
        return [t for t in self.terms if t["type"] == "field"]

    def field_coefficient(self, default: float = 1.0) -> float:
        """Coefficient of the first field term."""
        fields = self.field_terms
        return float(fields[0]["coefficient"]) if fields else default

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "systemSize": self.system_size,
            "terms": self.terms,
            "lattice": self.lattice.to_dict() if self.lattice else None,
            "couplingModel": self.coupling_model.value,
            "couplingStrength": self.coupling_strength,
            "externalField": self.external_field,
            "anisotropy": self.anisotropy,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MagneticHamiltonian:
        lattice = data.get("lattice")
        return cls(
            type=data["type"],
            system_size=int(data["systemSize"]),
            terms=list(data.get("terms", [])),
            lattice=Lattice.from_dict(lattice) if lattice else None,
            coupling_model=CouplingModel(data.get("couplingModel", "nearest_neighbor")),
            coupling_strength=float(data.get("couplingStrength", 1.0)),
            external_field=[float(x) for x in data.get("externalField", [0.0, 0.0, 0.1])],
            anisotropy=float(data.get("anisotropy", 0.0)),
        )


def _coupling_pairs(model: CouplingModel, lattice: Lattice) -> list[tuple[int, int]]:
    n = lattice.size
    if model is CouplingModel.NEAREST_NEIGHBOR:
        return [(i, i + 1) for i in range(n - 1)]
    if model is CouplingModel.NEXT_NEAREST_NEIGHBOR:
        return [(i, j) for i in range(n) for j in (i + 1, i + 2) if j < n]
    if model is CouplingModel.ALL_TO_ALL:
        return [(i, j) for i in range(n) for j in range(i + 1, n)]
    if model in (CouplingModel.LATTICE_2D, CouplingModel.LATTICE_3D):
        return lattice.neighbor_pairs()
    return []


def _bond_paulis(kind: str, j: float, anisotropy: float, bond: int) -> list[tuple[str, float]]:
    """Pauli strings and coefficients placed on one bond."""
    if kind == "ising":
        return [("ZZ", j)]
    if kind == "heisenberg":
        return [("XX", j), ("YY", j), ("ZZ", j * (1 + anisotropy))]
    if kind == "xy":
        out = [("XX", j), ("YY", j)]
        if anisotropy:
            out.append(("ZZ", j * anisotropy))
        return out
    if kind == "dzyaloshinskii_moriya":
        d = anisotropy or 0.1 * j
        return [("XX", j), ("YY", j), ("ZZ", j), ("XY", d), ("YX", -d)]
    if kind == "kitaev":
        # Bond direction cycles x, y, z
        p = PAULI[bond % 3]
        return [(p + p, j)]
    return []


def _validate_custom_term(term: dict, size: int) -> dict:
    kind = term.get("type")
    if kind == "coupling":
        sites = [int(s) for s in term["sites"]]
        if len(sites) != 2 or not all(0 <= s < size for s in sites):
            raise ValueError(f"Invalid coupling sites {term['sites']} for system size {size}")
        return {"type": "coupling", "sites": sites, "pauli": str(term["pauli"]),
                "coefficient": float(term["coefficient"])}
    if kind == "field":
        site = int(term["site"])
        if not 0 <= site < size:
            raise ValueError(f"Invalid field site {site} for system size {size}")
        return {"type": "field", "site": site, "pauli": str(term["pauli"]),
                "coefficient": float(term["coefficient"])}
    raise ValueError(f"Unknown term type '{kind}'")


def create_magnetic_hamiltonian(params: dict) -> MagneticHamiltonian:
    """Build a :class:`MagneticHamiltonian` from request parameters.

    Parameters
    ----------
    params : dict
        ``type`` (default ``"ising"``), ``systemSize`` or ``spinCount``
        (default 8), ``couplingStrength``, ``couplingModel``,
        ``externalField`` (``[hx, hy, hz]``), ``transverseField`` (shortcut
        for ``[h, 0, 0]``), ``anisotropy`` and, for ``custom``,
        ``customTerms``.

    Raises
    ------
    ValueError
        On an unknown type or coupling model, a non-positive system size
        or a malformed custom term.
    """
    kind = params.get("type", "ising")
    if kind not in HAMILTONIAN_TYPES:
        raise ValueError(f"Unknown Hamiltonian type '{kind}'")
    size = int(params.get("systemSize", params.get("spinCount", 8)))
    if size < 1:
        raise ValueError(f"system size must be >= 1, got {size}")

    model = CouplingModel(params.get("couplingModel", CouplingModel.NEAREST_NEIGHBOR.value))
    strength = float(params.get("couplingStrength", 1.0))
    anisotropy = float(params.get("anisotropy", 0.0))
    if "transverseField" in params:
        external = [float(params["transverseField"]), 0.0, 0.0]
    else:
        external = [float(x) for x in params.get("externalField", [0.0, 0.0, 0.1])]
    if len(external) != 3:
        raise ValueError("externalField must have three components")

    dimensionality = {CouplingModel.LATTICE_2D: 2, CouplingModel.LATTICE_3D: 3}.get(model, 1)
    lattice = Lattice.build(size, dimensionality)

    terms: list[dict] = []
    if kind == "custom" or model is CouplingModel.CUSTOM:
        terms.extend(_validate_custom_term(t, size) for t in params.get("customTerms", []))
    if kind != "custom":
        for bond, (i, j) in enumerate(_coupling_pairs(model, lattice)):
            for pauli, coeff in _bond_paulis(kind, strength, anisotropy, bond):
                terms.append({"type": "coupling", "sites": [i, j], "pauli": pauli,
                              "coefficient": coeff})
        for site in range(size):
            for pauli, h in zip(PAULI, external):
                if h:
                    terms.append({"type": "field", "site": site, "pauli": pauli,
                                  "coefficient": h})

    logger.debug("Built %s Hamiltonian: %d sites, %d terms", kind, size, len(terms))
    return MagneticHamiltonian(
        type=kind,
        system_size=size,
        terms=terms,
        lattice=lattice,
        coupling_model=model,
        coupling_strength=strength,
        external_field=external,
        anisotropy=anisotropy,
    )


# ---------------------------------------------------------------------------
# Time evolution mock
# ---------------------------------------------------------------------------

@dataclass
class SimulationOptions:
    time: float = 10.0
    time_step: float = 0.1
    evolution_method: str = "trotter"
    error_mitigation: str = "none"
    observables: list[str] = field(default_factory=lambda: list(OBSERVABLES))
    shots: int = 1024
    include_entanglement_metrics: bool = False

    def __post_init__(self):
        if self.time_step <= 0:
            raise ValueError("timeStep must be positive")
        if self.time < 0:
            raise ValueError("time must be non-negative")

    @classmethod
    def from_dict(cls, data: dict) -> SimulationOptions:
        return cls(
            time=float(data.get("time", 10.0)),
            time_step=float(data.get("timeStep", 0.1)),
            evolution_method=data.get("evolutionMethod", "trotter"),
            error_mitigation=data.get("errorMitigation", "none"),
            observables=list(data.get("observables", OBSERVABLES)),
            shots=int(data.get("shots", 1024)),
            include_entanglement_metrics=bool(data.get("includeEntanglementMetrics", False)),
        )


def _noise(rng: np.random.Generator, n: int) -> np.ndarray:
    return NOISE_AMPLITUDE * (rng.random(n) - 0.5)


def simulate_quantum_magnetism(
    hamiltonian: MagneticHamiltonian,
    options: SimulationOptions | dict | None = None,
    rng: np.random.Generator | None = None,
) -> dict:
    """Fabricate a time evolution for ``hamiltonian``.

    Observables are decaying curves plus small noise: magnetization
    oscillates at the first field coefficient, correlation decays, energy
    relaxes towards -2.
    """
    if options is None:
        options = SimulationOptions()
    elif isinstance(options, dict):
        options = SimulationOptions.from_dict(options)
    rng = rng if rng is not None else np.random.default_rng()

    n_points = int(math.floor(options.time / options.time_step))
    t = np.arange(n_points) * options.time_step
    observables: dict[str, list[float]] = {}

    if "magnetization" in options.observables:
        h = hamiltonian.field_coefficient()
        observables["magnetization"] = (np.exp(-0.1 * t) * np.cos(h * t) + _noise(rng, n_points)).tolist()
    if "correlation" in options.observables:
        observables["correlation"] = (np.exp(-0.2 * t) + _noise(rng, n_points)).tolist()
    if "energy" in options.observables:
        observables["energy"] = (EQUILIBRIUM_ENERGY + np.exp(-0.3 * t) + _noise(rng, n_points)).tolist()

    size = hamiltonian.system_size
    magnetization = rng.random(size) * 2 - 1
    decay = np.exp(-0.5 * np.arange(size))
    correlation = decay[None, :] * (rng.random((size, size)) * 0.3 + 0.7)

    final_state: dict = {
        "magnetization": magnetization.tolist(),
        "correlation": correlation.tolist(),
    }
    if options.include_entanglement_metrics:
        final_state["entanglementEntropy"] = float(math.log2(size) * rng.random() * 0.8)

    depth = int(math.floor(options.time * 5))
    total_gates = depth * size * 2
    return {
        "hamiltonian": hamiltonian.to_dict(),
        "evolution": {"time": t.tolist(), "observables": observables},
        "finalState": final_state,
        "resourcesUsed": {
            "simulationTime": options.time * options.time_step * 10,
            "maxCircuitDepth": depth,
            "totalGates": total_gates,
            "twoQubitGates": int(total_gates * 0.3),
        },
    }


# ---------------------------------------------------------------------------
# Phase analysis
# ---------------------------------------------------------------------------

def analyze_quantum_phases(
    hamiltonian: MagneticHamiltonian,
    start: float,
    end: float,
    steps: int,
    param_name: str = "h",
    rng: np.random.Generator | None = None,
) -> dict:
    """Scan a control parameter across a mocked transition at ``p = 1``."""
    if steps < 2:
        raise ValueError("steps must be >= 2")
    rng = rng if rng is not None else np.random.default_rng()

    p = np.linspace(start, end, steps)
    order = np.where(p < 1, np.sqrt(np.clip(1 - p, 0, None)), 0.0)

    susceptibility = np.zeros(steps)
    dp = np.diff(p)
    with np.errstate(divide="ignore", invalid="ignore"):
        slopes = np.abs(np.diff(order) / dp)
    susceptibility[1:] = np.nan_to_num(slopes, nan=0.0, posinf=0.0)

    distance = np.maximum(np.abs(p - 1), CRITICAL_CUTOFF)
    correlation_length = 1 / distance + rng.random(steps) * 0.1
    energy_gap = np.abs(p - 1) * 2 + 0.05

    critical = [
        float(p[i]) for i in range(1, steps - 1)
        if susceptibility[i] > susceptibility[i - 1]
        and susceptibility[i] > susceptibility[i + 1]
        and susceptibility[i] > 1.0
    ]

    if critical:
        phases = [
            {"region": [start, critical[0]], "type": "ordered",
             "properties": {"symmetryBroken": True}},
            {"region": [critical[-1], end], "type": "disordered",
             "properties": {"symmetryBroken": False}},
        ]
    else:
        phases = [{"region": [start, end], "type": "single phase", "properties": {}}]

    return {
        "paramName": param_name,
        "paramValues": p.tolist(),
        "orderParameter": order.tolist(),
        "susceptibility": susceptibility.tolist(),
        "correlationLength": correlation_length.tolist(),
        "energyGap": energy_gap.tolist(),
        "criticalPoints": critical,
        "phases": phases,
        "universalityClass": "Ising" if hamiltonian.type == "ising" else "Unknown",
    }


# ---------------------------------------------------------------------------
# Magnetic systems
# ---------------------------------------------------------------------------

@dataclass
class QuantumMagneticSystem:
    id: str
    hamiltonian: MagneticHamiltonian
    dimensions: int
    spin_count: int
    spin_states: list[int]
    magnetization: list[float]
    correlations: list[list[float]]
    temperature: float
    in_external_field: bool
    phase: MagneticPhase = MagneticPhase.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hamiltonian": self.hamiltonian.to_dict(),
            "dimensions": self.dimensions,
            "spinCount": self.spin_count,
            "spinStates": self.spin_states,
            "magnetization": self.magnetization,
            "correlations": self.correlations,
            "temperature": self.temperature,
            "inExternalField": self.in_external_field,
            "phase": self.phase.value,
        }


def _random_id(prefix: str, rng: np.random.Generator) -> str:
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    return prefix + "".join(alphabet[i] for i in rng.integers(0, len(alphabet), size=9))


def calculate_magnetization(temperature: float) -> list[float]:
    """Mean-field style ``[mx, my, mz]`` at ``temperature``."""
    if temperature <= 0:
        raise ValueError("temperature must be positive")
    mz = 0.9 - temperature * 0.5 if temperature < 1.0 else 0.4 / temperature
    return [0.1, 0.1, mz]


def determine_magnetic_phase(magnetization, correlations, temperature: float) -> MagneticPhase:
    """Classify a thermal state from ``|mz|`` and the z-z correlation."""
    mz = abs(magnetization[2])
    if temperature < 0.5 and mz > 0.6:
        return MagneticPhase.FERROMAGNETIC
    if temperature < 0.5 and correlations[2][2] < -0.3:
        return MagneticPhase.ANTIFERROMAGNETIC
    if temperature < 0.8 and mz < 0.3:
        return MagneticPhase.QUANTUM_CRITICAL
    return MagneticPhase.PARAMAGNETIC


def _initial_phase(coupling: float, temperature: float) -> MagneticPhase:
    if coupling > 0:
        return MagneticPhase.FERROMAGNETIC if temperature < 1.0 else MagneticPhase.PARAMAGNETIC
    if coupling < 0:
        return MagneticPhase.ANTIFERROMAGNETIC if temperature < 1.0 else MagneticPhase.PARAMAGNETIC
    return MagneticPhase.UNKNOWN


def _current_phase(system: QuantumMagneticSystem) -> MagneticPhase:
    mz = abs(system.magnetization[2])
    if mz > 0.7:
        return MagneticPhase.FERROMAGNETIC
    if mz < 0.3 and system.spin_count > 1 and system.correlations[0][1] < -0.5:
        return MagneticPhase.ANTIFERROMAGNETIC
    if mz < 0.2:
        return MagneticPhase.QUANTUM_CRITICAL
    return MagneticPhase.PARAMAGNETIC


def create_quantum_magnetic_system(
    params: dict,
    rng: np.random.Generator | None = None,
) -> QuantumMagneticSystem:
    rng = rng if rng is not None else np.random.default_rng()
    hamiltonian = create_magnetic_hamiltonian(params)
    n = hamiltonian.system_size
    temperature = float(params.get("temperature", 0.1))
    return QuantumMagneticSystem(
        id=_random_id("qms_", rng),
        hamiltonian=hamiltonian,
        dimensions=int(params.get("dimensions", 2)),
        spin_count=n,
        spin_states=[0] * n,
        magnetization=[0.0, 0.0, 1.0],
        correlations=np.eye(n).tolist(),
        temperature=temperature,
        in_external_field=any(abs(c) > 0.001 for c in hamiltonian.external_field),
        phase=_initial_phase(hamiltonian.coupling_strength, temperature),
    )


def evolve_quantum_magnetic_system(
    system: QuantumMagneticSystem,
    time_steps: int = 100,
    step_size: float = 0.01,
    rng: np.random.Generator | None = None,
) -> QuantumMagneticSystem:
    """Return an evolved copy; observables drift by up to +/-1% per step.

    ``step_size`` is recorded for interface parity but does not change
    the drift.
    """
    if time_steps < 0:
        raise ValueError("time_steps must be non-negative")
    rng = rng if rng is not None else np.random.default_rng()

    mag = np.asarray(system.magnetization, dtype=float)
    corr = np.asarray(system.correlations, dtype=float)
    for _ in range(time_steps):
        mag = mag * (0.99 + 0.02 * rng.random(mag.shape))
        corr = corr * (0.99 + 0.02 * rng.random(corr.shape))

    evolved = QuantumMagneticSystem(
        id=system.id,
        hamiltonian=system.hamiltonian,
        dimensions=system.dimensions,
        spin_count=system.spin_count,
        spin_states=list(system.spin_states),
        magnetization=mag.tolist(),
        correlations=corr.tolist(),
        temperature=system.temperature,
        in_external_field=system.in_external_field,
    )
    evolved.phase = _current_phase(evolved)
    logger.debug("Evolved %s for %d steps (dt=%g): %s",
                 system.id, time_steps, step_size, evolved.phase.value)
    return evolved


def calculate_magnetization_curve(
    min_temperature: float = 0.01,
    max_temperature: float = 5.0,
    points: int = 50,
) -> dict:
    if points < 2:
        raise ValueError("points must be >= 2")
    temps = np.linspace(min_temperature, max_temperature, points)
    return {
        "temperatures": temps.tolist(),
        "magnetizations": [calculate_magnetization(float(t)) for t in temps],
    }


def simulate_magnetic_system(
    hamiltonian: MagneticHamiltonian,
    temperature: float = 0.1,
    precision: float = 0.001,
    error_mitigation: str = "zero_noise_extrapolation",
    rng: np.random.Generator | None = None,
) -> dict:
    """Thermodynamic summary: spectrum, susceptibility, specific heat, phase."""
    rng = rng if rng is not None else np.random.default_rng()
    levels = min(2 ** min(hamiltonian.system_size, 10), 10)
    spectrum = [-2 + 4 * i / levels for i in range(levels)]
    magnetization = calculate_magnetization(temperature)
    correlation = [[1.0, 0.3, 0.1], [0.3, 1.0, 0.3], [0.1, 0.3, 1.0]]
    phase = determine_magnetic_phase(magnetization, correlation, temperature)
    return {
        "id": _random_id("sim_", rng),
        "energySpectrum": spectrum,
        "magnetization": magnetization,
        "correlationFunction": correlation,
        "susceptibility": 1.0 / temperature if temperature < 1.0 else 0.1,
        "specificHeat": temperature * 2 if temperature < 1.0 else 2.0 / math.sqrt(temperature),
        "phaseType": phase.value,
        "simulationTime": float(rng.random() * 5 + 0.1),
        "errorEstimate": precision * (0.1 if error_mitigation == "zero_noise_extrapolation" else 0.5),
    }


def generate_magnetic_hamiltonian_code(hamiltonian: MagneticHamiltonian) -> str:
    """Render SINGULARIS PRIME source that rebuilds ``hamiltonian``."""
    kind = hamiltonian.type
    field_str = ", ".join(f"{x:g}" for x in hamiltonian.external_field)
    lines = [
        "// SINGULARIS PRIME Quantum Magnetism Code",
        "quantum module QuantumMagnetism {",
        f"  // Create a {kind} model Hamiltonian",
        f"  export function create{kind.capitalize()}Hamiltonian() {{",
        f"    const hamiltonian = createHamiltonian({hamiltonian.system_size});",
        f"    const couplingStrength = {hamiltonian.coupling_strength:g};",
        f'    const couplingModel = "{hamiltonian.coupling_model.value}";',
        f"    const externalField = [{field_str}];",
    ]
    if hamiltonian.anisotropy:
        lines.append(f"    const anisotropy = {hamiltonian.anisotropy:g};")
    lines.append("")
    for term in hamiltonian.coupling_terms:
        i, j = term["sites"]
        lines.append(f'    hamiltonian.addInteraction({i}, {j}, "{term["pauli"].lower()}", '
                     f'{term["coefficient"]:g});')
    for term in hamiltonian.field_terms:
        lines.append(f'    hamiltonian.addField({term["site"]}, "{term["pauli"].lower()}", '
                     f'{term["coefficient"]:g});')
    lines += ["", "    return hamiltonian;", "  }", "}"]
    return "\n".join(lines)
