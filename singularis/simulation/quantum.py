"""Mocked entanglement and quantum key distribution.

Nothing here touches a state vector. Both functions draw the observable
outcome of a key exchange (eavesdropping, decoherence, sifting) from a
numpy ``Generator`` so that runs can be replayed with a seed.
"""

from __future__ import annotations

import datetime
import logging

import numpy as np

logger = logging.getLogger(__name__)

KEY_BITS = 256
EAVESDROP_PROBABILITY = 0.05
QKD_ERROR_RATE = 0.03
# BB84 QBER above which the channel is considered compromised
QBER_SECURITY_LIMIT = 0.11


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def simulate_quantum_entanglement(
    node_a: str,
    node_b: str,
    rng: np.random.Generator | None = None,
) -> dict:
    """Simulate establishing an entangled key channel between two nodes.

    Parameters
    ----------
    node_a, node_b : str
        Names of the two endpoints.
    rng : numpy.random.Generator, optional
        Source of randomness.  A fresh unseeded generator is used when
        omitted.

    Returns
    -------
    dict
        ``nodeA``, ``nodeB``, a 256-bit hex ``key``, ``securityLevel``,
        ``keyBits``, ``keyGenRate``, ``decoherenceRate``,
        ``isEavesdropping`` and an ISO ``timestamp``.
    """
    rng = rng if rng is not None else np.random.default_rng()

    is_eavesdropping = bool(rng.random() < EAVESDROP_PROBABILITY)
    decoherence_rate = float(rng.random() * 0.01)
    key_bytes = rng.integers(0, 256, size=KEY_BITS // 8, dtype=np.uint8)

    if is_eavesdropping:
        logger.warning("Eavesdropping detected on channel %s <-> %s", node_a, node_b)

    return {
        "nodeA": node_a,
        "nodeB": node_b,
        "key": key_bytes.tobytes().hex(),
        "securityLevel": "Compromised" if is_eavesdropping else "Quantum-Secure",
        "keyBits": KEY_BITS,
        "keyGenRate": int(KEY_BITS * (1 - decoherence_rate)),
        "decoherenceRate": decoherence_rate,
        "isEavesdropping": is_eavesdropping,
        "timestamp": _now(),
    }


def simulate_bell_state(rng: np.random.Generator | None = None) -> dict:
    """Measure a mocked |Phi+> Bell pair once."""
    rng = rng if rng is not None else np.random.default_rng()
    probabilities = {"00": 0.5, "11": 0.5, "01": 0.0, "10": 0.0}
    outcome = "00" if rng.random() < 0.5 else "11"
    return {
        "stateName": "Bell State |Phi+>",
        "stateVector": "(|00> + |11>)/sqrt(2)",
        "probabilities": probabilities,
        "measurement": outcome,
        "isEntangled": True,
    }


def simulate_qkd(bits: int = KEY_BITS, rng: np.random.Generator | None = None) -> dict:
    """Simulate a BB84 exchange: raw bits, basis sifting, QBER estimate.

    Twice ``bits`` raw bits are drawn so that roughly ``bits`` survive
    sifting.  A small sample of the sifted key is sacrificed to estimate
    the quantum bit error rate.
    """
    if bits < 1:
        raise ValueError("bits must be >= 1")
    rng = rng if rng is not None else np.random.default_rng()

    raw_len = bits * 2
    alice = rng.integers(0, 2, size=raw_len)
    same_basis = rng.random(raw_len) < 0.5
    flipped = rng.random(raw_len) < QKD_ERROR_RATE

    sifted = np.where(flipped, 1 - alice, alice)[same_basis]
    sample_len = min(100, int(len(sifted) * 0.1))
    if sample_len:
        qber = float(np.mean(rng.random(sample_len) < QKD_ERROR_RATE))
    else:
        qber = 0.0

    return {
        "protocol": "BB84",
        "rawKeyLength": raw_len,
        "siftedKeyLength": int(len(sifted)),
        "siftingRatio": float(len(sifted) / raw_len),
        "qber": qber,
        "estimatedSecurityLevel": (
            "Quantum-Secure" if qber < QBER_SECURITY_LIMIT else "Potentially Compromised"
        ),
        "key": "".join(str(int(b)) for b in sifted[sample_len:]),
        "timestamp": _now(),
    }
