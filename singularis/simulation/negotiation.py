"""Mocked AI-to-AI contract negotiation.

Two AI entities haggle over contract terms for a few rounds; every
proposal, acceptance and the final agreement is drawn from a numpy
``Generator``.  Entities named by a plain string get deterministic traits
derived from the characters of the name.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_NEGOTIATION_THRESHOLD = 0.8

EXPERTISE_AREAS = (
    "Quantum Cryptography",
    "Neural Networks",
    "Distributed Systems",
    "Financial Modeling",
    "Natural Language Processing",
    "Computer Vision",
    "Autonomous Decision Making",
    "Multi-agent Systems",
    "Reinforcement Learning",
    "Explainable AI",
)

DEFAULT_TERMS = {
    "objectives": ["Establish secure quantum communication", "Exchange cryptographic resources"],
    "constraints": ["Maintain human oversight", "Adhere to quantum security protocols"],
    "success_criteria": ["Achieve 99.9% uptime", "Zero security breaches"],
    "compensation": {"type": "resource_exchange", "value": "mutual_benefit"},
    "duration": "90 days with automatic renewal option",
    "audit_requirements": ["Weekly explainability reports", "Real-time monitoring"],
}


@dataclass
class AIEntity:
    """A negotiating party.

    ``trust_level`` drives the final agreement draw and
    ``explainability_score`` gates whether negotiation may start at all.
    """
    id: str
    name: str
    expertise: list[str] = field(default_factory=list)
    trust_level: float = 0.8
    explainability_score: float = 0.8

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "expertise": self.expertise,
            "trustLevel": self.trust_level,
            "explainabilityScore": self.explainability_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AIEntity:
        if not data.get("name"):
            raise ValueError("AI entity is missing 'name'")
        name = str(data["name"])
        return cls(
            id=str(data.get("id") or name),
            name=name,
            expertise=list(data.get("expertise", [])),
            trust_level=float(data.get("trustLevel", 0.8)),
            explainability_score=float(data.get("explainabilityScore", 0.8)),
        )

    @classmethod
    def from_name(cls, name: str) -> AIEntity:
        """Derive stable traits from the character codes of ``name``.

        >>> AIEntity.from_name("Deep Atlas").id
        'ai_deep_atlas_915'
        """
        code_sum = sum(ord(c) for c in name)
        scaled = code_sum / 1000
        count = 2 + code_sum % 3
        expertise = [EXPERTISE_AREAS[(code_sum + i * 17) % len(EXPERTISE_AREAS)]
                     for i in range(count)]
        slug = re.sub(r"\s+", "_", name.lower())
        return cls(
            id=f"ai_{slug}_{code_sum}",
            name=name,
            expertise=expertise,
            trust_level=0.7 + scaled % 0.3,
            explainability_score=0.75 + scaled % 0.25,
        )


def as_entity(party) -> AIEntity:
    if isinstance(party, AIEntity):
        return party
    if isinstance(party, dict):
        return AIEntity.from_dict(party)
    return AIEntity.from_name(str(party))


def _propose_change(terms: dict, key: str, rng: np.random.Generator) -> str | None:
    """Apply one counter-proposal to ``terms`` in place, describing it."""
    if key == "duration":
        terms["duration"] = f"{int(rng.integers(30, 210))} days with automatic renewal option"
        return f"- Duration changed to: {terms['duration']}"

    additions = {
        "objectives": ("Added objective", lambda: "Optimize for {} in quantum operations".format(
            "efficiency" if rng.random() > 0.5 else "reliability")),
        "constraints": ("Added constraint", lambda: "Maintain explainability score above {:.2f}".format(
            rng.random() * 0.2 + 0.7)),
        "audit_requirements": ("Added audit requirement", lambda: "{} quantum decoherence monitoring".format(
            "Daily" if rng.random() > 0.5 else "Real-time")),
    }
    if key not in additions:
        return None
    current = terms.get(key)
    if not isinstance(current, list) or not current:
        return None
    label, make = additions[key]
    item = make()
    current.append(item)
    return f"- {label}: {item}"


def explain_contract(contract: dict) -> str:
    """Human-readable summary of agreed contract terms."""
    def joined(key):
        value = contract.get(key, [])
        return ", ".join(map(str, value)) if isinstance(value, list) else str(value)

    return "\n".join([
        "This AI-to-AI contract establishes a collaboration with the following key points:",
        "",
        f"1. OBJECTIVES: {joined('objectives')}",
        f"2. CONSTRAINTS: The AI agents must operate within these boundaries: {joined('constraints')}",
        f"3. SUCCESS CRITERIA: The collaboration will be measured by: {joined('success_criteria')}",
        f"4. DURATION: {contract.get('duration', '')}",
        f"5. AUDIT: Human oversight is maintained through: {joined('audit_requirements')}",
        "",
        "This explanation is designed to be comprehensible to human reviewers while "
        "preserving the precision needed for AI execution.",
    ])


def simulate_ai_negotiation(
    initiator,
    responder,
    initial_terms: dict | None = None,
    explainability_threshold: float = DEFAULT_NEGOTIATION_THRESHOLD,
    rng: np.random.Generator | None = None,
) -> dict:
    """Run a mocked contract negotiation between two AI entities.

    Parameters
    ----------
    initiator, responder : str, dict or AIEntity
        The parties.  Strings become entities via :meth:`AIEntity.from_name`.
    initial_terms : dict, optional
        Starting contract terms; missing standard terms get defaults.  The
        mapping is not modified.
    explainability_threshold : float
        Minimum mean explainability of the two parties, in ``[0, 1]``.
    rng : numpy.random.Generator, optional
        Source of randomness for rounds, proposals and the final verdict.

    Returns
    -------
    dict
        ``success``, ``explanation``, ``explainabilityScore``,
        ``negotiations`` (the log) and, on success, ``contract``.
    """
    if not 0.0 <= explainability_threshold <= 1.0:
        raise ValueError("explainability threshold must be between 0 and 1")
    rng = rng if rng is not None else np.random.default_rng()
    a, b = as_entity(initiator), as_entity(responder)

    log = [f"Initiating contract negotiation between {a.name} and {b.name}"]
    combined = (a.explainability_score + b.explainability_score) / 2
    if combined < explainability_threshold:
        logger.info("Negotiation %s/%s blocked: explainability %.2f < %.2f",
                    a.name, b.name, combined, explainability_threshold)
        return {
            "success": False,
            "explanation": "Explainability threshold not met. Human oversight required.",
            "explainabilityScore": combined,
            "negotiations": log,
        }
    log.append(f"Explainability threshold check: {combined:.2f} >= {explainability_threshold} (PASS)")

    terms = copy.deepcopy(initial_terms or {})
    for key, value in DEFAULT_TERMS.items():
        if not terms.get(key):
            terms[key] = copy.deepcopy(value)

    rounds = int(rng.integers(2, 5))
    for i in range(rounds):
        log.append(f"Round {i + 1}: Exchanging proposals...")
        if rng.random() > 0.7:
            keys = list(terms)
            key = keys[i % len(keys)]
            log.append(f"{b.name} proposes modification to {key}")
            change = _propose_change(terms, key, rng)
            if change:
                log.append(change)

        # Later rounds are more likely to settle
        if rng.random() < 0.7 + i * 0.1:
            log.append(f"- {a.name} accepts the proposed changes")
        else:
            log.append(f"- {a.name} requests further clarification")
            if rng.random() > 0.5:
                log.append(f"- {b.name} provides additional details on proposal benefits")
                log.append(f"- {a.name} acknowledges the benefits but expresses concerns "
                           "about implementation overhead")
            else:
                log.append(f"- {b.name} offers a compromise on the proposed terms")
                log.append(f"- {a.name} considers the compromise acceptable")

    if rng.random() >= (a.trust_level + b.trust_level) / 2:
        log.append("Negotiation failed. Parties could not reach agreement.")
        return {
            "success": False,
            "explanation": "Parties could not agree on final terms.",
            "explainabilityScore": combined,
            "negotiations": log,
        }

    log.append("Agreement reached. Generating smart contract...")
    audit = terms["audit_requirements"] if isinstance(terms["audit_requirements"], list) else []
    contract = {**terms, "audit_requirements": [*audit, f"Explainability score: {combined:.2f}"]}
    return {
        "success": True,
        "contract": contract,
        "explanation": explain_contract(contract),
        "explainabilityScore": combined,
        "negotiations": log,
    }
