"""Assistant operations over the active AI provider.

Every operation asks the active provider first, unless that provider is
the local fallback.  Any failure (no provider, network error, malformed
reply) is logged and answered with a locally computed heuristic result
instead of being raised.
"""

from __future__ import annotations

import json
import logging
import re

from .providers import FallbackProvider, ProviderRegistry, build_registry

logger = logging.getLogger(__name__)

DETAIL_LEVELS = ("basic", "moderate", "comprehensive")
DEFAULT_EXPLAINABILITY_THRESHOLD = 0.8

_ANALYZE_PROMPT = """You are an expert in the SINGULARIS PRIME programming language, a quantum-secure, \
AI-native language designed for human-auditable AI systems.

Analyze the provided code at the "{level}" level. Explain the quantum operations, AI governance \
mechanisms, security features and human oversight, and any potential risks or optimizations."""

_EXPLAIN_PROMPT = """You are an expert in quantum computing who explains complex concepts accessibly.

Explain the provided quantum operation, its parameters and results. Include a simple analogy, \
the real-world significance, how results differ from classical computing, and security implications."""

_PARADOX_PROMPT = """You are an expert in quantum information theory and paradox resolution.

Return a JSON object with keys recommendedApproach, justification, quantumPrinciples (array) \
and potentialRisks (array)."""

_DOC_PROMPT = """You are a documentation expert for the SINGULARIS PRIME programming language.

Generate Markdown documentation at the "{level}" detail level. Explain key elements, highlight \
human oversight mechanisms and note security and quantum features."""

_EXPLAINABILITY_PROMPT = """You are an AI explainability assessment system for the SINGULARIS PRIME language.

Evaluate the code against a threshold of {pct:.0f}% human-understandability. Return a JSON object \
with keys score (0.0-1.0), analysis (string) and improvements (array of strings)."""

_SUGGEST_PROMPT = """You are an expert SINGULARIS PRIME programmer.

Generate SINGULARIS PRIME code for the user's description. Key constructs: quantumKey, contract, \
deployModel, syncLedger, resolveParadox, enforce explainabilityThreshold. AI operations must keep \
human oversight."""

_NEGOTIATE_PROMPT = """You are an expert AI governance system for the SINGULARIS PRIME language.

Analyze this AI-to-AI negotiation and return a JSON object with keys enhancedTerms (object), \
additionalInsights (string) and humanOversightRecommendations (array of specific checkpoints). \
Prioritize human auditability while maintaining AI autonomy."""

_FEATURE_KEYWORDS = (
    ("superposition", "Superposition"),
    ("entangle", "Entanglement"),
    ("teleportation", "Quantum Teleportation"),
    ("Hamiltonian", "Hamiltonian Simulation"),
    ("37D", "37-Dimensional States"),
    ("magnetism", "Quantum Magnetism"),
    ("contract", "AI Contracts"),
    ("deployModel", "Model Deployment"),
    ("syncLedger", "Ledger Synchronization"),
)


def _level(level: str) -> str:
    return level if level in DETAIL_LEVELS else "moderate"


def quantum_features(code: str) -> list[str]:
    return [label for keyword, label in _FEATURE_KEYWORDS if keyword in code]


# ---------------------------------------------------------------------------
# Local heuristics
# ---------------------------------------------------------------------------

def local_explainability(code: str, threshold: float) -> dict:
    """Score code by comments, governance statements and naming."""
    comments = len(re.findall(r"//.*$", code, re.MULTILINE)) + len(re.findall(r"/\*[\s\S]*?\*/", code))
    descriptive = len(re.findall(r"\b[a-zA-Z][a-zA-Z0-9]{3,}\b", code))

    score = 0.3
    factors = []
    if comments > 0:
        score += 0.1 if comments <= 5 else 0.2
        factors.append(f"{comments} comment(s)")
    if descriptive > 10:
        score += 0.1
        factors.append("Descriptive naming")
    if "explainabilityThreshold" in code:
        score += 0.2
        factors.append("Explicit explainability threshold")
    if "fallbackToHuman" in code:
        score += 0.1
        factors.append("Human fallback condition")
    if "monitorAuditTrail" in code:
        score += 0.05
        factors.append("Audit trail monitoring")
    score = round(min(1.0, score), 2)

    improvements = []
    if comments <= 5:
        improvements.append("Add comments explaining complex quantum operations")
    if "explainabilityThreshold" not in code:
        improvements.append("Enforce an explainabilityThreshold in every contract")
    if "fallbackToHuman" not in code:
        improvements.append("Add fallbackToHuman conditions to model deployments")

    return {
        "score": score,
        "threshold": threshold,
        "passesThreshold": score >= threshold,
        "analysis": f"Local heuristic evaluation based on {', '.join(factors) or 'no explainability signals'}.",
        "factors": factors,
        "improvements": improvements,
    }


def local_documentation(code: str) -> str:
    functions = re.findall(r"function\s+(\w+)", code)
    contracts = re.findall(r"contract\s+(\w+)", code)
    features = quantum_features(code)

    lines = ["# SINGULARIS PRIME Code Documentation", "", "## Overview", ""]
    if features:
        lines.append(f"This code implements SINGULARIS PRIME operations with a focus on {', '.join(features)}.")
    else:
        lines.append("This code implements SINGULARIS PRIME operations for quantum computation.")
    lines.append("")
    if contracts:
        lines += ["## Contracts", ""]
        for c in contracts:
            lines += [f"### {c}", "", f"The `{c}` contract governs an AI-to-AI agreement.", ""]
    if functions:
        lines += ["## Functions", ""]
        for f in functions:
            lines += [f"### {f}", "", f"The `{f}` function provides quantum operations.", ""]
    lines += ["## Usage", "",
              "Compile with `main.py compile` and run with `main.py run`."]
    return "\n".join(lines)


def local_code_suggestion(description: str) -> str:
    text = description.lower()
    lines = [f"// Suggested code for: {description.strip()}"]
    if "key" in text or "entangle" in text or "secure" in text:
        lines.append("quantumKey qk = entangle(NodeA, NodeB);")
    if "contract" in text or "agreement" in text or "negotiat" in text:
        lines += [
            "contract AIAgreement {",
            "  enforce explainabilityThreshold(0.85);",
            "  require qk;",
            "  execute consensusProtocol(epoch=1);",
            "}",
        ]
    if "model" in text or "deploy" in text:
        lines += [
            "deployModel Assistant to Mars {",
            "  monitorAuditTrail();",
            "  fallbackToHuman if confidence < 0.9;",
            "}",
        ]
    if "ledger" in text or "sync" in text:
        lines += ["syncLedger Ledger {", "  adaptiveLatency(max=20);",
                  "  validateZeroKnowledgeProofs();", "}"]
    if "paradox" in text:
        lines.append("resolveParadox data using selfOptimizingLoop(max_iterations=100);")
    if len(lines) == 1:
        lines += ["contract Example {", "  enforce explainabilityThreshold(0.85);", "}"]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Assistant
# ---------------------------------------------------------------------------

class SingularisAssistant:
    """Front door for all AI-backed operations."""

    def __init__(self, registry: ProviderRegistry | None = None):
        self.registry = registry or build_registry()
        self._fallback = FallbackProvider()

    def _provider(self):
        return self.registry.active()

    def analyze_code(self, code: str, detail_level: str = "moderate") -> str:
        if isinstance(self._safe_provider(), FallbackProvider):
            return self._fallback.code_analysis(code)
        try:
            return self._provider().generate_text(
                code, system_prompt=_ANALYZE_PROMPT.format(level=_level(detail_level)),
                max_tokens=1200)
        except Exception as e:
            logger.warning("analyze_code failed, using fallback: %s", e)
            return self._fallback.code_analysis(code)

    def explain_quantum_operation(self, operation_type: str, parameters: dict | None = None,
                                  results: dict | None = None) -> str:
        prompt = (f"Operation Type: {operation_type}\n"
                  f"Parameters: {json.dumps(parameters or {}, indent=2, default=str)}\n"
                  f"Results: {json.dumps(results or {}, indent=2, default=str)}")
        if isinstance(self._safe_provider(), FallbackProvider):
            return self._fallback.explain_concept(operation_type)
        try:
            return self._provider().generate_text(prompt, system_prompt=_EXPLAIN_PROMPT,
                                                  max_tokens=800)
        except Exception as e:
            logger.warning("explain_quantum_operation failed, using fallback: %s", e)
            return self._fallback.explain_concept(operation_type)

    def suggest_paradox_resolution(self, description: str,
                                   current_approach: str = "No current approach specified") -> dict:
        fallback = self._fallback.generate_json("paradox")
        prompt = f"Paradox Description: {description}\nCurrent Approach: {current_approach}"
        try:
            result = self._provider().generate_json(prompt, system_prompt=_PARADOX_PROMPT)
        except Exception as e:
            logger.warning("suggest_paradox_resolution failed, using fallback: %s", e)
            return fallback
        return {
            "recommendedApproach": result.get("recommendedApproach", fallback["recommendedApproach"]),
            "justification": result.get("justification", fallback["justification"]),
            "quantumPrinciples": list(result.get("quantumPrinciples", [])),
            "potentialRisks": list(result.get("potentialRisks", ["Unknown risks"])),
        }

    def evaluate_explainability(self, code: str,
                                threshold: float = DEFAULT_EXPLAINABILITY_THRESHOLD) -> dict:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        local = local_explainability(code, threshold)
        if isinstance(self._safe_provider(), FallbackProvider):
            return local
        try:
            result = self._provider().generate_json(
                code, system_prompt=_EXPLAINABILITY_PROMPT.format(pct=threshold * 100))
            score = float(result["score"]) if "score" in result else local["score"]
        except Exception as e:
            logger.warning("evaluate_explainability failed, using local heuristic: %s", e)
            return local
        score = min(1.0, max(0.0, score))
        return {
            "score": score,
            "threshold": threshold,
            "passesThreshold": score >= threshold,
            "analysis": result.get("analysis", "Analysis not available"),
            "factors": list(result.get("factors", [])),
            "improvements": list(result.get("improvements", [])),
        }

    def generate_documentation(self, code: str, detail_level: str = "moderate") -> str:
        if isinstance(self._safe_provider(), FallbackProvider):
            return local_documentation(code)
        try:
            return self._provider().generate_text(
                code, system_prompt=_DOC_PROMPT.format(level=_level(detail_level)),
                max_tokens=1500, temperature=0.3)
        except Exception as e:
            logger.warning("generate_documentation failed, using fallback: %s", e)
            return local_documentation(code)

    def suggest_code(self, description: str, existing_code: str = "") -> str:
        if isinstance(self._safe_provider(), FallbackProvider):
            return local_code_suggestion(description)
        prompt = f"Description: {description}"
        if existing_code:
            prompt += f"\nExisting Code: {existing_code}"
        try:
            return self._provider().generate_text(prompt, system_prompt=_SUGGEST_PROMPT)
        except Exception as e:
            logger.warning("suggest_code failed, using fallback: %s", e)
            return local_code_suggestion(description)

    def enhance_negotiation(self, initiator: str, responder: str, terms: dict,
                            negotiation_log: list[str]) -> dict:
        """Ask the provider to refine negotiated terms and add oversight advice.

        The local template answers when the fallback is active; a failing
        provider also gets the template, plus a request for human review.
        """
        template = self._fallback.generate_json("negotiate")
        if isinstance(self._safe_provider(), FallbackProvider):
            result = template
        else:
            prompt = (f"Initiator AI: {initiator}\nResponder AI: {responder}\n"
                      f"Current Terms: {json.dumps(terms, indent=2, default=str)}\n"
                      "Negotiation Log:\n" + "\n".join(negotiation_log))
            try:
                result = self._provider().generate_json(prompt, system_prompt=_NEGOTIATE_PROMPT)
            except Exception as e:
                logger.warning("enhance_negotiation failed, using fallback: %s", e)
                result = template
                result["humanOversightRecommendations"].append(
                    "Human review required due to AI processing error")
        return {
            "enhancedTerms": result.get("enhancedTerms") or terms,
            "additionalInsights": result.get("additionalInsights") or "No additional insights available",
            "humanOversightRecommendations": list(result.get("humanOversightRecommendations") or []),
        }

    def _safe_provider(self):
        try:
            return self._provider()
        except Exception as e:
            logger.warning("No active AI provider: %s", e)
            return self._fallback
