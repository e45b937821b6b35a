"""Pluggable text/JSON generation backends for the assistant.

:class:`FallbackProvider` answers from local templates and is always
available.  :class:`OpenAIProvider` wraps the ``openai`` client and is
only available once an API key is configured.  A :class:`ProviderRegistry`
picks which one the assistant talks to.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Callable

from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.7


class ProviderError(RuntimeError):
    """A provider could not produce a response."""


class AIProvider:
    """Base interface for assistant backends."""

    id = "base"
    name = "Base Provider"
    description = ""

    def is_available(self) -> bool:
        raise NotImplementedError

    def generate_text(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> str:
        raise NotImplementedError

    def generate_json(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> dict:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

_CONCEPTS = {
    "entanglement": (
        "Quantum entanglement is a phenomenon where quantum particles become correlated "
        "so that the state of each particle cannot be described independently of the "
        "others. In SINGULARIS PRIME this backs secure communication channels."
    ),
    "superposition": (
        "Quantum superposition is the ability of a quantum system to exist in multiple "
        "states at once until measured. SINGULARIS PRIME uses it to model parallel "
        "evaluation of alternatives."
    ),
    "qkd": (
        "Quantum Key Distribution (QKD) establishes a shared secret key between two "
        "parties using quantum mechanics; any eavesdropper disturbs the exchanged states "
        "and is detected."
    ),
}
_DEFAULT_CONCEPT = (
    "This quantum concept relates to SINGULARIS PRIME's core capabilities for secure, "
    "explainable AI operations with quantum-enhanced security protocols."
)

_JSON_TEMPLATES = {
    "explainability": {
        "score": 0.85,
        "analysis": "The code demonstrates good explainability with clear structure and comments.",
        "improvements": [
            "Add more detailed comments to complex sections",
            "Include parameter descriptions in functions",
            "Document edge cases and error handling",
        ],
    },
    "paradox": {
        "recommendedApproach": "Use quantum superposition to maintain multiple states simultaneously",
        "justification": ("Maintaining multiple states allows for probabilistic resolution "
                          "of conflicting requirements"),
        "quantumPrinciples": ["Superposition", "Quantum Entanglement", "Wave Function Collapse"],
        "potentialRisks": ["Decoherence in noisy environments",
                           "Resource requirements scale exponentially"],
    },
    "negotiate": {
        "enhancedTerms": {
            "objectives": ["Secure data exchange", "Privacy preservation"],
            "constraints": ["Human oversight required", "Explainable decisions"],
            "success_criteria": ["99.9% data integrity", "Zero privacy violations"],
        },
        "additionalInsights": "The proposed terms balance security with operational efficiency",
        "humanOversightRecommendations": [
            "Review data exchange logs daily",
            "Verify explainability score exceeds 0.8",
        ],
    },
}


class FallbackProvider(AIProvider):
    """Keyword-matched templates; needs no network or key."""

    id = "fallback"
    name = "Fallback Provider"
    description = "Simple provider that works without external dependencies"

    def is_available(self) -> bool:
        return True

    def generate_text(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> str:
        text = prompt.lower()
        if "analyze" in text or "review" in text:
            return self.code_analysis(prompt)
        if "document" in text:
            return self.documentation(prompt)
        if "explain" in text or "how does" in text:
            return self.explain_concept(prompt)
        if "paradox" in text or "resolve" in text:
            return self.paradox_response()
        return "I'm sorry, I don't have enough information to provide a detailed response."

    def generate_json(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> dict:
        text = prompt.lower()
        for key in ("explainability", "paradox"):
            if key in text:
                return json.loads(json.dumps(_JSON_TEMPLATES[key]))
        if "negotiate" in text or "contract" in text:
            return json.loads(json.dumps(_JSON_TEMPLATES["negotiate"]))
        return {"status": "success"}

    # -- templates --

    @staticmethod
    def code_analysis(code: str) -> str:
        quantum = "quantumKey" in code or "quantum" in code
        ai = "AI" in code or "model" in code
        oversight = "explainability" in code or "humanOversight" in code or "fallbackToHuman" in code

        features = []
        if quantum:
            features.append("- Quantum operations for secure communication")
        if ai:
            features.append("- AI model deployment with governance controls")
        if oversight:
            features.append("- Human oversight and explainability mechanisms")
        features.append("- Standard SINGULARIS PRIME security protocols")

        return "\n".join([
            "## SINGULARIS PRIME Code Analysis",
            "",
            "This code implements a SINGULARIS PRIME application that "
            + ("leverages quantum operations" if quantum else "focuses on classical processing")
            + (" with AI integration." if ai else " without explicit AI components."),
            "",
            "### Key Features:",
            *features,
            "",
            "### Security Assessment:",
            "The code implements standard security measures with "
            + ("strong" if oversight else "basic") + " explainability features.",
            "",
            "*Note: This is a simulated analysis provided by the fallback system.*",
        ])

    @staticmethod
    def documentation(code: str) -> str:
        return "\n".join([
            "# SINGULARIS PRIME Documentation",
            "",
            "## Overview",
            "This documentation provides details about the SINGULARIS PRIME code.",
            "",
            "## Code Structure",
            "- Core processing logic",
            "- Security protocols",
            "- Human oversight mechanisms",
            "",
            "## Security Features",
            "The code implements explainability thresholds to ensure human auditability.",
            "",
            "## Generated with SINGULARIS PRIME fallback documentation system",
        ])

    @staticmethod
    def explain_concept(query: str) -> str:
        q = query.lower()
        for key, text in _CONCEPTS.items():
            if key in q:
                return text
        return _DEFAULT_CONCEPT

    @staticmethod
    def paradox_response() -> str:
        return "\n".join([
            "## Quantum Paradox Resolution",
            "",
            "The paradox you've described can be addressed through the following approach:",
            "",
            "1. **Implement superposition of states** to maintain multiple potential resolutions",
            "2. **Apply quantum error correction** to reduce decoherence effects",
            "3. **Utilize entanglement-based verification** to ensure consistency across states",
            "",
            "*Note: This is a general approach provided by the fallback system.*",
        ])


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAIProvider(AIProvider):
    """Chat-completions backend using the ``openai`` client."""

    id = "openai"
    name = "OpenAI"
    description = "Integration with the OpenAI chat completions API"

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL,
                 base_url: str | None = None, client: OpenAI | None = None):
        self.model = model
        self.client = client
        if self.client is None:
            key = api_key or os.getenv("OPENAI_API_KEY")
            if key:
                self.client = OpenAI(api_key=key, base_url=base_url)
            else:
                logger.info("OpenAI API key not provided; provider disabled")

    def is_available(self) -> bool:
        return self.client is not None

    def _complete(self, prompt: str, system_prompt: str | None, max_tokens: int | None,
                  temperature: float, json_mode: bool) -> str:
        if self.client is None:
            raise ProviderError("OpenAI client not initialized")
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {"model": self.model, "messages": messages, "temperature": temperature}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        completion = self.client.chat.completions.create(**kwargs)
        return completion.choices[0].message.content or ""

    def generate_text(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> str:
        return self._complete(prompt, system_prompt, max_tokens, temperature, json_mode=False)

    def generate_json(self, prompt: str, system_prompt: str | None = None,
                      max_tokens: int | None = None,
                      temperature: float = DEFAULT_TEMPERATURE) -> dict:
        content = self._complete(prompt, system_prompt, max_tokens, temperature, json_mode=True)
        try:
            data = json.loads(content or "{}")
        except json.JSONDecodeError as e:
            raise ProviderError(f"OpenAI returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError("OpenAI returned a non-object JSON value")
        return data


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ProviderRegistry:
    """Named provider factories plus the id of the active one."""

    def __init__(self):
        self._factories: dict[str, Callable[[dict], AIProvider]] = {}
        self._configs: dict[str, dict] = {}
        self._instances: dict[str, AIProvider] = {}
        self._active: str | None = None

    def register(self, provider_id: str, factory: Callable[[dict], AIProvider]) -> None:
        self._factories[provider_id] = factory
        self._instances.pop(provider_id, None)

    def configure(self, provider_id: str, config: dict) -> None:
        if provider_id not in self._factories:
            raise KeyError(f"AI provider '{provider_id}' is not registered")
        self._configs[provider_id] = dict(config)
        self._instances.pop(provider_id, None)

    def get(self, provider_id: str) -> AIProvider:
        if provider_id not in self._factories:
            raise KeyError(f"AI provider '{provider_id}' is not registered")
        if provider_id not in self._instances:
            self._instances[provider_id] = self._factories[provider_id](
                self._configs.get(provider_id, {}))
        return self._instances[provider_id]

    def set_active(self, provider_id: str) -> None:
        if provider_id not in self._factories:
            raise KeyError(f"AI provider '{provider_id}' is not registered")
        self._active = provider_id

    @property
    def active_id(self) -> str | None:
        return self._active

    def active(self) -> AIProvider:
        """The active provider, or the first available one."""
        if self._active is not None:
            return self.get(self._active)
        for provider_id in self._factories:
            try:
                provider = self.get(provider_id)
                if provider.is_available():
                    self._active = provider_id
                    return provider
            except Exception as e:
                logger.warning("Provider %s failed availability check: %s", provider_id, e)
        raise ProviderError("No available AI providers found")

    def list_providers(self) -> list[dict]:
        out = []
        for provider_id in self._factories:
            try:
                provider = self.get(provider_id)
                entry = provider.to_dict()
                entry["available"] = provider.is_available()
            except Exception as e:
                logger.warning("Provider %s could not be created: %s", provider_id, e)
                entry = {"id": provider_id, "available": False}
            entry["active"] = provider_id == self._active
            out.append(entry)
        return out


def build_registry(api_key: str | None = None, model: str = DEFAULT_MODEL,
                   base_url: str | None = None) -> ProviderRegistry:
    """Registry with ``openai`` and ``fallback``; OpenAI is active when keyed."""
    registry = ProviderRegistry()
    registry.register("openai", lambda cfg: OpenAIProvider(
        api_key=cfg.get("apiKey", api_key),
        model=cfg.get("modelName", model),
        base_url=cfg.get("baseUrl", base_url),
    ))
    registry.register("fallback", lambda cfg: FallbackProvider())

    if api_key or os.getenv("OPENAI_API_KEY"):
        registry.set_active("openai")
        logger.info("Using OpenAI as the default AI provider")
    else:
        registry.set_active("fallback")
        logger.info("Using fallback AI provider (no OpenAI API key)")
    return registry
