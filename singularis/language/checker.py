"""Governance and no-cloning checks over a parsed program.

These are deterministic rules evaluated on the parser AST. They stand in
for a type system: nothing is inferred, each rule looks at one kind of
declaration and emits diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict

from .nodes import (
    Node, ImportDeclaration, QuantumKeyDeclaration, ContractDeclaration,
    DeployModelDeclaration, FallbackStatement,
)

# Minimum score for an AI operation to count as human-auditable
HIGH_EXPLAINABILITY = 0.85

# Deployment targets that are treated as critical operations
CRITICAL_LOCATIONS = ("mars",)

KNOWN_MODULES: dict[str, tuple[str, str]] = {
    "quantum/entanglement": ("quantum-entanglement", "2.3.0"),
    "ai/negotiation/v4.2": ("ai-negotiation", "4.2.0"),
    "blockchain/ledger": ("blockchain-ledger", "1.7.3"),
}

ERROR_KINDS = ("syntax", "type", "quantum", "ai_safety")
WARNING_KINDS = ("performance", "best_practice", "deprecation")


@dataclass
class Diagnostic:
    """A single checker finding."""
    kind: str
    message: str
    severity: str = "error"      # "error" | "warning"
    line: int = 1
    column: int = 1
    suggestion: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def is_critical_location(location: str) -> bool:
    loc = location.lower()
    return any(name in loc for name in CRITICAL_LOCATIONS)


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ProgramChecker:
    """Runs every rule over a program and collects diagnostics."""

    def __init__(self, source: str = ""):
        self._lines = source.splitlines()
        self.errors: list[Diagnostic] = []
        self.warnings: list[Diagnostic] = []

    def check(self, ast: list[Node]) -> list[Diagnostic]:
        self.errors = []
        self.warnings = []
        declared_keys: set[str] = set()

        for node in ast:
            if isinstance(node, QuantumKeyDeclaration):
                self._check_quantum_key(node, declared_keys)
            elif isinstance(node, ContractDeclaration):
                self._check_contract(node)
            elif isinstance(node, DeployModelDeclaration):
                self._check_deployment(node)
            elif isinstance(node, ImportDeclaration):
                self._check_import(node)

        return self.errors + self.warnings

    @property
    def ok(self) -> bool:
        return not self.errors

    # -- rules --

    def _check_quantum_key(self, node: QuantumKeyDeclaration, declared: set[str]):
        if node.name and node.name in declared:
            self._error(
                "quantum",
                f"Quantum key '{node.name}' is declared twice; quantum states cannot be cloned",
                node.name,
                suggestion="Derive a new key name for the second channel",
            )
        declared.add(node.name)
        params = [p for p in node.parameters if p]
        if len(params) == 2 and params[0] == params[1]:
            self._error(
                "quantum",
                f"Cannot entangle '{params[0]}' with itself",
                node.name,
                suggestion="Entangle two distinct nodes",
            )

    def _check_contract(self, node: ContractDeclaration):
        thresholds = node.enforced("explainabilityThreshold")
        if not thresholds:
            self._warning(
                "best_practice",
                f"Contract '{node.name}' does not enforce an explainability threshold",
                node.name or "contract",
                suggestion=f"Add 'enforce explainabilityThreshold({HIGH_EXPLAINABILITY});'",
            )
            return
        for call in thresholds:
            value = _to_float(call.first_value())
            if value is not None and value < HIGH_EXPLAINABILITY:
                self._error(
                    "ai_safety",
                    f"Explainability threshold {value} is below the required {HIGH_EXPLAINABILITY}",
                    call.name,
                    suggestion=f"Raise the threshold to at least {HIGH_EXPLAINABILITY}",
                )

    def _check_deployment(self, node: DeployModelDeclaration):
        if not is_critical_location(node.location):
            return
        if not any(isinstance(s, FallbackStatement) for s in node.body):
            self._error(
                "ai_safety",
                f"Deployment of '{node.name}' to {node.location} is critical and requires human oversight",
                node.name,
                suggestion="Add 'fallbackToHuman if confidence < 0.9;' to the deployment",
            )

    def _check_import(self, node: ImportDeclaration):
        if node.path not in KNOWN_MODULES:
            self._warning(
                "best_practice",
                f"Unknown module '{node.path}'",
                node.path or "import",
            )

    # -- helpers --

    def _locate(self, needle: str) -> tuple[int, int]:
        for i, text in enumerate(self._lines):
            col = text.find(needle)
            if needle and col >= 0:
                return i + 1, col + 1
        return 1, 1

    def _error(self, kind: str, message: str, needle: str, suggestion: str | None = None):
        line, col = self._locate(needle)
        self.errors.append(Diagnostic(kind, message, "error", line, col, suggestion))

    def _warning(self, kind: str, message: str, needle: str, suggestion: str | None = None):
        line, col = self._locate(needle)
        self.warnings.append(Diagnostic(kind, message, "warning", line, col, suggestion))
