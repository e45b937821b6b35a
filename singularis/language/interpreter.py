"""AST interpreter that turns a parsed program into console output.

The interpreter keeps a single environment of named resources (quantum
keys, contracts, deployed models, ledgers). Execution is a simulation:
every side effect is a log line, and every number comes from the
interpreter's random generator.
"""

from __future__ import annotations

import logging

import numpy as np

from .checker import KNOWN_MODULES
from .compiler import SingularisCompiler
from .nodes import (
    Node, Annotation, AIOptimizationDirective, ContractDeclaration,
    DeployModelDeclaration, EnforceStatement, ExecuteStatement,
    FallbackStatement, FunctionCall, FunctionDeclaration, ImportDeclaration,
    NamedArgument, QuantumKeyDeclaration, RequireStatement,
    ResolveParadoxDeclaration, SyncLedgerDeclaration,
)
from singularis.simulation.quantum import simulate_quantum_entanglement

logger = logging.getLogger(__name__)

RUNTIME_VERSION = "2.3.0"
DEFAULT_MAX_LATENCY = 20
DEFAULT_MAX_ITERATIONS = 100
MAX_ITERATIONS_LIMIT = 1_000_000
DECOHERENCE_WARNING_PROBABILITY = 0.3

BUILTINS = ("entangle", "explainabilityThreshold", "consensusProtocol", "monitorAuditTrail")


class InterpreterError(RuntimeError):
    """Raised when a program cannot be interpreted."""


def _int_arg(call: FunctionCall, name: str, default: int) -> int:
    value = call.named(name)
    if value is None:
        return default
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        raise InterpreterError(f"Argument '{name}' of {call.name} must be numeric, got '{value}'")


class SingularisInterpreter:
    """Walks a parsed program and records what it would do.

    Parameters
    ----------
    ast : list[Node]
        Output of :meth:`SingularisParser.parse`.
    rng : numpy.random.Generator, optional
        Seeded generator for reproducible output.
    """

    def __init__(self, ast: list[Node], rng: np.random.Generator | None = None):
        self.ast = ast
        self.rng = rng if rng is not None else np.random.default_rng()
        self.environment: dict[str, object] = {name: "builtin" for name in BUILTINS}
        self.functions: dict[str, FunctionDeclaration] = {}
        self.directives: list[AIOptimizationDirective] = []
        self.output: list[str] = []

    def execute(self) -> list[str]:
        self.output = []
        self.log(f"Initializing Quantum Runtime v{RUNTIME_VERSION}...")
        self.log("Loading quantum libraries...")

        for node in self.ast:
            self.evaluate(node)

        logger.info("Interpreted %d nodes, %d output lines", len(self.ast), len(self.output))
        return self.output

    def evaluate(self, node: Node):
        handler = getattr(self, f"_eval_{node.type}", None)
        if handler is None:
            raise InterpreterError(f"Unknown node type: {node.type}")
        return handler(node)

    def log(self, message: str) -> None:
        self.output.append(message)

    # -- node handlers --

    def _record_annotations(self, annotations: list[Node]) -> None:
        for a in annotations:
            if isinstance(a, AIOptimizationDirective):
                self.directives.append(a)

    def _eval_QuantumKeyDeclaration(self, node: QuantumKeyDeclaration) -> dict:
        self._record_annotations(node.annotations)
        self.log("Establishing quantum entanglement channel...")
        params = node.parameters + [""] * (2 - len(node.parameters))
        result = simulate_quantum_entanglement(params[0], params[1], self.rng)
        self.environment[node.name] = result
        self.log("Establishing quantum entanglement channel... Done")
        return result

    def _eval_ContractDeclaration(self, node: ContractDeclaration) -> dict:
        self._record_annotations(node.annotations)
        self.log(f"Processing contract '{node.name}'...")

        for statement in node.body:
            if isinstance(statement, RequireStatement):
                if statement.identifier not in self.environment:
                    raise InterpreterError(
                        f"Required resource not found: {statement.identifier}")
            elif isinstance(statement, EnforceStatement):
                self._enforce(statement.function_call)
            elif isinstance(statement, ExecuteStatement):
                self._execute(node.name, statement.function_call)

        instance = {"type": "ContractInstance", "name": node.name}
        self.environment[node.name] = instance
        return instance

    def _enforce(self, call: FunctionCall) -> None:
        if call.name != "explainabilityThreshold":
            return
        raw = call.first_value()
        try:
            threshold = float(raw)
        except (TypeError, ValueError):
            raise InterpreterError(f"explainabilityThreshold expects a number, got '{raw}'")
        score = self.explainability_score(threshold)
        verdict = "PASS" if score >= threshold else "FAIL"
        self.log(f"Verifying human-auditable threshold... {score} ({verdict})")

    def _execute(self, contract: str, call: FunctionCall) -> None:
        if call.name != "consensusProtocol":
            return
        self.log(f"[INFO] Executing {contract} contract")
        self.consensus_protocol(call)
        if self.rng.random() < DECOHERENCE_WARNING_PROBABILITY:
            self.log("[WARNING] Potential quantum decoherence detected in sector 7.")
        tx = self.rng.integers(0, 16 ** 6)
        self.log(f"[SUCCESS] Contract deployed. Transaction hash: 0x{tx:06x}...")

    def _eval_DeployModelDeclaration(self, node: DeployModelDeclaration) -> dict:
        self._record_annotations(node.annotations)
        self.log(f"Deploying AI model to {node.location} node...")
        latency = int(self.rng.integers(100, 400))
        self.log(f"Latency compensation: {latency}ms...")

        for statement in node.body:
            if isinstance(statement, FallbackStatement):
                self.log(f"Fallback condition set: {statement.condition}")

        score = self.rng.random() * 0.1 + 0.9
        self.log(f"[INFO] AI Model initialized with {score:.1f}% verification score")

        model = {"type": "DeployedModel", "name": node.name, "location": node.location}
        self.environment[node.name] = model
        return model

    def _eval_SyncLedgerDeclaration(self, node: SyncLedgerDeclaration) -> dict:
        self.log(f"Synchronizing ledger '{node.name}' across planetary nodes...")

        for statement in node.body:
            if not isinstance(statement, FunctionCall):
                continue
            if statement.name == "adaptiveLatency":
                max_latency = statement.named("max") or DEFAULT_MAX_LATENCY
                self.log(f"Setting adaptive latency compensation to maximum {max_latency} minutes")
            elif statement.name == "validateZeroKnowledgeProofs":
                self.log("Initializing zero-knowledge proof validation...")
                self.log("[SUCCESS] ZKP verification complete")

        ledger = {"type": "SynchronizedLedger", "name": node.name}
        self.environment[node.name] = ledger
        return ledger

    def _eval_ResolveParadoxDeclaration(self, node: ResolveParadoxDeclaration) -> dict:
        self.log(f"Attempting to resolve quantum paradox in '{node.data_name}'...")

        if node.method.name == "selfOptimizingLoop":
            max_iterations = _int_arg(node.method, "max_iterations", DEFAULT_MAX_ITERATIONS)
            if not 1 <= max_iterations <= MAX_ITERATIONS_LIMIT:
                raise InterpreterError(
                    f"max_iterations must be between 1 and {MAX_ITERATIONS_LIMIT}, got {max_iterations}")
            iterations = int(self.rng.integers(1, max_iterations + 1))
            self.log(f"Running self-optimizing loop ({iterations}/{max_iterations} iterations)")
            rate = self.rng.random() * 0.2 + 0.8
            self.log(f"[SUCCESS] Paradox resolved with {rate:.2f} convergence rate")

        return {"type": "ResolvedParadox", "dataName": node.data_name}

    def _eval_ImportDeclaration(self, node: ImportDeclaration) -> dict:
        self.log(f"Importing module: {node.path}")
        module = KNOWN_MODULES.get(node.path)
        if module:
            name, version = module
            self.log(f"Loaded module {name} v{version}")
        else:
            self.log(f"[WARNING] Module not found: {node.path}")
        return {"type": "ImportedModule", "path": node.path}

    def _eval_FunctionDeclaration(self, node: FunctionDeclaration) -> None:
        self._record_annotations(node.annotations)
        self.functions[node.name] = node

    def _eval_Annotation(self, node: Annotation) -> None:
        pass

    def _eval_AIOptimizationDirective(self, node: AIOptimizationDirective) -> None:
        self.directives.append(node)

    # -- builtins --

    def explainability_score(self, threshold: float) -> float:
        """Threshold jittered by +/-0.05, clamped to [0, 1]."""
        score = threshold + (self.rng.random() * 0.1 - 0.05)
        return round(min(1.0, max(0.0, score)), 2)

    @staticmethod
    def consensus_protocol(call: FunctionCall) -> dict:
        epoch = 0
        for arg in call.arguments:
            if isinstance(arg, NamedArgument) and arg.name == "epoch":
                try:
                    epoch = int(arg.value)
                except ValueError:
                    epoch = 0
        return {"epoch": epoch, "consensus": "achieved"}


def execute_source(code: str) -> list[str]:
    """Compile ``code`` and render its bytecode execution log."""
    compiler = SingularisCompiler()
    return compiler.execute_bytecode(compiler.compile(code))
