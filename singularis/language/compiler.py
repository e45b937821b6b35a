"""Token-level compiler producing human-readable bytecode strings.

The bytecode is for display only: there is no instruction encoding and
no stack machine. :meth:`SingularisCompiler.execute_bytecode` renders a
log of what each instruction would do.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from .checker import ProgramChecker, Diagnostic
from .nodes import Node, ast_to_dicts
from .parser import SingularisParser

logger = logging.getLogger(__name__)

_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_PUNCT_RE = re.compile(r"[;,{}=()]")

PUNCTUATION = frozenset(";,{}=()")
# Filler words between operands, e.g. "deployModel M to Mars"
CONNECTORS = frozenset({"to", "with", "on", "using", "for", "via", "entangle"})


class InstructionType(Enum):
    QKD_INIT = "INIT_QKD"
    CONTRACT_START = "START_CONTRACT"
    ENFORCE = "ENFORCE_RULE"
    MODEL_DEPLOY = "DEPLOY_MODEL"
    LEDGER_SYNC = "SYNC_LEDGER"
    PARADOX_RESOLVE = "RESOLVE_PARADOX"
    AI_NEGOTIATE = "NEGOTIATE_AI"
    AI_VERIFY = "VERIFY_AI"
    QUANTUM_DECISION = "DECIDE_QUANTUM"


@dataclass
class Instruction:
    """One parsed instruction: a type plus string operands."""
    kind: InstructionType
    args: list[str] = field(default_factory=list)

    def to_bytecode(self) -> str:
        return " ".join([self.kind.value, *self.args])


@dataclass
class CompilationResult:
    success: bool
    bytecode: list[str]
    ast: list[Node]
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "bytecode": self.bytecode,
            "ast": ast_to_dicts(self.ast),
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


class SingularisCompiler:
    """Compiles SINGULARIS PRIME source into bytecode strings."""

    def tokenize(self, code: str) -> list[str]:
        no_comments = _COMMENT_RE.sub("", code)
        prepared = _PUNCT_RE.sub(lambda m: f" {m.group(0)} ", no_comments)
        return prepared.split()

    def parse(self, tokens: list[str]) -> list[Instruction]:
        parsed: list[Instruction] = []
        i = 0
        while i < len(tokens):
            handler = self._KEYWORDS.get(tokens[i])
            if handler is None:
                i += 1
                continue
            operands, i = self._operands(tokens, i + 1)
            instruction = handler(self, operands)
            if instruction is not None:
                parsed.append(instruction)
        return parsed

    @staticmethod
    def _operands(tokens: list[str], start: int) -> tuple[list[str], int]:
        """Collect word operands up to the next ``;`` ``{`` or ``}``.

        Returns the operands and the index to resume scanning from. The
        terminator itself is left in place so block bodies are scanned.
        """
        operands: list[str] = []
        i = start
        while i < len(tokens) and tokens[i] not in (";", "{", "}"):
            tok = tokens[i]
            if tok not in PUNCTUATION and tok not in CONNECTORS:
                operands.append(tok)
            i += 1
        return operands, i

    # -- per-keyword instruction builders --

    def _quantum_key(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 3:
            return None
        return Instruction(InstructionType.QKD_INIT, ops[:3])

    def _contract(self, ops: list[str]) -> Instruction:
        return Instruction(InstructionType.CONTRACT_START, [ops[0] if ops else "anonymous"])

    def _enforce(self, ops: list[str]) -> Instruction | None:
        if not ops:
            return None
        rule, value = ops[0], ops[-1] if len(ops) > 1 else ""
        return Instruction(InstructionType.ENFORCE, [rule, value] if value else [rule])

    def _deploy_model(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 2:
            return None
        name = ops[0]
        version = "1.0"
        if len(ops) > 2 and re.fullmatch(r"v?\d+(\.\d+)*", ops[1]):
            version = ops[1].lstrip("v")
        return Instruction(InstructionType.MODEL_DEPLOY, [name, version, ops[-1]])

    def _sync_ledger(self, ops: list[str]) -> Instruction | None:
        if not ops:
            return None
        return Instruction(InstructionType.LEDGER_SYNC, ops[:1])

    def _resolve_paradox(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 2:
            return None
        return Instruction(InstructionType.PARADOX_RESOLVE, ops[:2])

    def _negotiate_ai(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 3:
            return None
        return Instruction(InstructionType.AI_NEGOTIATE, ops[:3])

    def _verify_ai(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 2:
            return None
        return Instruction(InstructionType.AI_VERIFY, ops[:2])

    def _quantum_decision(self, ops: list[str]) -> Instruction | None:
        if len(ops) < 3:
            return None
        return Instruction(InstructionType.QUANTUM_DECISION, ops[:3])

    _KEYWORDS = {
        "quantumKey": _quantum_key,
        "contract": _contract,
        "enforce": _enforce,
        "deployModel": _deploy_model,
        "syncLedger": _sync_ledger,
        "resolveParadox": _resolve_paradox,
        "negotiateAI": _negotiate_ai,
        "verifyAI": _verify_ai,
        "quantumDecision": _quantum_decision,
    }

    # -- output --

    def generate_bytecode(self, parsed: list[Instruction]) -> list[str]:
        return [inst.to_bytecode() for inst in parsed]

    def compile(self, source: str) -> list[str]:
        """Source text to bytecode strings."""
        bytecode = self.generate_bytecode(self.parse(self.tokenize(source)))
        logger.debug("Compiled %d instructions", len(bytecode))
        return bytecode

    def compile_with_checks(self, source: str) -> CompilationResult:
        """Compile after running the program checker.

        Bytecode is only generated when the checker reports no errors.
        """
        try:
            ast = SingularisParser().parse(source)
            checker = ProgramChecker(source)
            checker.check(ast)
            bytecode = self.compile(source) if checker.ok else []
            return CompilationResult(
                success=checker.ok,
                bytecode=bytecode,
                ast=ast,
                errors=checker.errors,
                warnings=checker.warnings,
            )
        except Exception as e:
            logger.error("Compilation failed: %s", e, exc_info=True)
            return CompilationResult(
                success=False,
                bytecode=[],
                ast=[],
                errors=[Diagnostic("syntax", str(e) or "Unknown compilation error")],
            )

    def execute_bytecode(self, bytecode: list[str]) -> list[str]:
        """Render an execution log for ``bytecode``."""
        output = ["Executing SINGULARIS PRIME bytecode..."]
        for instruction in bytecode:
            output.append(f"> {instruction}")
            cmd, *p = instruction.split(" ")
            p += [""] * (3 - len(p))
            if cmd == "INIT_QKD":
                output.append(f"  Quantum key {p[0]} established between {p[1]} and {p[2]}")
            elif cmd == "START_CONTRACT":
                output.append(f"  Contract {p[0]} initialized with explainability checks")
            elif cmd == "ENFORCE_RULE":
                output.append(f"  Enforcing {p[0]} = {p[1]}")
            elif cmd == "DEPLOY_MODEL":
                output.append(f"  AI model {p[0]} v{p[1]} deployed to {p[2]}")
            elif cmd == "SYNC_LEDGER":
                output.append(f"  Synchronizing blockchain {p[0]} with all nodes")
            elif cmd == "RESOLVE_PARADOX":
                output.append(f"  Paradox in {p[0]} being resolved using {p[1]}")
            elif cmd == "NEGOTIATE_AI":
                output.append(f"  AI negotiation between {p[0]} and {p[1]} on {p[2]}")
            elif cmd == "VERIFY_AI":
                output.append(f"  Verifying AI {p[0]} using {p[1]}")
            elif cmd == "DECIDE_QUANTUM":
                output.append(f"  Quantum decision by {p[0]} using {p[1]} for {p[2]}")
        output.append("Execution completed successfully.")
        return output
