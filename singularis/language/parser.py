"""Character-scanning parser for SINGULARIS PRIME source code.

The parser is a single left-to-right scan with hand-written sub-parsers
per construct. It has no formal grammar: unrecognised characters are
skipped one at a time, and malformed input yields a partial AST rather
than an error.
"""

from __future__ import annotations

import logging
import re

from .nodes import (
    Node, NamedArgument, Argument, FunctionCall, Annotation,
    AIOptimizationDirective, ImportDeclaration, QuantumKeyDeclaration,
    EnforceStatement, RequireStatement, ExecuteStatement, ContractDeclaration,
    Condition, FallbackStatement, DeployModelDeclaration, SyncLedgerDeclaration,
    ResolveParadoxDeclaration, FunctionDeclaration,
)

logger = logging.getLogger(__name__)

AI_OPTIMIZATION_DIRECTIVES = frozenset({
    "optimize_for_fidelity",
    "optimize_for_explainability",
    "minimize_gates",
    "minimize_depth",
    "minimize_errors",
    "optimize_execution_time",
    "differentiable",
    "approximate_ok",
    "critical_operation",
    "error_tolerant",
})

_CONDITION_RE = re.compile(r"^(.*?)(==|>=|<=|>|<)(.*)$", re.DOTALL)


def split_arguments(text: str) -> list[Argument]:
    """Split a raw argument string on commas into plain or named arguments."""
    args: list[Argument] = []
    for piece in text.split(","):
        piece = piece.strip()
        if not piece:
            continue
        if "=" in piece:
            name, value = piece.split("=", 1)
            args.append(NamedArgument(name.strip(), value.strip()))
        else:
            args.append(piece)
    return args


def parse_condition(text: str) -> Condition:
    """Parse ``left <op> right``; unknown shapes give an empty condition."""
    m = _CONDITION_RE.match(text.strip())
    if m is None:
        return Condition()
    return Condition(m.group(1).strip(), m.group(2), m.group(3).strip())


class SingularisParser:
    """Converts SINGULARIS PRIME source text into a flat list of declarations.

    Cursor state (position, line, column) lives on the instance and is
    reset at the start of every :meth:`parse` call.
    """

    def __init__(self):
        self._code = ""
        self._pos = 0
        self.line = 1
        self.column = 1

    def compile(self, source: str) -> list[str]:
        """Compile ``source`` straight to bytecode strings."""
        from .compiler import SingularisCompiler
        return SingularisCompiler().compile(source)

    # -- top level --

    def parse(self, code: str) -> list[Node]:
        self._code = code
        self._pos = 0
        self.line = 1
        self.column = 1

        ast: list[Node] = []
        self._skip_whitespace()

        while not self._at_end():
            if self._match("import"):
                ast.append(self._parse_import())
            elif self._match("@"):
                annotation = self._parse_annotation()
                self._skip_whitespace()
                decl = self._parse_annotated_declaration()
                if decl is None:
                    self._skip_past(";")
                else:
                    decl.annotations = [annotation]
                    ast.append(decl)
            elif self._match("quantumKey"):
                ast.append(self._parse_quantum_key())
            elif self._match("contract"):
                ast.append(self._parse_contract())
            elif self._match("deployModel"):
                ast.append(self._parse_deploy_model())
            elif self._match("syncLedger"):
                ast.append(self._parse_sync_ledger())
            elif self._match("resolveParadox"):
                ast.append(self._parse_resolve_paradox())
            elif self._match("function"):
                ast.append(self._parse_function())
            elif self._match("//"):
                self._skip_comment()
            else:
                self._advance()
            self._skip_whitespace()

        logger.debug("Parsed %d top-level nodes", len(ast))
        return ast

    def _parse_annotated_declaration(self) -> Node | None:
        if self._match("quantumKey"):
            return self._parse_quantum_key()
        if self._match("contract"):
            return self._parse_contract()
        if self._match("deployModel"):
            return self._parse_deploy_model()
        if self._match("function"):
            return self._parse_function()
        return None

    # -- cursor helpers --

    def _at_end(self) -> bool:
        return self._pos >= len(self._code)

    def _peek(self) -> str:
        return "" if self._at_end() else self._code[self._pos]

    def _advance(self, count: int = 1) -> None:
        """Move the cursor forward, keeping line/column in step."""
        for _ in range(count):
            if self._at_end():
                return
            if self._code[self._pos] == "\n":
                self.line += 1
                self.column = 1
            elif self._code[self._pos] != "\r":
                self.column += 1
            self._pos += 1

    def _match(self, literal: str) -> bool:
        """Literal comparison at the cursor; advances past it on success."""
        if self._code.startswith(literal, self._pos):
            self._advance(len(literal))
            return True
        return False

    def _expect(self, char: str) -> bool:
        """Consume ``char`` if it is next."""
        if self._peek() == char:
            self._advance()
            return True
        return False

    def _skip_whitespace(self) -> None:
        while self._peek() in (" ", "\t", "\n", "\r"):
            self._advance()

    def _skip_until(self, char: str) -> None:
        while not self._at_end() and self._code[self._pos] != char:
            self._advance()

    def _skip_past(self, char: str) -> None:
        self._skip_until(char)
        self._advance()

    def _parse_until(self, char: str) -> str:
        start = self._pos
        self._skip_until(char)
        return self._code[start:self._pos]

    def _skip_comment(self) -> None:
        self._skip_until("\n")

    def _parse_identifier(self) -> str:
        start = self._pos
        while not self._at_end():
            c = self._code[self._pos]
            if not (c.isascii() and (c.isalnum() or c == "_")):
                break
            self._advance()
        return self._code[start:self._pos]

    def _parse_string(self) -> str:
        delimiter = self._peek()
        self._advance()
        start = self._pos
        while not self._at_end() and self._code[self._pos] != delimiter:
            if self._code[self._pos] == "\\":
                self._advance()
            self._advance()
        value = self._code[start:self._pos]
        self._expect(delimiter)
        return value

    def _parse_call_arguments(self) -> list[Argument]:
        """Parse ``( ... )`` at the cursor if present."""
        if not self._expect("("):
            return []
        args = split_arguments(self._parse_until(")"))
        self._expect(")")
        return args

    # -- constructs --

    def _parse_annotation(self) -> Node:
        line, column = self.line, self.column
        name = self._parse_identifier()
        parameters = None

        self._skip_whitespace()
        if self._expect("("):
            start = self._pos
            depth = 1
            while not self._at_end() and depth > 0:
                c = self._code[self._pos]
                if c == "(":
                    depth += 1
                elif c == ")":
                    depth -= 1
                self._advance()
            end = self._pos - 1 if depth == 0 else self._pos
            parameters = self._code[start:end]

        if name in AI_OPTIMIZATION_DIRECTIVES:
            return AIOptimizationDirective(name, parameters, line, column)
        return Annotation(name, parameters)

    def _parse_import(self) -> ImportDeclaration:
        self._skip_whitespace()
        if self._peek() in ('"', "'"):
            path = self._parse_string()
            self._skip_past(";")
        else:
            path = self._parse_until(";").strip()
            self._advance()
        return ImportDeclaration(path)

    def _parse_quantum_key(self) -> QuantumKeyDeclaration:
        self._skip_whitespace()
        name = self._parse_identifier()
        self._skip_whitespace()
        self._expect("=")
        self._skip_whitespace()

        parameters: list[str] = []
        if self._match("entangle"):
            self._skip_whitespace()
            if self._expect("("):
                self._skip_whitespace()
                parameters.append(self._parse_identifier())
                self._skip_whitespace()
                self._expect(",")
                self._skip_whitespace()
                parameters.append(self._parse_identifier())
                self._skip_whitespace()
                self._expect(")")

        self._skip_past(";")
        return QuantumKeyDeclaration(name, parameters)

    def _parse_function_call(self) -> FunctionCall:
        name = self._parse_identifier()
        self._skip_whitespace()
        self._expect("(")
        self._skip_whitespace()
        args = split_arguments(self._parse_until(")"))
        self._expect(")")
        self._skip_past(";")
        return FunctionCall(name, args)

    def _parse_contract(self) -> ContractDeclaration:
        self._skip_whitespace()
        name = self._parse_identifier()
        self._skip_whitespace()
        self._expect("{")
        self._skip_whitespace()

        body: list[Node] = []
        while not self._at_end() and self._peek() != "}":
            if self._match("enforce"):
                self._skip_whitespace()
                body.append(EnforceStatement(self._parse_function_call()))
            elif self._match("require"):
                self._skip_whitespace()
                body.append(RequireStatement(self._parse_identifier()))
                self._skip_past(";")
            elif self._match("execute"):
                self._skip_whitespace()
                body.append(ExecuteStatement(self._parse_function_call()))
            elif self._match("//"):
                self._skip_comment()
            else:
                self._advance()
            self._skip_whitespace()

        self._expect("}")
        return ContractDeclaration(name, body)

    def _parse_deploy_model(self) -> DeployModelDeclaration:
        self._skip_whitespace()
        name = self._parse_identifier()
        self._skip_whitespace()
        if self._match("to"):
            self._skip_whitespace()
        location = self._parse_identifier()
        self._skip_whitespace()
        self._expect("{")
        self._skip_whitespace()

        body: list[Node] = []
        while not self._at_end() and self._peek() != "}":
            if self._match("monitorAuditTrail"):
                self._skip_whitespace()
                self._parse_call_arguments()
                self._skip_past(";")
                body.append(FunctionCall("monitorAuditTrail"))
            elif self._match("fallbackToHuman"):
                self._skip_whitespace()
                if self._match("if"):
                    self._skip_whitespace()
                condition = parse_condition(self._parse_until(";"))
                self._skip_past(";")
                body.append(FallbackStatement(condition))
            elif self._match("//"):
                self._skip_comment()
            else:
                self._advance()
            self._skip_whitespace()

        self._expect("}")
        return DeployModelDeclaration(name, location, body)

    def _parse_sync_ledger(self) -> SyncLedgerDeclaration:
        self._skip_whitespace()
        name = self._parse_identifier()
        self._skip_whitespace()
        self._expect("{")
        self._skip_whitespace()

        body: list[Node] = []
        while not self._at_end() and self._peek() != "}":
            if self._match("adaptiveLatency"):
                self._skip_whitespace()
                if self._peek() == "(":
                    body.append(FunctionCall("adaptiveLatency",
                                             self._parse_call_arguments()))
                self._skip_past(";")
            elif self._match("validateZeroKnowledgeProofs"):
                self._skip_whitespace()
                self._parse_call_arguments()
                self._skip_past(";")
                body.append(FunctionCall("validateZeroKnowledgeProofs"))
            elif self._match("//"):
                self._skip_comment()
            else:
                self._advance()
            self._skip_whitespace()

        self._expect("}")
        return SyncLedgerDeclaration(name, body)

    def _parse_resolve_paradox(self) -> ResolveParadoxDeclaration:
        self._skip_whitespace()
        data_name = self._parse_identifier()
        self._skip_whitespace()
        if self._match("using"):
            self._skip_whitespace()
        method_name = self._parse_identifier()
        self._skip_whitespace()
        args = self._parse_call_arguments()
        self._skip_past(";")
        return ResolveParadoxDeclaration(data_name, FunctionCall(method_name, args))

    def _parse_function(self) -> FunctionDeclaration:
        self._skip_whitespace()
        name = self._parse_identifier()
        self._skip_whitespace()
        if not self._expect("("):
            return FunctionDeclaration(name)

        params = [p.strip() for p in self._parse_until(")").split(",") if p.strip()]
        self._expect(")")
        self._skip_whitespace()

        # Body is skipped by brace counting
        if self._expect("{"):
            depth = 1
            while not self._at_end() and depth > 0:
                c = self._code[self._pos]
                if c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                self._advance()

        return FunctionDeclaration(name, params)
