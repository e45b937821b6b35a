"""AST node definitions for SINGULARIS PRIME source code.

Nodes are loosely typed records: each carries a ``type`` tag equal to its
class name plus a handful of construct-specific fields. They are created
by :class:`~singularis.language.parser.SingularisParser` and consumed
immediately by the checker and interpreter.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Union


class Node:
    """Base class for all AST nodes."""

    @property
    def type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """JSON-ready representation including the ``type`` tag."""
        d: dict[str, Any] = {"type": self.type}
        for f in fields(self):
            d[_camel(f.name)] = _to_plain(getattr(self, f.name))
        return d


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_plain(value: Any) -> Any:
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    return value


@dataclass
class NamedArgument(Node):
    """A ``name = value`` argument inside a call."""
    name: str
    value: str


Argument = Union[str, NamedArgument]


@dataclass
class FunctionCall(Node):
    name: str
    arguments: list[Argument] = field(default_factory=list)

    def named(self, name: str, default: str | None = None) -> str | None:
        """Return the value of a named argument, or ``default``."""
        for arg in self.arguments:
            if isinstance(arg, NamedArgument) and arg.name == name:
                return arg.value
        return default

    def first_value(self) -> str | None:
        """Value of the first argument, named or positional."""
        if not self.arguments:
            return None
        arg = self.arguments[0]
        return arg.value if isinstance(arg, NamedArgument) else arg


@dataclass
class Annotation(Node):
    name: str
    parameters: str | None = None


@dataclass
class AIOptimizationDirective(Node):
    directive: str
    parameters: str | None = None
    line: int = 1
    column: int = 1


@dataclass
class ImportDeclaration(Node):
    path: str = ""


@dataclass
class QuantumKeyDeclaration(Node):
    name: str
    parameters: list[str] = field(default_factory=list)
    annotations: list[Node] = field(default_factory=list)


@dataclass
class EnforceStatement(Node):
    function_call: FunctionCall


@dataclass
class RequireStatement(Node):
    identifier: str


@dataclass
class ExecuteStatement(Node):
    function_call: FunctionCall


@dataclass
class ContractDeclaration(Node):
    name: str
    body: list[Node] = field(default_factory=list)
    annotations: list[Node] = field(default_factory=list)

    def enforced(self, rule: str) -> list[FunctionCall]:
        """Function calls of the ``enforce`` statements naming ``rule``."""
        return [s.function_call for s in self.body
                if isinstance(s, EnforceStatement) and s.function_call.name == rule]


@dataclass
class Condition(Node):
    left: str = ""
    operator: str = ""
    right: str = ""

    def __str__(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass
class FallbackStatement(Node):
    condition: Condition


@dataclass
class DeployModelDeclaration(Node):
    name: str
    location: str = ""
    body: list[Node] = field(default_factory=list)
    annotations: list[Node] = field(default_factory=list)


@dataclass
class SyncLedgerDeclaration(Node):
    name: str
    body: list[Node] = field(default_factory=list)


@dataclass
class ResolveParadoxDeclaration(Node):
    data_name: str
    method: FunctionCall


@dataclass
class FunctionDeclaration(Node):
    name: str
    parameters: list[str] = field(default_factory=list)
    annotations: list[Node] = field(default_factory=list)


def ast_to_dicts(nodes: list[Node]) -> list[dict]:
    """Convert a parsed program into a JSON-ready list."""
    return [n.to_dict() for n in nodes]
