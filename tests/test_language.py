"""Parser, compiler, checker and interpreter behaviour."""

from __future__ import annotations

import numpy as np
import pytest

from singularis.language.checker import ProgramChecker
from singularis.language.compiler import InstructionType, SingularisCompiler
from singularis.language.interpreter import InterpreterError, SingularisInterpreter, execute_source
from singularis.language.nodes import (
    AIOptimizationDirective, Annotation, ContractDeclaration, DeployModelDeclaration,
    EnforceStatement, FallbackStatement, FunctionDeclaration, ImportDeclaration,
    NamedArgument, QuantumKeyDeclaration, ResolveParadoxDeclaration, SyncLedgerDeclaration,
    ast_to_dicts,
)
from singularis.language.parser import SingularisParser, parse_condition, split_arguments


PROGRAM = """
import "quantum/entanglement";

// secure channel
quantumKey qk = entangle(Alice, Bob);

contract Treaty {
  enforce explainabilityThreshold(0.9);
  require qk;
  execute consensusProtocol(epoch=3);
}

deployModel Rover to Mars {
  monitorAuditTrail();
  fallbackToHuman if confidence < 0.9;
}

syncLedger Chain {
  adaptiveLatency(max=15);
  validateZeroKnowledgeProofs();
}

resolveParadox data using selfOptimizingLoop(max_iterations=10);
"""


def parse(code: str):
    return SingularisParser().parse(code)


# =========================================================================
# Parser
# =========================================================================

def test_parse_full_program():
    ast = parse(PROGRAM)
    assert [n.type for n in ast] == [
        "ImportDeclaration", "QuantumKeyDeclaration", "ContractDeclaration",
        "DeployModelDeclaration", "SyncLedgerDeclaration", "ResolveParadoxDeclaration",
    ]
    imp, key, contract, deploy, ledger, paradox = ast
    assert imp.path == "quantum/entanglement"
    assert key.name == "qk" and key.parameters == ["Alice", "Bob"]
    assert [s.type for s in contract.body] == [
        "EnforceStatement", "RequireStatement", "ExecuteStatement"]
    assert contract.body[2].function_call.arguments == [NamedArgument("epoch", "3")]
    assert deploy.location == "Mars"
    fallback = deploy.body[1]
    assert isinstance(fallback, FallbackStatement)
    assert (fallback.condition.left, fallback.condition.operator, fallback.condition.right) == (
        "confidence", "<", "0.9")
    assert ledger.body[0].named("max") == "15"
    assert paradox.data_name == "data"
    assert paradox.method.name == "selfOptimizingLoop"


def test_contract_with_single_enforce():
    """A contract holding one enforce yields exactly one EnforceStatement."""
    ast = parse("contract C { enforce explainabilityThreshold(0.85); }")
    assert len(ast) == 1
    contract = ast[0]
    assert isinstance(contract, ContractDeclaration)
    assert len(contract.body) == 1
    assert isinstance(contract.body[0], EnforceStatement)
    assert contract.body[0].function_call.first_value() == "0.85"


@pytest.mark.parametrize("code", [
    "", "}", "{{{", "contract", "quantumKey", "deployModel x to",
    "@", "@optimize_for_fidelity(", "function f(", "import", "resolveParadox ;",
    "syncLedger L { adaptiveLatency", "\x00\x01\n\t", "contract X { enforce ",
    "quantumKey k = entangle(A,", "// only a comment",
])
def test_parser_never_raises(code):
    ast = parse(code)
    assert isinstance(ast, list)


def test_parser_random_input_terminates():
    rng = np.random.default_rng(0)
    alphabet = list("abc{}();=,@/\"' \n") + ["contract", "enforce", "deployModel", "import"]
    for _ in range(200):
        tokens = rng.choice(alphabet, size=int(rng.integers(0, 40)))
        assert isinstance(parse("".join(tokens)), list)


def test_parser_state_resets_between_calls():
    parser = SingularisParser()
    parser.parse("contract A {}\n\n\n")
    ast = parser.parse("@minimize_gates\nfunction f() {}")
    directive = ast[0].annotations[0]
    assert isinstance(directive, AIOptimizationDirective)
    assert (directive.line, directive.column) == (1, 2)


def test_annotations_attach_to_declaration():
    ast = parse('@critical_operation(level=2)\nquantumKey k = entangle(A, B);\n@note("x")\nfunction go(a, b) { if (a) { b(); } }')
    key, fn = ast
    assert isinstance(key.annotations[0], AIOptimizationDirective)
    assert key.annotations[0].parameters == "level=2"
    assert isinstance(fn, FunctionDeclaration)
    assert fn.parameters == ["a", "b"]
    assert isinstance(fn.annotations[0], Annotation)


def test_dangling_annotation_is_skipped():
    ast = parse("@differentiable foo;\ncontract C {}")
    assert [n.type for n in ast] == ["ContractDeclaration"]


def test_ast_to_dicts_has_type_tags():
    dicts = ast_to_dicts(parse(PROGRAM))
    assert all("type" in d for d in dicts)
    assert dicts[1]["parameters"] == ["Alice", "Bob"]


def test_split_arguments_and_conditions():
    assert split_arguments("a, b = 2 ,, c") == ["a", NamedArgument("b", "2"), "c"]
    cond = parse_condition("score >= 0.75")
    assert (cond.left, cond.operator, cond.right) == ("score", ">=", "0.75")
    assert str(cond) == "score >= 0.75"
    assert parse_condition("always").operator == ""


# =========================================================================
# Compiler
# =========================================================================

def test_tokenize():
    compiler = SingularisCompiler()
    assert compiler.tokenize("") == []
    assert compiler.tokenize("f(a,b); // gone") == ["f", "(", "a", ",", "b", ")", ";"]


def test_compile_bytecode():
    bytecode = SingularisCompiler().compile(PROGRAM)
    assert bytecode == [
        "INIT_QKD qk Alice Bob",
        "START_CONTRACT Treaty",
        "ENFORCE_RULE explainabilityThreshold 0.9",
        "DEPLOY_MODEL Rover 1.0 Mars",
        "SYNC_LEDGER Chain",
        "RESOLVE_PARADOX data selfOptimizingLoop",
    ]


def test_compile_extended_keywords():
    code = "negotiateAI AgentA with AgentB on trade; verifyAI Oracle using proofs; quantumDecision Bot via vote for launch;"
    parsed = SingularisCompiler().parse(SingularisCompiler().tokenize(code))
    assert [i.kind for i in parsed] == [
        InstructionType.AI_NEGOTIATE, InstructionType.AI_VERIFY, InstructionType.QUANTUM_DECISION]
    assert parsed[0].to_bytecode() == "NEGOTIATE_AI AgentA AgentB trade"


def test_compile_skips_short_keywords():
    assert SingularisCompiler().compile("quantumKey k; resolveParadox x;") == []


def test_execute_bytecode_log():
    compiler = SingularisCompiler()
    log = compiler.execute_bytecode(["INIT_QKD qk Alice Bob", "DEPLOY_MODEL Rover 2.1 Mars"])
    assert log[0] == "Executing SINGULARIS PRIME bytecode..."
    assert "  Quantum key qk established between Alice and Bob" in log
    assert "  AI model Rover v2.1 deployed to Mars" in log
    assert log[-1] == "Execution completed successfully."


def test_compile_with_checks_blocks_bytecode_on_error():
    result = SingularisCompiler().compile_with_checks(
        "contract Weak { enforce explainabilityThreshold(0.5); }")
    assert not result.success
    assert result.bytecode == []
    assert result.errors[0].kind == "ai_safety"
    assert result.to_dict()["errors"][0]["severity"] == "error"


def test_compile_with_checks_ok():
    result = SingularisCompiler().compile_with_checks(PROGRAM)
    assert result.success
    assert result.bytecode[0] == "INIT_QKD qk Alice Bob"


# =========================================================================
# Checker
# =========================================================================

def check(code: str) -> ProgramChecker:
    checker = ProgramChecker(code)
    checker.check(parse(code))
    return checker


def test_checker_accepts_governed_program():
    assert check(PROGRAM).ok


def test_checker_duplicate_and_self_entangled_keys():
    checker = check("quantumKey k = entangle(A, B);\nquantumKey k = entangle(A, A);")
    kinds = [e.kind for e in checker.errors]
    assert kinds == ["quantum", "quantum"]
    assert "declared twice" in checker.errors[0].message
    assert "itself" in checker.errors[1].message


def test_checker_mars_without_fallback():
    checker = check("deployModel Rover to Mars {\n  monitorAuditTrail();\n}")
    assert len(checker.errors) == 1
    assert checker.errors[0].kind == "ai_safety"
    assert checker.errors[0].suggestion


def test_checker_warnings():
    checker = check('import "unknown/module";\ncontract Bare { require x; }')
    assert checker.ok
    assert [w.kind for w in checker.warnings] == ["best_practice", "best_practice"]
    assert checker.warnings[1].line == 2


# =========================================================================
# Interpreter
# =========================================================================

def run(code: str, seed: int = 7) -> list[str]:
    return SingularisInterpreter(parse(code), rng=np.random.default_rng(seed)).execute()


def test_interpreter_output():
    out = run(PROGRAM)
    assert out[0] == "Initializing Quantum Runtime v2.3.0..."
    assert "Loaded module quantum-entanglement v2.3.0" in out
    assert "Establishing quantum entanglement channel... Done" in out
    assert "Processing contract 'Treaty'..." in out
    assert "[INFO] Executing Treaty contract" in out
    assert "Fallback condition set: confidence < 0.9" in out
    assert "Setting adaptive latency compensation to maximum 15 minutes" in out
    assert "[SUCCESS] ZKP verification complete" in out
    assert any(line.startswith("[SUCCESS] Contract deployed. Transaction hash: 0x") for line in out)
    assert any(line.startswith("Running self-optimizing loop (") and "/10 iterations)" in line
               for line in out)


def test_interpreter_is_deterministic_with_seed():
    assert run(PROGRAM, seed=3) == run(PROGRAM, seed=3)


def test_interpreter_missing_required_resource():
    with pytest.raises(InterpreterError, match="Required resource not found: ghost"):
        run("contract C { require ghost; }")


def test_interpreter_builtin_requirement_is_satisfied():
    out = run("contract C { require entangle; }")
    assert "Processing contract 'C'..." in out


def test_interpreter_non_numeric_threshold():
    with pytest.raises(InterpreterError):
        run("contract C { enforce explainabilityThreshold(high); }")


@pytest.mark.parametrize("value", ["inf", "1e30", "0", "abc"])
def test_interpreter_rejects_bad_iteration_limit(value):
    with pytest.raises(InterpreterError, match="max_iterations"):
        run(f"resolveParadox data using selfOptimizingLoop(max_iterations={value});")


def test_interpreter_records_functions_and_directives():
    interp = SingularisInterpreter(parse("@minimize_depth\nfunction go() {}"))
    interp.execute()
    assert "go" in interp.functions
    assert interp.directives[0].directive == "minimize_depth"


def test_explainability_score_bounds():
    interp = SingularisInterpreter([], rng=np.random.default_rng(1))
    for threshold in (0.0, 0.5, 1.0):
        score = interp.explainability_score(threshold)
        assert 0.0 <= score <= 1.0
        assert abs(score - threshold) <= 0.05 + 1e-9


def test_execute_source():
    out = execute_source("quantumKey k = entangle(A, B);")
    assert out == [
        "Executing SINGULARIS PRIME bytecode...",
        "> INIT_QKD k A B",
        "  Quantum key k established between A and B",
        "Execution completed successfully.",
    ]


def test_parser_compile_delegates():
    assert SingularisParser().compile("syncLedger L {}") == ["SYNC_LEDGER L"]


def test_node_kinds_in_full_program():
    ast = parse(PROGRAM)
    assert isinstance(ast[0], ImportDeclaration)
    assert isinstance(ast[1], QuantumKeyDeclaration)
    assert isinstance(ast[3], DeployModelDeclaration)
    assert isinstance(ast[4], SyncLedgerDeclaration)
    assert isinstance(ast[5], ResolveParadoxDeclaration)
