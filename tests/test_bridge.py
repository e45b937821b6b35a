"""Bridge protocol, command handler and TCP round trip."""

from __future__ import annotations

import json
import socket
from types import SimpleNamespace

import pytest

from singularis.assistant import providers
from singularis.assistant.assistant import SingularisAssistant
from singularis.assistant.providers import FallbackProvider, ProviderRegistry
from singularis.bridge.client import BridgeError, SingularisClient
from singularis.bridge.protocol import BridgeMessage
from singularis.bridge import server as bridge_server
from singularis.bridge.server import BridgeCommandHandler, BridgeServer, resolve_action
from singularis.core.config import AppConfig

PROGRAM = "quantumKey qk = entangle(Alice, Bob);\ncontract C { enforce explainabilityThreshold(0.9); require qk; }"


@pytest.fixture
def handler():
    registry = ProviderRegistry()
    registry.register("fallback", lambda cfg: FallbackProvider())
    registry.set_active("fallback")
    return BridgeCommandHandler(AppConfig(seed=1), SingularisAssistant(registry))


def call(handler, action, **params) -> BridgeMessage:
    return handler.handle(BridgeMessage(id="r1", action=action, params=params))


def ok(handler, action, **params):
    response = call(handler, action, **params)
    assert response.status == "ok", response.error
    assert response.id == "r1"
    return response.data


def error(handler, action, **params) -> str:
    response = call(handler, action, **params)
    assert response.status == "error"
    return response.error


# =========================================================================
# Protocol
# =========================================================================

def test_message_json_round_trip():
    msg = BridgeMessage(id="7", action="compile", params={"code": "x"})
    parsed = BridgeMessage.from_json(msg.to_json())
    assert parsed == msg
    assert msg.to_bytes().endswith(b"\n")


def test_message_validation():
    with pytest.raises(ValueError):
        BridgeMessage.from_json("[1, 2]")
    with pytest.raises(ValueError):
        BridgeMessage.from_json('{"action": "ping", "params": [1]}')
    assert BridgeMessage.from_json('{"action": "ping", "params": null}').params == {}
    for bad in ('["parse"]', "5", "null"):
        with pytest.raises(ValueError, match="'action' must be a string"):
            BridgeMessage.from_json(f'{{"id": "1", "action": {bad}}}')


def test_resolve_action():
    assert resolve_action("/api/compile", {"code": "x"}) == ("compile", {"code": "x"})
    assert resolve_action("/api/ai/providers/openai/configure", {"apiKey": "k"}) == (
        "ai_provider_configure", {"apiKey": "k", "id": "openai"})
    assert resolve_action("ping", {}) == ("ping", {})


# =========================================================================
# Language commands
# =========================================================================

def test_ping(handler):
    assert ok(handler, "ping") == {"pong": True}


def test_unknown_action(handler):
    assert error(handler, "teleport") == "Unknown action: teleport"


def test_non_string_action_is_an_error_response(handler):
    for action in (["parse"], 5, None):
        response = handler.handle(BridgeMessage(id="r2", action=action))
        assert response.status == "error"
        assert response.id == "r2"
        assert response.error.startswith("Action must be a string")


@pytest.mark.parametrize("action", ["parse", "execute", "execute_direct", "compile", "check",
                                    "analyze", "documentation", "explainability"])
def test_missing_code(handler, action):
    assert error(handler, action) == "Code is required"


def test_parse_route(handler):
    data = ok(handler, "/api/parse", code=PROGRAM)
    assert isinstance(data, list)
    assert [n["type"] for n in data] == ["QuantumKeyDeclaration", "ContractDeclaration"]


def test_compile_and_check(handler):
    assert ok(handler, "/api/compile", code=PROGRAM)["bytecode"][0] == "INIT_QKD qk Alice Bob"
    report = ok(handler, "check", code="contract W { enforce explainabilityThreshold(0.2); }")
    assert report["success"] is False
    assert report["bytecode"] == []


def test_execute_is_seeded(handler):
    first = ok(handler, "execute", code=PROGRAM, seed=5)["output"]
    second = ok(handler, "/api/execute", code=PROGRAM, seed=5)["output"]
    assert first == second
    assert "Processing contract 'C'..." in first


def test_execute_runtime_error(handler):
    assert "Required resource not found" in error(handler, "execute", code="contract C { require ghost; }")


def test_execute_direct(handler):
    out = ok(handler, "/api/execute/direct", code=PROGRAM)["output"]
    assert out[0] == "Executing SINGULARIS PRIME bytecode..."


def test_glyph_default_spell(handler):
    data = ok(handler, "/glyph")
    assert data["spell"]["command"] == "BloomStellarConsole"
    assert data["config"]["theme"]["primaryColor"] == "amber"


# =========================================================================
# Quantum commands
# =========================================================================

def test_entangle(handler):
    data = ok(handler, "/api/quantum/entangle", nodeA="Alice", nodeB="Bob", seed=3)
    assert data["nodeA"] == "Alice"
    assert len(data["key"]) == 64
    assert error(handler, "entangle", nodeA="Alice") == "Two nodes are required for entanglement"


def test_qkd_bits_default(handler):
    assert ok(handler, "qkd", bits="many")["rawKeyLength"] == 512
    assert ok(handler, "/api/quantum/qkd", bits=16)["rawKeyLength"] == 32


def test_circuit_commands(handler):
    gates = [
        {"gate": "H", "targets": [0], "controls": [], "position": 0},
        {"gate": "CNOT", "targets": [1], "controls": [0], "position": 1},
    ]
    data = ok(handler, "/api/quantum/circuit/simulate", gates=gates, options={"explain": True})
    assert data["probabilities"] == {"00": 0.5, "11": 0.5}
    assert "explanation" in data
    assert error(handler, "circuit_simulate") == "Circuit gates are required"


@pytest.mark.parametrize("goal", ["gate_count", "depth", "error_mitigation", "explainability"])
def test_circuit_optimize_reads_nested_goal(handler, goal):
    doubled = [{"gate": "H", "targets": [0], "position": 0}, {"gate": "H", "targets": [0], "position": 1}]
    data = ok(handler, "/api/quantum/circuit/optimize", gates=doubled, optimization={"goal": goal})
    assert data["goal"] == goal
    assert data["removedGates"] == 2


def test_circuit_optimize_requires_goal(handler):
    gates = [{"gate": "H", "targets": [0]}]
    assert error(handler, "circuit_optimize", gates=gates) == "Optimization goal is required"
    assert error(handler, "circuit_optimize", gates=gates, goal="depth") == "Optimization goal is required"
    assert "Unknown optimization goal" in error(
        handler, "circuit_optimize", gates=gates, optimization={"goal": "speed"})


def test_magnetism_commands(handler):
    assert "magnetism_hamiltonian first" in error(handler, "magnetism_simulate")

    built = ok(handler, "/api/quantum/magnetism/hamiltonian", type="ising", systemSize=3)
    assert built["hamiltonian"]["systemSize"] == 3
    assert "createIsingHamiltonian" in built["code"]

    sim = ok(handler, "magnetism_simulate", options={"time": 0.5, "timeStep": 0.1}, seed=2)
    assert len(sim["evolution"]["time"]) == 5

    scan = ok(handler, "magnetism_phases", start=0.0, end=2.0, steps=21)
    assert scan["universalityClass"] == "Ising"

    other = ok(handler, "magnetism_phases", hamiltonian=dict(built["hamiltonian"], type="xy"), steps=5)
    assert other["universalityClass"] == "Unknown"

    assert "Unknown Hamiltonian type" in error(handler, "magnetism_hamiltonian", type="potts")


def test_qudit_commands(handler):
    created = ok(handler, "qudit_create", dimensions=4)["qudit"]
    assert created["dimensions"] == 4

    rolled = ok(handler, "qudit_transform", qudit=dict(created, amplitudes=[1, 0, 0, 0]),
                transformation="permutation")["qudit"]
    assert rolled["amplitudes"] == [0.0, 1.0, 0.0, 0.0]

    pair = ok(handler, "qudit_entangle", qudit1=created, qudit2=created, seed=1)
    assert pair["qudit1"]["entangledWith"] == pair["qudit2"]["entangledWith"]
    assert pair["entropy"] > 0

    measured = ok(handler, "qudit_measure", qudit=rolled)
    assert measured["outcome"] == 1

    assert error(handler, "qudit_transform", transformation="fourier") == "Qudit is required"
    assert "Dimensions must be between" in error(handler, "qudit_create", dimensions=99)


def test_default_qudit_dimension_from_config(handler):
    assert ok(handler, "qudit_create")["qudit"]["dimensions"] == 37


def test_qudit_superposition_and_bad_shapes(handler):
    created = ok(handler, "qudit_create", dimensions=4, initialState=[1, 0, 0, 0])["qudit"]
    uniform = ok(handler, "/api/quantum/qudit/superposition", qudit=created)["qudit"]
    assert uniform["amplitudes"] == pytest.approx([0.5] * 4)

    short = {"dimensions": 5, "amplitudes": [1.0], "phases": [0.0]}
    assert "needs 5 amplitudes" in error(handler, "qudit_transform", qudit=short,
                                         transformation="fourier")


def test_qkd_default_bits_from_config():
    handler = BridgeCommandHandler(AppConfig(seed=1, default_qkd_bits=16), SingularisAssistant(
        ProviderRegistry()))
    assert ok(handler, "qkd")["rawKeyLength"] == 32
    assert ok(handler, "qkd", bits="many")["rawKeyLength"] == 32


def test_handler_passes_openai_settings(monkeypatch):
    seen = {}

    def fake_openai(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace()

    monkeypatch.setattr(providers, "OpenAI", fake_openai)
    handler = BridgeCommandHandler(AppConfig(
        openai_api_key="sk-test", openai_base_url="http://localhost:8080/v1"))
    assert handler.assistant.registry.active_id == "openai"
    assert handler.assistant.registry.get("openai").is_available()
    assert seen == {"api_key": "sk-test", "base_url": "http://localhost:8080/v1"}


# =========================================================================
# AI negotiation
# =========================================================================

TRUSTED = {"name": "Atlas", "trustLevel": 1.0, "explainabilityScore": 0.9}
PARTNER = {"name": "Vega", "trustLevel": 1.0, "explainabilityScore": 0.9}


def test_negotiate_command(handler):
    data = ok(handler, "/api/ai/negotiate", initiator=TRUSTED, responder=PARTNER,
              terms={"duration": "30 days"}, seed=5)
    assert data["success"] is True
    assert data["explainabilityScore"] == pytest.approx(0.9)
    assert data["negotiations"][0] == "Initiating contract negotiation between Atlas and Vega"
    assert data["contract"]["audit_requirements"][-1] == "Explainability score: 0.90"
    assert data == ok(handler, "negotiate", initiator=TRUSTED, responder=PARTNER,
                      terms={"duration": "30 days"}, seed=5)


def test_negotiate_enhanced_uses_local_template(handler):
    data = ok(handler, "/api/ai/negotiate/enhanced", initiator=TRUSTED, responder=PARTNER,
              terms={"objectives": ["Share telemetry"]}, seed=2)
    assert data["success"] is True
    assert data["enhancedTerms"]["objectives"] == ["Secure data exchange", "Privacy preservation"]
    assert "Verify explainability score exceeds 0.8" in data["humanOversightRecommendations"]
    assert data["additionalInsights"]


def test_negotiate_param_errors(handler):
    required = "Initiator, responder, and terms are required"
    assert error(handler, "negotiate", initiator="A", responder="B") == required
    assert error(handler, "negotiate_enhanced", initiator="A", terms={"x": 1}) == required
    assert error(handler, "negotiate", initiator="A", responder="B", terms=["x"]) == \
        "Terms must be a JSON object"
    assert "between 0 and 1" in error(handler, "negotiate", initiator="A", responder="B",
                                      terms={"x": 1}, explainabilityThreshold=2)


# =========================================================================
# Assistant commands
# =========================================================================

def test_assistant_commands(handler):
    assert "Code Analysis" in ok(handler, "/api/analyze", code=PROGRAM)["analysis"]
    assert ok(handler, "documentation", code="contract C {}")["documentation"].startswith("#")
    assert ok(handler, "/api/quantum/explain", operationType="qkd")["explanation"]
    assert ok(handler, "/api/quantum/paradox", paradoxDescription="loop")["recommendedApproach"]
    assert "quantumKey" in ok(handler, "/api/suggest", description="secure key")["suggestion"]

    report = ok(handler, "/api/evaluate/explainability", code=PROGRAM, threshold=0.5)
    assert report["threshold"] == 0.5
    assert 0.0 <= report["score"] <= 1.0


def test_assistant_param_errors(handler):
    assert error(handler, "explain") == "Operation type is required"
    assert error(handler, "paradox") == "Paradox description is required"
    assert error(handler, "suggest") == "Description is required"
    assert "between 0 and 1" in error(handler, "explainability", code="x", threshold=3)


def test_provider_commands(handler):
    providers = ok(handler, "/api/ai/providers")
    assert providers == [{
        "id": "fallback", "name": "Fallback Provider",
        "description": "Simple provider that works without external dependencies",
        "available": True, "active": True,
    }]
    assert ok(handler, "/api/ai/providers/fallback/configure", mode="quiet")["success"] is True
    assert error(handler, "/api/ai/providers/nope/configure") == "Failed to configure provider nope"
    assert ok(handler, "/api/ai/providers/active", id="fallback")["success"] is True
    assert error(handler, "ai_provider_active", id="nope") == "Failed to set provider nope as active"
    assert error(handler, "ai_provider_active") == "Provider ID is required"


# =========================================================================
# TCP round trip
# =========================================================================

@pytest.fixture
def server(handler):
    srv = BridgeServer(handler, port=0)
    srv.start()
    yield srv
    srv.stop()


def test_client_round_trip(server):
    assert server.port != 0
    with SingularisClient(port=server.port, timeout=5) as client:
        assert client.ping() is True
        assert client.compile(PROGRAM)[0] == "INIT_QKD qk Alice Bob"
        assert client.execute(PROGRAM, seed=4) == client.execute(PROGRAM, seed=4)
        assert client.entangle("A", "B", seed=1)["keyBits"] == 256
        assert client.glyph()["spell"]["deployPath"] == "/control"
        assert client.request("/api/parse", {"code": PROGRAM})[0]["name"] == "qk"
        hh = [{"gate": "H", "targets": [0], "position": p} for p in (0, 1)]
        assert client.optimize_circuit(hh, goal="depth")["goal"] == "depth"
        deal = client.negotiate(TRUSTED, PARTNER, {"duration": "7 days"}, enhanced=True, seed=3)
        assert deal["success"] is True and deal["humanOversightRecommendations"]
        with pytest.raises(BridgeError, match="Unknown action"):
            client.request("nope")
        # connection stays usable after an error
        assert client.providers()[0]["id"] == "fallback"


def test_server_rejects_invalid_json(server):
    with socket.create_connection(("127.0.0.1", server.port), timeout=5) as sock:
        sock.sendall(b"not json\n\n[1]\n")
        buf = b""
        while buf.count(b"\n") < 2:
            chunk = sock.recv(65536)
            assert chunk
            buf += chunk
    first, second = [json.loads(line) for line in buf.splitlines()[:2]]
    assert first["status"] == "error" and first["error"].startswith("Invalid JSON")
    assert second["error"] == "Bridge message must be a JSON object"


def test_client_requires_connection():
    with pytest.raises(RuntimeError):
        SingularisClient().request("ping")


def read_lines(sock, count: int) -> list[dict]:
    buf = b""
    while buf.count(b"\n") < count:
        chunk = sock.recv(65536)
        assert chunk
        buf += chunk
    return [json.loads(line) for line in buf.splitlines()[:count]]


def test_server_survives_non_string_action(server):
    with socket.create_connection(("127.0.0.1", server.port), timeout=5) as sock:
        sock.sendall(b'{"id": "1", "action": ["parse"]}\n{"id": "2", "action": 5}\n'
                     b'{"id": "3", "action": "ping"}\n')
        first, second, third = read_lines(sock, 3)
    assert first["status"] == second["status"] == "error"
    assert first["error"] == "'action' must be a string"
    assert (third["id"], third["status"], third["data"]) == ("3", "ok", {"pong": True})
    with SingularisClient(port=server.port, timeout=5) as client:
        assert client.ping() is True


def test_server_drops_client_with_oversized_line(server, monkeypatch):
    monkeypatch.setattr(bridge_server, "MAX_LINE_BYTES", 64)
    with socket.create_connection(("127.0.0.1", server.port), timeout=5) as sock:
        sock.sendall(b"x" * 200)
        try:
            closed = sock.recv(1024) == b""
        except ConnectionResetError:
            closed = True
        assert closed
    with SingularisClient(port=server.port, timeout=5) as client:
        assert client.ping() is True
