"""TCP server for the SINGULARIS PRIME bridge.

Runs a select() loop on a background thread. Accepts connections on
localhost and dispatches JSON requests to BridgeCommandHandler.
"""

from __future__ import annotations

import json
import logging
import re
import select
import socket
import threading

import numpy as np

from singularis.assistant.assistant import DEFAULT_EXPLAINABILITY_THRESHOLD, SingularisAssistant
from singularis.assistant.providers import ProviderError, build_registry
from singularis.core.config import AppConfig
from singularis.core.experiment import SeedManager
from singularis.language.compiler import SingularisCompiler
from singularis.language.glyph import EXAMPLE_SPELL, generate_ui_config, parse_glyphic_spell
from singularis.language.interpreter import SingularisInterpreter, execute_source
from singularis.language.nodes import ast_to_dicts
from singularis.language.parser import SingularisParser
from singularis.simulation import circuit as circuit_sim
from singularis.simulation import magnetism, qudit
from singularis.simulation.negotiation import (
    DEFAULT_NEGOTIATION_THRESHOLD, as_entity, simulate_ai_negotiation,
)
from singularis.simulation.quantum import simulate_qkd, simulate_quantum_entanglement

from .protocol import BridgeMessage

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9876
# Longest request line a client may send before being disconnected
MAX_LINE_BYTES = 1 << 20

# REST-style paths accepted in place of action names
ROUTES = {
    "/api/parse": "parse",
    "/api/execute": "execute",
    "/api/execute/direct": "execute_direct",
    "/api/compile": "compile",
    "/api/check": "check",
    "/api/quantum/entangle": "entangle",
    "/api/quantum/qkd": "qkd",
    "/api/quantum/circuit/simulate": "circuit_simulate",
    "/api/quantum/circuit/optimize": "circuit_optimize",
    "/api/analyze": "analyze",
    "/api/documentation": "documentation",
    "/api/quantum/explain": "explain",
    "/api/quantum/paradox": "paradox",
    "/api/evaluate/explainability": "explainability",
    "/api/suggest": "suggest",
    "/api/ai/providers": "ai_providers",
    "/api/ai/providers/active": "ai_provider_active",
    "/api/quantum/magnetism/hamiltonian": "magnetism_hamiltonian",
    "/api/quantum/magnetism/simulate": "magnetism_simulate",
    "/api/quantum/magnetism/phases": "magnetism_phases",
    "/api/quantum/qudit/create": "qudit_create",
    "/api/quantum/qudit/transform": "qudit_transform",
    "/api/quantum/qudit/entangle": "qudit_entangle",
    "/api/quantum/qudit/measure": "qudit_measure",
    "/api/quantum/qudit/superposition": "qudit_superposition",
    "/api/ai/negotiate": "negotiate",
    "/api/ai/negotiate/enhanced": "negotiate_enhanced",
    "/glyph": "glyph",
}
_CONFIGURE_RE = re.compile(r"^/api/ai/providers/([^/]+)/configure$")


class BridgeParamError(ValueError):
    """A request is missing a required parameter."""


def resolve_action(action: str, params: dict) -> tuple[str, dict]:
    """Map a REST-style path to an action name.

    ``/api/ai/providers/<id>/configure`` puts ``<id>`` into ``params["id"]``.
    Plain action names pass through unchanged.
    """
    if not isinstance(action, str):
        raise BridgeParamError(f"Action must be a string, got {type(action).__name__}")
    if action in ROUTES:
        return ROUTES[action], params
    m = _CONFIGURE_RE.match(action)
    if m:
        return "ai_provider_configure", {**params, "id": m.group(1)}
    return action, params


def _require_str(params: dict, name: str, message: str) -> str:
    value = params.get(name)
    if not value or not isinstance(value, str):
        raise BridgeParamError(message)
    return value


def _require(params: dict, name: str, message: str):
    value = params.get(name)
    if value is None or value == "":
        raise BridgeParamError(message)
    return value


class BridgeCommandHandler:
    """Processes incoming bridge requests and produces responses.

    Holds the assistant, the seed manager and the last Hamiltonian built
    through ``magnetism_hamiltonian``.  All public methods return
    BridgeMessage responses.
    """

    def __init__(self, config: AppConfig | None = None,
                 assistant: SingularisAssistant | None = None):
        self._config = config or AppConfig()
        if assistant is None:
            registry = build_registry(api_key=self._config.openai_api_key or None,
                                      model=self._config.openai_model,
                                      base_url=self._config.openai_base_url or None)
            if self._config.ai_provider:
                registry.set_active(self._config.ai_provider)
            assistant = SingularisAssistant(registry)
        self._assistant = assistant
        self._seeds = SeedManager(self._config.seed)
        self._compiler = SingularisCompiler()
        self._hamiltonian: magnetism.MagneticHamiltonian | None = None

    @property
    def assistant(self) -> SingularisAssistant:
        return self._assistant

    def _rng(self, params: dict) -> np.random.Generator:
        seed = params.get("seed")
        if seed is not None:
            return np.random.default_rng(int(seed))
        return self._seeds.create_child_rng()

    # -- command dispatch --

    def handle(self, msg: BridgeMessage) -> BridgeMessage:
        """Route a request message to the appropriate handler.

        Never raises: every failure becomes an error response.
        """
        action = msg.action
        try:
            action, params = resolve_action(msg.action, msg.params)
            handler = getattr(self, f"_cmd_{action}", None)
            if handler is None:
                return BridgeMessage.error_response(msg.id, f"Unknown action: {msg.action}")
            return handler(msg.id, params)
        except BridgeParamError as e:
            logger.warning("Bridge command '%s' rejected: %s", action, e)
            return BridgeMessage.error_response(msg.id, str(e))
        except Exception as e:
            logger.error("Bridge command '%s' failed: %s", action, e, exc_info=True)
            return BridgeMessage.error_response(msg.id, str(e))

    # -- language --

    def _cmd_ping(self, rid: str, params: dict) -> BridgeMessage:
        return BridgeMessage.ok_response(rid, {"pong": True})

    def _cmd_parse(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        return BridgeMessage.ok_response(rid, ast_to_dicts(SingularisParser().parse(code)))

    def _cmd_execute(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        ast = SingularisParser().parse(code)
        output = SingularisInterpreter(ast, rng=self._rng(params)).execute()
        return BridgeMessage.ok_response(rid, {"output": output})

    def _cmd_execute_direct(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        return BridgeMessage.ok_response(rid, {"output": execute_source(code)})

    def _cmd_compile(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        return BridgeMessage.ok_response(rid, {"bytecode": self._compiler.compile(code)})

    def _cmd_check(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        return BridgeMessage.ok_response(rid, self._compiler.compile_with_checks(code).to_dict())

    def _cmd_glyph(self, rid: str, params: dict) -> BridgeMessage:
        spell = parse_glyphic_spell(params.get("spell") or EXAMPLE_SPELL)
        return BridgeMessage.ok_response(rid, {
            "spell": spell.to_dict(),
            "config": generate_ui_config(spell),
        })

    # -- quantum mocks --

    def _cmd_entangle(self, rid: str, params: dict) -> BridgeMessage:
        if not params.get("nodeA") or not params.get("nodeB"):
            raise BridgeParamError("Two nodes are required for entanglement")
        return BridgeMessage.ok_response(rid, simulate_quantum_entanglement(
            str(params["nodeA"]), str(params["nodeB"]), self._rng(params)))

    def _cmd_qkd(self, rid: str, params: dict) -> BridgeMessage:
        default_bits = self._config.default_qkd_bits
        try:
            bits = int(params.get("bits") or default_bits)
        except (TypeError, ValueError):
            bits = default_bits
        return BridgeMessage.ok_response(rid, simulate_qkd(bits, self._rng(params)))

    def _cmd_circuit_simulate(self, rid: str, params: dict) -> BridgeMessage:
        gates = _require(params, "gates", "Circuit gates are required")
        options = params.get("options") or {}
        result = circuit_sim.simulate_circuit(
            circuit_sim.Circuit.from_dict(gates),
            explain=bool(options.get("explain", False)),
            rng=self._rng(params),
        )
        return BridgeMessage.ok_response(rid, result)

    def _cmd_circuit_optimize(self, rid: str, params: dict) -> BridgeMessage:
        gates = _require(params, "gates", "Circuit gates are required")
        optimization = params.get("optimization")
        if not isinstance(optimization, dict) or not optimization.get("goal"):
            raise BridgeParamError("Optimization goal is required")
        goal = str(optimization["goal"])
        return BridgeMessage.ok_response(
            rid, circuit_sim.optimize_circuit(circuit_sim.Circuit.from_dict(gates), goal))

    def _cmd_magnetism_hamiltonian(self, rid: str, params: dict) -> BridgeMessage:
        self._hamiltonian = magnetism.create_magnetic_hamiltonian(params)
        return BridgeMessage.ok_response(rid, {
            "hamiltonian": self._hamiltonian.to_dict(),
            "code": magnetism.generate_magnetic_hamiltonian_code(self._hamiltonian),
        })

    def _magnetism_target(self, params: dict) -> magnetism.MagneticHamiltonian:
        if params.get("hamiltonian"):
            return magnetism.MagneticHamiltonian.from_dict(params["hamiltonian"])
        if self._hamiltonian is None:
            raise BridgeParamError("No Hamiltonian built; call magnetism_hamiltonian first")
        return self._hamiltonian

    def _cmd_magnetism_simulate(self, rid: str, params: dict) -> BridgeMessage:
        h = self._magnetism_target(params)
        return BridgeMessage.ok_response(rid, magnetism.simulate_quantum_magnetism(
            h, params.get("options") or {}, self._rng(params)))

    def _cmd_magnetism_phases(self, rid: str, params: dict) -> BridgeMessage:
        h = self._magnetism_target(params)
        return BridgeMessage.ok_response(rid, magnetism.analyze_quantum_phases(
            h,
            float(params.get("start", 0.0)),
            float(params.get("end", 2.0)),
            int(params.get("steps", 21)),
            params.get("paramName", "h"),
            self._rng(params),
        ))

    def _cmd_qudit_create(self, rid: str, params: dict) -> BridgeMessage:
        q = qudit.create_high_dimensional_qudit(
            int(params.get("dimensions", self._config.default_qudit_dimension)),
            params.get("initialState"),
            params.get("initialPhases"),
        )
        return BridgeMessage.ok_response(rid, {"qudit": q.to_dict(),
                                               "code": qudit.generate_qudit_code(q)})

    def _cmd_qudit_transform(self, rid: str, params: dict) -> BridgeMessage:
        q = qudit.HighDimensionalQudit.from_dict(_require(params, "qudit", "Qudit is required"))
        kind = _require_str(params, "transformation", "Transformation is required")
        result = qudit.apply_qudit_transformation(q, kind, params.get("phase"), params.get("matrix"))
        return BridgeMessage.ok_response(rid, {"qudit": result.to_dict()})

    def _cmd_qudit_entangle(self, rid: str, params: dict) -> BridgeMessage:
        q1 = qudit.HighDimensionalQudit.from_dict(_require(params, "qudit1", "Two qudits are required"))
        q2 = qudit.HighDimensionalQudit.from_dict(_require(params, "qudit2", "Two qudits are required"))
        a, b = qudit.entangle_qudits(q1, q2, params.get("entanglementType", "maximum_entanglement"),
                                     self._rng(params))
        return BridgeMessage.ok_response(rid, {
            "qudit1": a.to_dict(),
            "qudit2": b.to_dict(),
            "entropy": qudit.calculate_entanglement_entropy(a),
        })

    def _cmd_qudit_measure(self, rid: str, params: dict) -> BridgeMessage:
        q = qudit.HighDimensionalQudit.from_dict(_require(params, "qudit", "Qudit is required"))
        result = qudit.measure_qudit(q, params.get("basis", "computational"), self._rng(params))
        return BridgeMessage.ok_response(rid, result.to_dict())

    def _cmd_qudit_superposition(self, rid: str, params: dict) -> BridgeMessage:
        q = qudit.HighDimensionalQudit.from_dict(_require(params, "qudit", "Qudit is required"))
        result = qudit.create_equal_superposition(q, params.get("weights"))
        return BridgeMessage.ok_response(rid, {"qudit": result.to_dict()})

    # -- AI negotiation --

    def _negotiate(self, params: dict) -> tuple[dict, dict]:
        if not params.get("initiator") or not params.get("responder") or not params.get("terms"):
            raise BridgeParamError("Initiator, responder, and terms are required")
        terms = params["terms"]
        if not isinstance(terms, dict):
            raise BridgeParamError("Terms must be a JSON object")
        threshold = params.get("explainabilityThreshold")
        threshold = float(threshold) if threshold is not None else DEFAULT_NEGOTIATION_THRESHOLD
        result = simulate_ai_negotiation(params["initiator"], params["responder"], terms,
                                         threshold, self._rng(params))
        return result, terms

    def _cmd_negotiate(self, rid: str, params: dict) -> BridgeMessage:
        result, _ = self._negotiate(params)
        return BridgeMessage.ok_response(rid, result)

    def _cmd_negotiate_enhanced(self, rid: str, params: dict) -> BridgeMessage:
        result, terms = self._negotiate(params)
        enhancement = self._assistant.enhance_negotiation(
            as_entity(params["initiator"]).name,
            as_entity(params["responder"]).name,
            result.get("contract") or terms,
            result["negotiations"],
        )
        return BridgeMessage.ok_response(rid, {**result, **enhancement})

    # -- assistant --

    def _cmd_analyze(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        analysis = self._assistant.analyze_code(code, params.get("detailLevel", "moderate"))
        return BridgeMessage.ok_response(rid, {"analysis": analysis})

    def _cmd_documentation(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        doc = self._assistant.generate_documentation(code, params.get("detailLevel", "moderate"))
        return BridgeMessage.ok_response(rid, {"documentation": doc})

    def _cmd_explain(self, rid: str, params: dict) -> BridgeMessage:
        op = _require(params, "operationType", "Operation type is required")
        explanation = self._assistant.explain_quantum_operation(
            str(op), params.get("parameters") or {}, params.get("results") or {})
        return BridgeMessage.ok_response(rid, {"explanation": explanation})

    def _cmd_paradox(self, rid: str, params: dict) -> BridgeMessage:
        desc = _require(params, "paradoxDescription", "Paradox description is required")
        return BridgeMessage.ok_response(rid, self._assistant.suggest_paradox_resolution(
            str(desc), params.get("currentApproach") or "No current approach specified"))

    def _cmd_explainability(self, rid: str, params: dict) -> BridgeMessage:
        code = _require_str(params, "code", "Code is required")
        threshold = params.get("threshold")
        threshold = float(threshold) if threshold is not None else DEFAULT_EXPLAINABILITY_THRESHOLD
        return BridgeMessage.ok_response(rid, self._assistant.evaluate_explainability(code, threshold))

    def _cmd_suggest(self, rid: str, params: dict) -> BridgeMessage:
        desc = _require(params, "description", "Description is required")
        suggestion = self._assistant.suggest_code(str(desc), params.get("existingCode") or "")
        return BridgeMessage.ok_response(rid, {"suggestion": suggestion})

    def _cmd_ai_providers(self, rid: str, params: dict) -> BridgeMessage:
        return BridgeMessage.ok_response(rid, self._assistant.registry.list_providers())

    def _cmd_ai_provider_configure(self, rid: str, params: dict) -> BridgeMessage:
        provider_id = _require(params, "id", "Provider ID is required")
        config = {k: v for k, v in params.items() if k != "id"}
        try:
            self._assistant.registry.configure(provider_id, config)
        except KeyError:
            return BridgeMessage.error_response(rid, f"Failed to configure provider {provider_id}")
        return BridgeMessage.ok_response(rid, {
            "success": True,
            "message": f"Provider {provider_id} configured successfully",
        })

    def _cmd_ai_provider_active(self, rid: str, params: dict) -> BridgeMessage:
        provider_id = _require(params, "id", "Provider ID is required")
        registry = self._assistant.registry
        try:
            if not registry.get(provider_id).is_available():
                raise ProviderError(f"Provider {provider_id} is not available")
            registry.set_active(provider_id)
        except (KeyError, ProviderError) as e:
            logger.warning("Cannot activate provider %s: %s", provider_id, e)
            return BridgeMessage.error_response(rid, f"Failed to set provider {provider_id} as active")
        return BridgeMessage.ok_response(rid, {
            "success": True,
            "message": f"Provider {provider_id} set as active",
        })


class BridgeServer:
    """Non-blocking TCP server running on a background thread.

    Uses select() to avoid blocking, checking a stop flag periodically.
    ``port=0`` binds an ephemeral port; read it back from :attr:`port`.
    """

    def __init__(self, handler: BridgeCommandHandler, port: int = DEFAULT_PORT,
                 host: str = "127.0.0.1"):
        self._handler = handler
        self._host = host
        self._port = port
        self._running = False
        self._server_socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._port

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Bind and start serving in a background thread.

        Raises OSError when the port cannot be bound.
        """
        if self.is_running:
            return
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.setblocking(False)
        try:
            self._server_socket.bind((self._host, self._port))
            self._server_socket.listen(5)
        except OSError as e:
            logger.error("Failed to bind bridge server: %s", e)
            self._server_socket.close()
            self._server_socket = None
            raise
        self._port = self._server_socket.getsockname()[1]
        logger.info("Bridge server listening on %s:%d", self._host, self._port)

        self._running = True
        self._thread = threading.Thread(target=self._serve, name="singularis-bridge", daemon=True)
        self._thread.start()

    def serve_forever(self):
        """Start and block until interrupted."""
        self.start()
        try:
            while self.is_running:
                self._thread.join(0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def stop(self):
        """Signal the server loop to stop and wait for the thread."""
        self._running = False
        if self._thread is not None:
            self._thread.join(3.0)
            self._thread = None

    def _dispatch_line(self, sock: socket.socket, line: bytes):
        try:
            msg = BridgeMessage.from_json(line.decode("utf-8"))
            logger.debug("Bridge request: %s", msg.action)
            response = self._handler.handle(msg)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            response = BridgeMessage.error_response("", f"Invalid JSON: {e}")
        except ValueError as e:
            response = BridgeMessage.error_response("", str(e))
        try:
            payload = response.to_bytes()
        except (TypeError, ValueError) as e:
            logger.error("Cannot encode bridge response %s: %s", response.id, e)
            payload = BridgeMessage.error_response(
                response.id, f"Cannot encode response: {e}").to_bytes()
        sock.sendall(payload)

    def _accept(self, pending: dict[socket.socket, bytes]):
        try:
            client, addr = self._server_socket.accept()
        except OSError:
            return
        client.setblocking(True)
        pending[client] = b""
        logger.info("Bridge client connected: %s:%d", addr[0], addr[1])

    @staticmethod
    def _drop(client: socket.socket, pending: dict[socket.socket, bytes]):
        pending.pop(client, None)
        try:
            client.close()
        except OSError:
            pass

    def _serve(self):
        # Each connected client maps to its unterminated input
        pending: dict[socket.socket, bytes] = {}

        while self._running:
            try:
                ready, _, _ = select.select([self._server_socket, *pending], [], [], 0.2)
            except (ValueError, OSError):
                break

            for sock in ready:
                if sock is self._server_socket:
                    self._accept(pending)
                    continue
                try:
                    chunk = sock.recv(65536)
                except OSError:
                    chunk = b""
                if not chunk:
                    logger.info("Bridge client disconnected")
                    self._drop(sock, pending)
                    continue

                *lines, pending[sock] = (pending[sock] + chunk).split(b"\n")
                for line in filter(bytes.strip, lines):
                    try:
                        self._dispatch_line(sock, line)
                    except OSError as e:
                        logger.warning("Failed to send bridge response: %s", e)
                        self._drop(sock, pending)
                        break
                if len(pending.get(sock, b"")) > MAX_LINE_BYTES:
                    logger.warning("Dropping bridge client: request line exceeds %d bytes", MAX_LINE_BYTES)
                    self._drop(sock, pending)

        for client in list(pending):
            self._drop(client, pending)
        server_socket, self._server_socket = self._server_socket, None
        if server_socket is not None:
            try:
                server_socket.close()
            except OSError:
                pass
        logger.info("Bridge server stopped")
