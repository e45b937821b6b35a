"""Blocking client for the SINGULARIS PRIME bridge.

Example::

    from singularis.bridge.client import SingularisClient

    with SingularisClient(port=9876) as sp:
        tree = sp.parse(source)
        lines = sp.execute(source, seed=42)
        channel = sp.entangle("Alice", "Bob")
"""

from __future__ import annotations

import socket
import uuid
from typing import Any

from .protocol import BridgeMessage

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9876


class BridgeError(RuntimeError):
    """The bridge answered with ``status="error"``."""


class SingularisClient:
    """One TCP connection, one request in flight at a time."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 timeout: float = 30.0):
        self.address = (host, port)
        self.timeout = timeout
        self._sock: socket.socket | None = None
        self._pending = b""

    def connect(self) -> None:
        self._sock = socket.create_connection(self.address, timeout=self.timeout)
        self._pending = b""

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    def __enter__(self) -> SingularisClient:
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _read_line(self) -> bytes:
        while True:
            head, sep, rest = self._pending.partition(b"\n")
            if sep:
                self._pending = rest
                return head
            chunk = self._sock.recv(65536)
            if not chunk:
                raise ConnectionError("Bridge closed the connection")
            self._pending += chunk

    def request(self, action: str, params: dict | None = None) -> Any:
        """Send one request and return its ``data``.

        ``action`` is an action name or a route such as ``/api/compile``.
        Raises :class:`BridgeError` when the bridge reports an error.
        """
        if self._sock is None:
            raise RuntimeError("Client is not connected; call connect() or use 'with'")

        request_id = uuid.uuid4().hex
        self._sock.sendall(BridgeMessage(id=request_id, action=action,
                                         params=params or {}).to_bytes())
        reply = BridgeMessage.from_json(self._read_line().decode("utf-8"))
        if reply.status == "error":
            raise BridgeError(f"{action}: {reply.error}")
        return reply.data

    @staticmethod
    def _seeded(params: dict, seed: int | None) -> dict:
        if seed is not None:
            params["seed"] = seed
        return params

    # -- language --

    def ping(self) -> bool:
        return bool(self.request("ping").get("pong"))

    def parse(self, code: str) -> list[dict]:
        return self.request("parse", {"code": code})

    def compile(self, code: str) -> list[str]:
        return self.request("compile", {"code": code})["bytecode"]

    def check(self, code: str) -> dict:
        """Bytecode plus checker diagnostics; see ``CompilationResult.to_dict``."""
        return self.request("check", {"code": code})

    def execute(self, code: str, seed: int | None = None) -> list[str]:
        return self.request("execute", self._seeded({"code": code}, seed))["output"]

    def execute_direct(self, code: str) -> list[str]:
        return self.request("execute_direct", {"code": code})["output"]

    def glyph(self, spell: str | None = None) -> dict:
        return self.request("glyph", {"spell": spell} if spell else {})

    # -- quantum mocks --

    def entangle(self, node_a: str, node_b: str, seed: int | None = None) -> dict:
        return self.request("entangle", self._seeded({"nodeA": node_a, "nodeB": node_b}, seed))

    def qkd(self, bits: int = 256, seed: int | None = None) -> dict:
        return self.request("qkd", self._seeded({"bits": bits}, seed))

    def simulate_circuit(self, gates: list[dict], explain: bool = False) -> dict:
        return self.request("circuit_simulate", {"gates": gates, "options": {"explain": explain}})

    def optimize_circuit(self, gates: list[dict], goal: str = "gate_count") -> dict:
        return self.request("circuit_optimize", {"gates": gates, "optimization": {"goal": goal}})

    def magnetic_hamiltonian(self, **params) -> dict:
        """Keyword names are the request keys (``type``, ``systemSize``, ...)."""
        return self.request("magnetism_hamiltonian", params)

    def simulate_magnetism(self, options: dict | None = None, seed: int | None = None) -> dict:
        return self.request("magnetism_simulate", self._seeded({"options": options or {}}, seed))

    def negotiate(self, initiator, responder, terms: dict, threshold: float = 0.8,
                  enhanced: bool = False, seed: int | None = None) -> dict:
        """Parties are names or entity dicts (``name``, ``trustLevel``, ...)."""
        params = {"initiator": initiator, "responder": responder, "terms": terms,
                  "explainabilityThreshold": threshold}
        return self.request("negotiate_enhanced" if enhanced else "negotiate",
                            self._seeded(params, seed))

    # -- assistant --

    def analyze(self, code: str, detail_level: str = "moderate") -> str:
        return self.request("analyze", {"code": code, "detailLevel": detail_level})["analysis"]

    def evaluate_explainability(self, code: str, threshold: float = 0.8) -> dict:
        return self.request("explainability", {"code": code, "threshold": threshold})

    def providers(self) -> list[dict]:
        return self.request("ai_providers")
