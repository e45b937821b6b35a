"""Wire format of the SINGULARIS PRIME bridge.

One JSON object per line. Requests name an ``action`` (or a REST-style
path such as ``/api/compile``) and carry ``params``; responses echo the
request ``id`` with ``status`` set to ``ok`` (payload in ``data``) or
``error`` (message in ``error``).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field


@dataclass
class BridgeMessage:
    """Request or response exchanged with the bridge.

    Attributes:
        type: ``request`` or ``response``.
        id: Client-chosen id, copied onto the response.
        action: Action name or route path; empty on responses.
        params: Request arguments.
        status: ``ok`` or ``error``; empty on requests.
        data: Response payload. Usually a dict; ``parse`` and
            ``ai_providers`` answer with a list.
        error: Human-readable failure message.
    """
    type: str = "request"
    id: str = ""
    action: str = ""
    params: dict = field(default_factory=dict)
    status: str = ""
    data: dict | list = field(default_factory=dict)
    error: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    def to_bytes(self) -> bytes:
        """UTF-8 encoded line, newline included."""
        return f"{self.to_json()}\n".encode("utf-8")

    @classmethod
    def from_json(cls, raw: str) -> BridgeMessage:
        """Decode one line.

        Raises json.JSONDecodeError on malformed text and ValueError when
        the message or its ``params`` is not a JSON object, or
        ``action`` is not a string.
        """
        payload = json.loads(raw.strip())
        if not isinstance(payload, dict):
            raise ValueError("Bridge message must be a JSON object")
        action = payload.get("action", "")
        if not isinstance(action, str):
            raise ValueError("'action' must be a string")
        params = payload.get("params") or {}
        if not isinstance(params, dict):
            raise ValueError("'params' must be a JSON object")
        return cls(
            type=payload.get("type", "request"),
            id=str(payload.get("id", "")),
            action=action,
            params=params,
            status=payload.get("status", ""),
            data=payload.get("data", {}),
            error=payload.get("error", ""),
        )

    @classmethod
    def ok_response(cls, request_id: str, data: dict | list | None = None) -> BridgeMessage:
        return cls(type="response", id=request_id, status="ok",
                   data={} if data is None else data)

    @classmethod
    def error_response(cls, request_id: str, error: str) -> BridgeMessage:
        return cls(type="response", id=request_id, status="error", error=error)
