"""Settings for the CLI and the bridge, stored in ``~/.singularis/config.json``."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_API_KEY = "OPENAI_API_KEY"
ENV_PORT = "SINGULARIS_BRIDGE_PORT"
# Secrets come from the environment only
_NOT_SAVED = ("openai_api_key",)


@dataclass
class AppConfig:
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 9876
    log_level: str = "INFO"
    ai_provider: str = ""
    openai_model: str = "gpt-4o"
    openai_api_key: str = ""
    openai_base_url: str = ""
    seed: int | None = None
    default_qudit_dimension: int = 37
    default_qkd_bits: int = 256

    _config_dir: Path = field(
        default_factory=lambda: Path.home() / ".singularis",
        repr=False)

    @property
    def config_path(self) -> Path:
        return self._config_dir / "config.json"

    def _persisted(self) -> dict:
        return {
            f.name: getattr(self, f.name) for f in fields(self)
            if not f.name.startswith("_") and f.name not in _NOT_SAVED
        }

    def save(self):
        self._config_dir.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(self._persisted(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> AppConfig:
        """Read the config file if present, then apply environment overrides.

        A missing or unreadable file leaves the defaults in place.
        """
        config = cls() if config_dir is None else cls(_config_dir=Path(config_dir))
        path = config.config_path
        if path.exists():
            try:
                stored = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config %s: %s", path, e)
            else:
                if not isinstance(stored, dict):
                    logger.warning("Ignoring config %s: expected a JSON object", path)
                    stored = {}
                known = set(config._persisted())
                for key, value in stored.items():
                    if key in known:
                        setattr(config, key, value)
        config.apply_env()
        return config

    def apply_env(self, environ=None):
        environ = os.environ if environ is None else environ
        key = environ.get(ENV_API_KEY)
        if key:
            self.openai_api_key = key
        port = environ.get(ENV_PORT)
        if port:
            try:
                self.bridge_port = int(port)
            except ValueError:
                logger.warning("Ignoring non-numeric %s=%r", ENV_PORT, port)
