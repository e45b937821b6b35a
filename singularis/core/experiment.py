"""Reproducible program runs.

:class:`RunRecord` captures everything one run produced (source, AST,
bytecode, console lines, checker diagnostics) as JSON; :class:`SeedManager`
derives per-request generators from a single master seed.
"""

from __future__ import annotations

import datetime
import json
from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from singularis.language.compiler import SingularisCompiler
from singularis.language.interpreter import RUNTIME_VERSION, SingularisInterpreter
from singularis.language.nodes import ast_to_dicts
from singularis.language.parser import SingularisParser


# ---------------------------------------------------------------------------
# RunRecord
# ---------------------------------------------------------------------------

@dataclass
class RunRecord:
    """Snapshot of one program run.

    Parameters
    ----------
    seed : int | None
        Master random seed used for the run.  ``None`` means the run was
        not seeded (non-deterministic).
    source : str
        The program text that was run.
    ast : list[dict]
        Serialised AST as produced by :func:`ast_to_dicts`.
    bytecode : list[str]
        Compiler output for ``source``.
    output : list[str]
        Interpreter console lines.
    errors, warnings : list[dict]
        Checker diagnostics.
    timestamp : str
        ISO-8601 formatted timestamp of when the run was recorded.
    runtime_version : str
        Version string of the runtime that produced the output.
    metadata : dict | None
        Free-form dictionary for user notes or tags.
    """

    seed: int | None = None
    source: str = ""
    ast: list[dict] = field(default_factory=list)
    bytecode: list[str] = field(default_factory=list)
    output: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)
    timestamp: str = ""
    runtime_version: str = RUNTIME_VERSION
    metadata: dict | None = None

    # -- Serialisation helpers ------------------------------------------------

    @staticmethod
    def _json_default(obj):
        """Best-effort JSON conversion for numpy, enum and dataclass objects."""
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if is_dataclass(obj):
            return asdict(obj)
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, default=self._json_default,
                          ensure_ascii=False)

    def save(self, filepath: str | Path) -> None:
        """Write the record to a JSON file, creating parent directories."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def from_json(cls, json_str: str) -> RunRecord:
        data = json.loads(json_str)
        return cls(**data)

    @classmethod
    def load(cls, filepath: str | Path) -> RunRecord:
        return cls.from_json(Path(filepath).read_text(encoding="utf-8"))

    @classmethod
    def from_run(cls, source: str, seed: int | None = None,
                 metadata: dict | None = None) -> RunRecord:
        """Parse, check, compile and interpret ``source`` in one go.

        Parameters
        ----------
        source : str
            Program text.
        seed : int | None, optional
            Seed for the interpreter's random generator.
        metadata : dict | None, optional
            Stored verbatim on the record.

        Returns
        -------
        RunRecord
            A fully populated record.  Interpretation errors propagate.
        """
        ast = SingularisParser().parse(source)
        result = SingularisCompiler().compile_with_checks(source)
        output = SingularisInterpreter(ast, rng=np.random.default_rng(seed)).execute()
        return cls(
            seed=seed,
            source=source,
            ast=ast_to_dicts(ast),
            bytecode=list(result.bytecode),
            output=list(output),
            errors=[d.to_dict() for d in result.errors],
            warnings=[d.to_dict() for d in result.warnings],
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
            metadata=metadata,
        )


# ---------------------------------------------------------------------------
# SeedManager
# ---------------------------------------------------------------------------

class SeedManager:
    """Hands out one generator per bridge request from a master seed.

    With a master seed the sequence of child generators is reproducible
    (and restarts after :meth:`reset`); with ``None`` every child draws
    from OS entropy.

    >>> seeds = SeedManager(7)
    >>> a = seeds.create_child_rng().random()
    >>> seeds.reset()
    >>> a == seeds.create_child_rng().random()
    True
    """

    def __init__(self, seed: int | None = None):
        self.set_seed(seed)

    @property
    def seed(self) -> int | None:
        return self._master_seed

    def set_seed(self, seed: int | None) -> None:
        self._master_seed = seed
        self.reset()

    def reset(self) -> None:
        self._master = np.random.default_rng(self._master_seed)

    def create_child_rng(self) -> np.random.Generator:
        return np.random.default_rng(self._master.integers(0, 2**63))
