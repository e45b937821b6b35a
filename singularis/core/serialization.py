"""JSON save/load for SINGULARIS PRIME programs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from singularis.language.compiler import SingularisCompiler


@dataclass
class ProgramFile:
    """Program source plus its compiled form as stored on disk."""
    source: str
    name: str = "untitled"
    bytecode: list[str] = field(default_factory=list)
    version: str = "1.0"

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "name": self.name,
            "source": self.source,
            "bytecode": self.bytecode,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ProgramFile:
        if "source" not in data:
            raise ValueError("Program file is missing 'source'")
        return cls(
            source=data["source"],
            name=data.get("name", "untitled"),
            bytecode=list(data.get("bytecode", [])),
            version=data.get("version", "1.0"),
        )


class ProgramSerializer:
    """JSON save/load for programs."""

    FILE_VERSION = "1.0"
    FILE_EXTENSION = ".sgp"

    @staticmethod
    def save(source: str, filepath: Path | str, name: str | None = None) -> ProgramFile:
        filepath = Path(filepath)
        if not filepath.suffix:
            filepath = filepath.with_suffix(ProgramSerializer.FILE_EXTENSION)
        program = ProgramFile(
            source=source,
            name=name or filepath.stem,
            bytecode=SingularisCompiler().compile(source),
            version=ProgramSerializer.FILE_VERSION,
        )
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(program.to_dict(), f, indent=2, ensure_ascii=False)
        return program

    @staticmethod
    def load(filepath: Path | str) -> ProgramFile:
        filepath = Path(filepath)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return ProgramFile.from_dict(data)
