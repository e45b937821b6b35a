"""Config, run records, seeds, program files and figure export."""

from __future__ import annotations

import json

import numpy as np
import pytest

from singularis.core.config import AppConfig
from singularis.core.experiment import RunRecord, SeedManager
from singularis.core.export import FigureExporter
from singularis.core.serialization import ProgramFile, ProgramSerializer
from singularis.language.interpreter import InterpreterError
from singularis.simulation import magnetism as mg

PROGRAM = "quantumKey qk = entangle(Alice, Bob);\ncontract C { enforce explainabilityThreshold(0.9); require qk; }"


# =========================================================================
# AppConfig
# =========================================================================

def test_config_save_load(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("SINGULARIS_BRIDGE_PORT", raising=False)
    config = AppConfig(_config_dir=tmp_path)
    config.bridge_port = 9999
    config.seed = 42
    config.openai_api_key = "sk-secret"
    config.save()

    saved = json.loads(config.config_path.read_text())
    assert "openai_api_key" not in saved

    loaded = AppConfig.load(tmp_path)
    assert loaded.bridge_port == 9999
    assert loaded.seed == 42
    assert loaded.openai_api_key == ""


def test_config_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("SINGULARIS_BRIDGE_PORT", "7001")
    loaded = AppConfig.load(tmp_path)
    assert loaded.openai_api_key == "sk-env"
    assert loaded.bridge_port == 7001


def test_config_apply_env_ignores_bad_port():
    config = AppConfig()
    config.apply_env({"SINGULARIS_BRIDGE_PORT": "high"})
    assert config.bridge_port == 9876


def test_config_unreadable_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SINGULARIS_BRIDGE_PORT", raising=False)
    (tmp_path / "config.json").write_text("{broken")
    assert AppConfig.load(tmp_path).bridge_port == 9876


def test_config_non_object_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SINGULARIS_BRIDGE_PORT", raising=False)
    (tmp_path / "config.json").write_text("[1, 2]")
    assert AppConfig.load(tmp_path).bridge_port == 9876


def test_config_ignores_unknown_and_secret_keys(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    (tmp_path / "config.json").write_text(
        json.dumps({"recent_files": ["a.sgp"], "openai_api_key": "sk-file", "default_qkd_bits": 64}))
    loaded = AppConfig.load(tmp_path)
    assert loaded.default_qkd_bits == 64
    assert loaded.openai_api_key == ""
    assert not hasattr(loaded, "recent_files")


# =========================================================================
# RunRecord / SeedManager
# =========================================================================

def test_run_record_from_run():
    record = RunRecord.from_run(PROGRAM, seed=11, metadata={"tag": "demo"})
    assert record.bytecode[0] == "INIT_QKD qk Alice Bob"
    assert record.ast[0]["type"] == "QuantumKeyDeclaration"
    assert record.errors == []
    assert record.output == RunRecord.from_run(PROGRAM, seed=11).output
    assert record.timestamp


def test_run_record_save_load(tmp_path):
    record = RunRecord.from_run(PROGRAM, seed=3)
    path = tmp_path / "runs" / "run.json"
    record.save(path)
    assert RunRecord.load(path) == record


def test_run_record_json_default():
    record = RunRecord(seed=1, metadata={"arr": np.arange(3), "n": np.int64(4)})
    data = json.loads(record.to_json())
    assert data["metadata"] == {"arr": [0, 1, 2], "n": 4}


def test_run_record_propagates_runtime_errors():
    with pytest.raises(InterpreterError):
        RunRecord.from_run("contract C { require ghost; }", seed=1)


def test_seed_manager_reset_reproduces():
    mgr = SeedManager(42)
    a = mgr.create_child_rng().random(4)
    b = mgr.create_child_rng().random(4)
    mgr.reset()
    assert np.array_equal(mgr.create_child_rng().random(4), a)
    assert not np.array_equal(a, b)
    mgr.set_seed(7)
    assert mgr.seed == 7


# =========================================================================
# ProgramSerializer
# =========================================================================

def test_program_save_adds_extension(tmp_path):
    program = ProgramSerializer.save(PROGRAM, tmp_path / "treaty")
    path = tmp_path / "treaty.sgp"
    assert path.exists()
    assert program.name == "treaty"
    loaded = ProgramSerializer.load(path)
    assert loaded == program
    assert loaded.bytecode[0] == "INIT_QKD qk Alice Bob"


def test_program_file_requires_source():
    with pytest.raises(ValueError):
        ProgramFile.from_dict({"name": "x"})
    assert ProgramFile.from_dict({"source": "s"}).name == "untitled"


# =========================================================================
# FigureExporter
# =========================================================================

def test_export_magnetism_and_phases(tmp_path):
    h = mg.create_magnetic_hamiltonian({"systemSize": 3})
    rng = np.random.default_rng(0)
    result = mg.simulate_quantum_magnetism(h, {"time": 1.0}, rng)
    png = FigureExporter.export_magnetism_evolution(result, tmp_path / "evo.png")
    assert png.stat().st_size > 0

    scan = mg.analyze_quantum_phases(h, 0.0, 2.0, 11, rng=rng)
    svg = FigureExporter.export_phase_scan(scan, tmp_path / "out" / "phases.svg")
    assert svg.read_text(encoding="utf-8").lstrip().startswith("<?xml")


def test_export_qudit_probabilities(tmp_path):
    path = FigureExporter.export_qudit_probabilities([0.25] * 4, tmp_path / "q.png")
    assert path.exists()


def test_export_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError, match="Unsupported export format"):
        FigureExporter.export_qudit_probabilities([1.0], tmp_path / "q.pdf")
