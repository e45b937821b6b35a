"""Figure export utilities for PNG and SVG output.

Figures are built on a bare :class:`matplotlib.figure.Figure` attached to
the Agg canvas, so no display or GUI toolkit is needed.
"""

from __future__ import annotations

import logging
from pathlib import Path

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = (".png", ".svg")


class FigureExporter:
    """Renders simulation payloads to PNG or SVG files."""

    @staticmethod
    def _save(figure: Figure, filepath: str | Path, dpi: int = 150) -> Path:
        filepath = Path(filepath)
        if filepath.suffix.lower() not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported export format '{filepath.suffix}'; "
                f"expected one of {', '.join(SUPPORTED_FORMATS)}")
        filepath.parent.mkdir(parents=True, exist_ok=True)
        FigureCanvasAgg(figure)
        figure.tight_layout()
        figure.savefig(str(filepath), dpi=dpi)
        logger.info("Exported figure to %s", filepath)
        return filepath

    @staticmethod
    def export_magnetism_evolution(result: dict, filepath: str | Path) -> Path:
        """Plot the observables of a ``simulate_quantum_magnetism`` result.

        Args:
            result: Dict with ``evolution.time`` and ``evolution.observables``.
            filepath: Output path ending in .png or .svg.
        """
        evolution = result.get("evolution", {})
        time = evolution.get("time", [])
        observables = evolution.get("observables", {})

        figure = Figure(figsize=(7, 4), dpi=100)
        ax = figure.add_subplot(111)
        if not time or not observables:
            ax.text(0.5, 0.5, "No evolution data", ha="center", va="center",
                    transform=ax.transAxes, fontsize=12, color="gray")
        for name, values in observables.items():
            ax.plot(time, values, label=name, linewidth=1.5)
        ax.set_xlabel("Time")
        ax.set_ylabel("Value")
        ax.set_title(f"Quantum magnetism evolution ({result.get('hamiltonian', {}).get('type', '?')})")
        if observables:
            ax.legend(loc="best", fontsize=8)
        ax.grid(True, alpha=0.3)
        return FigureExporter._save(figure, filepath)

    @staticmethod
    def export_phase_scan(analysis: dict, filepath: str | Path) -> Path:
        """Plot order parameter, susceptibility and energy gap of a phase scan.

        Critical points are marked with dashed vertical lines.
        """
        p = analysis.get("paramValues", [])
        figure = Figure(figsize=(7, 6), dpi=100)
        axes = figure.subplots(3, 1, sharex=True)
        series = (
            ("orderParameter", "Order parameter"),
            ("susceptibility", "Susceptibility"),
            ("energyGap", "Energy gap"),
        )
        for ax, (key, label) in zip(axes, series):
            ax.plot(p, analysis.get(key, []), linewidth=1.5)
            ax.set_ylabel(label, fontsize=8)
            ax.grid(True, alpha=0.3)
            for cp in analysis.get("criticalPoints", []):
                ax.axvline(cp, color="red", linestyle="--", linewidth=1)
        axes[-1].set_xlabel(analysis.get("paramName", "parameter"))
        axes[0].set_title(f"Phase scan ({analysis.get('universalityClass', 'Unknown')})")
        return FigureExporter._save(figure, filepath)

    @staticmethod
    def export_qudit_probabilities(probabilities, filepath: str | Path,
                                   title: str = "Qudit basis probabilities") -> Path:
        figure = Figure(figsize=(8, 3), dpi=100)
        ax = figure.add_subplot(111)
        probs = list(probabilities)
        ax.bar(range(len(probs)), probs, color="#7c4dff")
        ax.set_xlabel("Basis state")
        ax.set_ylabel("Probability")
        ax.set_ylim(0, max(probs + [0.0]) * 1.15 or 1.0)
        ax.set_title(title)
        return FigureExporter._save(figure, filepath)
