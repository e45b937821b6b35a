"""G.L.Y.P.H. spells: a line-oriented mini-syntax that configures a UI.

A spell is a handful of lines, each opened by an alchemical glyph that
marks its section::

    \N{ALCHEMICAL SYMBOL FOR AIR} BloomStellarConsole
    \N{ALCHEMICAL SYMBOL FOR FIRE} Panels:
        \N{ALCHEMICAL SYMBOL FOR WATER} QuditEntangleGrid
    ...

Parsing never fails; unrecognised lines are ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, asdict

logger = logging.getLogger(__name__)

COMMAND_GLYPH = "\U0001F701"
PANELS_GLYPH = "\U0001F702"
UI_GLYPH = "\U0001F705"
LOGIC_GLYPH = "\U0001F706"
DEPLOY_GLYPH = "\U0001F707"
RECOVERY_GLYPH = "\U0001F734"

PANEL_GLYPHS = {
    "\U0001F704": "QuditEntangleGrid",
    "\U0001F703": "GlyphOscilloscope",
    "\U0001F714": "MessagePortal",
}

UI_STYLES = ("DarkGlass", "GoldLattice", "PhaseBloom", "BlackbodyGlass")

# Keyword found on the logic line -> module enabled
LOGIC_MODULES = (
    ("MuskCore", "MuskCoreLive"),
    ("Entropy", "EntropyMonitor"),
    ("Recovery", "Recovery"),
)

DEFAULT_DEPLOY_PATH = "/control"
_DEPLOY_RE = re.compile(r"to:\s*(\S+)")

EXAMPLE_SPELL = f"""
{COMMAND_GLYPH} BloomStellarConsole
{PANELS_GLYPH} Panels:
    \U0001F704 QuditEntangleGrid
    \U0001F703 GlyphOscilloscope
    \U0001F714 MessagePortal
{UI_GLYPH} UI: DarkGlass + GoldLattice + PhaseBloom
{LOGIC_GLYPH} Logic: MuskCoreLive + EntropyMonitor + {RECOVERY_GLYPH}Recovery
{DEPLOY_GLYPH} Deploy to: /control
"""


@dataclass
class GlyphicSpell:
    command: str = ""
    panels: list[str] = field(default_factory=list)
    ui_styles: list[str] = field(default_factory=list)
    logic_modules: list[str] = field(default_factory=list)
    deploy_path: str = DEFAULT_DEPLOY_PATH
    recovery_glyph: str | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        return {
            "command": d["command"],
            "panels": d["panels"],
            "uiStyles": d["ui_styles"],
            "logicModules": d["logic_modules"],
            "deployPath": d["deploy_path"],
            "recoveryGlyph": d["recovery_glyph"],
        }


def _panel_for(line: str) -> str | None:
    for glyph, panel in PANEL_GLYPHS.items():
        if glyph in line:
            return panel
    return None


def parse_glyphic_spell(raw: str) -> GlyphicSpell:
    """Parse a raw spell into a :class:`GlyphicSpell`."""
    spell = GlyphicSpell()
    section = ""

    for line in raw.strip().splitlines():
        line = line.strip()
        if not line:
            continue

        if line.startswith(COMMAND_GLYPH):
            spell.command = line[len(COMMAND_GLYPH):].strip()
            section = "command"
        elif line.startswith(PANELS_GLYPH):
            section = "panels"
        elif line.startswith(UI_GLYPH):
            section = "ui"
            spell.ui_styles.extend(s for s in UI_STYLES if s in line)
        elif line.startswith(LOGIC_GLYPH):
            section = "logic"
            for keyword, module in LOGIC_MODULES:
                if keyword in line:
                    spell.logic_modules.append(module)
            if "Recovery" in line and RECOVERY_GLYPH in line:
                spell.recovery_glyph = RECOVERY_GLYPH
        elif line.startswith(DEPLOY_GLYPH):
            m = _DEPLOY_RE.search(line)
            if m:
                spell.deploy_path = m.group(1)
        elif section == "panels":
            panel = _panel_for(line)
            if panel:
                spell.panels.append(panel)

    logger.debug("Parsed spell %r: %d panels", spell.command, len(spell.panels))
    return spell


def generate_ui_config(spell: GlyphicSpell) -> dict:
    """Translate a spell into theme, layout and logic settings."""
    styles = spell.ui_styles
    return {
        "theme": {
            "dark": "DarkGlass" in styles or "BlackbodyGlass" in styles,
            "primaryColor": "amber" if "GoldLattice" in styles else "indigo",
            "glowEffect": "PhaseBloom" in styles,
            "glassEffect": any("Glass" in s for s in styles),
            "latticeLines": "GoldLattice" in styles,
        },
        "layout": {
            "panels": [{"type": p, "visible": True, "expanded": True} for p in spell.panels],
            "recoveryGlyph": spell.recovery_glyph,
        },
        "logic": {
            "useMuskCore": "MuskCoreLive" in spell.logic_modules,
            "monitorEntropy": "EntropyMonitor" in spell.logic_modules,
            "enableRecovery": "Recovery" in spell.logic_modules,
        },
    }
