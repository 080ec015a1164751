from __future__ import annotations

import math
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from phase_estimator.core.model import GRADES, Effort, PhaseDefinition


DEFAULT_PHASE_DEFINITIONS: tuple[PhaseDefinition, ...] = (
    PhaseDefinition(
        id="functionalAnalysis",
        name="Functional Analysis",
        description="Business requirements analysis and functional specification",
        type="analysis",
        default_effort=Effort(g1=100, g2=0, ta=20, pm=50),
    ),
    PhaseDefinition(
        id="technicalAnalysis",
        name="Technical Analysis",
        description="Technical design and architecture specification",
        type="analysis",
        default_effort=Effort(g1=0, g2=100, ta=60, pm=20),
    ),
    PhaseDefinition(
        id="development",
        name="Development",
        description="Implementation of features (calculated from features list)",
        type="development",
        default_effort=Effort(g1=0, g2=100, ta=40, pm=20),
        calculated=True,
    ),
    PhaseDefinition(
        id="integrationTests",
        name="Integration Tests",
        description="System integration and integration testing",
        type="testing",
        default_effort=Effort(g1=100, g2=50, ta=50, pm=75),
    ),
    PhaseDefinition(
        id="uatTests",
        name="UAT Tests",
        description="User acceptance testing support and execution",
        type="testing",
        default_effort=Effort(g1=50, g2=50, ta=40, pm=75),
    ),
    PhaseDefinition(
        id="consolidation",
        name="Consolidation",
        description="Final testing, bug fixing, and deployment preparation",
        type="testing",
        default_effort=Effort(g1=30, g2=30, ta=30, pm=20),
    ),
    PhaseDefinition(
        id="vapt",
        name="VAPT",
        description="Vulnerability Assessment and Penetration Testing",
        type="testing",
        default_effort=Effort(g1=30, g2=30, ta=30, pm=20),
    ),
    PhaseDefinition(
        id="postGoLive",
        name="Post Go-Live Support",
        description="Production support and monitoring after deployment",
        type="support",
        default_effort=Effort(g1=0, g2=100, ta=50, pm=100),
    ),
)

PHASE_IDS: tuple[str, ...] = tuple(d.id for d in DEFAULT_PHASE_DEFINITIONS)


class PhaseConfigError(ValueError):
    pass


def load_phase_definitions_file(path: str | Path) -> dict[str, dict[str, Any]]:
    """Load phase definition overrides from a YAML file.

    Format:
      <phase_id>:
        name: "..."                              # optional
        description: "..."                       # optional
        default_effort: {G1: 0, G2: 100, ...}    # optional, missing grades -> 0

    Only the fixed phase ids are accepted; the set of phases cannot be extended.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PhaseConfigError("phases file must be a mapping of phase id -> overrides")

    out: dict[str, dict[str, Any]] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or k not in PHASE_IDS:
            raise PhaseConfigError(f"unknown phase id '{k}' (choose from: {', '.join(PHASE_IDS)})")
        if not isinstance(v, dict):
            raise PhaseConfigError(f"phase '{k}' overrides must be a mapping")

        override: dict[str, Any] = {}
        for key in ("name", "description"):
            if key in v:
                if not isinstance(v[key], str) or not v[key].strip():
                    raise PhaseConfigError(f"phase '{k}' {key} must be a non-empty string")
                override[key] = v[key].strip()

        if "default_effort" in v:
            effort = v["default_effort"]
            if not isinstance(effort, dict):
                raise PhaseConfigError(f"phase '{k}' default_effort must be a mapping of grade -> percent")
            for grade, pct in effort.items():
                if grade not in GRADES:
                    raise PhaseConfigError(f"phase '{k}' default_effort has unknown grade '{grade}'")
                if isinstance(pct, bool) or not isinstance(pct, (int, float)) or not math.isfinite(pct):
                    raise PhaseConfigError(f"phase '{k}' default_effort.{grade} must be a finite number")
            override["default_effort"] = Effort.from_mapping(effort)

        out[k] = override
    return out


def merged_definitions(
    overrides: dict[str, dict[str, Any]] | None = None,
) -> tuple[PhaseDefinition, ...]:
    """Return DEFAULT_PHASE_DEFINITIONS with optional overrides applied, in registry order."""
    if not overrides:
        return DEFAULT_PHASE_DEFINITIONS
    return tuple(replace(d, **overrides[d.id]) if d.id in overrides else d for d in DEFAULT_PHASE_DEFINITIONS)


def load_and_merge(phases_file: str | None) -> tuple[PhaseDefinition, ...]:
    if not phases_file:
        return merged_definitions()
    return merged_definitions(load_phase_definitions_file(phases_file))
