from __future__ import annotations

from zoning_feasibility.zoning_engine.assemblage import aggregate_assemblage
from zoning_feasibility.zoning_engine.consistency import evaluate_zoning_consistency
from zoning_feasibility.zoning_engine.contamination import evaluate_contamination_risk
from zoning_feasibility.zoning_engine.density import round_units
from zoning_feasibility.zoning_engine.resolution import build_zoning_profile, resolve

__all__ = [
    "aggregate_assemblage",
    "build_zoning_profile",
    "evaluate_contamination_risk",
    "evaluate_zoning_consistency",
    "resolve",
    "round_units",
]
