from __future__ import annotations

from zoning_feasibility.orchestration.assemblage import AssemblageOrchestrator
from zoning_feasibility.orchestration.single import SingleParcelOrchestrator
from zoning_feasibility.orchestration.stages import Criticality

__all__ = ["AssemblageOrchestrator", "Criticality", "SingleParcelOrchestrator"]
