"""
Maximum residential lot coverage.

  R1-R5  (ZR 23-361): depends on building type and lot type
           single/two-family   R1/R2 40% / 80%, R3 50% / 80%, R4/R5 60% / 80%
           multiple dwelling   80% / 100%
           (interior or through / corner)
         R2X, R3A and R3X use yard-based coverage and are not computed.
  R6-R12 (ZR 23-362(a)): 80% interior or through, 100% corner. The eligible
         site exception of 23-362(b) is flagged as not evaluated.

Special lot coverage rules (ZR 23-363) are never evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional

from zoning_feasibility.zoning_engine.far_tables import normalize_district, residential_tier

CORNER = "corner"
INTERIOR_OR_THROUGH = "interior_or_through"

SINGLE_OR_TWO_FAMILY = "single_or_two_family"
MULTIPLE_DWELLING = "multiple_dwelling"

YARD_BASED_DISTRICTS = frozenset({"R2X", "R3A", "R3X"})

# tier → (interior_or_through, corner) for single- and two-family residences
SINGLE_FAMILY_COVERAGE = {
    1: (0.40, 0.80),
    2: (0.40, 0.80),
    3: (0.50, 0.80),
    4: (0.60, 0.80),
    5: (0.60, 0.80),
}

MULTIPLE_DWELLING_LOW_DENSITY_COVERAGE = (0.80, 1.00)
HIGH_DENSITY_COVERAGE = (0.80, 1.00)


@dataclass
class LotCoverageResult:
    max_lot_coverage: Optional[float] = None
    assumption: Optional[str] = None
    yard_based: bool = False
    eligible_site_not_evaluated: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _pick(pair: tuple[float, float], lot_type: str) -> float:
    interior, corner = pair
    return corner if lot_type == CORNER else interior


def get_max_lot_coverage(
    district: Optional[str],
    lot_type: str = INTERIOR_OR_THROUGH,
    building_type: str = SINGLE_OR_TWO_FAMILY,
) -> LotCoverageResult:
    """Maximum lot coverage (fraction 0-1) for a residential district."""
    normalized = normalize_district(district)
    if not normalized:
        return LotCoverageResult(assumption="Zoning district not available")

    if not normalized.startswith("R"):
        return LotCoverageResult(
            assumption=f"Non-residential district {normalized}; lot coverage not supported",
        )

    tier = residential_tier(normalized)
    if tier is None:
        return LotCoverageResult(
            assumption=f"District {normalized} not supported for lot coverage calculation",
        )

    if tier <= 5:
        if normalized in YARD_BASED_DISTRICTS:
            return LotCoverageResult(
                assumption="Yard-based lot coverage (ZR 23-361 exception); not computed",
                yard_based=True,
            )
        if building_type == MULTIPLE_DWELLING:
            return LotCoverageResult(
                max_lot_coverage=_pick(MULTIPLE_DWELLING_LOW_DENSITY_COVERAGE, lot_type),
                assumption="Multiple dwelling in R1-R5 (ZR 23-361(b))",
            )
        label = {1: "R1/R2", 2: "R1/R2", 3: "R3"}.get(tier, "R4/R5")
        return LotCoverageResult(
            max_lot_coverage=_pick(SINGLE_FAMILY_COVERAGE[tier], lot_type),
            assumption=f"Single- or two-family in {label} (ZR 23-361(a))",
        )

    return LotCoverageResult(
        max_lot_coverage=_pick(HIGH_DENSITY_COVERAGE, lot_type),
        assumption="Standard lot in R6-R12 (ZR 23-362(a)); eligible site rules not evaluated",
        eligible_site_not_evaluated=True,
    )
