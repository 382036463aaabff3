"""
Dwelling unit factor (DUF) density caps.

ZR 23-52: maximum dwelling units = residential floor area / 680.
Fractions of 0.75 or more round up; smaller fractions are dropped.

The cap only applies to multiple dwellings (building class C or D, or more
than two existing residential units).

Assemblages pick one of two strategies:
  combined_area_then_duf  round once over the total buildable floor area;
                          only when every lot shares a district, none is
                          in an overlay or special district, and no lot
                          is missing inputs
  per_lot_duf_sum         round per lot, then sum; flagged for manual review

The result offers two candidates: the computed cap, and a "DUF not
applicable" reading for affordable, senior and conversion projects. The
default is the first when the cap applies to any lot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from typing import Optional

from zoning_feasibility.zoning_engine.lot_coverage import MULTIPLE_DWELLING

DEFAULT_DUF = 680.0
ROUND_UP_FRACTION = 0.75

ROUNDING_RULE = "Fractions >= 0.75 round up; otherwise round down"
SOURCE_SECTION = "ZR §23-52"
SOURCE_URL = "https://zr.planning.nyc.gov/article-ii/chapter-3#23-52"

# Assemblage FAR provenance labels
SHARED_DISTRICT = "shared_district"
PER_LOT_SUM = "per_lot_sum"

COMBINED_AREA_THEN_DUF = "combined_area_then_duf"
PER_LOT_DUF_SUM = "per_lot_duf_sum"

DUF_APPLIES = "duf_applies"
DUF_NOT_APPLICABLE = "duf_not_applicable"
NOT_APPLICABLE_NOTE = "No DUF-based unit cap; unit count governed by other constraints."


@dataclass(frozen=True)
class UnitRounding:
    units_raw: float
    units_rounded: int

    def to_dict(self) -> dict:
        return asdict(self)


def round_units(floor_area_sqft: float, duf: float = DEFAULT_DUF) -> UnitRounding:
    """Convert floor area to a dwelling unit count under the 0.75 rounding rule.

    >>> round_units(7990).units_rounded
    12
    """
    if duf <= 0:
        raise ValueError(f"Dwelling unit factor must be positive, got {duf}")
    if floor_area_sqft is None or floor_area_sqft <= 0:
        return UnitRounding(units_raw=0.0, units_rounded=0)

    units_raw = floor_area_sqft / duf
    whole = math.floor(units_raw)
    fractional = units_raw - whole
    rounded = whole + 1 if fractional >= ROUND_UP_FRACTION else whole
    return UnitRounding(units_raw=units_raw, units_rounded=int(rounded))


def duf_applies(building_type: Optional[str], units_residential: Optional[int]) -> bool:
    if building_type == MULTIPLE_DWELLING:
        return True
    return units_residential is not None and units_residential > 2


# ──────────────────────────────────────────────────────────────────
# ASSEMBLAGE DENSITY
# ──────────────────────────────────────────────────────────────────

@dataclass
class LotDensityInput:
    child_index: int
    parcel_id: Optional[str] = None
    lot_area_sqft: Optional[float] = None
    max_far: Optional[float] = None
    buildable_sqft: Optional[float] = None
    building_type: Optional[str] = None
    units_residential: Optional[int] = None
    has_overlay_or_special: bool = False
    far_requires_manual_review: bool = True


@dataclass
class LotDensityRow:
    child_index: int
    parcel_id: Optional[str]
    buildable_sqft: Optional[float]
    units_raw: Optional[float]
    units_rounded: Optional[int]
    missing_inputs: bool
    requires_manual_review: bool
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DensityCandidate:
    """One selectable reading of the density cap.

    ``duf_applies`` carries the computed cap. ``duf_not_applicable`` covers
    affordable, senior and conversion projects, where ZR 23-52 does not cap
    the unit count at all.
    """
    id: str
    label: str
    duf_applicable: bool
    method_used: Optional[str]
    max_dwelling_units: Optional[int]
    max_res_floor_area_sqft: Optional[float]
    rounding_rule: Optional[str]
    requires_manual_review: bool
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DensityResult:
    duf_value: float
    duf_applicable: bool
    method_used: str
    max_dwelling_units: Optional[int]
    max_res_floor_area_sqft: Optional[float]
    units_combined: Optional[int]
    units_per_lot_sum: Optional[int]
    missing_inputs: bool
    requires_manual_review: bool
    per_lot_breakdown: list[LotDensityRow] = field(default_factory=list)
    candidates: list[DensityCandidate] = field(default_factory=list)
    default_candidate_id: str = DUF_APPLIES
    assumptions: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    rounding_rule: str = ROUNDING_RULE
    source_section: str = SOURCE_SECTION
    source_url: str = SOURCE_URL

    def to_dict(self) -> dict:
        return asdict(self)


def _positive(value: Optional[int]) -> Optional[int]:
    return value if value is not None and value > 0 else None


def compute_assemblage_density(
    lots: list[LotDensityInput],
    far_method: str,
    duf: float = DEFAULT_DUF,
) -> DensityResult:
    """Density cap for an assemblage, choosing the rounding strategy."""
    applicable = any(duf_applies(lot.building_type, lot.units_residential) for lot in lots)
    any_overlay_or_special = any(lot.has_overlay_or_special for lot in lots)
    none_need_review = all(not lot.far_requires_manual_review for lot in lots)

    rows = []
    missing_inputs = False
    total_buildable = 0.0
    for lot in lots:
        lot_missing = (
            lot.lot_area_sqft is None or lot.lot_area_sqft <= 0 or lot.max_far is None
        )
        missing_inputs = missing_inputs or lot_missing
        buildable = lot.buildable_sqft if lot.buildable_sqft and lot.buildable_sqft > 0 else None
        units_raw = units_rounded = None
        if buildable is not None:
            total_buildable += buildable
            rounding = round_units(buildable, duf)
            units_raw, units_rounded = rounding.units_raw, rounding.units_rounded

        if lot_missing:
            notes = "Missing lot area or max FAR; excluded from density numeric total."
        elif lot.far_requires_manual_review:
            notes = "FAR required manual review (e.g. multiple zoning districts)."
        else:
            notes = None

        rows.append(LotDensityRow(
            child_index=lot.child_index,
            parcel_id=lot.parcel_id,
            buildable_sqft=buildable,
            units_raw=units_raw,
            units_rounded=units_rounded,
            missing_inputs=lot_missing,
            requires_manual_review=lot.far_requires_manual_review or lot.has_overlay_or_special,
            notes=notes,
        ))

    units_combined = round_units(total_buildable, duf).units_rounded if total_buildable > 0 else None
    units_per_lot_sum = sum(
        row.units_rounded for row in rows
        if row.units_rounded is not None and not row.missing_inputs
    )

    use_combined = (
        far_method == SHARED_DISTRICT
        and none_need_review
        and not any_overlay_or_special
        and not missing_inputs
    )
    method = COMBINED_AREA_THEN_DUF if use_combined else PER_LOT_DUF_SUM

    assumptions = []
    if not use_combined and applicable:
        assumptions.append(
            "DUF computed using per-lot method due to mixed zoning or manual-review flags."
        )
    if missing_inputs:
        assumptions.append(
            "Lots with missing lot area or max FAR excluded from numeric cap; partial total shown."
        )

    # A zero cap caused by excluded lots would be misleading; report None.
    if not applicable:
        max_units = None
    elif use_combined:
        max_units = _positive(units_combined)
    else:
        max_units = _positive(units_per_lot_sum)

    notes = (
        "Some lots excluded due to missing inputs; see per-lot breakdown."
        if missing_inputs else None
    )
    max_res_floor_area = total_buildable if applicable else None
    candidates = [
        DensityCandidate(
            id=DUF_APPLIES,
            label="Standard (DUF applies)",
            duf_applicable=applicable,
            method_used=method,
            max_dwelling_units=max_units,
            max_res_floor_area_sqft=max_res_floor_area,
            rounding_rule=ROUNDING_RULE,
            requires_manual_review=not use_combined,
            notes=notes,
        ),
        DensityCandidate(
            id=DUF_NOT_APPLICABLE,
            label="Affordable/Senior/Conversion (DUF not applicable)",
            duf_applicable=False,
            method_used=None,
            max_dwelling_units=None,
            max_res_floor_area_sqft=None,
            rounding_rule=None,
            requires_manual_review=True,
            notes=NOT_APPLICABLE_NOTE,
        ),
    ]

    return DensityResult(
        duf_value=duf,
        duf_applicable=applicable,
        method_used=method,
        max_dwelling_units=max_units,
        max_res_floor_area_sqft=max_res_floor_area,
        units_combined=_positive(units_combined),
        units_per_lot_sum=_positive(units_per_lot_sum),
        missing_inputs=missing_inputs,
        requires_manual_review=not use_combined,
        per_lot_breakdown=rows,
        candidates=candidates,
        default_candidate_id=DUF_APPLIES if applicable else DUF_NOT_APPLICABLE,
        assumptions=assumptions,
        notes=notes,
    )
