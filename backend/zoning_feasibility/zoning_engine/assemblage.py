"""
NYC Zoning Assemblage aggregation.

Combines per-lot parcel data for an assemblage of 2+ lots into one site
summary:

  1. Combined lot area over lots with a valid (> 0) lot area
  2. Per-lot controlling FAR (lowest FAR for split-zoned lots, flagged)
  3. Per-lot buildable floor area = FAR × lot area, summed
  4. FAR method label:
       shared_district  every lot shares a normalized profile and no lot's
                        FAR needed manual review
       per_lot_sum      anything else (flagged for manual review)
     The total is always the per-lot sum; the label records provenance.
  5. Density cap (ZR 23-52) via the DUF calculator

Lots whose parcel data could not be fetched are kept in the lot list as
missing and excluded from every sum.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional

from zoning_feasibility.models.schemas import ParcelRecord
from zoning_feasibility.zoning_engine.density import (
    DEFAULT_DUF,
    PER_LOT_SUM,
    SHARED_DISTRICT,
    DensityResult,
    LotDensityInput,
    compute_assemblage_density,
)
from zoning_feasibility.zoning_engine.far_tables import normalize_district, normalize_district_profile
from zoning_feasibility.zoning_engine.resolution import compute_controlling_far, determine_building_type

LOT_OK = "ok"
LOT_MISSING_LOT_AREA = "missing_lot_area"
LOT_MISSING_PARCEL_DATA = "missing_parcel_data"

FAR_MISSING_PARCEL_DATA = "missing_parcel_data"


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass
class AssemblageLotInput:
    """One member of an assemblage. ``parcel`` is None when the fetch failed."""
    child_index: int
    address: str
    parcel_id: Optional[str] = None
    normalized_address: Optional[str] = None
    parcel: Optional[ParcelRecord] = None


@dataclass
class AssemblageLot:
    child_index: int
    address: str
    normalized_address: Optional[str]
    parcel_id: Optional[str]
    lot_area_sqft: Optional[float]
    status: str
    primary_district: Optional[str]
    normalized_profile: Optional[str]
    max_far: Optional[float]
    buildable_sqft: Optional[float]
    far_method: str
    requires_manual_review: bool
    far_candidates: list[dict] = field(default_factory=list)
    zoning_district_candidates: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AggregationFlags:
    missing_lot_area: bool = False
    partial_total: bool = False


@dataclass
class AssemblageAggregation:
    lots: list[AssemblageLot]
    combined_lot_area_sqft: float
    total_buildable_sqft: float
    far_method: str
    requires_manual_review: bool
    density: DensityResult
    assumptions: list[str] = field(default_factory=list)
    flags: AggregationFlags = field(default_factory=AggregationFlags)

    def to_dict(self) -> dict:
        return asdict(self)


# ──────────────────────────────────────────────────────────────────
# AGGREGATION
# ──────────────────────────────────────────────────────────────────

def _aggregate_lot(lot: AssemblageLotInput) -> AssemblageLot:
    parcel = lot.parcel
    if parcel is None:
        return AssemblageLot(
            child_index=lot.child_index,
            address=lot.address,
            normalized_address=lot.normalized_address,
            parcel_id=lot.parcel_id,
            lot_area_sqft=None,
            status=LOT_MISSING_PARCEL_DATA,
            primary_district=None,
            normalized_profile=None,
            max_far=None,
            buildable_sqft=None,
            far_method=FAR_MISSING_PARCEL_DATA,
            requires_manual_review=True,
        )

    lot_area = parcel.lot_area_sqft
    has_area = lot_area is not None and lot_area > 0
    control = compute_controlling_far(parcel.zoning_district_codes)
    buildable = control.max_far * lot_area if control.max_far is not None and has_area else None
    primary = normalize_district(parcel.primary_district)

    return AssemblageLot(
        child_index=lot.child_index,
        address=lot.address,
        normalized_address=lot.normalized_address,
        parcel_id=parcel.parcel_id or lot.parcel_id,
        lot_area_sqft=lot_area if has_area else None,
        status=LOT_OK if has_area else LOT_MISSING_LOT_AREA,
        primary_district=primary,
        normalized_profile=normalize_district_profile(primary) if primary else None,
        max_far=control.max_far,
        buildable_sqft=buildable,
        far_method=control.far_method,
        requires_manual_review=control.requires_manual_review,
        far_candidates=control.far_candidates,
        zoning_district_candidates=list(parcel.zoning_district_codes),
    )


def select_far_method(lots: list[AssemblageLot]) -> str:
    profiles = [lot.normalized_profile for lot in lots]
    all_same_profile = (
        len(lots) >= 2
        and all(p is not None for p in profiles)
        and len(set(profiles)) == 1
    )
    none_need_review = all(not lot.requires_manual_review for lot in lots)
    return SHARED_DISTRICT if all_same_profile and none_need_review else PER_LOT_SUM


def aggregate_assemblage(
    lots: list[AssemblageLotInput],
    duf: float = DEFAULT_DUF,
) -> AssemblageAggregation:
    """Aggregate per-lot data into a site-level summary. Pure."""
    rows = [_aggregate_lot(lot) for lot in sorted(lots, key=lambda l: l.child_index)]

    combined_area = sum((row.lot_area_sqft for row in rows if row.lot_area_sqft is not None), 0.0)
    total_buildable = sum((row.buildable_sqft for row in rows if row.buildable_sqft is not None), 0.0)
    missing_area = any(row.lot_area_sqft is None for row in rows)

    far_method = select_far_method(rows)

    parcels = {lot.child_index: lot.parcel for lot in lots}
    density_inputs = []
    for row in rows:
        parcel = parcels.get(row.child_index)
        building_type = determine_building_type(parcel.building_class_code)[0] if parcel else None
        density_inputs.append(LotDensityInput(
            child_index=row.child_index,
            parcel_id=row.parcel_id,
            lot_area_sqft=row.lot_area_sqft,
            max_far=row.max_far,
            buildable_sqft=row.buildable_sqft,
            building_type=building_type,
            units_residential=parcel.units_residential if parcel else None,
            has_overlay_or_special=bool(parcel and (parcel.has_overlay or parcel.has_special_district)),
            far_requires_manual_review=row.requires_manual_review,
        ))
    density = compute_assemblage_density(density_inputs, far_method, duf)

    assumptions = list(density.assumptions)
    missing_parcels = [row.child_index for row in rows if row.status == LOT_MISSING_PARCEL_DATA]
    if missing_parcels:
        assumptions.append(
            "Parcel data unavailable for lot(s) "
            f"{', '.join(str(i) for i in missing_parcels)}; excluded from area and FAR totals."
        )

    return AssemblageAggregation(
        lots=rows,
        combined_lot_area_sqft=combined_area,
        total_buildable_sqft=total_buildable,
        far_method=far_method,
        requires_manual_review=far_method == PER_LOT_SUM,
        density=density,
        assumptions=assumptions,
        flags=AggregationFlags(missing_lot_area=missing_area, partial_total=missing_area),
    )
