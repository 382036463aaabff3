"""
Assemblage zoning consistency.

Compares the lots of an assemblage on primary district, normalized district
profile and tax block, and grades how safely they can be treated as one
zoning lot:

  high    same primary district, no overlay or special district, no lot
          split across districts
  medium  same normalized profile, but primary districts differ or an
          overlay / special district is present
  low     anything else, or any lot missing its primary district

Anything other than high requires manual review.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional

from zoning_feasibility.models.schemas import ParcelRecord
from zoning_feasibility.zoning_engine.far_tables import normalize_district, normalize_district_profile

BOROUGH_CODE_TO_LETTER = {1: "MN", 2: "BX", 3: "BK", 4: "QN", 5: "SI"}

NOTE_DISTRICTS_DIFFER = (
    "If districts differ across lots, assemblage calculations should use "
    "per-lot method and require manual review."
)
NOTE_OVERLAY_OR_SPECIAL = (
    "Overlays or Special Districts can change applicable rules; verify on "
    "NYC Zoning Map / ZR."
)
NOTE_BLOCK_MISSING = (
    "Block is missing for at least one lot; same-block check could not be confirmed."
)


def borough_letter(borough: Optional[int]) -> Optional[str]:
    if borough is None:
        return None
    return BOROUGH_CODE_TO_LETTER.get(borough)


def _all_equal(values: list) -> bool:
    """True iff there is at least one value and every value is set and equal."""
    return bool(values) and all(v is not None for v in values) and len(set(values)) == 1


@dataclass
class LotConsistency:
    child_index: int
    parcel_id: Optional[str]
    block: Optional[int]
    lot: Optional[int]
    borough: Optional[str]
    zoning_districts: list[str]
    primary_district: Optional[str]
    normalized_profile: Optional[str]
    overlays: list[str]
    special_districts: list[str]
    missing_primary_district: bool
    has_overlay: bool
    has_special_district: bool


@dataclass
class ConsistencySummary:
    primary_districts: list[Optional[str]]
    normalized_profiles: list[Optional[str]]
    same_primary_district: bool
    same_normalized_profile: bool
    same_block: bool
    has_any_overlay: bool
    has_any_special_district: bool
    multi_district_lots_count: int
    confidence: str
    requires_manual_review: bool


@dataclass
class ZoningConsistencyReport:
    lots: list[LotConsistency]
    summary: ConsistencySummary
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _lot_entry(index: int, parcel: Optional[ParcelRecord]) -> LotConsistency:
    if parcel is None:
        return LotConsistency(
            child_index=index, parcel_id=None, block=None, lot=None, borough=None,
            zoning_districts=[], primary_district=None, normalized_profile=None,
            overlays=[], special_districts=[],
            missing_primary_district=True, has_overlay=False, has_special_district=False,
        )
    primary = normalize_district(parcel.primary_district)
    return LotConsistency(
        child_index=index,
        parcel_id=parcel.parcel_id,
        block=parcel.block,
        lot=parcel.lot,
        borough=borough_letter(parcel.borough),
        zoning_districts=list(parcel.zoning_district_codes),
        primary_district=primary,
        normalized_profile=normalize_district_profile(primary) if primary else None,
        overlays=list(parcel.overlay_codes),
        special_districts=list(parcel.special_district_codes),
        missing_primary_district=primary is None,
        has_overlay=parcel.has_overlay,
        has_special_district=parcel.has_special_district,
    )


def evaluate_zoning_consistency(parcels: list[Optional[ParcelRecord]]) -> ZoningConsistencyReport:
    """Cross-lot zoning comparison. ``None`` entries are lots without parcel data."""
    lots = [_lot_entry(i, parcel) for i, parcel in enumerate(parcels)]

    primaries = [lot.primary_district for lot in lots]
    profiles = [lot.normalized_profile for lot in lots]
    # Block numbers repeat across boroughs, so compare the borough-qualified key
    block_keys = [
        parcel.block_id if parcel is not None and parcel.block is not None else None
        for parcel in parcels
    ]

    same_primary = _all_equal(primaries)
    same_profile = _all_equal(profiles)
    any_block_missing = any(key is None for key in block_keys)
    same_block = len(lots) > 1 and not any_block_missing and _all_equal(block_keys)
    has_overlay = any(lot.has_overlay for lot in lots)
    has_special = any(lot.has_special_district for lot in lots)
    multi_district_count = sum(1 for lot in lots if len(lot.zoning_districts) > 1)

    notes = []
    if not same_primary or not same_profile:
        notes.append(NOTE_DISTRICTS_DIFFER)
    if has_overlay or has_special:
        notes.append(NOTE_OVERLAY_OR_SPECIAL)
    if any_block_missing:
        notes.append(NOTE_BLOCK_MISSING)

    if any(p is None for p in primaries):
        confidence = "low"
    elif same_primary and not has_overlay and not has_special and multi_district_count == 0:
        confidence = "high"
    elif same_profile and (not same_primary or has_overlay or has_special):
        confidence = "medium"
    else:
        confidence = "low"

    summary = ConsistencySummary(
        primary_districts=primaries,
        normalized_profiles=profiles,
        same_primary_district=same_primary,
        same_normalized_profile=same_profile,
        same_block=same_block,
        has_any_overlay=has_overlay,
        has_any_special_district=has_special,
        multi_district_lots_count=multi_district_count,
        confidence=confidence,
        requires_manual_review=confidence != "high",
    )
    return ZoningConsistencyReport(lots=lots, summary=summary, notes=notes)
