"""
Zoning resolution for a single parcel.

Derives the zoning profile (district, lot type, building type) from a parcel
record, then applies the FAR, lot coverage and height tables:

  max buildable floor area  = max FAR × lot area
  remaining floor area      = max(0, buildable − existing building area)
  max building footprint    = max lot coverage × lot area

FAR and lot coverage are independent constraints; neither is derived from
the other. Floor-area exemptions (refuse rooms, amenity space) are reported
as information only and never subtracted.

Unresolvable inputs degrade to None plus an assumption string. Nothing here
raises for a well-typed parcel record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Optional

from zoning_feasibility.models.schemas import (
    DerivedZoningMetrics,
    ParcelRecord,
    ZoningFlags,
    ZoningProfile,
)
from zoning_feasibility.zoning_engine.density import DEFAULT_DUF, duf_applies, round_units
from zoning_feasibility.zoning_engine.far_tables import (
    get_max_far,
    normalize_district,
    normalize_district_profile,
)
from zoning_feasibility.zoning_engine.height_envelope import get_height_rules, height_assumptions
from zoning_feasibility.zoning_engine.lot_coverage import (
    CORNER,
    INTERIOR_OR_THROUGH,
    MULTIPLE_DWELLING,
    SINGLE_OR_TWO_FAMILY,
    get_max_lot_coverage,
)

logger = logging.getLogger(__name__)

# PLUTO LotType codes. 0 is "mixed or unknown" and treated as missing.
CORNER_LOT_TYPE = "3"
KNOWN_LOT_TYPES = frozenset({"1", "2", "3", "4", "5", "6", "7", "8", "9"})

MULTIPLE_DWELLING_CLASSES = ("C", "D")  # walk-up and elevator apartments
SINGLE_FAMILY_CLASSES = ("A", "B")  # one- and two-family dwellings

FAR_LIMIT_REACHED_NOTE = (
    "FAR limit reached: existing floor area meets or exceeds the maximum "
    "buildable floor area. Lot coverage is a separate limit that applies at "
    "the same time and is not derived from FAR."
)
EXEMPTIONS_NOTE = (
    "Floor-area exemptions (refuse, amenity space) are informational only "
    "and are not subtracted from remaining floor area."
)

# Per-lot FAR methods
FAR_SINGLE_DISTRICT = "single_district"
FAR_LOWEST_MULTI_DISTRICT = "lowest_far_multi_district"
FAR_UNSUPPORTED = "unsupported_district"


# ──────────────────────────────────────────────────────────────────
# PROFILE
# ──────────────────────────────────────────────────────────────────

def determine_lot_type(lot_type_code: Optional[str]) -> tuple[str, bool, Optional[str]]:
    """Return (lot_type, inferred, assumption) from a PLUTO LotType code."""
    code = str(lot_type_code).strip() if lot_type_code is not None else ""
    if code == CORNER_LOT_TYPE:
        return CORNER, False, None
    if code in KNOWN_LOT_TYPES:
        return INTERIOR_OR_THROUGH, False, None
    return INTERIOR_OR_THROUGH, True, "Lot type unknown; assumed interior/through"


def determine_building_type(building_class: Optional[str]) -> tuple[str, bool, Optional[str]]:
    """Return (building_type, inferred, assumption) from a building class code."""
    normalized = (building_class or "").strip().upper()
    if not normalized:
        return (
            SINGLE_OR_TWO_FAMILY, True,
            "Building class unknown; defaulting to single/two-family for lot coverage rules",
        )
    if normalized.startswith(MULTIPLE_DWELLING_CLASSES):
        return MULTIPLE_DWELLING, False, None
    if normalized.startswith(SINGLE_FAMILY_CLASSES):
        return SINGLE_OR_TWO_FAMILY, False, None
    return (
        SINGLE_OR_TWO_FAMILY, True,
        f"Building class {normalized} not recognized; defaulting to single/two-family",
    )


def build_zoning_profile(parcel: Optional[ParcelRecord]) -> ZoningProfile:
    if parcel is None:
        lot_type, lot_inferred, lot_note = determine_lot_type(None)
        building_type, bldg_inferred, bldg_note = determine_building_type(None)
        return ZoningProfile(
            lot_type=lot_type, building_type=building_type,
            lot_type_inferred=lot_inferred, building_type_inferred=bldg_inferred,
            lot_type_assumption=lot_note, building_type_assumption=bldg_note,
        )

    district = normalize_district(parcel.primary_district)
    lot_type, lot_inferred, lot_note = determine_lot_type(parcel.lot_type_code)
    building_type, bldg_inferred, bldg_note = determine_building_type(parcel.building_class_code)
    return ZoningProfile(
        district=district,
        normalized_profile=normalize_district_profile(district),
        lot_type=lot_type,
        building_type=building_type,
        lot_type_inferred=lot_inferred,
        building_type_inferred=bldg_inferred,
        lot_type_assumption=lot_note,
        building_type_assumption=bldg_note,
    )


# ──────────────────────────────────────────────────────────────────
# CONTROLLING FAR (used per lot in assemblages)
# ──────────────────────────────────────────────────────────────────

@dataclass
class ControllingFar:
    max_far: Optional[float]
    far_method: str
    requires_manual_review: bool
    far_candidates: list[dict] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def compute_controlling_far(district_codes: list[str]) -> ControllingFar:
    """FAR that controls a lot given all of its zoning districts.

    A lot in several districts takes the lowest FAR among the supported
    ones and is always flagged for manual review.
    """
    codes = [c for c in (normalize_district(d) for d in district_codes) if c]
    lookups = [get_max_far(code) for code in codes]
    candidates = [
        {"district": lk.district, "far": lk.far, "profile": lk.profile}
        for lk in lookups
    ]
    assumptions = [lk.assumption for lk in lookups if lk.assumption]
    supported = [lk for lk in lookups if lk.supported]

    if not supported:
        if not codes:
            assumptions.append("No zoning district available for this lot")
        return ControllingFar(
            max_far=None,
            far_method=FAR_UNSUPPORTED,
            requires_manual_review=True,
            far_candidates=candidates,
            assumptions=assumptions,
        )

    if len(codes) == 1:
        return ControllingFar(
            max_far=supported[0].far,
            far_method=FAR_SINGLE_DISTRICT,
            requires_manual_review=False,
            far_candidates=candidates,
            assumptions=assumptions,
        )

    lowest = min(supported, key=lambda lk: lk.far)
    assumptions.append(
        f"Lot spans districts {', '.join(codes)}; using lowest FAR "
        f"{lowest.far} ({lowest.district}); manual review required"
    )
    return ControllingFar(
        max_far=lowest.far,
        far_method=FAR_LOWEST_MULTI_DISTRICT,
        requires_manual_review=True,
        far_candidates=candidates,
        assumptions=assumptions,
    )


# ──────────────────────────────────────────────────────────────────
# RESOLUTION
# ──────────────────────────────────────────────────────────────────

def _valid_area(value: Optional[float]) -> bool:
    return value is not None and value > 0


def resolve(
    profile: ZoningProfile,
    parcel: ParcelRecord,
    duf: float = DEFAULT_DUF,
) -> DerivedZoningMetrics:
    """Derive zoning constraints for one parcel. Pure; never raises."""
    district = profile.district or normalize_district(parcel.primary_district)
    flags = ZoningFlags(
        has_overlay=parcel.has_overlay,
        has_special_district=parcel.has_special_district,
        multi_district_lot=parcel.is_multi_district,
        lot_type_inferred=profile.lot_type_inferred,
        building_type_inferred=profile.building_type_inferred,
    )
    metrics = DerivedZoningMetrics(
        parcel_id=parcel.parcel_id,
        district=district,
        lot_type=profile.lot_type,
        building_type=profile.building_type,
    )
    assumptions: list[str] = []

    if not district:
        flags.district_not_found = True
        flags.requires_manual_review = True
        assumptions.append("Zoning district not found in parcel data")
        return metrics.model_copy(update={"assumptions": assumptions, "flags": flags})

    if not district.startswith("R"):
        flags.non_residential = True
        flags.requires_manual_review = True
        assumptions.append(
            f"District {district} is not residential; only R1-R12 districts are supported"
        )
        return metrics.model_copy(update={"assumptions": assumptions, "flags": flags})

    if parcel.is_multi_district:
        assumptions.append(
            f"Lot spans multiple districts ({', '.join(parcel.zoning_district_codes)}); "
            f"primary district {district} used"
        )

    far = get_max_far(district)
    if far.assumption:
        assumptions.append(far.assumption)
    if not far.supported:
        flags.unsupported_district = True

    for note in (profile.lot_type_assumption, profile.building_type_assumption):
        if note:
            assumptions.append(note)

    coverage = get_max_lot_coverage(district, profile.lot_type, profile.building_type)
    if coverage.assumption:
        assumptions.append(coverage.assumption)
    flags.yard_based_coverage_not_supported = coverage.yard_based
    flags.eligible_site_not_evaluated = coverage.eligible_site_not_evaluated
    flags.special_lot_coverage_rules_not_evaluated = True

    lot_area = parcel.lot_area_sqft
    buildable = remaining = footprint = None
    remaining_note = None
    if not _valid_area(lot_area):
        flags.missing_lot_area = True
        assumptions.append("Lot area not available; floor area and footprint not computed")
    else:
        if far.far is not None:
            buildable = far.far * lot_area
        if coverage.max_lot_coverage is not None:
            footprint = coverage.max_lot_coverage * lot_area

    if buildable is not None:
        existing = parcel.existing_building_area_sqft
        if existing is None:
            assumptions.append(
                "Existing building area not available; remaining floor area not computed"
            )
        else:
            remaining = max(0.0, buildable - existing)
            if remaining == 0:
                flags.far_limit_reached = True
                remaining_note = FAR_LIMIT_REACHED_NOTE
            assumptions.append(EXEMPTIONS_NOTE)

    applicable = duf_applies(profile.building_type, parcel.units_residential)
    units = round_units(buildable, duf) if applicable and buildable is not None else None

    height = get_height_rules(district)
    assumptions.extend(height_assumptions(height, district))

    flags.requires_manual_review = any((
        flags.unsupported_district,
        flags.multi_district_lot,
        flags.has_overlay,
        flags.has_special_district,
        flags.yard_based_coverage_not_supported,
        flags.missing_lot_area,
        height.envelope.requires_manual_review,
        height.min_base_height.requires_manual_review,
    ))

    logger.debug("Resolved %s (%s): FAR %s, coverage %s",
                 parcel.parcel_id, district, far.far, coverage.max_lot_coverage)

    return metrics.model_copy(update={
        "profile": far.profile,
        "contextual": far.contextual,
        "max_far": far.far,
        "max_lot_coverage": coverage.max_lot_coverage,
        "max_buildable_floor_area_sqft": buildable,
        "remaining_buildable_floor_area_sqft": remaining,
        "remaining_floor_area_note": remaining_note,
        "max_building_footprint_sqft": footprint,
        "duf_applicable": applicable,
        "dwelling_units_raw": units.units_raw if units else None,
        "max_dwelling_units": units.units_rounded if units else None,
        "height": height,
        "assumptions": assumptions,
        "flags": flags,
    })


def resolve_parcel(parcel: ParcelRecord, duf: float = DEFAULT_DUF) -> DerivedZoningMetrics:
    """Convenience wrapper: build the profile from the parcel and resolve it."""
    return resolve(build_zoning_profile(parcel), parcel, duf)
