"""
Assemblage contamination risk.

Flags whether any lot brings extra approval risk into the whole site:
a landmark (LPC review), a historic district, a special district or a zoning
overlay. Scoring errs toward flagging rather than guessing.

  risk        high if any lot is landmarked; moderate if any lot has a
              historic district, special district or overlay; else none
  confidence  high by default; medium if one lot lacks parcel data or a
              landmark value could not be read; low if two or more lots
              (or every lot) lack parcel data
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional, Union

from zoning_feasibility.models.schemas import ParcelRecord
from zoning_feasibility.zoning_engine.consistency import borough_letter

CONTAMINATION_NOTES = [
    "Landmark designation typically triggers LPC review and can materially affect feasibility and timelines.",
    "Historic district and Special District rules may override base zoning; verify applicable district rules.",
    "Overlays can change use, parking, or bulk rules; manual review recommended when present.",
]

_TRUTHY = frozenset({"Y", "YES", "TRUE", "LANDMARK", "1"})
_FALSY = frozenset({"", "N", "NO", "FALSE", "0"})


def normalize_landmark(value: Optional[Union[bool, int, str]]) -> Optional[bool]:
    """Tri-state landmark flag: True, False, or None when unrecognised."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        return None
    text = str(value).strip().upper()
    if text in _FALSY:
        return False
    if text in _TRUTHY:
        return True
    return None


@dataclass
class LotRiskFlags:
    is_landmarked: Optional[bool]
    historic_district_name: Optional[str]
    has_special_district: bool
    special_districts: list[str]
    has_overlay: bool
    overlays: list[str]


@dataclass
class LotContamination:
    child_index: int
    parcel_id: Optional[str]
    block: Optional[int]
    lot: Optional[int]
    borough: Optional[str]
    missing_parcel_data: bool
    flags: LotRiskFlags


@dataclass
class ContaminationCounts:
    landmark_lots: int = 0
    historic_district_lots: int = 0
    special_district_lots: int = 0
    overlay_lots: int = 0
    lots_missing_parcel_data: int = 0
    landmark_unknown_lots: int = 0


@dataclass
class ContaminationSummary:
    any_landmark: bool
    any_historic_district: bool
    any_special_district: bool
    any_overlay: bool
    contamination_risk: str
    confidence: str
    requires_manual_review: bool
    counts: ContaminationCounts


@dataclass
class ContaminationRiskReport:
    lots: list[LotContamination]
    summary: ContaminationSummary
    notes: list[str] = field(default_factory=lambda: list(CONTAMINATION_NOTES))

    def to_dict(self) -> dict:
        return asdict(self)


def evaluate_contamination_risk(parcels: list[Optional[ParcelRecord]]) -> ContaminationRiskReport:
    """Approval-risk scoring across lots. ``None`` entries are lots without parcel data."""
    counts = ContaminationCounts()
    lots = []

    for index, parcel in enumerate(parcels):
        if parcel is None:
            counts.lots_missing_parcel_data += 1
            lots.append(LotContamination(
                child_index=index, parcel_id=None, block=None, lot=None, borough=None,
                missing_parcel_data=True,
                flags=LotRiskFlags(
                    is_landmarked=None, historic_district_name=None,
                    has_special_district=False, special_districts=[],
                    has_overlay=False, overlays=[],
                ),
            ))
            continue

        landmarked = normalize_landmark(parcel.landmark_flag)
        if landmarked is None:
            counts.landmark_unknown_lots += 1
        elif landmarked:
            counts.landmark_lots += 1

        historic = (parcel.historic_district_name or "").strip() or None
        if historic:
            counts.historic_district_lots += 1
        if parcel.has_special_district:
            counts.special_district_lots += 1
        if parcel.has_overlay:
            counts.overlay_lots += 1

        lots.append(LotContamination(
            child_index=index,
            parcel_id=parcel.parcel_id,
            block=parcel.block,
            lot=parcel.lot,
            borough=borough_letter(parcel.borough),
            missing_parcel_data=False,
            flags=LotRiskFlags(
                is_landmarked=landmarked,
                historic_district_name=historic,
                has_special_district=parcel.has_special_district,
                special_districts=list(parcel.special_district_codes),
                has_overlay=parcel.has_overlay,
                overlays=list(parcel.overlay_codes),
            ),
        ))

    any_landmark = counts.landmark_lots > 0
    any_historic = counts.historic_district_lots > 0
    any_special = counts.special_district_lots > 0
    any_overlay = counts.overlay_lots > 0

    if any_landmark:
        risk = "high"
    elif any_historic or any_special or any_overlay:
        risk = "moderate"
    else:
        risk = "none"

    missing = counts.lots_missing_parcel_data
    if missing >= 2 or (parcels and missing == len(parcels)):
        confidence = "low"
    elif missing == 1 or counts.landmark_unknown_lots > 0:
        confidence = "medium"
    else:
        confidence = "high"

    summary = ContaminationSummary(
        any_landmark=any_landmark,
        any_historic_district=any_historic,
        any_special_district=any_special,
        any_overlay=any_overlay,
        contamination_risk=risk,
        confidence=confidence,
        requires_manual_review=risk != "none" or confidence != "high",
        counts=counts,
    )
    return ContaminationRiskReport(lots=lots, summary=summary)
