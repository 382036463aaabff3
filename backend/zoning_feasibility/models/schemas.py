from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


# ──────────────────────────────────────────────────────────────────
# ENUMS
# ──────────────────────────────────────────────────────────────────

class SourceKey(str, Enum):
    LOCATION = "location"
    PARCEL = "parcel"
    TRANSIT_ZONE = "transit_zone"
    FEMA_FLOOD = "fema_flood"
    ZONING_RESOLUTION = "zoning_resolution"
    ASSEMBLAGE_INPUT = "assemblage_input"
    ASSEMBLAGE_AGGREGATION = "assemblage_aggregation"
    ASSEMBLAGE_ZONING_CONSISTENCY = "assemblage_zoning_consistency"
    ASSEMBLAGE_CONTAMINATION_RISK = "assemblage_contamination_risk"


class SourceStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReportStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ReportType(str, Enum):
    SINGLE = "single"
    ASSEMBLAGE = "assemblage"


# ──────────────────────────────────────────────────────────────────
# ACQUISITION CONTRACTS
# ──────────────────────────────────────────────────────────────────

class ResolvedLocation(BaseModel):
    parcel_id: str  # 10-digit BBL
    normalized_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    borough: Optional[int] = None
    block: Optional[int] = None
    lot: Optional[int] = None
    community_district: Optional[str] = None
    council_district: Optional[str] = None
    police_precinct: Optional[str] = None
    school_district: Optional[str] = None
    zoning_map: Optional[str] = None
    building_class: Optional[str] = None
    bin: Optional[str] = None

    model_config = {"frozen": True}


class ParcelRecord(BaseModel):
    parcel_id: str
    address: Optional[str] = None
    borough: Optional[int] = None
    block: Optional[int] = None
    lot: Optional[int] = None
    block_id: Optional[str] = None  # borough + block, first 6 digits of the BBL
    lot_area_sqft: Optional[float] = None
    existing_building_area_sqft: Optional[float] = None
    zoning_district_codes: list[str] = []  # ordered, first = primary
    overlay_codes: list[str] = []
    special_district_codes: list[str] = []
    land_use_code: Optional[str] = None
    building_class_code: Optional[str] = None
    lot_type_code: Optional[str] = None  # PLUTO LotType (3 = corner)
    units_residential: Optional[int] = None
    number_of_floors: Optional[float] = None
    landmark_flag: Optional[Union[bool, int, str]] = None
    historic_district_name: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def primary_district(self) -> Optional[str]:
        return self.zoning_district_codes[0] if self.zoning_district_codes else None

    @property
    def has_overlay(self) -> bool:
        return bool(self.overlay_codes)

    @property
    def has_special_district(self) -> bool:
        return bool(self.special_district_codes)

    @property
    def is_multi_district(self) -> bool:
        return len(self.zoning_district_codes) > 1


class TransitZoneResult(BaseModel):
    zone: str = "unknown"  # inner, outer, manhattan_core_lic, beyond_gtz, unknown
    label: str = "Unknown"
    matched: bool = False
    notes: Optional[str] = None


class FloodZoneResult(BaseModel):
    flood_zone: Optional[str] = None  # FEMA designation, e.g. AE, VE, X
    label: str = "Unknown"
    matched: bool = False
    feature_count: int = 0
    notes: Optional[str] = None


# ──────────────────────────────────────────────────────────────────
# ZONING RESOLUTION
# ──────────────────────────────────────────────────────────────────

class ZoningProfile(BaseModel):
    district: Optional[str] = None
    normalized_profile: Optional[str] = None
    lot_type: str = "interior_or_through"  # corner, interior_or_through
    building_type: str = "single_or_two_family"  # single_or_two_family, multiple_dwelling
    lot_type_inferred: bool = True
    building_type_inferred: bool = True
    lot_type_assumption: Optional[str] = None
    building_type_assumption: Optional[str] = None


class HeightCandidate(BaseModel):
    max_base_height_ft: float
    max_building_height_ft: float
    when: Optional[str] = None
    source_section: str
    source_url: str


class HeightEnvelopeResult(BaseModel):
    kind: str  # fixed, conditional, unsupported
    candidates: list[HeightCandidate] = []
    notes: Optional[str] = None
    requires_manual_review: bool = False


class MinBaseHeightCandidate(BaseModel):
    value_ft: float
    when: Optional[str] = None
    source_section: str
    source_url: str


class MinBaseHeightResult(BaseModel):
    kind: str  # fixed, conditional, see_section, unsupported
    value_ft: Optional[float] = None
    candidates: list[MinBaseHeightCandidate] = []
    source_section: Optional[str] = None
    source_url: Optional[str] = None
    notes: Optional[str] = None
    requires_manual_review: bool = False


class HeightRules(BaseModel):
    min_base_height: MinBaseHeightResult
    envelope: HeightEnvelopeResult


class ZoningFlags(BaseModel):
    has_overlay: bool = False
    has_special_district: bool = False
    multi_district_lot: bool = False
    district_not_found: bool = False
    non_residential: bool = False
    unsupported_district: bool = False
    lot_type_inferred: bool = False
    building_type_inferred: bool = False
    eligible_site_not_evaluated: bool = False
    yard_based_coverage_not_supported: bool = False
    special_lot_coverage_rules_not_evaluated: bool = False
    missing_lot_area: bool = False
    far_limit_reached: bool = False
    requires_manual_review: bool = False


class DerivedZoningMetrics(BaseModel):
    """Zoning constraints derived for one parcel. Recomputed, never patched."""
    parcel_id: Optional[str] = None
    district: Optional[str] = None
    profile: Optional[str] = None
    contextual: Optional[bool] = None
    lot_type: Optional[str] = None
    building_type: Optional[str] = None
    max_far: Optional[float] = None
    max_lot_coverage: Optional[float] = None
    max_buildable_floor_area_sqft: Optional[float] = None
    remaining_buildable_floor_area_sqft: Optional[float] = None
    remaining_floor_area_note: Optional[str] = None
    max_building_footprint_sqft: Optional[float] = None
    duf_applicable: bool = False
    dwelling_units_raw: Optional[float] = None
    max_dwelling_units: Optional[int] = None
    height: Optional[HeightRules] = None
    assumptions: list[str] = []
    flags: ZoningFlags = Field(default_factory=ZoningFlags)


# ──────────────────────────────────────────────────────────────────
# REPORTS
# ──────────────────────────────────────────────────────────────────

class ReportSummary(BaseModel):
    id: str
    report_type: ReportType
    address: str
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReportSourceRecord(BaseModel):
    """One persisted stage result. Append-only."""
    owner_report_id: str
    source_key: SourceKey
    child_index: Optional[int] = None
    status: SourceStatus
    payload: Optional[dict] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"frozen": True}


class SingleReportRequest(BaseModel):
    address: str


class AssemblageReportRequest(BaseModel):
    addresses: list[str]


class SourceStatusSummary(BaseModel):
    source_key: SourceKey
    child_index: Optional[int] = None
    status: SourceStatus
    error_message: Optional[str] = None


class SingleReportResponse(BaseModel):
    report_id: str
    status: ReportStatus
    sources: list[SourceStatusSummary] = []


class AssemblageReportResponse(BaseModel):
    report_id: str
    status: ReportStatus
    aggregation: Optional[dict] = None
    sources: list[SourceStatusSummary] = []


class ReportDetail(BaseModel):
    report: ReportSummary
    sources: list[ReportSourceRecord] = []
