from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import InputValidationError, ReportNotFoundError
from zoning_feasibility.models.schemas import (
    AssemblageReportRequest,
    AssemblageReportResponse,
    ReportDetail,
    SingleReportRequest,
    SingleReportResponse,
)
from zoning_feasibility.orchestration.assemblage import AssemblageOrchestrator
from zoning_feasibility.orchestration.single import SingleParcelOrchestrator
from zoning_feasibility.services.fema_flood import ArcGISFloodZoneClassifier, FloodZoneClassifier
from zoning_feasibility.services.geocoding import GeoserviceLocationResolver, LocationResolver
from zoning_feasibility.services.pluto import ParcelDataSource, PlutoParcelDataSource
from zoning_feasibility.services.report_store import ReportStore, build_report_store
from zoning_feasibility.services.transit_zones import ArcGISTransitZoneClassifier, TransitZoneClassifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_report_store: ReportStore | None = None


# ──────────────────────────────────────────────────────────────────
# DEPENDENCIES
# ──────────────────────────────────────────────────────────────────

def get_report_store() -> ReportStore:
    global _report_store
    if _report_store is None:
        _report_store = build_report_store(settings.report_store_backend)
    return _report_store


def get_location_resolver() -> LocationResolver:
    return GeoserviceLocationResolver()


def get_parcel_source() -> ParcelDataSource:
    return PlutoParcelDataSource()


def get_transit_classifier() -> TransitZoneClassifier:
    return ArcGISTransitZoneClassifier()


def get_flood_classifier() -> FloodZoneClassifier:
    return ArcGISFloodZoneClassifier()


def get_single_orchestrator(
    resolver: LocationResolver = Depends(get_location_resolver),
    parcels: ParcelDataSource = Depends(get_parcel_source),
    transit: TransitZoneClassifier = Depends(get_transit_classifier),
    flood: FloodZoneClassifier = Depends(get_flood_classifier),
    store: ReportStore = Depends(get_report_store),
) -> SingleParcelOrchestrator:
    return SingleParcelOrchestrator(resolver, parcels, transit, flood, store)


def get_assemblage_orchestrator(
    resolver: LocationResolver = Depends(get_location_resolver),
    parcels: ParcelDataSource = Depends(get_parcel_source),
    store: ReportStore = Depends(get_report_store),
) -> AssemblageOrchestrator:
    return AssemblageOrchestrator(resolver, parcels, store)


# ──────────────────────────────────────────────────────────────────
# ROUTES
# ──────────────────────────────────────────────────────────────────

@router.post("/reports", response_model=SingleReportResponse)
async def create_single_report(
    request: SingleReportRequest,
    orchestrator: SingleParcelOrchestrator = Depends(get_single_orchestrator),
):
    """Run the single-parcel pipeline for one address."""
    try:
        return await orchestrator.run(request.address)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/assemblage-reports", response_model=AssemblageReportResponse)
async def create_assemblage_report(
    request: AssemblageReportRequest,
    orchestrator: AssemblageOrchestrator = Depends(get_assemblage_orchestrator),
):
    """Run the assemblage pipeline for two or more addresses."""
    try:
        return await orchestrator.run(request.addresses)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/reports/{report_id}", response_model=ReportDetail)
async def get_report(report_id: str, store: ReportStore = Depends(get_report_store)):
    """Report status with every stored source record."""
    try:
        report = await store.get_report(report_id)
        sources = await store.list_sources(report_id)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return ReportDetail(report=report, sources=sources)
