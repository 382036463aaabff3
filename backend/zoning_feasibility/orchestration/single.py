"""
Single-parcel report pipeline.

  1. location          REQUIRED   address → BBL, coordinates, jurisdiction codes
  2. transit_zone      OPTIONAL   coordinates → transit zone (unknown on failure)
  3. fema_flood        OPTIONAL   coordinates → FEMA flood zone
  4. parcel            OPTIONAL   BBL → PLUTO parcel record
  5. zoning_resolution OPTIONAL   parcel record → derived zoning metrics

Stages 2-4 depend only on stage 1 and run concurrently; all are terminal
before stage 5 starts. The report is ready iff stage 1 succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import DependencyMissingError
from zoning_feasibility.models.schemas import (
    FloodZoneResult,
    ParcelRecord,
    ReportStatus,
    ReportType,
    ResolvedLocation,
    SingleReportResponse,
    SourceKey,
    TransitZoneResult,
)
from zoning_feasibility.orchestration.stages import (
    Criticality,
    StageOutcome,
    check_resumed_address,
    gather_stages,
    load_resumable_report,
    run_stage,
    summarize_sources,
    validate_address,
)
from zoning_feasibility.services.fema_flood import FloodZoneClassifier
from zoning_feasibility.services.geocoding import LocationResolver
from zoning_feasibility.services.pluto import ParcelDataSource
from zoning_feasibility.services.report_store import ReportStore
from zoning_feasibility.services.transit_zones import TransitZoneClassifier
from zoning_feasibility.zoning_engine.resolution import build_zoning_profile, resolve

logger = logging.getLogger(__name__)


async def mark_failed(store: ReportStore, report_id: str) -> None:
    """Best-effort status update while another error is propagating."""
    try:
        await store.set_status(report_id, ReportStatus.FAILED)
    except Exception:
        logger.exception("Could not mark report %s as failed", report_id)


class SingleParcelOrchestrator:
    def __init__(
        self,
        resolver: LocationResolver,
        parcels: ParcelDataSource,
        transit: TransitZoneClassifier,
        flood: FloodZoneClassifier,
        store: ReportStore,
        duf: Optional[float] = None,
    ):
        self.resolver = resolver
        self.parcels = parcels
        self.transit = transit
        self.flood = flood
        self.store = store
        self.duf = duf or settings.default_duf

    async def run(self, address: str, report_id: Optional[str] = None) -> SingleReportResponse:
        """Run (or resume, when ``report_id`` is given) a single-parcel report."""
        address = validate_address(address)
        if report_id is None:
            report = await self.store.create_report(ReportType.SINGLE, address)
            report_id = report.id
        else:
            report = await load_resumable_report(self.store, report_id, ReportType.SINGLE)
            check_resumed_address(report, address)

        logger.info("Single report %s started for %r", report_id, address)
        try:
            status = await self._run_stages(report_id, address)
        except (asyncio.CancelledError, Exception):
            await mark_failed(self.store, report_id)
            raise

        await self.store.set_status(report_id, status)
        logger.info("Single report %s finished: %s", report_id, status.value)
        sources = await self.store.list_sources(report_id)
        return SingleReportResponse(
            report_id=report_id, status=status, sources=summarize_sources(sources),
        )

    async def _run_stages(self, report_id: str, address: str) -> ReportStatus:
        location = await run_stage(
            self.store, report_id, SourceKey.LOCATION, Criticality.REQUIRED,
            lambda: self.resolver.resolve(address),
            parse=ResolvedLocation.model_validate,
            context={"address": address},
        )
        if location.aborts_pipeline:
            return ReportStatus.FAILED

        _, _, parcel = await gather_stages(
            self._classify_transit_zone(report_id, location.value),
            self._classify_flood_zone(report_id, location.value),
            run_stage(
                self.store, report_id, SourceKey.PARCEL, Criticality.OPTIONAL,
                lambda: self.parcels.fetch(location.value.parcel_id),
                parse=ParcelRecord.model_validate,
                context={"parcel_id": location.value.parcel_id},
            ),
        )

        await self._resolve_zoning(report_id, parcel)
        return ReportStatus.READY

    async def _classify_transit_zone(
        self, report_id: str, location: ResolvedLocation,
    ) -> StageOutcome[TransitZoneResult]:
        async def classify() -> TransitZoneResult:
            if location.latitude is None or location.longitude is None:
                raise DependencyMissingError(
                    "Resolved location has no coordinates; transit zone not classified"
                )
            result = await self.transit.classify(location.latitude, location.longitude)
            if not result.matched and result.zone != "unknown":
                result = result.model_copy(update={"zone": "unknown"})
            return result

        return await run_stage(
            self.store, report_id, SourceKey.TRANSIT_ZONE, Criticality.OPTIONAL,
            classify,
            parse=TransitZoneResult.model_validate,
            fallback=TransitZoneResult(zone="unknown", label="Unknown", matched=False),
        )

    async def _classify_flood_zone(
        self, report_id: str, location: ResolvedLocation,
    ) -> StageOutcome[FloodZoneResult]:
        async def classify() -> FloodZoneResult:
            if location.latitude is None or location.longitude is None:
                raise DependencyMissingError(
                    "Resolved location has no coordinates; FEMA flood zone not classified"
                )
            return await self.flood.classify(location.latitude, location.longitude)

        return await run_stage(
            self.store, report_id, SourceKey.FEMA_FLOOD, Criticality.OPTIONAL,
            classify,
            parse=FloodZoneResult.model_validate,
            fallback=FloodZoneResult(),
        )

    async def _resolve_zoning(self, report_id: str, parcel: StageOutcome[ParcelRecord]) -> None:
        def compute():
            if not parcel.succeeded or parcel.value is None:
                raise DependencyMissingError(
                    "Parcel data unavailable; zoning resolution needs the parcel record"
                )
            record = parcel.value
            return resolve(build_zoning_profile(record), record, self.duf)

        await run_stage(
            self.store, report_id, SourceKey.ZONING_RESOLUTION, Criticality.OPTIONAL, compute,
        )
