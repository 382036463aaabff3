"""
Assemblage report pipeline (2+ addresses treated as one development site).

  1. assemblage_input                 the accepted address list
  2. per address, concurrently (bounded by a semaphore):
       location (REQUIRED for the assemblage) → parcel (OPTIONAL)
  3. join: any failed location fails the report; nothing is aggregated
  4. assemblage_aggregation           areas, FAR, buildable floor area, density
  5. assemblage_zoning_consistency    cross-lot zoning comparison
  6. assemblage_contamination_risk    landmark / historic / special district risk

Stages 4-6 are pure computations over the parcel records; a failure in one
is recorded and leaves the report ready.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from zoning_feasibility.config import settings
from zoning_feasibility.models.schemas import (
    AssemblageReportResponse,
    ParcelRecord,
    ReportStatus,
    ReportType,
    ResolvedLocation,
    SourceKey,
)
from zoning_feasibility.orchestration.single import mark_failed
from zoning_feasibility.orchestration.stages import (
    Criticality,
    StageOutcome,
    check_resumed_addresses,
    gather_stages,
    load_resumable_report,
    run_stage,
    summarize_sources,
    validate_addresses,
)
from zoning_feasibility.services.geocoding import LocationResolver
from zoning_feasibility.services.pluto import ParcelDataSource
from zoning_feasibility.services.report_store import ReportStore
from zoning_feasibility.zoning_engine.assemblage import AssemblageLotInput, aggregate_assemblage
from zoning_feasibility.zoning_engine.consistency import evaluate_zoning_consistency
from zoning_feasibility.zoning_engine.contamination import evaluate_contamination_risk

logger = logging.getLogger(__name__)

ASSEMBLAGE_VERSION = "v1"


@dataclass
class ChildOutcome:
    child_index: int
    address: str
    location: StageOutcome[ResolvedLocation]
    parcel: Optional[StageOutcome[ParcelRecord]] = None

    @property
    def parcel_record(self) -> Optional[ParcelRecord]:
        if self.parcel is None or not self.parcel.succeeded:
            return None
        return self.parcel.value


class AssemblageOrchestrator:
    def __init__(
        self,
        resolver: LocationResolver,
        parcels: ParcelDataSource,
        store: ReportStore,
        max_concurrency: Optional[int] = None,
        duf: Optional[float] = None,
    ):
        self.resolver = resolver
        self.parcels = parcels
        self.store = store
        self.max_concurrency = max(1, max_concurrency or settings.assemblage_max_concurrency)
        self.duf = duf or settings.default_duf

    async def run(
        self, addresses: list[str], report_id: Optional[str] = None,
    ) -> AssemblageReportResponse:
        """Run (or resume, when ``report_id`` is given) an assemblage report."""
        addresses = validate_addresses(addresses)
        if report_id is None:
            report = await self.store.create_report(ReportType.ASSEMBLAGE, " | ".join(addresses))
            report_id = report.id
        else:
            report = await load_resumable_report(self.store, report_id, ReportType.ASSEMBLAGE)
            stored = await self.store.find_source(report_id, SourceKey.ASSEMBLAGE_INPUT)
            check_resumed_addresses(report, stored, addresses)

        logger.info("Assemblage report %s started for %d addresses", report_id, len(addresses))
        try:
            status, aggregation = await self._run_stages(report_id, addresses)
        except (asyncio.CancelledError, Exception):
            await mark_failed(self.store, report_id)
            raise

        await self.store.set_status(report_id, status)
        logger.info("Assemblage report %s finished: %s", report_id, status.value)
        sources = await self.store.list_sources(report_id)
        return AssemblageReportResponse(
            report_id=report_id,
            status=status,
            aggregation=aggregation,
            sources=summarize_sources(sources),
        )

    async def _run_stages(
        self, report_id: str, addresses: list[str],
    ) -> tuple[ReportStatus, Optional[dict]]:
        await run_stage(
            self.store, report_id, SourceKey.ASSEMBLAGE_INPUT, Criticality.REQUIRED,
            lambda: {
                "addresses": addresses,
                "lot_count": len(addresses),
                "requested_at": datetime.now(timezone.utc).isoformat(),
                "version": ASSEMBLAGE_VERSION,
            },
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        children: list[ChildOutcome] = await gather_stages(*(
            self._run_child(report_id, index, address, semaphore)
            for index, address in enumerate(addresses)
        ))

        failed = [c.child_index for c in children if c.location.aborts_pipeline]
        if failed:
            logger.warning(
                "Assemblage report %s: location resolution failed for lot(s) %s",
                report_id, failed,
            )
            return ReportStatus.FAILED, None

        lots = [
            AssemblageLotInput(
                child_index=c.child_index,
                address=c.address,
                parcel_id=c.location.value.parcel_id,
                normalized_address=c.location.value.normalized_address,
                parcel=c.parcel_record,
            )
            for c in children
        ]
        parcels = [lot.parcel for lot in lots]

        aggregation = await run_stage(
            self.store, report_id, SourceKey.ASSEMBLAGE_AGGREGATION, Criticality.OPTIONAL,
            lambda: aggregate_assemblage(lots, self.duf),
        )
        await run_stage(
            self.store, report_id, SourceKey.ASSEMBLAGE_ZONING_CONSISTENCY, Criticality.OPTIONAL,
            lambda: evaluate_zoning_consistency(parcels),
        )
        await run_stage(
            self.store, report_id, SourceKey.ASSEMBLAGE_CONTAMINATION_RISK, Criticality.OPTIONAL,
            lambda: evaluate_contamination_risk(parcels),
        )

        payload = aggregation.record.payload if aggregation.succeeded else None
        return ReportStatus.READY, payload

    async def _run_child(
        self, report_id: str, index: int, address: str, semaphore: asyncio.Semaphore,
    ) -> ChildOutcome:
        async with semaphore:
            context = {"child_index": index, "address": address}
            location = await run_stage(
                self.store, report_id, SourceKey.LOCATION, Criticality.REQUIRED,
                lambda: self.resolver.resolve(address),
                child_index=index,
                parse=ResolvedLocation.model_validate,
                context=context,
            )
            if location.aborts_pipeline:
                return ChildOutcome(index, address, location)

            parcel = await run_stage(
                self.store, report_id, SourceKey.PARCEL, Criticality.OPTIONAL,
                lambda: self.parcels.fetch(location.value.parcel_id),
                child_index=index,
                parse=ParcelRecord.model_validate,
                context={**context, "parcel_id": location.value.parcel_id},
            )
            return ChildOutcome(index, address, location, parcel)
