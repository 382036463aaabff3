"""
Stage runner shared by the report orchestrators.

Each stage runs one collaborator call or engine computation and persists
exactly one source record with a terminal status. A stage is tagged
REQUIRED or OPTIONAL; the orchestrator decides what a failure means for
the pipeline, the runner only records it.

When a report is re-run, a stage that already has a record for its
(report_id, source_key, child_index) key is not executed again: the stored
record is reused so a resumed run never duplicates work or records.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel

from zoning_feasibility.exceptions import InputValidationError
from zoning_feasibility.models.schemas import (
    ReportSourceRecord,
    ReportSummary,
    ReportType,
    SourceKey,
    SourceStatus,
    SourceStatusSummary,
)
from zoning_feasibility.services.report_store import ReportStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_ASSEMBLAGE_LOTS = 2


class Criticality(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass
class StageOutcome(Generic[T]):
    source_key: SourceKey
    criticality: Criticality
    record: ReportSourceRecord
    value: Optional[T] = None
    reused: bool = False

    @property
    def succeeded(self) -> bool:
        return self.record.status == SourceStatus.SUCCEEDED

    @property
    def aborts_pipeline(self) -> bool:
        return not self.succeeded and self.criticality == Criticality.REQUIRED


def to_payload(value: Any) -> Optional[dict]:
    """JSON-ready payload for a stage result."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return value
    raise TypeError(f"Cannot serialize stage result of type {type(value).__name__}")


async def run_stage(
    store: ReportStore,
    report_id: str,
    source_key: SourceKey,
    criticality: Criticality,
    func: Callable[[], Union[T, Awaitable[T]]],
    *,
    child_index: Optional[int] = None,
    parse: Optional[Callable[[dict], T]] = None,
    fallback: Optional[T] = None,
    context: Optional[dict] = None,
) -> StageOutcome[T]:
    """Run one stage and persist its record.

    Collaborator and computation errors become a failed record; cancellation
    and persistence errors propagate to the orchestrator. ``fallback`` is the
    value handed downstream (and stored) when the stage fails; ``context`` is
    stored with failed records to explain them.
    """
    existing = await store.find_source(report_id, source_key, child_index)
    if existing is not None:
        value = None
        if existing.status == SourceStatus.SUCCEEDED and existing.payload is not None:
            value = parse(existing.payload) if parse else existing.payload
        elif fallback is not None:
            value = fallback
        logger.info("Reusing %s record for report %s (child %s)", source_key.value, report_id, child_index)
        return StageOutcome(source_key, criticality, existing, value, reused=True)

    try:
        result = func()
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(
            "Stage %s failed for report %s (child %s, %s): %s",
            source_key.value, report_id, child_index, criticality.value, e,
        )
        payload = to_payload(fallback) or {}
        if context:
            payload = {**context, **payload}
        record = await store.append_source(ReportSourceRecord(
            owner_report_id=report_id,
            source_key=source_key,
            child_index=child_index,
            status=SourceStatus.FAILED,
            payload=payload or None,
            error_message=str(e) or type(e).__name__,
        ))
        return StageOutcome(source_key, criticality, record, fallback)

    record = await store.append_source(ReportSourceRecord(
        owner_report_id=report_id,
        source_key=source_key,
        child_index=child_index,
        status=SourceStatus.SUCCEEDED,
        payload=to_payload(result),
    ))
    return StageOutcome(source_key, criticality, record, result)


async def gather_stages(*coros: Awaitable[T]) -> list[T]:
    """Run coroutines concurrently and wait for all of them.

    If one raises (or the caller is cancelled), the rest are cancelled and
    awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def summarize_sources(records: list[ReportSourceRecord]) -> list[SourceStatusSummary]:
    return [
        SourceStatusSummary(
            source_key=r.source_key,
            child_index=r.child_index,
            status=r.status,
            error_message=r.error_message,
        )
        for r in records
    ]


# ──────────────────────────────────────────────────────────────────
# INPUT VALIDATION
# ──────────────────────────────────────────────────────────────────

def validate_address(address: Optional[str]) -> str:
    if address is None or not str(address).strip():
        raise InputValidationError("Address must not be empty")
    return str(address).strip()


def validate_addresses(addresses: Optional[list[str]]) -> list[str]:
    if addresses is None or len(addresses) < MIN_ASSEMBLAGE_LOTS:
        count = 0 if addresses is None else len(addresses)
        raise InputValidationError(
            f"An assemblage needs at least {MIN_ASSEMBLAGE_LOTS} addresses, got {count}"
        )
    cleaned = []
    for i, address in enumerate(addresses):
        if address is None or not str(address).strip():
            raise InputValidationError(f"Address {i + 1} must not be empty")
        cleaned.append(str(address).strip())
    return cleaned


# ──────────────────────────────────────────────────────────────────
# RESUME CHECKS
# ──────────────────────────────────────────────────────────────────

async def load_resumable_report(
    store: ReportStore, report_id: str, report_type: ReportType,
) -> ReportSummary:
    """Fetch a report being resumed; it must be of the requested type."""
    report = await store.get_report(report_id)
    if report.report_type != report_type:
        raise InputValidationError(
            f"Report {report_id} is of type {report.report_type.value}, "
            f"cannot resume it as {report_type.value}"
        )
    return report


def check_resumed_address(report: ReportSummary, address: str) -> None:
    if report.address != address:
        raise InputValidationError(
            f"Report {report.id} was requested for {report.address!r}, got {address!r}"
        )


def check_resumed_addresses(
    report: ReportSummary, stored: Optional[ReportSourceRecord], addresses: list[str],
) -> None:
    """Compare against the stored input record, else the report's joined address."""
    if stored is not None and stored.payload and "addresses" in stored.payload:
        previous = list(stored.payload["addresses"])
        if len(previous) != len(addresses):
            raise InputValidationError(
                f"Report {report.id} has {len(previous)} addresses, got {len(addresses)}"
            )
        if previous != addresses:
            raise InputValidationError(
                f"Report {report.id} was requested for a different address list"
            )
    elif report.address != " | ".join(addresses):
        raise InputValidationError(
            f"Report {report.id} was requested for a different address list"
        )
