"""
Report persistence.

A report owns many source records, one per stage execution. Source records
are append-only and keyed by (report_id, source_key, child_index); only the
report's own status is ever updated.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zoning_feasibility.exceptions import ReportNotFoundError
from zoning_feasibility.models.report import Report, ReportSource
from zoning_feasibility.models.schemas import (
    ReportSourceRecord,
    ReportStatus,
    ReportSummary,
    ReportType,
    SourceKey,
    SourceStatus,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportStore(Protocol):
    async def create_report(self, report_type: ReportType, address: str) -> ReportSummary: ...

    async def append_source(self, record: ReportSourceRecord) -> ReportSourceRecord: ...

    async def set_status(self, report_id: str, status: ReportStatus) -> None: ...

    async def get_report(self, report_id: str) -> ReportSummary: ...

    async def list_sources(self, report_id: str) -> list[ReportSourceRecord]: ...

    async def find_source(
        self, report_id: str, source_key: SourceKey, child_index: Optional[int] = None,
    ) -> Optional[ReportSourceRecord]: ...


# ──────────────────────────────────────────────────────────────────
# IN-MEMORY
# ──────────────────────────────────────────────────────────────────

class InMemoryReportStore:
    """Process-local store for tests and single-instance deployments."""

    def __init__(self):
        self._reports: dict[str, ReportSummary] = {}
        self._sources: dict[str, list[ReportSourceRecord]] = {}

    async def create_report(self, report_type: ReportType, address: str) -> ReportSummary:
        now = _utcnow()
        report = ReportSummary(
            id=str(uuid.uuid4()),
            report_type=report_type,
            address=address,
            status=ReportStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._reports[report.id] = report
        self._sources[report.id] = []
        return report

    async def append_source(self, record: ReportSourceRecord) -> ReportSourceRecord:
        if record.owner_report_id not in self._reports:
            raise ReportNotFoundError(record.owner_report_id)
        if record.created_at is None:
            record = record.model_copy(update={"created_at": _utcnow()})
        self._sources[record.owner_report_id].append(record)
        return record

    async def set_status(self, report_id: str, status: ReportStatus) -> None:
        report = await self.get_report(report_id)
        self._reports[report_id] = report.model_copy(
            update={"status": status, "updated_at": _utcnow()}
        )

    async def get_report(self, report_id: str) -> ReportSummary:
        try:
            return self._reports[report_id]
        except KeyError:
            raise ReportNotFoundError(report_id) from None

    async def list_sources(self, report_id: str) -> list[ReportSourceRecord]:
        await self.get_report(report_id)
        return list(self._sources[report_id])

    async def find_source(
        self, report_id: str, source_key: SourceKey, child_index: Optional[int] = None,
    ) -> Optional[ReportSourceRecord]:
        matches = [
            r for r in self._sources.get(report_id, [])
            if r.source_key == source_key and r.child_index == child_index
        ]
        return matches[-1] if matches else None


# ──────────────────────────────────────────────────────────────────
# SQLALCHEMY
# ──────────────────────────────────────────────────────────────────

def _to_summary(row: Report) -> ReportSummary:
    return ReportSummary(
        id=row.id,
        report_type=ReportType(row.report_type),
        address=row.address,
        status=ReportStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_record(row: ReportSource) -> ReportSourceRecord:
    return ReportSourceRecord(
        owner_report_id=row.report_id,
        source_key=SourceKey(row.source_key),
        child_index=row.child_index,
        status=SourceStatus(row.status),
        payload=row.content_json,
        error_message=row.error_message,
        created_at=row.created_at,
    )


def find_source_statement(
    report_id: str, source_key: SourceKey, child_index: Optional[int] = None,
) -> Select:
    """Latest record for one key; a top-level stage has a NULL child_index."""
    stmt = select(ReportSource).where(
        ReportSource.report_id == report_id,
        ReportSource.source_key == source_key.value,
    )
    if child_index is None:
        stmt = stmt.where(ReportSource.child_index.is_(None))
    else:
        stmt = stmt.where(ReportSource.child_index == child_index)
    return stmt.order_by(ReportSource.id.desc()).limit(1)


class SqlReportStore:
    """Reports and source records in the ``reports`` / ``report_sources`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_report(self, report_type: ReportType, address: str) -> ReportSummary:
        async with self.session_factory() as session:
            row = Report(
                id=str(uuid.uuid4()),
                report_type=report_type.value,
                address=address,
                status=ReportStatus.PENDING.value,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _to_summary(row)

    async def append_source(self, record: ReportSourceRecord) -> ReportSourceRecord:
        async with self.session_factory() as session:
            row = ReportSource(
                report_id=record.owner_report_id,
                source_key=record.source_key.value,
                child_index=record.child_index,
                status=record.status.value,
                content_json=record.payload,
                error_message=record.error_message,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _to_record(row)

    async def set_status(self, report_id: str, status: ReportStatus) -> None:
        async with self.session_factory() as session:
            row = await session.get(Report, report_id)
            if row is None:
                raise ReportNotFoundError(report_id)
            row.status = status.value
            await session.commit()

    async def get_report(self, report_id: str) -> ReportSummary:
        async with self.session_factory() as session:
            row = await session.get(Report, report_id)
            if row is None:
                raise ReportNotFoundError(report_id)
            return _to_summary(row)

    async def list_sources(self, report_id: str) -> list[ReportSourceRecord]:
        async with self.session_factory() as session:
            if await session.get(Report, report_id) is None:
                raise ReportNotFoundError(report_id)
            result = await session.execute(
                select(ReportSource)
                .where(ReportSource.report_id == report_id)
                .order_by(ReportSource.id)
            )
            return [_to_record(row) for row in result.scalars()]

    async def find_source(
        self, report_id: str, source_key: SourceKey, child_index: Optional[int] = None,
    ) -> Optional[ReportSourceRecord]:
        async with self.session_factory() as session:
            result = await session.execute(find_source_statement(report_id, source_key, child_index))
            row = result.scalars().first()
            return _to_record(row) if row is not None else None


def build_report_store(backend: str) -> ReportStore:
    if backend == "database":
        from zoning_feasibility.database import get_session_factory
        return SqlReportStore(get_session_factory())
    if backend != "memory":
        logger.warning("Unknown report store backend %r; using in-memory store", backend)
    return InMemoryReportStore()
