from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text, Integer, ForeignKey, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB

from zoning_feasibility.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    report_type = Column(String(16), nullable=False, default="single")
    address = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ReportSource(Base):
    """Append-only stage result, keyed by (report_id, source_key, child_index)."""
    __tablename__ = "report_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    source_key = Column(String(64), nullable=False)
    child_index = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False)
    content_json = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_report_sources_lookup", "report_id", "source_key", "child_index"),
    )
