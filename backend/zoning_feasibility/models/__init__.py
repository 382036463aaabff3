from __future__ import annotations

from zoning_feasibility.models.report import Report, ReportSource

__all__ = ["Report", "ReportSource"]
