"""
Transit zone classification (ZR parking geographies).

Point-in-polygon query against the DCP Transit Zones feature service:

  Inner Transit Zone                                  → inner
  Outer Transit Zone                                  → outer
  Manhattan Core and Long Island City Parking Areas   → manhattan_core_lic
  no polygon at the point, or an unrecognised label   → unknown
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Protocol

import httpx

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import TransitZoneError
from zoning_feasibility.models.schemas import TransitZoneResult

logger = logging.getLogger(__name__)

ZONE_FIELD = "TranstZone"

INNER = "inner"
OUTER = "outer"
MANHATTAN_CORE_LIC = "manhattan_core_lic"
UNKNOWN = "unknown"


class TransitZoneClassifier(Protocol):
    async def classify(self, latitude: float, longitude: float) -> TransitZoneResult:
        ...


def normalize_transit_zone(raw: Optional[str]) -> tuple[str, str]:
    """Map a raw TranstZone value to (zone, label)."""
    if not raw or not isinstance(raw, str) or not raw.strip():
        return UNKNOWN, "Unknown or missing"

    text = raw.strip()
    if "Inner Transit Zone" in text:
        return INNER, "Inner Transit Zone"
    if "Outer Transit Zone" in text:
        return OUTER, "Outer Transit Zone"
    if "Manhattan Core" in text or "Long Island City" in text:
        return MANHATTAN_CORE_LIC, "Manhattan Core and Long Island City Parking Areas"
    return UNKNOWN, text


def build_query_params(latitude: float, longitude: float) -> dict:
    geometry = {"x": longitude, "y": latitude, "spatialReference": {"wkid": 4326}}
    return {
        "f": "json",
        "where": "1=1",
        "geometryType": "esriGeometryPoint",
        "geometry": json.dumps(geometry),
        "inSR": "4326",
        "spatialRel": "esriSpatialRelIntersects",
        "outFields": ZONE_FIELD,
        "returnGeometry": "false",
    }


def parse_query_response(data: dict) -> TransitZoneResult:
    if data.get("error"):
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise TransitZoneError(f"ArcGIS API error: {message}")

    features = data.get("features") or []
    if not features:
        return TransitZoneResult(
            zone=UNKNOWN,
            label="Beyond the Greater Transit Zone",
            matched=False,
            notes="No transit zone polygon contains this point.",
        )

    raw = (features[0].get("attributes") or {}).get(ZONE_FIELD)
    zone, label = normalize_transit_zone(raw)
    return TransitZoneResult(
        zone=zone,
        label=label,
        matched=zone != UNKNOWN,
        notes=None if zone != UNKNOWN else f"Unrecognized transit zone value: {raw!r}",
    )


class ArcGISTransitZoneClassifier:
    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.transit_zones_url
        self.timeout = timeout or settings.http_timeout_seconds

    async def classify(self, latitude: float, longitude: float) -> TransitZoneResult:
        params = build_query_params(latitude, longitude)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.url, params=params, headers={"Accept": "application/json"})
            resp.raise_for_status()
            data = resp.json()

        result = parse_query_response(data)
        logger.info("Transit zone at (%s, %s): %s", latitude, longitude, result.zone)
        return result
