"""
FEMA flood zone lookup.

Point-in-polygon query against the National Flood Hazard Layer. The first
intersecting polygon supplies the designation (AE, VE, X, ...); the field
carrying it differs between layer versions, so several are tried in order.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

import httpx

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import FloodZoneError
from zoning_feasibility.models.schemas import FloodZoneResult

logger = logging.getLogger(__name__)

ZONE_FIELDS = ("FLOODZONE", "ZONE_SUBTYPE", "ZONE", "FLD_ZONE", "ZONE_TYPE")


class FloodZoneClassifier(Protocol):
    async def classify(self, latitude: float, longitude: float) -> FloodZoneResult:
        ...


def build_query_params(latitude: float, longitude: float) -> dict:
    geometry = {"x": longitude, "y": latitude, "spatialReference": {"wkid": 4326}}
    return {
        "f": "json",
        "where": "1=1",
        "geometryType": "esriGeometryPoint",
        "geometry": json.dumps(geometry),
        "inSR": "4326",
        "spatialRel": "esriSpatialRelIntersects",
        "outFields": "*",
        "returnGeometry": "false",
        "outSR": "4326",
    }


def extract_flood_zone(attributes: dict) -> str | None:
    for name in ZONE_FIELDS:
        value = attributes.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def parse_query_response(data: dict) -> FloodZoneResult:
    if data.get("error"):
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise FloodZoneError(f"ArcGIS API error: {message}")

    features = data.get("features") or []
    if not features:
        return FloodZoneResult(
            flood_zone=None,
            label="No flood zone",
            matched=False,
            notes="No FEMA flood zone polygon matched this location",
        )

    zone = extract_flood_zone(features[0].get("attributes") or {})
    return FloodZoneResult(
        flood_zone=zone,
        label=zone or "Unknown flood zone",
        matched=True,
        feature_count=len(features),
    )


class ArcGISFloodZoneClassifier:
    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.fema_flood_url
        self.timeout = timeout or settings.http_timeout_seconds

    async def classify(self, latitude: float, longitude: float) -> FloodZoneResult:
        params = build_query_params(latitude, longitude)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.url, params=params, headers={"Accept": "application/json"})
            resp.raise_for_status()
            data = resp.json()

        result = parse_query_response(data)
        logger.info("FEMA flood zone at (%s, %s): %s", latitude, longitude, result.flood_zone)
        return result
