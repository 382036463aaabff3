from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import ParcelDataError
from zoning_feasibility.models.schemas import ParcelRecord

logger = logging.getLogger(__name__)

PLUTO_FIELDS = [
    "bbl", "borough", "block", "lot", "address",
    "zonedist1", "zonedist2", "zonedist3", "zonedist4",
    "overlay1", "overlay2", "spdist1", "spdist2", "spdist3",
    "landuse", "bldgclass", "lottype", "lotarea", "bldgarea",
    "unitsres", "numfloors", "landmark", "histdist",
]


class ParcelDataSource(Protocol):
    async def fetch(self, parcel_id: str) -> ParcelRecord:
        """Parcel attributes for a BBL, raising when unavailable."""
        ...


class PlutoParcelDataSource:
    """MapPLUTO records from the NYC Open Data Socrata API."""

    def __init__(self, url: str | None = None, app_token: str | None = None,
                 timeout: float | None = None):
        self.url = url or settings.pluto_url
        self.app_token = settings.socrata_app_token if app_token is None else app_token
        self.timeout = timeout or settings.http_timeout_seconds

    async def fetch(self, parcel_id: str) -> ParcelRecord:
        params = {"bbl": parcel_id, "$select": ",".join(PLUTO_FIELDS)}
        headers = {}
        if self.app_token:
            headers["X-App-Token"] = self.app_token

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.url, params=params, headers=headers)
            resp.raise_for_status()
            data = resp.json()

        if not data:
            raise ParcelDataError(f"No PLUTO record found for BBL {parcel_id}")

        logger.info("PLUTO record fetched for BBL %s", parcel_id)
        return parse_pluto_record(data[0], parcel_id)


def _float(val) -> Optional[float]:
    if val is None:
        return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


def _int(val) -> Optional[int]:
    if val is None:
        return None
    try:
        return int(float(val))
    except (ValueError, TypeError):
        return None


def _text(val) -> Optional[str]:
    if val is None:
        return None
    text = str(val).strip()
    return text or None


def _codes(record: dict, *keys: str) -> list[str]:
    """Non-empty values of the given fields, in field order."""
    return [code for code in (_text(record.get(k)) for k in keys) if code]


def _normalize_bbl(raw, fallback: str) -> str:
    # Socrata serves bbl as "3046220022.00000000"
    text = _text(raw)
    if not text:
        return fallback
    return text.split(".", 1)[0]


def parse_pluto_record(record: dict, parcel_id: str = "") -> ParcelRecord:
    """Parse a raw PLUTO Socrata record into a ParcelRecord."""
    bbl = _normalize_bbl(record.get("bbl"), parcel_id)
    borough = _int(bbl[0]) if len(bbl) == 10 else None
    block = _int(record.get("block"))
    lot = _int(record.get("lot"))
    if len(bbl) == 10:
        block = block if block is not None else int(bbl[1:6])
        lot = lot if lot is not None else int(bbl[6:10])

    return ParcelRecord(
        parcel_id=bbl,
        address=_text(record.get("address")),
        borough=borough,
        block=block,
        lot=lot,
        block_id=bbl[:6] if len(bbl) == 10 else None,
        lot_area_sqft=_float(record.get("lotarea")),
        existing_building_area_sqft=_float(record.get("bldgarea")),
        zoning_district_codes=_codes(record, "zonedist1", "zonedist2", "zonedist3", "zonedist4"),
        overlay_codes=_codes(record, "overlay1", "overlay2"),
        special_district_codes=_codes(record, "spdist1", "spdist2", "spdist3"),
        land_use_code=_text(record.get("landuse")),
        building_class_code=_text(record.get("bldgclass")),
        lot_type_code=_text(record.get("lottype")),
        units_residential=_int(record.get("unitsres")),
        number_of_floors=_float(record.get("numfloors")),
        landmark_flag=_text(record.get("landmark")),
        historic_district_name=_text(record.get("histdist")),
    )
