"""
NYC address resolution to a tax lot (BBL) with coordinates and
jurisdiction codes.

Sources (in order of priority):
  1. NYC Planning Labs Geosearch API (free, no auth)
  2. NYC Geoservice Function 1B (needs a borough; adds jurisdiction codes)

Handles:
  - Full addresses: "123 Main St, Brooklyn, NY 11201"
  - Abbreviated boroughs: "123 Main St, BK"
  - No borough: "123 Main St" (Geosearch only)
  - BBL input: "3046220022", "3-04622-0022", "3/04622/0022"
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

import httpx

from zoning_feasibility.config import settings
from zoning_feasibility.exceptions import LocationResolutionError
from zoning_feasibility.models.schemas import ResolvedLocation

logger = logging.getLogger(__name__)

# Borough name/abbreviation → code mapping
BOROUGH_MAP = {
    "manhattan": 1, "mn": 1, "mh": 1, "new york": 1, "ny": 1,
    "bronx": 2, "bx": 2, "the bronx": 2,
    "brooklyn": 3, "bk": 3, "bklyn": 3, "kings": 3,
    "queens": 4, "qn": 4, "qns": 4,
    "staten island": 5, "si": 5, "richmond": 5,
}

BOROUGH_CODE_TO_NAME = {
    1: "MANHATTAN", 2: "BRONX", 3: "BROOKLYN", 4: "QUEENS", 5: "STATEN ISLAND",
}

BOROUGH_NAME_TO_CODE = {
    "manhattan": 1, "bronx": 2, "brooklyn": 3, "queens": 4, "staten island": 5,
}


class LocationResolver(Protocol):
    async def resolve(self, address: str) -> ResolvedLocation:
        """Resolve an address, raising on failure."""
        ...


# ──────────────────────────────────────────────────────────────────
# BBL PARSING
# ──────────────────────────────────────────────────────────────────

def parse_bbl(raw: str) -> str | None:
    """Parse a BBL from "3046220022", "3-04622-0022" or "3/04622/0022".

    Returns the 10-digit BBL string or None if invalid.
    """
    cleaned = raw.strip().replace("-", "").replace("/", "").replace(" ", "")
    if re.match(r"^[1-5]\d{9}$", cleaned):
        return cleaned
    return None


def split_bbl(bbl: str) -> tuple[int, int, int]:
    """(borough, block, lot) for a 10-digit BBL."""
    return int(bbl[0]), int(bbl[1:6]), int(bbl[6:10])


# ──────────────────────────────────────────────────────────────────
# ADDRESS PARSING
# ──────────────────────────────────────────────────────────────────

def parse_address(address: str) -> tuple[str, str, int | None]:
    """Parse a NYC address into house number, street name, and borough code.

    Handles:
      - "123 Main St Brooklyn" (no comma)
      - "123 Main Street, Brooklyn, NY 11201" (full format)
      - "123 Main St, BK" (abbreviated borough)
      - "123 Main St" (no borough, returns None for borough)
    """
    address = address.strip()
    addr_lower = address.lower()
    borough_code = None

    # "123 Main St, Brooklyn, NY 11201" → "123 Main St, Brooklyn"
    # but not "120 Broadway, New York", where "New York" is the borough
    state_zip = re.search(r',?\s*(?:ny|nyc)\s*(?:,?\s*(?:ny))?\s*(\d{5})?\s*$', addr_lower)
    if state_zip:
        zipcode = state_zip.group(1)
        address = address[:state_zip.start()]
        addr_lower = address.lower()
        if zipcode:
            borough_code = zip_to_borough(zipcode)

    if not borough_code:
        state_name_zip = re.search(r',?\s*new\s+york\s*,?\s*(\d{5})\s*$', addr_lower)
        if state_name_zip:
            zipcode = state_name_zip.group(1)
            address = address[:state_name_zip.start()]
            addr_lower = address.lower()
            borough_code = zip_to_borough(zipcode)

    if not borough_code:
        # Longest names first so "staten island" wins over "si"
        for boro_name, code in sorted(BOROUGH_MAP.items(), key=lambda x: -len(x[0])):
            pattern = re.compile(r',?\s*' + re.escape(boro_name) + r'\s*$', re.IGNORECASE)
            match = pattern.search(addr_lower)
            if match:
                borough_code = code
                address = address[:match.start()].rstrip(", ")
                break

    address = address.strip().rstrip(",").strip()
    parts = address.split(" ", 1)
    if len(parts) == 2 and _is_house_number(parts[0]):
        house_number = parts[0]
        street_name = parts[1].strip()
    else:
        house_number = ""
        street_name = address

    return house_number, street_name, borough_code


def _is_house_number(s: str) -> bool:
    """Check if string looks like a house number (e.g., '123', '12-34')."""
    return bool(re.match(r'^[\d][\d\-]*[\d]?$', s))


def zip_to_borough(zipcode: str) -> int | None:
    """Map NYC zipcode to borough code."""
    try:
        z = int(zipcode)
    except ValueError:
        return None
    if 10001 <= z <= 10282:
        return 1  # Manhattan
    if 10451 <= z <= 10475:
        return 2  # Bronx
    if 11201 <= z <= 11256:
        return 3  # Brooklyn
    if 11001 <= z <= 11109 or 11351 <= z <= 11697:
        return 4  # Queens
    if 10301 <= z <= 10314:
        return 5  # Staten Island
    return None


# ──────────────────────────────────────────────────────────────────
# RESPONSE PARSING
# ──────────────────────────────────────────────────────────────────

def _float(val) -> Optional[float]:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


def _text(val) -> Optional[str]:
    if val is None:
        return None
    text = str(val).strip()
    return text or None


def parse_geosearch_response(data: dict) -> Optional[ResolvedLocation]:
    """First NYC feature of a Geosearch response, or None."""
    features = data.get("features", [])
    if not features:
        return None

    feat = features[0]
    props = feat.get("properties", {})
    coords = feat.get("geometry", {}).get("coordinates", [None, None])

    borough = props.get("borough")
    if borough and borough.lower() not in BOROUGH_NAME_TO_CODE:
        return None  # Not in NYC

    pad = props.get("addendum", {}).get("pad", {})
    bbl = parse_bbl(str(pad.get("bbl", "")))
    if not bbl:
        return None

    boro, block, lot = split_bbl(bbl)
    return ResolvedLocation(
        parcel_id=bbl,
        normalized_address=props.get("label") or props.get("name") or "",
        latitude=_float(coords[1]) if len(coords) >= 2 else None,
        longitude=_float(coords[0]) if len(coords) >= 2 else None,
        borough=boro,
        block=block,
        lot=lot,
        bin=_text(pad.get("bin")),
    )


def parse_geoservice_response(data: dict) -> Optional[ResolvedLocation]:
    """Parse a Geoservice Function 1B response.

    Reads the nested ``root.wa2F1b.wa2f1ax`` work areas, falling back to the
    flat ``display`` block.
    """
    root = data.get("root") or {}
    wa1 = root.get("wa1") or {}
    wa2f1ax = (root.get("wa2F1b") or {}).get("wa2f1ax") or {}
    wa2f1ex = wa2f1ax.get("wa2f1ex") or {}
    display = data.get("display") or {}

    bbl = parse_bbl(str(root.get("bbl_toString") or ""))
    if not bbl and wa2f1ax.get("bbl"):
        parts = wa2f1ax["bbl"]
        boro = _text(parts.get("boro"))
        block = _text(parts.get("block"))
        lot = _text(parts.get("lot"))
        if boro and block and lot:
            bbl = parse_bbl(f"{boro}{block.zfill(5)}{lot.zfill(4)}")
    if not bbl:
        bbl = parse_bbl(str(display.get("out_bbl") or ""))
    if not bbl:
        return None

    street = _text(wa2f1ex.get("boe_preferred_stname")) or _text(wa1.get("out_stname1"))
    house_number = _text(wa1.get("out_hnd"))
    normalized_address = f"{house_number} {street}" if street and house_number else ""

    latitude = _float(wa2f1ax.get("latitude")) or _float(wa2f1ex.get("latitude"))
    longitude = _float(wa2f1ax.get("longitude")) or _float(wa2f1ex.get("longitude"))
    if latitude is None:
        latitude = _float(display.get("out_latitude"))
    if longitude is None:
        longitude = _float(display.get("out_longitude"))

    bin_value = wa2f1ax.get("bin")
    if isinstance(bin_value, dict):
        bin_value = bin_value.get("bin")

    boro, block, lot = split_bbl(bbl)
    return ResolvedLocation(
        parcel_id=bbl,
        normalized_address=normalized_address,
        latitude=latitude,
        longitude=longitude,
        borough=boro,
        block=block,
        lot=lot,
        community_district=_text(wa2f1ex.get("cd")),
        council_district=_text((wa2f1ex.get("com_dist") or {}).get("district_number")),
        police_precinct=_text(wa2f1ex.get("police_pct")),
        school_district=_text(wa2f1ex.get("school_dist")),
        zoning_map=_text(wa2f1ex.get("DCP_Zoning_Map")),
        building_class=_text(wa2f1ax.get("rpad_bldg_class")),
        bin=_text(bin_value),
    )


# ──────────────────────────────────────────────────────────────────
# RESOLVER
# ──────────────────────────────────────────────────────────────────

class GeoserviceLocationResolver:
    """Geosearch first; Geoservice 1B when Geosearch has no usable match."""

    def __init__(
        self,
        geosearch_url: str | None = None,
        geoservice_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        self.geosearch_url = geosearch_url or settings.geosearch_url
        self.geoservice_url = geoservice_url or settings.geoservice_url
        self.api_key = settings.geoservice_api_key if api_key is None else api_key
        self.timeout = timeout or settings.http_timeout_seconds

    async def resolve(self, address: str) -> ResolvedLocation:
        errors = []

        # BBL input needs no lookup but carries no coordinates
        bbl = parse_bbl(address)
        if bbl:
            boro, block, lot = split_bbl(bbl)
            return ResolvedLocation(
                parcel_id=bbl, normalized_address=bbl, borough=boro, block=block, lot=lot,
            )

        try:
            result = await self._geosearch(address)
            if result:
                return result
        except httpx.TimeoutException:
            errors.append("Geosearch API timeout")
        except httpx.HTTPError as e:
            errors.append(f"Geosearch API error: {type(e).__name__}: {e}")
            logger.warning("Geosearch failed for %r: %s", address, e)

        house_number, street_name, borough_code = parse_address(address)
        if not borough_code:
            detail = (
                f"Could not resolve '{address}'. Geosearch found no match and no "
                "borough could be determined for Geoservice. Include the borough "
                "(e.g., 'Brooklyn', 'Manhattan') or a NYC zipcode."
            )
            if errors:
                detail += f" Errors: {'; '.join(errors)}"
            raise LocationResolutionError(detail)
        if not house_number or not street_name:
            raise LocationResolutionError(
                f"Could not parse house number and street name from: {address}"
            )

        try:
            result = await self._geoservice(house_number, street_name, borough_code)
            if result:
                return result
        except httpx.TimeoutException:
            errors.append("Geoservice 1B timeout")
        except httpx.HTTPError as e:
            errors.append(f"Geoservice 1B: {type(e).__name__}")
            logger.warning("Geoservice 1B failed for %r: %s", address, e)

        detail = (
            f"Could not resolve address: '{address}'. "
            f"Parsed as: {house_number} {street_name}, {BOROUGH_CODE_TO_NAME[borough_code]}."
        )
        if errors:
            detail += f" Service errors: {'; '.join(errors)}"
        raise LocationResolutionError(detail)

    async def _geosearch(self, address: str) -> Optional[ResolvedLocation]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.geosearch_url, params={"text": address})
            if resp.status_code != 200:
                return None
            data = resp.json()
        return parse_geosearch_response(data)

    async def _geoservice(
        self, house_number: str, street_name: str, borough_code: int
    ) -> Optional[ResolvedLocation]:
        params = {
            "Borough": str(borough_code),
            "AddressNo": house_number,
            "StreetName": street_name,
            "Key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.geoservice_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        return parse_geoservice_response(data)
