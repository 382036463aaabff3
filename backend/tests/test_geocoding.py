"""Tests for address parsing and location resolution (no real API calls)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from zoning_feasibility.exceptions import LocationResolutionError
from zoning_feasibility.services.geocoding import (
    GeoserviceLocationResolver,
    parse_address,
    parse_bbl,
    parse_geosearch_response,
    parse_geoservice_response,
    zip_to_borough,
)


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

GEOSEARCH_HIT = {
    "features": [{
        "geometry": {"type": "Point", "coordinates": [-73.9776, 40.6866]},
        "properties": {
            "label": "120 FLATBUSH AVENUE, Brooklyn, NY, USA",
            "name": "120 FLATBUSH AVENUE",
            "borough": "Brooklyn",
            "addendum": {"pad": {"bbl": "3021080001", "bin": "3058888"}},
        },
    }],
}

GEOSERVICE_HIT = {
    "root": {
        "wa1": {"out_hnd": "120", "out_stname1": "FLATBUSH AVE"},
        "wa2F1b": {
            "wa2f1ax": {
                "bbl": {"boro": "3", "block": "2108", "lot": "1"},
                "latitude": "40.6866",
                "longitude": "-73.9776",
                "rpad_bldg_class": "K4",
                "bin": {"bin": "3058888"},
                "wa2f1ex": {
                    "boe_preferred_stname": "FLATBUSH AVENUE",
                    "cd": "302",
                    "com_dist": {"district_number": "35"},
                    "police_pct": "088",
                    "school_dist": "13",
                    "DCP_Zoning_Map": "16c",
                },
            },
        },
    },
}


def _response(status_code: int, data: dict) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    return resp


def _patched_client(mock_client_class, *responses):
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(side_effect=list(responses))
    mock_client_class.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_class.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_client


class TestAddressParsing:
    """Test address parsing into house number, street, and borough."""

    def test_brooklyn_address(self):
        num, street, boro = parse_address("120 Flatbush Ave, Brooklyn")
        assert num == "120"
        assert "Flatbush" in street
        assert boro == 3

    def test_manhattan_address(self):
        num, street, boro = parse_address("350 5th Avenue, Manhattan")
        assert num == "350"
        assert boro == 1

    def test_bronx_address(self):
        num, street, boro = parse_address("1000 Grand Concourse, Bronx")
        assert num == "1000"
        assert boro == 2

    def test_queens_hyphenated_house_number(self):
        num, street, boro = parse_address("37-10 Main Street, Queens")
        assert num == "37-10"
        assert street == "Main Street"
        assert boro == 4

    def test_staten_island_address(self):
        num, street, boro = parse_address("1 Richmond Terrace, Staten Island")
        assert num == "1"
        assert boro == 5

    def test_abbreviations(self):
        _, _, boro = parse_address("120 Flatbush Ave, BK")
        assert boro == 3

    def test_new_york_implies_manhattan(self):
        _, _, boro = parse_address("120 Broadway, New York")
        assert boro == 1

    def test_no_borough_returns_none(self):
        _, _, boro = parse_address("120 Main St")
        assert boro is None

    def test_zipcode_borough_detection(self):
        _, _, boro = parse_address("120 Broadway, NY 10006")
        assert boro == 1

    def test_brooklyn_zipcode(self):
        _, _, boro = parse_address("100 Montague St, NY 11201")
        assert boro == 3

    def test_zip_to_borough(self):
        assert zip_to_borough("10301") == 5
        assert zip_to_borough("11354") == 4
        assert zip_to_borough("90210") is None
        assert zip_to_borough("abcde") is None


class TestBblParsing:
    @pytest.mark.parametrize("raw", ["3046220022", "3-04622-0022", "3/04622/0022", " 3 04622 0022 "])
    def test_valid(self, raw):
        assert parse_bbl(raw) == "3046220022"

    @pytest.mark.parametrize("raw", ["6046220022", "304622002", "120 Flatbush Ave"])
    def test_invalid(self, raw):
        assert parse_bbl(raw) is None


class TestResponseParsing:
    def test_geosearch(self):
        loc = parse_geosearch_response(GEOSEARCH_HIT)
        assert loc.parcel_id == "3021080001"
        assert loc.normalized_address == "120 FLATBUSH AVENUE, Brooklyn, NY, USA"
        assert loc.latitude == pytest.approx(40.6866)
        assert loc.longitude == pytest.approx(-73.9776)
        assert (loc.borough, loc.block, loc.lot) == (3, 2108, 1)
        assert loc.bin == "3058888"

    def test_geosearch_empty(self):
        assert parse_geosearch_response({"features": []}) is None

    def test_geosearch_outside_nyc(self):
        data = {"features": [{
            "geometry": {"coordinates": [-74.0, 40.7]},
            "properties": {"borough": "Hoboken", "addendum": {"pad": {"bbl": "3021080001"}}},
        }]}
        assert parse_geosearch_response(data) is None

    def test_geosearch_without_bbl(self):
        data = {"features": [{
            "geometry": {"coordinates": [-73.9, 40.6]},
            "properties": {"borough": "Brooklyn", "label": "Prospect Park"},
        }]}
        assert parse_geosearch_response(data) is None

    def test_geoservice(self):
        loc = parse_geoservice_response(GEOSERVICE_HIT)
        assert loc.parcel_id == "3021080001"
        assert loc.normalized_address == "120 FLATBUSH AVENUE"
        assert loc.community_district == "302"
        assert loc.council_district == "35"
        assert loc.police_precinct == "088"
        assert loc.school_district == "13"
        assert loc.zoning_map == "16c"
        assert loc.building_class == "K4"
        assert loc.bin == "3058888"

    def test_geoservice_flat_bbl(self):
        loc = parse_geoservice_response({"root": {"bbl_toString": "1000477501"}})
        assert loc.parcel_id == "1000477501"
        assert loc.latitude is None

    def test_geoservice_display_fallback(self):
        data = {"display": {"out_bbl": "1000477501", "out_latitude": "40.7", "out_longitude": "-74.0"}}
        loc = parse_geoservice_response(data)
        assert loc.parcel_id == "1000477501"
        assert loc.latitude == pytest.approx(40.7)

    def test_geoservice_no_bbl(self):
        assert parse_geoservice_response({"root": {}}) is None


class TestResolver:
    """GeoserviceLocationResolver with httpx mocked out."""

    def _resolver(self) -> GeoserviceLocationResolver:
        return GeoserviceLocationResolver(
            geosearch_url="https://geosearch.test/v2/search",
            geoservice_url="https://geoservice.test/1B",
            api_key="test-key",
            timeout=5.0,
        )

    @pytest.mark.asyncio
    async def test_bbl_input_skips_lookup(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            loc = await self._resolver().resolve("3-02108-0001")
        mock_client_class.assert_not_called()
        assert loc.parcel_id == "3021080001"
        assert loc.latitude is None

    @pytest.mark.asyncio
    async def test_geosearch_hit(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            mock_client = _patched_client(mock_client_class, _response(200, GEOSEARCH_HIT))
            loc = await self._resolver().resolve("120 Flatbush Ave, Brooklyn")
        assert loc.parcel_id == "3021080001"
        assert mock_client.get.call_count == 1
        assert mock_client.get.call_args.kwargs["params"] == {"text": "120 Flatbush Ave, Brooklyn"}

    @pytest.mark.asyncio
    async def test_falls_back_to_geoservice(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            mock_client = _patched_client(
                mock_client_class,
                _response(200, {"features": []}),
                _response(200, GEOSERVICE_HIT),
            )
            loc = await self._resolver().resolve("120 Flatbush Ave, Brooklyn")
        assert loc.council_district == "35"
        params = mock_client.get.call_args.kwargs["params"]
        assert params == {
            "Borough": "3",
            "AddressNo": "120",
            "StreetName": "Flatbush Ave",
            "Key": "test-key",
        }

    @pytest.mark.asyncio
    async def test_no_borough_after_geosearch_miss(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            _patched_client(mock_client_class, _response(200, {"features": []}))
            with pytest.raises(LocationResolutionError, match="Could not resolve '120 Main St'"):
                await self._resolver().resolve("120 Main St")

    @pytest.mark.asyncio
    async def test_timeouts_are_reported(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            _patched_client(
                mock_client_class,
                httpx.TimeoutException("read timeout"),
                httpx.TimeoutException("read timeout"),
            )
            with pytest.raises(LocationResolutionError) as exc_info:
                await self._resolver().resolve("120 Flatbush Ave, Brooklyn")
        message = str(exc_info.value)
        assert "Geosearch API timeout" in message
        assert "Geoservice 1B timeout" in message
        assert "BROOKLYN" in message

    @pytest.mark.asyncio
    async def test_missing_house_number(self):
        with patch("zoning_feasibility.services.geocoding.httpx.AsyncClient") as mock_client_class:
            _patched_client(mock_client_class, _response(500, {}))
            with pytest.raises(LocationResolutionError, match="house number"):
                await self._resolver().resolve("Flatbush Ave, Brooklyn")
