"""Tests for the assemblage aggregation engine."""

from __future__ import annotations

import pytest

from zoning_feasibility.models.schemas import ParcelRecord
from zoning_feasibility.zoning_engine.assemblage import (
    FAR_MISSING_PARCEL_DATA,
    LOT_MISSING_LOT_AREA,
    LOT_MISSING_PARCEL_DATA,
    LOT_OK,
    PER_LOT_SUM,
    SHARED_DISTRICT,
    AssemblageLotInput,
    aggregate_assemblage,
)
from zoning_feasibility.zoning_engine.density import COMBINED_AREA_THEN_DUF, PER_LOT_DUF_SUM


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

def _parcel(lot: int, area, districts=("R7A",), **overrides) -> ParcelRecord:
    fields = dict(
        parcel_id=f"30012300{lot:02d}",
        borough=3,
        block=123,
        lot=lot,
        block_id="300123",
        lot_area_sqft=area,
        existing_building_area_sqft=0.0,
        zoning_district_codes=list(districts),
        building_class_code="C1",
        units_residential=6,
    )
    fields.update(overrides)
    return ParcelRecord(**fields)


def _input(index: int, parcel) -> AssemblageLotInput:
    return AssemblageLotInput(
        child_index=index,
        address=f"{index + 10} Test St, Brooklyn",
        parcel_id=parcel.parcel_id if parcel else f"30012300{index:02d}",
        normalized_address=f"{index + 10} TEST STREET",
        parcel=parcel,
    )


class TestSharedDistrict:
    """Lots in the same district with no review flags."""

    def test_sums_area_and_buildable(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 2000.0)),
            _input(1, _parcel(2, 2500.0)),
        ])
        assert result.combined_lot_area_sqft == pytest.approx(4500.0)
        # R7A FAR 4.0
        assert result.total_buildable_sqft == pytest.approx(18000.0)
        assert result.far_method == SHARED_DISTRICT
        assert result.requires_manual_review is False
        assert result.density.method_used == COMBINED_AREA_THEN_DUF
        assert all(lot.status == LOT_OK for lot in result.lots)

    def test_suffix_variants_share_profile(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 2000.0, districts=("R7-2",))),
            _input(1, _parcel(2, 2000.0, districts=("R7",))),
        ])
        assert [lot.normalized_profile for lot in result.lots] == ["R7", "R7"]
        assert result.far_method == SHARED_DISTRICT

    def test_lots_sorted_by_child_index(self):
        result = aggregate_assemblage([
            _input(1, _parcel(2, 2500.0)),
            _input(0, _parcel(1, 2000.0)),
        ])
        assert [lot.child_index for lot in result.lots] == [0, 1]


class TestPerLotSum:
    def test_different_districts(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 2000.0, districts=("R7A",))),
            _input(1, _parcel(2, 2000.0, districts=("R6B",))),
        ])
        assert result.far_method == PER_LOT_SUM
        assert result.requires_manual_review is True
        # 4.0 * 2000 + 2.0 * 2000
        assert result.total_buildable_sqft == pytest.approx(12000.0)
        assert result.density.method_used == PER_LOT_DUF_SUM

    def test_split_zoned_lot_uses_lowest_far(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 2000.0, districts=("R7A", "R6B"))),
            _input(1, _parcel(2, 2000.0, districts=("R7A",))),
        ])
        split = result.lots[0]
        assert split.max_far == 2.0
        assert split.requires_manual_review is True
        assert split.zoning_district_candidates == ["R7A", "R6B"]
        assert result.far_method == PER_LOT_SUM

    def test_unsupported_district_contributes_nothing(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 2000.0, districts=("M1-1",))),
            _input(1, _parcel(2, 2000.0)),
        ])
        assert result.lots[0].buildable_sqft is None
        assert result.combined_lot_area_sqft == pytest.approx(4000.0)
        assert result.total_buildable_sqft == pytest.approx(8000.0)
        assert result.far_method == PER_LOT_SUM


class TestMissingData:
    def test_missing_lot_area_is_partial(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 4000.0)),
            _input(1, _parcel(2, None)),
        ])
        assert result.combined_lot_area_sqft == pytest.approx(4000.0)
        assert result.total_buildable_sqft == pytest.approx(16000.0)
        assert result.lots[1].status == LOT_MISSING_LOT_AREA
        assert result.lots[1].buildable_sqft is None
        assert result.flags.missing_lot_area is True
        assert result.flags.partial_total is True
        assert result.density.missing_inputs is True

    def test_zero_lot_area_treated_as_missing(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 4000.0)),
            _input(1, _parcel(2, 0.0)),
        ])
        assert result.lots[1].lot_area_sqft is None
        assert result.flags.partial_total is True

    def test_missing_parcel_data(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 4000.0)),
            _input(1, None),
        ])
        missing = result.lots[1]
        assert missing.status == LOT_MISSING_PARCEL_DATA
        assert missing.far_method == FAR_MISSING_PARCEL_DATA
        assert missing.requires_manual_review is True
        assert missing.parcel_id == "3001230001"
        assert result.combined_lot_area_sqft == pytest.approx(4000.0)
        assert result.far_method == PER_LOT_SUM
        assert any("Parcel data unavailable for lot(s) 1" in a for a in result.assumptions)

    def test_all_lots_missing(self):
        result = aggregate_assemblage([_input(0, None), _input(1, None)])
        assert result.combined_lot_area_sqft == 0.0
        assert result.total_buildable_sqft == 0.0
        assert result.density.max_dwelling_units is None

    def test_serializable(self):
        result = aggregate_assemblage([
            _input(0, _parcel(1, 4000.0)),
            _input(1, None),
        ])
        data = result.to_dict()
        assert data["lots"][1]["status"] == LOT_MISSING_PARCEL_DATA
        assert data["density"]["method_used"] == PER_LOT_DUF_SUM
        assert data["density"]["default_candidate_id"] == "duf_applies"
        assert len(data["density"]["candidates"]) == 2
