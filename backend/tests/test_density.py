"""Tests for dwelling unit factor rounding and assemblage density."""

from __future__ import annotations

import pytest

from zoning_feasibility.zoning_engine.density import (
    COMBINED_AREA_THEN_DUF,
    DEFAULT_DUF,
    DUF_APPLIES,
    DUF_NOT_APPLICABLE,
    PER_LOT_DUF_SUM,
    PER_LOT_SUM,
    SHARED_DISTRICT,
    LotDensityInput,
    compute_assemblage_density,
    duf_applies,
    round_units,
)
from zoning_feasibility.zoning_engine.lot_coverage import MULTIPLE_DWELLING, SINGLE_OR_TWO_FAMILY


def _lot(index, buildable, **overrides) -> LotDensityInput:
    fields = dict(
        child_index=index,
        parcel_id=f"10083500{index:02d}",
        lot_area_sqft=buildable / 4.0 if buildable else None,
        max_far=4.0,
        buildable_sqft=buildable,
        building_type=MULTIPLE_DWELLING,
        units_residential=6,
        has_overlay_or_special=False,
        far_requires_manual_review=False,
    )
    fields.update(overrides)
    return LotDensityInput(**fields)


class TestRoundUnits:
    """Fractions of 0.75 or more round up."""

    def test_rounds_up_above_threshold(self):
        result = round_units(8000)
        assert result.units_raw == pytest.approx(11.7647, abs=1e-4)
        assert result.units_rounded == 12

    def test_exact_threshold_rounds_up(self):
        result = round_units(7990)
        assert result.units_raw == pytest.approx(11.75)
        assert result.units_rounded == 12

    def test_below_threshold_rounds_down(self):
        assert round_units(7950).units_rounded == 11

    def test_whole_number(self):
        assert round_units(6800).units_rounded == 10

    @pytest.mark.parametrize("area", [None, 0, -500])
    def test_non_positive_area(self, area):
        result = round_units(area)
        assert result.units_raw == 0.0
        assert result.units_rounded == 0

    @pytest.mark.parametrize("duf", [0, -680])
    def test_invalid_duf(self, duf):
        with pytest.raises(ValueError):
            round_units(8000, duf)

    def test_custom_duf(self):
        assert round_units(8000, duf=800).units_rounded == 10

    def test_monotonic_in_floor_area(self):
        previous = 0
        for area in range(0, 40000, 137):
            current = round_units(area, DEFAULT_DUF).units_rounded
            assert current >= previous
            previous = current


class TestDufApplies:
    def test_multiple_dwelling(self):
        assert duf_applies(MULTIPLE_DWELLING, None)

    def test_more_than_two_units(self):
        assert duf_applies(SINGLE_OR_TWO_FAMILY, 3)

    def test_small_house(self):
        assert not duf_applies(SINGLE_OR_TWO_FAMILY, 2)
        assert not duf_applies(None, None)


class TestAssemblageDensity:
    def test_combined_method_when_uniform(self):
        lots = [_lot(0, 4000.0), _lot(1, 3990.0)]
        result = compute_assemblage_density(lots, SHARED_DISTRICT)
        assert result.method_used == COMBINED_AREA_THEN_DUF
        assert result.requires_manual_review is False
        # 7990 combined -> 11.75 -> 12; per lot 5.88 -> 6 and 5.87 -> 6
        assert result.units_combined == 12
        assert result.max_dwelling_units == 12
        assert result.max_res_floor_area_sqft == pytest.approx(7990.0)

    def test_per_lot_method_when_method_is_per_lot(self):
        lots = [_lot(0, 4000.0), _lot(1, 3990.0)]
        result = compute_assemblage_density(lots, PER_LOT_SUM)
        assert result.method_used == PER_LOT_DUF_SUM
        assert result.requires_manual_review is True
        assert result.units_per_lot_sum == 12
        assert result.max_dwelling_units == 12
        assert any("per-lot method" in a for a in result.assumptions)

    def test_overlay_forces_per_lot(self):
        lots = [_lot(0, 4000.0), _lot(1, 3990.0, has_overlay_or_special=True)]
        result = compute_assemblage_density(lots, SHARED_DISTRICT)
        assert result.method_used == PER_LOT_DUF_SUM
        assert result.per_lot_breakdown[1].requires_manual_review is True

    def test_missing_inputs_partial_total(self):
        lots = [_lot(0, 4000.0), _lot(1, None, lot_area_sqft=None, max_far=None)]
        result = compute_assemblage_density(lots, PER_LOT_SUM)
        assert result.missing_inputs is True
        assert result.per_lot_breakdown[1].missing_inputs is True
        assert result.per_lot_breakdown[1].units_rounded is None
        # 4000 / 680 = 5.88 -> 6
        assert result.max_dwelling_units == 6
        assert result.notes is not None

    def test_not_applicable(self):
        lots = [
            _lot(0, 1000.0, building_type=SINGLE_OR_TWO_FAMILY, units_residential=1),
            _lot(1, 1000.0, building_type=SINGLE_OR_TWO_FAMILY, units_residential=2),
        ]
        result = compute_assemblage_density(lots, SHARED_DISTRICT)
        assert result.duf_applicable is False
        assert result.max_dwelling_units is None
        assert result.max_res_floor_area_sqft is None

    def test_zero_total_reports_none(self):
        lots = [
            _lot(0, None, lot_area_sqft=None, max_far=None),
            _lot(1, None, lot_area_sqft=None, max_far=None),
        ]
        result = compute_assemblage_density(lots, PER_LOT_SUM)
        assert result.duf_applicable is True
        assert result.max_dwelling_units is None

    def test_citation(self):
        result = compute_assemblage_density([_lot(0, 4000.0), _lot(1, 4000.0)], SHARED_DISTRICT)
        data = result.to_dict()
        assert data["source_section"] == "ZR §23-52"
        assert data["duf_value"] == DEFAULT_DUF
        assert len(data["per_lot_breakdown"]) == 2


class TestDensityCandidates:
    """The computed cap and the "DUF not applicable" alternative."""

    def test_both_candidates_offered(self):
        result = compute_assemblage_density([_lot(0, 4000.0), _lot(1, 3990.0)], SHARED_DISTRICT)
        assert [c.id for c in result.candidates] == [DUF_APPLIES, DUF_NOT_APPLICABLE]
        assert result.default_candidate_id == DUF_APPLIES

        standard, alternative = result.candidates
        assert standard.max_dwelling_units == result.max_dwelling_units == 12
        assert standard.method_used == COMBINED_AREA_THEN_DUF
        assert standard.rounding_rule is not None
        assert standard.requires_manual_review is False

        assert alternative.duf_applicable is False
        assert alternative.method_used is None
        assert alternative.max_dwelling_units is None
        assert alternative.max_res_floor_area_sqft is None
        assert alternative.rounding_rule is None
        assert alternative.requires_manual_review is True
        assert "No DUF-based unit cap" in alternative.notes

    def test_default_is_not_applicable_without_multiple_dwellings(self):
        lots = [
            _lot(0, 1000.0, building_type=SINGLE_OR_TWO_FAMILY, units_residential=1),
            _lot(1, 1000.0, building_type=SINGLE_OR_TWO_FAMILY, units_residential=2),
        ]
        result = compute_assemblage_density(lots, SHARED_DISTRICT)
        assert result.default_candidate_id == DUF_NOT_APPLICABLE
        assert result.candidates[0].duf_applicable is False
        assert result.candidates[0].max_dwelling_units is None

    def test_candidates_serialize(self):
        result = compute_assemblage_density([_lot(0, 4000.0), _lot(1, 4000.0)], PER_LOT_SUM)
        data = result.to_dict()
        assert data["default_candidate_id"] == "duf_applies"
        assert [c["id"] for c in data["candidates"]] == ["duf_applies", "duf_not_applicable"]
        assert data["candidates"][0]["method_used"] == PER_LOT_DUF_SUM
