"""Tests for assemblage contamination risk scoring."""

from __future__ import annotations

import pytest

from zoning_feasibility.models.schemas import ParcelRecord
from zoning_feasibility.zoning_engine.contamination import (
    CONTAMINATION_NOTES,
    evaluate_contamination_risk,
    normalize_landmark,
)


def _parcel(lot: int, **overrides) -> ParcelRecord:
    fields = dict(
        parcel_id=f"10012300{lot:02d}",
        borough=1,
        block=123,
        lot=lot,
        block_id="100123",
        zoning_district_codes=["R8"],
    )
    fields.update(overrides)
    return ParcelRecord(**fields)


class TestNormalizeLandmark:
    @pytest.mark.parametrize("value", [None, False, 0, "", "N", "no", "False", "0"])
    def test_false(self, value):
        assert normalize_landmark(value) is False

    @pytest.mark.parametrize("value", [True, 1, "Y", "yes", "TRUE", "Landmark", "1"])
    def test_true(self, value):
        assert normalize_landmark(value) is True

    @pytest.mark.parametrize("value", ["maybe", "INDIVIDUAL?", 2])
    def test_unknown(self, value):
        assert normalize_landmark(value) is None


class TestRisk:
    def test_clean_site(self):
        report = evaluate_contamination_risk([_parcel(1), _parcel(2)])
        summary = report.summary
        assert summary.contamination_risk == "none"
        assert summary.confidence == "high"
        assert summary.requires_manual_review is False
        assert report.notes == CONTAMINATION_NOTES

    def test_landmark_is_high(self):
        report = evaluate_contamination_risk([_parcel(1, landmark_flag="Y"), _parcel(2)])
        assert report.summary.any_landmark is True
        assert report.summary.contamination_risk == "high"
        assert report.summary.counts.landmark_lots == 1
        assert report.summary.requires_manual_review is True

    def test_historic_district_is_moderate(self):
        report = evaluate_contamination_risk([
            _parcel(1, historic_district_name="Park Slope Historic District"),
            _parcel(2),
        ])
        assert report.summary.contamination_risk == "moderate"
        assert report.lots[0].flags.historic_district_name == "Park Slope Historic District"

    def test_blank_historic_district_ignored(self):
        report = evaluate_contamination_risk([_parcel(1, historic_district_name="  "), _parcel(2)])
        assert report.summary.any_historic_district is False

    def test_special_district_and_overlay_are_moderate(self):
        report = evaluate_contamination_risk([
            _parcel(1, special_district_codes=["MiD"]),
            _parcel(2, overlay_codes=["C2-5"]),
        ])
        assert report.summary.contamination_risk == "moderate"
        assert report.summary.counts.special_district_lots == 1
        assert report.summary.counts.overlay_lots == 1


class TestConfidence:
    def test_one_missing_lot_is_medium(self):
        report = evaluate_contamination_risk([_parcel(1), _parcel(2), None])
        assert report.summary.confidence == "medium"
        assert report.summary.requires_manual_review is True
        assert report.lots[2].missing_parcel_data is True

    def test_two_missing_lots_is_low(self):
        report = evaluate_contamination_risk([_parcel(1), None, None])
        assert report.summary.confidence == "low"

    def test_all_missing_is_low(self):
        report = evaluate_contamination_risk([None])
        assert report.summary.confidence == "low"

    def test_unreadable_landmark_is_medium(self):
        report = evaluate_contamination_risk([_parcel(1, landmark_flag="?"), _parcel(2)])
        assert report.summary.counts.landmark_unknown_lots == 1
        assert report.summary.contamination_risk == "none"
        assert report.summary.confidence == "medium"
