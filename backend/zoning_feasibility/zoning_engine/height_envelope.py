"""
Residential height envelope and minimum base height lookups.

Two lookups per district, both keyed on the exact district code (hyphenated
suffixes such as "R7-2" are kept, since they select different table rows):

  - envelope: max base height paired with max building height
  - minimum base height

Result kinds:
  fixed        one value (or one pair)
  conditional  several candidates, each with a condition and a citation;
               always requires manual review
  see_section  R1-R5 minimum base height has no single value, citation only
  unsupported  district not in the tables

Sources:
  - ZR Section 23-421 / 23-422 (R1-R5 base heights)
  - ZR Section 23-424 (R1-R5 height limits)
  - ZR Section 23-432 (Quality Housing height limits, R6-R12)
"""

from __future__ import annotations

import re
from typing import Optional

from zoning_feasibility.models.schemas import (
    HeightCandidate,
    HeightEnvelopeResult,
    HeightRules,
    MinBaseHeightCandidate,
    MinBaseHeightResult,
)
from zoning_feasibility.zoning_engine.far_tables import normalize_district

ZR_BASE_URL = "https://zr.planning.nyc.gov/article-ii/chapter-3"

SECTION_23_421 = ("ZR §23-421", f"{ZR_BASE_URL}/23-421")
SECTION_23_422 = ("ZR §23-422", f"{ZR_BASE_URL}/23-422")
SECTION_23_424 = ("ZR §23-424", f"{ZR_BASE_URL}/23-424")
SECTION_23_432 = ("ZR §23-432", f"{ZR_BASE_URL}/23-432")

CONDITION_TEXT = "Depends on applicable zoning conditions; see citation."
CONDITIONAL_NOTE = "Multiple values apply; manual review required."
SEE_SECTION_NOTE = "Min base height not a single value for this district; see ZR section."

_LOW_DENSITY_RE = re.compile(r"^R[1-5](?!\d)")

# ──────────────────────────────────────────────────────────────────
# HEIGHT ENVELOPE
#
# district → list of (max_base_height_ft, max_building_height_ft).
# One pair is a fixed result; more than one is conditional.
# All values in feet.
# ──────────────────────────────────────────────────────────────────

_ENVELOPE_ROWS = [
    # ── R1-R5 (ZR 23-424) ──
    (("R1-1", "R1-2", "R1-2A", "R2", "R2A", "R2X", "R3-1", "R3-2", "R3A", "R3X"),
     [(35, 35)], SECTION_23_424),
    (("R4", "R4-1", "R4A", "R4B"), [(35, 45)], SECTION_23_424),
    (("R5", "R5A", "R5B", "R5D"), [(45, 55)], SECTION_23_424),

    # ── R6 ──
    (("R6A", "R6-1"), [(65, 75)], SECTION_23_432),
    (("R6",), [(65, 75), (45, 55)], SECTION_23_432),
    (("R6B",), [(45, 55)], SECTION_23_432),
    (("R6D", "R6-2"), [(45, 65)], SECTION_23_432),

    # ── R7 ──
    (("R7A", "R7-21"), [(75, 85)], SECTION_23_432),
    (("R7-1",), [(75, 85), (65, 75)], SECTION_23_432),
    (("R7-2",), [(65, 75)], SECTION_23_432),
    (("R7B",), [(65, 75)], SECTION_23_432),
    (("R7D",), [(85, 105)], SECTION_23_432),
    (("R7X", "R7-3"), [(95, 125)], SECTION_23_432),

    # ── R8 ──
    (("R8A",), [(95, 125)], SECTION_23_432),
    (("R8B",), [(65, 75)], SECTION_23_432),
    (("R8X",), [(95, 155)], SECTION_23_432),
    (("R8",), [(85, 115), (95, 135)], SECTION_23_432),

    # ── R9 ──
    (("R9", "R9A"), [(105, 145), (95, 135)], SECTION_23_432),
    (("R9D", "R9-1"), [(125, 175)], SECTION_23_432),
    (("R9X",), [(125, 175), (125, 165)], SECTION_23_432),

    # ── R10-R12 ──
    (("R10", "R10X", "R10A"), [(155, 215), (125, 185)], SECTION_23_432),
    (("R11", "R11A"), [(155, 255)], SECTION_23_432),
    (("R12",), [(155, 325)], SECTION_23_432),
]

HEIGHT_ENVELOPES = {
    district: (pairs, section)
    for districts, pairs, section in _ENVELOPE_ROWS
    for district in districts
}

# ──────────────────────────────────────────────────────────────────
# MINIMUM BASE HEIGHT (R6-R12, ZR 23-432)
# ──────────────────────────────────────────────────────────────────

MIN_BASE_HEIGHTS = {
    "R6": (40, 30),
    "R6A": (40,), "R6-1": (40,),
    "R6B": (30,), "R6D": (30,), "R6-2": (30,),
    "R7A": (40,), "R7-1": (40,), "R7-21": (40,), "R7-2": (40,), "R7B": (40,),
    "R7D": (60,), "R7X": (60,), "R7-3": (60,),
    "R8": (60,), "R8A": (60,), "R8B": (55,), "R8X": (60,),
    "R9": (60,), "R9A": (60,), "R9D": (60,), "R9-1": (60,), "R9X": (105,),
    "R10": (60,), "R10X": (60,), "R10A": (125,),
    "R11": (60,), "R11A": (60,),
    "R12": (60,),
}

# R1-R5 codes whose base height rules live in 23-422 rather than 23-421
SECTION_23_422_DISTRICTS = frozenset({"R3-2", "R4", "R4B", "R5", "R5B", "R5D"})


def get_height_envelope(district: Optional[str]) -> HeightEnvelopeResult:
    normalized = normalize_district(district)
    if not normalized:
        return HeightEnvelopeResult(kind="unsupported", notes="District not provided")

    entry = HEIGHT_ENVELOPES.get(normalized)
    if entry is None:
        return HeightEnvelopeResult(
            kind="unsupported",
            notes=f"District {normalized} not supported for height envelope lookup.",
        )

    pairs, (section, url) = entry
    conditional = len(pairs) > 1
    candidates = [
        HeightCandidate(
            max_base_height_ft=base,
            max_building_height_ft=building,
            when=CONDITION_TEXT if conditional else None,
            source_section=section,
            source_url=url,
        )
        for base, building in pairs
    ]
    if conditional:
        return HeightEnvelopeResult(
            kind="conditional",
            candidates=candidates,
            notes=CONDITIONAL_NOTE,
            requires_manual_review=True,
        )
    return HeightEnvelopeResult(kind="fixed", candidates=candidates)


def get_min_base_height(district: Optional[str]) -> MinBaseHeightResult:
    normalized = normalize_district(district)
    if not normalized:
        return MinBaseHeightResult(kind="unsupported", notes="District not provided")

    if _LOW_DENSITY_RE.match(normalized):
        section, url = (
            SECTION_23_422 if normalized in SECTION_23_422_DISTRICTS else SECTION_23_421
        )
        return MinBaseHeightResult(
            kind="see_section",
            source_section=section,
            source_url=url,
            notes=SEE_SECTION_NOTE,
            requires_manual_review=True,
        )

    values = MIN_BASE_HEIGHTS.get(normalized)
    if values is None:
        return MinBaseHeightResult(
            kind="unsupported",
            notes=f"District {normalized} not supported for minimum base height lookup.",
        )

    section, url = SECTION_23_432
    if len(values) > 1:
        return MinBaseHeightResult(
            kind="conditional",
            candidates=[
                MinBaseHeightCandidate(
                    value_ft=value, when=CONDITION_TEXT,
                    source_section=section, source_url=url,
                )
                for value in values
            ],
            source_section=section,
            source_url=url,
            notes=CONDITIONAL_NOTE,
            requires_manual_review=True,
        )
    return MinBaseHeightResult(
        kind="fixed", value_ft=values[0], source_section=section, source_url=url,
    )


def get_height_rules(district: Optional[str]) -> HeightRules:
    return HeightRules(
        min_base_height=get_min_base_height(district),
        envelope=get_height_envelope(district),
    )


def height_assumptions(rules: HeightRules, district: Optional[str]) -> list[str]:
    """Human-readable assumptions for height results that are not a single value."""
    normalized = normalize_district(district) or "unknown"
    assumptions = []
    kind = rules.min_base_height.kind
    if kind == "see_section":
        assumptions.append(SEE_SECTION_NOTE)
    elif kind == "conditional":
        assumptions.append(
            "Multiple minimum base height values possible; depends on zoning conditions; see citation."
        )
    elif kind == "unsupported":
        assumptions.append(f"Height lookup not implemented for district {normalized}.")

    if rules.envelope.kind == "conditional":
        assumptions.append(
            "Multiple height limits possible; depends on zoning conditions; see citation."
        )
    elif rules.envelope.kind == "unsupported":
        assumptions.append(f"Height envelope lookup not implemented for district {normalized}.")
    return assumptions
