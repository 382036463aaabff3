"""
NYC Zoning Resolution residential FAR (Floor Area Ratio) tables.

Only residential districts R1 through R12 are carried. Each entry stores the
maximum residential FAR used for feasibility screening, the profile the
district resolves to, and whether the district is contextual (letter suffix
with Quality Housing bulk rules).

Lookup order:
  1. Exact district code ("R8A")
  2. Base district with the suffix stripped ("R7-2" → "R7"), recorded as an
     assumption
  3. Unsupported → None with an assumption naming the district

Non-residential codes (C*, M*, PARK, BPC, ...) are never resolved here.

Sources:
  - ZR Section 23-22 (Floor Area Regulations in R6-R12 Districts)
  - ZR Section 23-21 (R1-R5 Districts)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Optional

# ──────────────────────────────────────────────────────────────────
# RESIDENTIAL DISTRICTS
# ──────────────────────────────────────────────────────────────────

RESIDENTIAL_FAR = {
    # Low density (R1-R3)
    "R1":    {"far": 0.50, "contextual": False},
    "R1A":   {"far": 0.50, "contextual": False},
    "R1B":   {"far": 0.50, "contextual": False},
    "R2":    {"far": 0.50, "contextual": False},
    "R2A":   {"far": 0.50, "contextual": False},
    "R2B":   {"far": 0.50, "contextual": False},
    "R2X":   {"far": 0.50, "contextual": False},
    "R3":    {"far": 0.50, "contextual": False},
    "R3A":   {"far": 0.50, "contextual": False},
    "R3B":   {"far": 0.50, "contextual": False},
    "R3X":   {"far": 0.50, "contextual": False},

    # Medium-low density (R4, R5)
    "R4":    {"far": 0.75, "contextual": False},
    "R4A":   {"far": 0.75, "contextual": False},
    "R4B":   {"far": 0.75, "contextual": False},
    "R4X":   {"far": 0.75, "contextual": False},
    "R5":    {"far": 1.25, "contextual": False},
    "R5A":   {"far": 1.25, "contextual": False},
    "R5B":   {"far": 1.25, "contextual": False},
    "R5D":   {"far": 1.25, "contextual": False},
    "R5X":   {"far": 1.25, "contextual": False},

    # ── R6 ──
    "R6":    {"far": 2.43, "contextual": False},
    "R6A":   {"far": 3.0,  "contextual": True},
    "R6B":   {"far": 2.0,  "contextual": True},
    "R6X":   {"far": 2.43, "contextual": False},

    # ── R7 ──
    "R7":    {"far": 3.44, "contextual": False},
    "R7A":   {"far": 4.0,  "contextual": True},
    "R7B":   {"far": 3.0,  "contextual": True},
    "R7D":   {"far": 3.44, "contextual": False},
    "R7X":   {"far": 3.44, "contextual": False},

    # ── R8 ──
    "R8":    {"far": 6.02, "contextual": False},
    "R8A":   {"far": 7.2,  "contextual": True},
    "R8B":   {"far": 4.0,  "contextual": True},
    "R8X":   {"far": 6.02, "contextual": False},

    # ── R9 ──
    "R9":    {"far": 7.52, "contextual": False},
    "R9A":   {"far": 8.0,  "contextual": True},
    "R9X":   {"far": 7.52, "contextual": False},

    # ── R10 ──
    "R10":   {"far": 10.0, "contextual": False},
    "R10A":  {"far": 10.0, "contextual": True},
    "R10X":  {"far": 10.0, "contextual": False},

    # ── R11 and R12 (City of Yes high-density districts) ──
    "R11":   {"far": 12.0, "contextual": False},
    "R11A":  {"far": 12.0, "contextual": True},
    "R11X":  {"far": 12.0, "contextual": False},
    "R12":   {"far": 12.0, "contextual": False},
    "R12A":  {"far": 12.0, "contextual": True},
    "R12X":  {"far": 12.0, "contextual": False},
}

MIN_RESIDENTIAL_TIER = 1
MAX_RESIDENTIAL_TIER = 12

_TIER_RE = re.compile(r"^R(\d+)")
_BASE_RE = re.compile(r"^(R\d+)[-A-Z0-9]*$")


@dataclass(frozen=True)
class FarLookup:
    """Result of a residential FAR lookup for one district code."""
    district: Optional[str]
    far: Optional[float] = None
    profile: Optional[str] = None
    contextual: Optional[bool] = None
    match: Optional[str] = None  # exact, base, or None when unsupported
    assumption: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.far is not None

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_district(district: Optional[str]) -> Optional[str]:
    """Upper-case and trim a district code. Empty values become None."""
    if district is None:
        return None
    normalized = str(district).strip().upper()
    return normalized or None


def residential_tier(district: Optional[str]) -> Optional[int]:
    """Numeric tier of a residential district ("R7-2" → 7), or None.

    Only tiers 1-12 are recognised.
    """
    normalized = normalize_district(district)
    if not normalized:
        return None
    match = _TIER_RE.match(normalized)
    if not match:
        return None
    tier = int(match.group(1))
    if MIN_RESIDENTIAL_TIER <= tier <= MAX_RESIDENTIAL_TIER:
        return tier
    return None


def is_residential(district: Optional[str]) -> bool:
    normalized = normalize_district(district)
    return bool(normalized) and normalized.startswith("R")


def base_district(district: Optional[str]) -> Optional[str]:
    """Strip the suffix from a residential code: "R7-2" → "R7", "R8A" → "R8"."""
    normalized = normalize_district(district)
    if not normalized:
        return None
    match = _BASE_RE.match(normalized)
    return match.group(1) if match else None


def get_max_far(district: Optional[str]) -> FarLookup:
    """Look up the maximum residential FAR for a district code.

    Never raises: unsupported and non-residential codes come back with
    ``far=None`` and an assumption explaining why.
    """
    normalized = normalize_district(district)
    if not normalized:
        return FarLookup(district=None, assumption="Zoning district not available")

    if not normalized.startswith("R"):
        return FarLookup(
            district=normalized,
            assumption=f"District {normalized} is not residential; only R1-R12 districts are supported",
        )

    if residential_tier(normalized) is None:
        return FarLookup(
            district=normalized,
            assumption=f"District {normalized} not supported for FAR lookup",
        )

    entry = RESIDENTIAL_FAR.get(normalized)
    if entry:
        return FarLookup(
            district=normalized,
            far=entry["far"],
            profile=normalized,
            contextual=entry["contextual"],
            match="exact",
        )

    base = base_district(normalized)
    if base and base in RESIDENTIAL_FAR:
        entry = RESIDENTIAL_FAR[base]
        return FarLookup(
            district=normalized,
            far=entry["far"],
            profile=base,
            contextual=entry["contextual"],
            match="base",
            assumption=f"District {normalized} not in lookup; using base {base} FAR",
        )

    return FarLookup(
        district=normalized,
        assumption=f"District {normalized} not supported for FAR lookup",
    )


def normalize_district_profile(district: Optional[str]) -> Optional[str]:
    """Profile a district resolves to for cross-lot comparisons.

    Residential districts resolve to their FAR-table profile ("R7-2" → "R7",
    "R8A" → "R8A"); anything else falls back to the trimmed code.
    """
    lookup = get_max_far(district)
    if lookup.profile:
        return lookup.profile
    return normalize_district(district)
