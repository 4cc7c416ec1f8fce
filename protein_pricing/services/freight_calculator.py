"""Reefer rate estimation from dry LTL quotes.

Business Rules:
  - raw = dry_quote × 2.25 × origin factor × season factor
  - Origin factors: PA 0.98068, GA 1.00, IN 1.05; any other state 1.0
  - Season factors by ship month: May–Jul 1.15, Nov–Dec 1.08; other months 1.0
  - The ±15% range is derived from the raw estimate. Only the point estimate
    is floored at the $350 minimum charge, so small shipments keep an honest
    range instead of one centred on the floor.
  - All money values rounded to 2 dp

Called by: routers/freight.py, services/calibration_service.py
Depends on: services/price_calculator.py (PricingError)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .price_calculator import PricingError

REEFER_MULTIPLIER = 2.25
MIN_CHARGE = 350.0
RANGE_LOW_PCT = 0.85
RANGE_HIGH_PCT = 1.15

# 100 × 2.25 × 0.98068 × 1.15 = 253.75 for a June PA shipment
ORIGIN_FACTORS = {
    "PA": 0.98068,
    "GA": 1.00,
    "IN": 1.05,
}

SEASON_FACTORS = {
    5: 1.15,
    6: 1.15,
    7: 1.15,
    11: 1.08,
    12: 1.08,
}


@dataclass(frozen=True)
class ReeferEstimate:
    estimate: float
    range_low: float
    range_high: float
    dry_quote: float
    factors: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "estimate": self.estimate,
            "range_low": self.range_low,
            "range_high": self.range_high,
            "dry_quote": self.dry_quote,
            "factors": dict(self.factors),
        }


def origin_factor(state: str) -> float:
    return ORIGIN_FACTORS.get((state or "").strip().upper(), 1.0)


def season_factor(ship_date: date) -> float:
    return SEASON_FACTORS.get(ship_date.month, 1.0)


def estimate_reefer_rate(dry_quote: float, origin_state: str, ship_date: date) -> ReeferEstimate:
    """Estimate a refrigerated freight charge from a dry LTL quote."""
    if dry_quote < 0:
        raise PricingError("Dry quote cannot be negative")

    origin = origin_factor(origin_state)
    season = season_factor(ship_date)
    raw = dry_quote * REEFER_MULTIPLIER * origin * season

    range_low = raw * RANGE_LOW_PCT
    range_high = raw * RANGE_HIGH_PCT
    estimate = max(raw, MIN_CHARGE)

    return ReeferEstimate(
        estimate=round(estimate, 2),
        range_low=round(range_low, 2),
        range_high=round(range_high, 2),
        dry_quote=dry_quote,
        factors={
            "base": REEFER_MULTIPLIER,
            "origin": origin,
            "season": season,
            "raw_estimate": round(raw, 2),
            "minimum_applied": raw < MIN_CHARGE,
        },
    )
