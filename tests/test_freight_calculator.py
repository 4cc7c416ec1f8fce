"""
test_freight_calculator.py — Tests for the reefer rate estimator

Covers: base multiplier, origin and season factors, $350 minimum on the
point estimate, ±15% range from the raw estimate, negative quotes.

Called by: pytest
Depends on: protein_pricing.services.freight_calculator
"""

from datetime import date

import pytest

from protein_pricing.services.freight_calculator import (
    MIN_CHARGE,
    estimate_reefer_rate,
    origin_factor,
    season_factor,
)
from protein_pricing.services.price_calculator import PricingError


def test_baseline_ga_winter():
    est = estimate_reefer_rate(1000, "GA", date(2026, 1, 15))
    assert est.estimate == 2250.0
    assert est.range_low == 1912.5
    assert est.range_high == 2587.5
    assert est.dry_quote == 1000
    assert est.factors["minimum_applied"] is False


def test_origin_factors():
    assert origin_factor("PA") == 0.98068
    assert origin_factor("ga") == 1.0
    assert origin_factor("IN") == 1.05
    assert origin_factor("TX") == 1.0


@pytest.mark.parametrize(
    "month,factor",
    [(1, 1.0), (5, 1.15), (6, 1.15), (7, 1.15), (8, 1.0), (11, 1.08), (12, 1.08)],
)
def test_season_factors(month, factor):
    assert season_factor(date(2026, month, 1)) == factor


def test_indiana_peak_holiday_shipment():
    est = estimate_reefer_rate(1000, "IN", date(2026, 12, 1))
    assert est.estimate == pytest.approx(2551.5, abs=0.01)
    assert est.factors["origin"] == 1.05
    assert est.factors["season"] == 1.08


def test_small_shipment_floored_but_range_from_raw():
    est = estimate_reefer_rate(100, "PA", date(2026, 6, 10))
    assert est.estimate == MIN_CHARGE
    assert est.factors["raw_estimate"] == pytest.approx(253.75, abs=0.01)
    assert est.factors["minimum_applied"] is True
    assert est.range_low == pytest.approx(215.69, abs=0.01)
    assert est.range_high == pytest.approx(291.81, abs=0.01)


def test_zero_quote_gets_minimum_charge():
    est = estimate_reefer_rate(0, "GA", date(2026, 3, 1))
    assert est.estimate == MIN_CHARGE
    assert est.range_low == 0
    assert est.range_high == 0


def test_negative_quote_rejected():
    with pytest.raises(PricingError):
        estimate_reefer_rate(-1, "GA", date(2026, 3, 1))


def test_to_dict_shape():
    d = estimate_reefer_rate(1000, "GA", date(2026, 1, 15)).to_dict()
    assert set(d) == {"estimate", "range_low", "range_high", "dry_quote", "factors"}
    assert d["factors"]["base"] == 2.25
