"""
test_price_calculator.py — Tests for delivered price arithmetic

Covers: cost per lb, margin amount, delivered total composition and
rounding, case price, freight per lb, invalid inputs.

Called by: pytest
Depends on: protein_pricing.services.price_calculator
"""

import pytest

from protein_pricing.services.price_calculator import (
    PricingError,
    calculate_case_price,
    calculate_cost_per_lb,
    calculate_delivered_price,
    calculate_freight_per_lb,
    calculate_margin_amount,
)


def test_cost_per_lb_divides_case_cost_by_weight():
    assert calculate_cost_per_lb(100, 40) == 2.5


def test_cost_per_lb_rounds_to_four_places():
    assert calculate_cost_per_lb(100, 30) == 3.3333


@pytest.mark.parametrize("weight", [0, -5])
def test_cost_per_lb_rejects_non_positive_weight(weight):
    with pytest.raises(PricingError):
        calculate_cost_per_lb(100, weight)


def test_margin_amount():
    assert calculate_margin_amount(2.5, 15) == 0.375


@pytest.mark.parametrize("margin", [-1, 100.01, 150])
def test_margin_outside_range_rejected(margin):
    with pytest.raises(PricingError):
        calculate_margin_amount(2.5, margin)


def test_margin_bounds_are_inclusive():
    assert calculate_margin_amount(2.5, 0) == 0
    assert calculate_margin_amount(2.5, 100) == 2.5


def test_delivered_price_sums_components():
    price = calculate_delivered_price(2.5, 15, 0.12)
    assert price.cost_per_lb == 2.5
    assert price.margin_amount == 0.375
    assert price.freight_per_lb == 0.12
    assert price.total == 2.995


def test_delivered_price_rounds_components_before_summing():
    price = calculate_delivered_price(1.23456, 10, 0.00004)
    assert price.cost_per_lb == 1.2346
    assert price.margin_amount == 0.1235
    assert price.freight_per_lb == 0.0
    assert price.total == 1.3581


def test_delivered_price_is_deterministic():
    assert calculate_delivered_price(3.1, 12.5, 0.2) == calculate_delivered_price(3.1, 12.5, 0.2)


def test_delivered_price_to_dict():
    assert calculate_delivered_price(2.0, 10, 0.1).to_dict() == {
        "cost_per_lb": 2.0,
        "margin_amount": 0.2,
        "freight_per_lb": 0.1,
        "total": 2.3,
    }


def test_delivered_price_rejects_bad_margin():
    with pytest.raises(PricingError):
        calculate_delivered_price(2.0, 101, 0.1)


def test_case_price_two_decimals():
    assert calculate_case_price(2.995, 40) == 119.8


def test_freight_per_lb():
    assert calculate_freight_per_lb(900, 7500) == 0.12


def test_freight_per_lb_rejects_zero_weight():
    with pytest.raises(PricingError):
        calculate_freight_per_lb(900, 0)
