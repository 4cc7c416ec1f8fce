"""Delivered price arithmetic.

Business Rules:
  - cost_per_lb = unit_cost / case_weight, rounded to 4 dp (case weight must be > 0)
  - margin_amount = cost_per_lb × margin% / 100, rounded to 4 dp (margin in [0, 100])
  - delivered total = cost + margin + freight, each component rounded to 4 dp
    BEFORE summing, total rounded to 4 dp
  - Pure functions: no I/O, identical inputs always give identical outputs

Called by: services/price_sheet_service.py, services/deal_service.py,
           services/inventory_import.py, models/catalog.py
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

PRICE_DECIMALS = 4
CASE_PRICE_DECIMALS = 2


class PricingError(ValueError):
    """Invalid input to a pricing computation (never silently coerced)."""


@dataclass(frozen=True)
class DeliveredPrice:
    cost_per_lb: float
    margin_amount: float
    freight_per_lb: float
    total: float

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_cost_per_lb(unit_cost: float, case_weight: float) -> float:
    if case_weight <= 0:
        raise PricingError("Case weight must be greater than 0")
    return round(unit_cost / case_weight, PRICE_DECIMALS)


def calculate_margin_amount(cost_per_lb: float, margin_percent: float) -> float:
    if margin_percent < 0 or margin_percent > 100:
        raise PricingError("Margin percent must be between 0 and 100")
    return round(cost_per_lb * (margin_percent / 100), PRICE_DECIMALS)


def calculate_delivered_price(
    cost_per_lb: float, margin_percent: float, freight_per_lb: float
) -> DeliveredPrice:
    """Compose cost, margin and freight into a per-pound delivered price."""
    cost = round(cost_per_lb, PRICE_DECIMALS)
    margin = calculate_margin_amount(cost_per_lb, margin_percent)
    freight = round(freight_per_lb, PRICE_DECIMALS)
    return DeliveredPrice(
        cost_per_lb=cost,
        margin_amount=margin,
        freight_per_lb=freight,
        total=round(cost + margin + freight, PRICE_DECIMALS),
    )


def calculate_case_price(price_per_lb: float, case_weight: float) -> float:
    return round(price_per_lb * case_weight, CASE_PRICE_DECIMALS)


def calculate_freight_per_lb(total_freight: float, total_weight: float) -> float:
    if total_weight <= 0:
        raise PricingError("Total weight must be greater than 0")
    return round(total_freight / total_weight, PRICE_DECIMALS)
