"""
Shop profile, monthly overhead categories and shop-wide rates.

Snapshot version 2 uses the eight overhead categories; version 1 snapshots
carried the older field set and are migrated on load.
"""
from typing import Any, Dict, Optional

from makercost.schemas.catalog import ShopData
from makercost.services.pricing_engine import (
    calculate_hourly_overhead,
    calculate_monthly_overhead,
    cost_context_for_shop,
)
from makercost.schemas.pricing import CostContext
from makercost.stores.base import SingletonStore


def migrate_shop_v1(state: Dict[str, Any]) -> Dict[str, Any]:
    """Map the version 1 overhead fields onto the version 2 categories"""
    legacy = state.get("value") or state.get("shop_data") or {}
    if "rent_lease" in legacy:
        return {**state, "value": legacy}

    hours = legacy.get("operating_hours") or 8
    days = legacy.get("operating_days") or 22
    migrated = {
        "name": legacy.get("name") or "My Workshop",
        "address": legacy.get("address") or "",
        "phone": legacy.get("phone") or "",
        "email": legacy.get("email") or "",
        "slogan": legacy.get("slogan") or "",
        "currency": legacy.get("currency") or "USD",
        "rent_lease": legacy.get("rent") or 2500,
        "utilities": legacy.get("electricity") or 350,
        "digital_infrastructure": (legacy.get("software") or 120) + (legacy.get("internet") or 80),
        "insurance_professional": (legacy.get("accounting") or 150) + (legacy.get("insurance") or 200),
        "marketing_advertising": legacy.get("marketing") or 200,
        "office_supplies": 100,
        "transportation_delivery": 150,
        "miscellaneous_contingency": legacy.get("other_expenses") or 150,
        "total_monthly_hours": hours * days,
        "labor_rate": legacy.get("labor_rate") or 45,
        "operating_hours": hours,
        "operating_days": days,
        "power_cost_per_kwh": 0.12,
    }
    return {"value": migrated, "_baseline": state.get("_baseline") or {}}


class ShopStore(SingletonStore[ShopData]):
    name = "shop-store"
    entity = "shop"
    version = 2
    migrations = {1: migrate_shop_v1}
    model = ShopData

    def update_shop_data(self, updates: Dict[str, Any]) -> ShopData:
        """Apply updates; monthly hours follow operating hours times days"""
        if "operating_hours" in updates or "operating_days" in updates:
            hours = updates.get("operating_hours", self._value.operating_hours)
            days = updates.get("operating_days", self._value.operating_days)
            updates = {**updates, "total_monthly_hours": hours * days}
        return self.update(updates)

    def reset_shop_data(self) -> ShopData:
        return self.reset()

    def monthly_overhead(self) -> float:
        return calculate_monthly_overhead(self._value)

    def hourly_overhead(self) -> float:
        return calculate_hourly_overhead(self._value)

    def cost_context(self, electricity_rate_source: str = "shop") -> CostContext:
        return cost_context_for_shop(self._value, electricity_rate_source)

    def export_header(self) -> Dict[str, Optional[str]]:
        """Business details printed at the top of exported quotes"""
        shop = self._value
        return {
            "business_name": shop.name,
            "address": shop.address,
            "phone": shop.phone,
            "email": shop.email,
            "footer": shop.slogan or None,
        }
