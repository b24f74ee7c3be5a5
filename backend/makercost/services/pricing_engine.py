"""
Pricing calculation engine.

Pure functions from a Product's cost inputs to a profit-and-loss breakdown.
No I/O and no hidden state: identical input always yields identical output.
All arithmetic keeps full float precision; rounding belongs to formatting.
"""
import math
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from makercost.schemas.catalog import OVERHEAD_FIELDS, ShopData
from makercost.schemas.pricing import (
    CostContext,
    CostMaterial,
    LaborInput,
    Machine,
    MaterialCategory,
    OverheadAllocation,
    PerUnitBreakdown,
    PricingBreakdown,
    Product,
    SalePriceInfo,
    VATSettings,
    WhatIfCell,
)

DEFAULT_PRICE_SCENARIOS = (-25, -20, -15, -10, -5, 0, 5, 10, 15, 20, 25)
DEFAULT_QUANTITY_SCENARIOS = (-50, -40, -30, -20, -10, 0, 10, 20, 30, 40, 50)


class VATResult(NamedTuple):
    vat_amount: float
    net_amount: float
    total_amount: float


# ============= MATERIALS =============

def calculate_material_cost(material: CostMaterial) -> float:
    """Cost of one material line including its waste allowance"""
    if material.cost_type == "total_cost":
        base_cost = material.total_cost or 0.0
    else:
        base_cost = material.quantity_used * material.cost_per_unit
    waste = material.waste_percent or 0.0
    return base_cost * (1 + waste / 100)


def calculate_total_material_cost(materials: Iterable[CostMaterial]) -> float:
    return sum((calculate_material_cost(m) for m in materials), 0.0)


def calculate_material_cost_by_category(materials: Sequence[CostMaterial]) -> Dict[str, float]:
    totals = {category.value: 0.0 for category in MaterialCategory}
    for material in materials:
        totals[material.category.value] += calculate_material_cost(material)
    return totals


# ============= MACHINES =============

def calculate_machine_hourly_cost(machine: Machine, electricity_rate: float = 0.0) -> float:
    """
    Amortized cost of running a machine for one hour.

    Depreciation and maintenance are spread over ``hours_per_year``; electricity
    is added only when it is not already part of shop overhead.
    """
    hourly = 0.0
    if machine.hours_per_year > 0:
        annual_depreciation = machine.purchase_price * machine.depreciation_percentage / 100
        hourly += annual_depreciation / machine.hours_per_year
        hourly += machine.maintenance_cost_per_year / machine.hours_per_year
    if not machine.electricity_included_in_overhead:
        hourly += machine.power_consumption * electricity_rate
    return hourly


def calculate_machine_depreciation(machine: Machine) -> float:
    if machine.hours_per_year <= 0:
        return 0.0
    per_hour = machine.purchase_price * machine.depreciation_percentage / 100 / machine.hours_per_year
    return per_hour * machine.usage_hours


def calculate_machine_costs(
    machines: Iterable[Machine],
    electricity_rate: float = 0.0
) -> Tuple[float, float]:
    """
    Returns:
        (total machine cost, total depreciation portion) for the job
    """
    total_cost = 0.0
    total_depreciation = 0.0
    for machine in machines:
        total_cost += calculate_machine_hourly_cost(machine, electricity_rate) * machine.usage_hours
        total_depreciation += calculate_machine_depreciation(machine)
    return total_cost, total_depreciation


# ============= LABOR / OVERHEAD =============

def calculate_labor_cost(labor: LaborInput) -> float:
    return labor.hours * labor.rate_per_hour


def calculate_overhead_cost(
    overhead: OverheadAllocation,
    labor: LaborInput,
    context: Optional[CostContext] = None
) -> float:
    if overhead.method == "per_hour":
        return overhead.rate_per_hour * labor.hours
    if overhead.method == "shop_share":
        hourly = context.shop_hourly_overhead if context else 0.0
        return hourly * labor.hours
    return overhead.amount


def calculate_monthly_overhead(shop: ShopData) -> float:
    return sum(getattr(shop, field) for field in OVERHEAD_FIELDS)


def calculate_hourly_overhead(shop: ShopData) -> float:
    monthly_hours = shop.total_monthly_hours
    return calculate_monthly_overhead(shop) / monthly_hours if monthly_hours > 0 else 0.0


def cost_context_for_shop(shop: Optional[ShopData], electricity_rate_source: str = "shop") -> CostContext:
    """Build the engine's external inputs from shop settings"""
    if shop is None:
        return CostContext()
    electricity_rate = shop.power_cost_per_kwh if electricity_rate_source == "shop" else 0.0
    return CostContext(
        electricity_rate=electricity_rate,
        shop_hourly_overhead=calculate_hourly_overhead(shop),
    )


# ============= REVENUE / VAT =============

def calculate_revenue(sale_price: SalePriceInfo) -> float:
    product_total = (
        sale_price.amount * sale_price.units_count
        if sale_price.is_per_unit
        else sale_price.amount
    )
    return product_total + sale_price.fixed_charge


def calculate_vat(amount: float, vat_settings: VATSettings) -> VATResult:
    """
    Split an amount into VAT and net parts.

    Inclusive: VAT is extracted from the amount. Exclusive: VAT is added on
    top and the amount itself is the net.
    """
    rate = vat_settings.rate / 100
    if vat_settings.is_inclusive:
        vat_amount = amount * rate / (1 + rate)
        return VATResult(vat_amount=vat_amount, net_amount=amount - vat_amount, total_amount=amount)
    vat_amount = amount * rate
    return VATResult(vat_amount=vat_amount, net_amount=amount, total_amount=amount + vat_amount)


def _share(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


# ============= BREAKDOWN =============

def calculate_product_breakdown(
    product: Product,
    context: Optional[CostContext] = None
) -> PricingBreakdown:
    """
    Compute the full profit-and-loss breakdown for a product.

    Args:
        product: Validated product inputs
        context: Shop-level inputs (electricity rate, hourly overhead)

    Returns:
        PricingBreakdown with costs, revenue, VAT, profit and margin
    """
    context = context or CostContext()

    material_cost = calculate_total_material_cost(product.materials)
    by_category = calculate_material_cost_by_category(product.materials)
    machine_cost, machine_depreciation = calculate_machine_costs(product.machines, context.electricity_rate)
    labor_cost = calculate_labor_cost(product.labor)
    overhead_cost = calculate_overhead_cost(product.overhead, product.labor, context)
    subtotal_cost = material_cost + machine_cost + labor_cost + overhead_cost

    revenue = calculate_revenue(product.sale_price)
    vat = calculate_vat(revenue, product.vat_settings)
    net_revenue = vat.net_amount

    profit = net_revenue - subtotal_cost
    margin_percent = profit / net_revenue * 100 if net_revenue > 0 else 0.0

    units = product.sale_price.units_count
    operating_cost = machine_cost + labor_cost + overhead_cost
    per_unit = PerUnitBreakdown(
        revenue=revenue / units,
        vat_amount=vat.vat_amount / units,
        net_revenue=net_revenue / units,
        fixed_charge=product.sale_price.fixed_charge / units,
        material_cost=material_cost / units,
        operating_cost=operating_cost / units,
        profit=profit / units,
    )

    percent_of_net_sales = {
        "material_cost": _share(material_cost, net_revenue),
        "machine_cost": _share(machine_cost, net_revenue),
        "labor_cost": _share(labor_cost, net_revenue),
        "overhead_cost": _share(overhead_cost, net_revenue),
        "fixed_charge": _share(product.sale_price.fixed_charge, net_revenue),
        "profit": _share(profit, net_revenue),
    }

    return PricingBreakdown(
        material_cost=material_cost,
        material_cost_by_category=by_category,
        machine_cost=machine_cost,
        machine_depreciation=machine_depreciation,
        labor_cost=labor_cost,
        overhead_cost=overhead_cost,
        subtotal_cost=subtotal_cost,
        revenue=revenue,
        vat_amount=vat.vat_amount,
        net_revenue=net_revenue,
        profit=profit,
        margin_percent=margin_percent,
        per_unit=per_unit,
        percent_of_net_sales=percent_of_net_sales,
    )


# ============= WHAT-IF =============

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale_product(product: Product, price_change: float, quantity_change: float) -> Product:
    """
    Scenario copy of a product: price moved by ``price_change`` percent and
    every variable input scaled with the unit count change.
    """
    base_units = product.sale_price.units_count
    new_units = max(1, _round_half_up(base_units * (1 + quantity_change / 100)))
    multiplier = new_units / base_units

    materials = [
        m.model_copy(update={
            "quantity_used": m.quantity_used * multiplier,
            "total_cost": m.total_cost * multiplier if m.total_cost is not None else None,
        })
        for m in product.materials
    ]
    machines = [
        m.model_copy(update={"usage_hours": m.usage_hours * multiplier})
        for m in product.machines
    ]
    return product.model_copy(update={
        "materials": materials,
        "machines": machines,
        "labor": product.labor.model_copy(update={"hours": product.labor.hours * multiplier}),
        "sale_price": product.sale_price.model_copy(update={
            "amount": product.sale_price.amount * (1 + price_change / 100),
            "units_count": new_units,
        }),
    })


def what_if_matrix(
    product: Product,
    context: Optional[CostContext] = None,
    price_changes: Sequence[float] = DEFAULT_PRICE_SCENARIOS,
    quantity_changes: Sequence[float] = DEFAULT_QUANTITY_SCENARIOS,
) -> List[List[WhatIfCell]]:
    """
    Profit for each (quantity change, price change) scenario.

    Rows follow ``quantity_changes``, columns follow ``price_changes``.
    """
    base_profit = calculate_product_breakdown(product, context).profit
    rows: List[List[WhatIfCell]] = []
    for quantity_change in quantity_changes:
        row = []
        for price_change in price_changes:
            scenario = scale_product(product, price_change, quantity_change)
            profit = calculate_product_breakdown(scenario, context).profit
            row.append(WhatIfCell(
                price_change=price_change,
                quantity_change=quantity_change,
                price=scenario.sale_price.amount,
                units_count=scenario.sale_price.units_count,
                profit=profit,
                profit_delta=profit - base_profit,
            ))
        rows.append(row)
    return rows
