"""
User-owned catalog entries (machines, materials, shop settings).

Catalog entries are copied by value into products, so editing one never
changes a product that already references it.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from makercost.schemas.pricing import (
    CostMaterial,
    Currency,
    Machine,
    MaterialCategory,
    new_id,
    utcnow,
)


class DashboardMachine(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    purchase_price: float = Field(0, ge=0)
    depreciation_percentage: float = Field(0, ge=0, le=100)
    hours_per_year: float = Field(0, ge=0)
    maintenance_cost_per_year: float = Field(0, ge=0)
    power_consumption: float = Field(0, ge=0)
    electricity_included_in_overhead: bool = False

    def to_calculator_machine(self, usage_hours: float = 0) -> Machine:
        data = self.model_dump()
        data["id"] = new_id()
        return Machine(usage_hours=usage_hours, **data)


class MaterialUsage(BaseModel):
    id: str = Field(default_factory=new_id)
    project_id: str
    project_name: str
    quantity_used: float = Field(..., ge=0)
    date_used: datetime = Field(default_factory=utcnow)
    cost_at_time: float = Field(0, ge=0)


class UserMaterial(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    category: str = ""  # display category: Wood, Metal, Plastic...
    material_type: MaterialCategory = MaterialCategory.MAIN
    supplier: str = ""
    cost_per_unit: float = Field(0, ge=0)
    unit: str = "pieces"
    calculator_unit: Optional[str] = None
    product_link: Optional[str] = None
    comments: str = ""
    in_stock: bool = True
    min_stock: float = Field(0, ge=0)
    current_stock: float = Field(0, ge=0)
    waste_percentage: float = Field(0, ge=0)
    usage_history: List[MaterialUsage] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utcnow)

    def to_cost_material(self, quantity_used: float = 0) -> CostMaterial:
        return CostMaterial(
            name=self.name,
            unit=self.calculator_unit or self.unit,
            category=self.material_type,
            quantity_used=quantity_used,
            cost_per_unit=self.cost_per_unit,
            waste_percent=self.waste_percentage,
        )


class ShopData(BaseModel):
    """Shop profile, monthly overhead categories and shop-wide rates"""
    id: str = "shop"
    name: str = "My Workshop"
    address: str = ""
    phone: str = ""
    email: str = ""
    slogan: str = ""
    currency: Currency = Currency.USD
    rent_lease: float = Field(2500, ge=0)
    utilities: float = Field(350, ge=0)
    digital_infrastructure: float = Field(200, ge=0)
    insurance_professional: float = Field(350, ge=0)
    marketing_advertising: float = Field(200, ge=0)
    office_supplies: float = Field(100, ge=0)
    transportation_delivery: float = Field(150, ge=0)
    miscellaneous_contingency: float = Field(150, ge=0)
    total_monthly_hours: float = Field(176, ge=0)
    labor_rate: float = Field(45, ge=0)
    operating_hours: float = Field(8, ge=0)
    operating_days: float = Field(22, ge=0)
    power_cost_per_kwh: float = Field(0.12, ge=0)


OVERHEAD_FIELDS = (
    "rent_lease",
    "utilities",
    "digital_infrastructure",
    "insurance_professional",
    "marketing_advertising",
    "office_supplies",
    "transportation_delivery",
    "miscellaneous_contingency",
)
