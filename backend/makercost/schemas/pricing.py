"""
Pricing input and output models.

Inputs carry their own range constraints so malformed values are rejected
before they reach the calculation engine.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, Field, model_validator


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    NIS = "NIS"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"
    JPY = "JPY"
    CHF = "CHF"
    CNY = "CNY"
    INR = "INR"
    BRL = "BRL"
    MXN = "MXN"
    KRW = "KRW"
    SEK = "SEK"
    NOK = "NOK"


class MaterialCategory(str, Enum):
    MAIN = "main"
    PACKAGING = "packaging"
    DECORATIONS = "decorations"


class CostMaterial(BaseModel):
    """A material line inside a product, copied by value from the catalog"""
    id: str = Field(default_factory=new_id)
    name: str = ""
    unit: str = "pieces"
    custom_unit: Optional[str] = None
    category: MaterialCategory = MaterialCategory.MAIN
    cost_type: Literal["per_unit", "total_cost"] = "per_unit"
    quantity_used: float = Field(0, ge=0)
    cost_per_unit: float = Field(0, ge=0)
    total_cost: Optional[float] = Field(None, ge=0, description="Flat cost when cost_type is total_cost")
    waste_percent: Optional[float] = Field(None, ge=0)


class Machine(BaseModel):
    """Machine amortization inputs plus the hours this job used it"""
    id: str = Field(default_factory=new_id)
    name: str = ""
    purchase_price: float = Field(0, ge=0)
    depreciation_percentage: float = Field(0, ge=0, le=100, description="Share of purchase price written off per year")
    hours_per_year: float = Field(0, ge=0)
    maintenance_cost_per_year: float = Field(0, ge=0)
    power_consumption: float = Field(0, ge=0, description="kW")
    electricity_included_in_overhead: bool = False
    usage_hours: float = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_hours_per_year(self) -> "Machine":
        uses_amortization = (
            (self.depreciation_percentage > 0 and self.purchase_price > 0)
            or self.maintenance_cost_per_year > 0
        )
        if uses_amortization and self.hours_per_year <= 0:
            raise ValueError("hours_per_year must be greater than 0 when depreciation or maintenance is set")
        return self


class LaborInput(BaseModel):
    hours: float = Field(0, ge=0)
    rate_per_hour: float = Field(0, ge=0)


class OverheadAllocation(BaseModel):
    """
    How shop overhead is charged to a job.

    - flat: ``amount`` entered directly for this job
    - per_hour: ``rate_per_hour`` times labor hours
    - shop_share: shop hourly overhead times labor hours
    """
    method: Literal["flat", "per_hour", "shop_share"] = "flat"
    amount: float = Field(0, ge=0)
    rate_per_hour: float = Field(0, ge=0)


class VATSettings(BaseModel):
    rate: float = Field(0, ge=0, le=100)
    is_inclusive: bool = False


class SalePriceInfo(BaseModel):
    amount: float = Field(0, ge=0)
    units_count: int = Field(1, ge=1)
    is_per_unit: bool = True
    fixed_charge: float = Field(0, ge=0)


class Product(BaseModel):
    """One pricing unit within a quote"""
    id: str = Field(default_factory=new_id)
    product_name: str = ""
    materials: List[CostMaterial] = Field(default_factory=list)
    machines: List[Machine] = Field(default_factory=list)
    labor: LaborInput = Field(default_factory=LaborInput)
    overhead: OverheadAllocation = Field(default_factory=OverheadAllocation)
    sale_price: SalePriceInfo = Field(default_factory=SalePriceInfo)
    vat_settings: VATSettings = Field(default_factory=VATSettings)


class CostContext(BaseModel):
    """Shop-level inputs the engine needs but a product does not carry"""
    electricity_rate: float = Field(0, ge=0, description="Cost per kWh")
    shop_hourly_overhead: float = Field(0, ge=0)


class PerUnitBreakdown(BaseModel):
    revenue: float
    vat_amount: float
    net_revenue: float
    fixed_charge: float
    material_cost: float
    operating_cost: float
    profit: float


class PricingBreakdown(BaseModel):
    material_cost: float
    material_cost_by_category: Dict[str, float]
    machine_cost: float
    machine_depreciation: float
    labor_cost: float
    overhead_cost: float
    subtotal_cost: float
    revenue: float
    vat_amount: float
    net_revenue: float
    profit: float
    margin_percent: float
    per_unit: PerUnitBreakdown
    percent_of_net_sales: Dict[str, float]


class WhatIfCell(BaseModel):
    price_change: float
    quantity_change: float
    price: float
    units_count: int
    profit: float
    profit_delta: float


class PricingProject(BaseModel):
    """The project currently being edited in the calculator"""
    id: str = Field(default_factory=new_id)
    project_name: str = ""
    client_name: str = ""
    product_name: str = ""
    currency: Currency = Currency.USD
    delivery_date: Optional[datetime] = None
    payment_terms: Optional[str] = None
    materials: List[CostMaterial] = Field(default_factory=list)
    machines: List[Machine] = Field(default_factory=list)
    labor: LaborInput = Field(default_factory=LaborInput)
    overhead: OverheadAllocation = Field(default_factory=OverheadAllocation)
    sale_price: SalePriceInfo = Field(default_factory=SalePriceInfo)
    vat_settings: VATSettings = Field(default_factory=VATSettings)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_product(self, product_id: Optional[str] = None) -> Product:
        """Copy the pricing inputs into a standalone Product"""
        data = self.model_dump(include={"materials", "machines", "labor", "overhead", "sale_price", "vat_settings"})
        return Product(
            id=product_id or new_id(),
            product_name=self.product_name or self.project_name or "Untitled Product",
            **data
        )
