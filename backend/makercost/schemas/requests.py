from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from makercost.schemas.pricing import (
    CostContext,
    CostMaterial,
    Currency,
    LaborInput,
    Machine,
    OverheadAllocation,
    Product,
    SalePriceInfo,
    VATSettings,
)
from makercost.schemas.quote import Quote, QuoteStatus
from makercost.schemas.subscription import SubscriptionTier, TierLimits, UserSubscription
from makercost.services.pricing_engine import DEFAULT_PRICE_SCENARIOS, DEFAULT_QUANTITY_SCENARIOS


class CalculateRequest(BaseModel):
    product: Product
    context: Optional[CostContext] = Field(None, description="Defaults to the shop settings")


class WhatIfRequest(CalculateRequest):
    price_changes: List[float] = Field(default_factory=lambda: list(DEFAULT_PRICE_SCENARIOS))
    quantity_changes: List[float] = Field(default_factory=lambda: list(DEFAULT_QUANTITY_SCENARIOS))


class QuoteCreate(BaseModel):
    project_name: str = Field(..., min_length=1)
    client_name: str = Field(..., min_length=1)
    currency: Currency = Currency.USD
    delivery_date: Optional[datetime] = None
    payment_terms: Optional[str] = None
    products: List[Product] = Field(default_factory=list)


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


class ProjectUpdate(BaseModel):
    """Partial update of the project open in the calculator"""
    project_name: Optional[str] = None
    client_name: Optional[str] = None
    product_name: Optional[str] = None
    currency: Optional[Currency] = None
    delivery_date: Optional[datetime] = None
    payment_terms: Optional[str] = None
    materials: Optional[List[CostMaterial]] = None
    machines: Optional[List[Machine]] = None
    labor: Optional[LaborInput] = None
    overhead: Optional[OverheadAllocation] = None
    sale_price: Optional[SalePriceInfo] = None
    vat_settings: Optional[VATSettings] = None


class SessionCreate(BaseModel):
    user_id: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    user_id: Optional[str] = None
    authenticated: bool


class AutosaveResponse(BaseModel):
    saved: bool
    quote: Optional[Quote] = None


class MaterialUsageCreate(BaseModel):
    project_id: str = Field(..., min_length=1)
    project_name: str = ""
    quantity_used: float = Field(..., gt=0)


class ShopOverheadResponse(BaseModel):
    monthly_overhead: float
    hourly_overhead: float
    total_monthly_hours: float


class TierUpdate(BaseModel):
    tier: SubscriptionTier


class SubscriptionResponse(BaseModel):
    subscription: UserSubscription
    limits: TierLimits
    remaining_projects: int
    remaining_materials: int
