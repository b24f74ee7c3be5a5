from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from makercost.schemas.pricing import (
    CostMaterial,
    Currency,
    LaborInput,
    Machine,
    OverheadAllocation,
    PricingBreakdown,
    SalePriceInfo,
    VATSettings,
    new_id,
    utcnow,
)


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SAVED = "saved"
    COMPLETED = "completed"


class CustomerType(str, Enum):
    PRIVATE = "private"
    BUSINESS = "business"


class DiscountInfo(BaseModel):
    type: Literal["fixed", "percentage"] = "percentage"
    amount: float = Field(0, ge=0)


class ShippingInfo(BaseModel):
    cost: float = Field(0, ge=0, description="What shipping costs the shop")
    charge_to_customer: float = Field(0, ge=0)
    is_free_shipping: bool = False
    includes_vat: bool = False


class QuoteProduct(BaseModel):
    """A denormalized snapshot of a priced product inside a quote"""
    id: str = Field(default_factory=new_id)
    product_name: str
    quantity: int = Field(1, ge=1)
    unit_price: float
    total_price: float
    breakdown: PricingBreakdown
    materials: List[CostMaterial] = Field(default_factory=list)
    machines: List[Machine] = Field(default_factory=list)
    labor: LaborInput = Field(default_factory=LaborInput)
    overhead: OverheadAllocation = Field(default_factory=OverheadAllocation)
    sale_price: SalePriceInfo = Field(default_factory=SalePriceInfo)
    vat_settings: VATSettings = Field(default_factory=VATSettings)
    currency: Currency = Currency.USD
    added_at: datetime = Field(default_factory=utcnow)


class QuoteTotals(BaseModel):
    subtotal: float
    discount_amount: float
    shipping_amount: float
    total_amount: float
    clamped: bool = False


class Quote(BaseModel):
    id: str = Field(default_factory=new_id)
    quote_number: str
    project_name: str = ""
    client_name: str = ""
    currency: Currency = Currency.USD
    products: List[QuoteProduct] = Field(default_factory=list)
    discount: Optional[DiscountInfo] = None
    shipping: Optional[ShippingInfo] = None
    delivery_date: Optional[datetime] = None
    payment_terms: Optional[str] = None
    status: QuoteStatus = QuoteStatus.DRAFT
    # Cached for display; recomputed from products/discount/shipping on every mutation
    subtotal: float = 0
    discount_amount: float = 0
    shipping_amount: float = 0
    total_amount: float = 0
    total_clamped: bool = False
    finalized_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class QuoteLineItem(BaseModel):
    id: str
    product_name: str
    quantity: int
    unit_price_ex_vat: float
    unit_price_inc_vat: float
    line_total_ex_vat: float
    line_total_inc_vat: float


class QuoteShippingLine(BaseModel):
    cost_ex_vat: float
    cost_inc_vat: float
    charge_ex_vat: float
    charge_inc_vat: float
    is_free_shipping: bool


class AppliedDiscount(BaseModel):
    type: Literal["fixed", "percentage"]
    amount: float
    applied_amount_ex_vat: float
    applied_amount_inc_vat: float


class FinalizedTotals(BaseModel):
    # Private customer
    grand_total_inc_vat: Optional[float] = None
    vat_info_amount: Optional[float] = None
    vat_info_net_amount: Optional[float] = None
    # Business customer
    subtotal_ex_vat: Optional[float] = None
    shipping_ex_vat: Optional[float] = None
    discount_ex_vat: Optional[float] = None
    vat_amount: Optional[float] = None
    total_inc_vat: Optional[float] = None


class FinalizedQuoteView(BaseModel):
    customer_type: CustomerType
    quote: Quote
    line_items: List[QuoteLineItem]
    shipping_line: Optional[QuoteShippingLine] = None
    discount: Optional[AppliedDiscount] = None
    totals: FinalizedTotals
