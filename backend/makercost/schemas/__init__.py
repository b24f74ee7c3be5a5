from makercost.schemas.pricing import (
    CostContext,
    CostMaterial,
    Currency,
    LaborInput,
    Machine,
    MaterialCategory,
    OverheadAllocation,
    PricingBreakdown,
    PricingProject,
    Product,
    SalePriceInfo,
    VATSettings,
)
from makercost.schemas.quote import (
    CustomerType,
    DiscountInfo,
    Quote,
    QuoteProduct,
    QuoteStatus,
    QuoteTotals,
    ShippingInfo,
)
from makercost.schemas.catalog import DashboardMachine, ShopData, UserMaterial
from makercost.schemas.subscription import SubscriptionTier, TierLimits, UserSubscription
from makercost.schemas.sync import SyncConflict, SyncState, SyncStatus

__all__ = [
    "CostContext",
    "CostMaterial",
    "Currency",
    "LaborInput",
    "Machine",
    "MaterialCategory",
    "OverheadAllocation",
    "PricingBreakdown",
    "PricingProject",
    "Product",
    "SalePriceInfo",
    "VATSettings",
    "CustomerType",
    "DiscountInfo",
    "Quote",
    "QuoteProduct",
    "QuoteStatus",
    "QuoteTotals",
    "ShippingInfo",
    "DashboardMachine",
    "ShopData",
    "UserMaterial",
    "SubscriptionTier",
    "TierLimits",
    "UserSubscription",
    "SyncConflict",
    "SyncState",
    "SyncStatus",
]
