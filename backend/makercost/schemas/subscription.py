from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"


class TierLimits(BaseModel):
    max_projects: int  # -1 means unlimited
    max_materials: int
    can_upload_images: bool = False
    can_export_pdf: bool = False
    can_export_excel: bool = False
    can_use_advanced_reports: bool = False
    can_use_what_if_analysis: bool = False
    has_cloud_sync: bool = False
    has_priority_support: bool = False


_PAID_FEATURES = dict(
    can_upload_images=True,
    can_export_pdf=True,
    can_export_excel=True,
    can_use_advanced_reports=True,
    can_use_what_if_analysis=True,
    has_cloud_sync=True,
    has_priority_support=True,
)

TIER_LIMITS: Dict[SubscriptionTier, TierLimits] = {
    SubscriptionTier.FREE: TierLimits(max_projects=5, max_materials=50),
    SubscriptionTier.PRO: TierLimits(max_projects=-1, max_materials=-1, **_PAID_FEATURES),
    SubscriptionTier.ENTERPRISE: TierLimits(max_projects=-1, max_materials=-1, **_PAID_FEATURES),
}


class UsageCounts(BaseModel):
    project_count: int = Field(0, ge=0)
    material_count: int = Field(0, ge=0)


class UserSubscription(BaseModel):
    id: str = "subscription"
    plan_id: Optional[str] = None
    tier: SubscriptionTier = SubscriptionTier.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    provider: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    usage: UsageCounts = Field(default_factory=UsageCounts)
