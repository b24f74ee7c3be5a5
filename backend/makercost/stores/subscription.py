from typing import Literal

from makercost.schemas.subscription import (
    TIER_LIMITS,
    SubscriptionTier,
    TierLimits,
    UsageCounts,
    UserSubscription,
)
from makercost.stores.base import SingletonStore

LimitedFeature = Literal["projects", "materials"]


class SubscriptionStore(SingletonStore[UserSubscription]):
    """Current tier and usage counts, used for feature gating"""

    name = "subscription-store"
    entity = "subscription"
    model = UserSubscription

    @property
    def tier(self) -> SubscriptionTier:
        return self._value.tier

    @property
    def tier_limits(self) -> TierLimits:
        return TIER_LIMITS[self._value.tier]

    def update_tier(self, tier: SubscriptionTier) -> UserSubscription:
        return self.update({"tier": tier})

    def set_usage(self, project_count: int, material_count: int) -> UserSubscription:
        return self.update({"usage": UsageCounts(project_count=project_count, material_count=material_count)})

    def has_feature_access(self, feature: str) -> bool:
        value = getattr(self.tier_limits, feature, None)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        return False

    def _limit_and_usage(self, feature: LimitedFeature):
        limits = self.tier_limits
        usage = self._value.usage
        if feature == "projects":
            return limits.max_projects, usage.project_count
        return limits.max_materials, usage.material_count

    def has_reached_limit(self, feature: LimitedFeature) -> bool:
        limit, used = self._limit_and_usage(feature)
        return limit != -1 and used >= limit

    def get_remaining_usage(self, feature: LimitedFeature) -> int:
        """Remaining allowance; -1 means unlimited"""
        limit, used = self._limit_and_usage(feature)
        if limit == -1:
            return -1
        return max(0, limit - used)
