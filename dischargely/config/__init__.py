"""Configuration package."""

from dischargely.config.referrals import (
    REFERRAL_DISCOUNT_PERCENTAGE,
    REFERRAL_REWARD_SCHEME,
    ReferralRewardScheme,
)
from dischargely.config.settings import Settings, settings
from dischargely.config.usage import USAGE_LIMITS, UsageLimits

__all__ = [
    "REFERRAL_DISCOUNT_PERCENTAGE",
    "REFERRAL_REWARD_SCHEME",
    "ReferralRewardScheme",
    "Settings",
    "settings",
    "USAGE_LIMITS",
    "UsageLimits",
]
