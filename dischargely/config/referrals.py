"""Referral programme configuration - milestone rewards, rolling cap and discount."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReferralRewardScheme:
    """Progressive referral reward scheme.

    Each converted referral up to ``len(milestone_months)`` unlocks one
    milestone. Milestone ``n`` extends the referrer's unlimited window by
    ``milestone_months[n - 1]`` calendar months, subject to a rolling cap
    of ``cap_months`` granted within any ``cap_window_days`` period.
    """

    milestone_size: int  # Campaign grouping key stored on every ledger row
    milestone_months: tuple[int, ...]  # Months granted for milestone 1, 2, 3...
    cap_months: int
    cap_window_days: int

    @property
    def milestone_count(self) -> int:
        return len(self.milestone_months)

    def months_for(self, milestone_index: int) -> int:
        """Months proposed for a 1-based milestone index."""
        if not 1 <= milestone_index <= self.milestone_count:
            raise ValueError(f"Unknown milestone index: {milestone_index}")
        return self.milestone_months[milestone_index - 1]


REFERRAL_REWARD_SCHEME = ReferralRewardScheme(
    milestone_size=3,
    milestone_months=(1, 2, 3),
    cap_months=6,
    cap_window_days=365,
)

# Percentage off applied to a referrer once one of their referrals pays
REFERRAL_DISCOUNT_PERCENTAGE = 50
