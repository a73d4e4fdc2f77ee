"""Usage limits for free users and user-supplied content."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UsageLimits:
    """Limits applied to free-tier usage and request payloads."""

    free_daily_summaries: int
    max_medical_notes_chars: int
    max_invite_message_chars: int
    max_feedback_message_chars: int
    max_feedback_field_chars: int


USAGE_LIMITS = UsageLimits(
    free_daily_summaries=3,
    max_medical_notes_chars=50_000,
    max_invite_message_chars=1000,
    max_feedback_message_chars=5000,
    max_feedback_field_chars=200,
)
