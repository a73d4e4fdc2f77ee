from dischargely.api.v1 import (
    auth,
    billing,
    feedback,
    referrals,
    summaries,
    users,
)

__all__ = [
    "auth",
    "users",
    "referrals",
    "summaries",
    "billing",
    "feedback",
]
