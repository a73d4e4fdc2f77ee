from dischargely.models.feedback import Feedback, FeedbackCreate
from dischargely.models.record import Record
from dischargely.models.referral_milestone import ReferralMilestone
from dischargely.models.user import User

__all__ = [
    "Feedback",
    "FeedbackCreate",
    "Record",
    "ReferralMilestone",
    "User",
]
