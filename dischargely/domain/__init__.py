from dischargely.domain.feedback_operations import feedback_ops
from dischargely.domain.record_operations import record_ops
from dischargely.domain.user_operations import user_ops

__all__ = [
    "feedback_ops",
    "record_ops",
    "user_ops",
]
