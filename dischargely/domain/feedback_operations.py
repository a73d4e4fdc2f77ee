"""Domain operations for Feedback model."""

import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.config import USAGE_LIMITS
from dischargely.domain.base_operations import BaseOperations
from dischargely.models.feedback import Feedback, FeedbackCreate


def _clip(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value[:limit] or None


class FeedbackOperations(BaseOperations[Feedback]):
    """CRUD operations for Feedback model."""

    def __init__(self) -> None:
        super().__init__(Feedback)

    async def create_feedback(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID | None,
        data: FeedbackCreate,
    ) -> Feedback:
        """
        Create a feedback submission.

        Fields are trimmed and truncated to their column limits.
        Raises ValueError if the message is empty.
        """
        message = _clip(data.message, USAGE_LIMITS.max_feedback_message_chars)
        if not message:
            raise ValueError("Message is required")

        return await self.create(
            db,
            obj_in={
                "name": _clip(data.name, USAGE_LIMITS.max_feedback_field_chars),
                "email": _clip(data.email, USAGE_LIMITS.max_feedback_field_chars),
                "message": message,
            },
            user_id=user_id,
        )


feedback_ops = FeedbackOperations()
