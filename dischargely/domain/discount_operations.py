"""Domain operations for the referrer discount flag."""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.config import REFERRAL_DISCOUNT_PERCENTAGE
from dischargely.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class DiscountStatus:
    has_discount: bool
    discount_percentage: int


NO_DISCOUNT = DiscountStatus(has_discount=False, discount_percentage=0)


class DiscountOperations:
    """Reads the discount a referrer has earned."""

    def __init__(self, discount_percentage: int = REFERRAL_DISCOUNT_PERCENTAGE) -> None:
        self.discount_percentage = discount_percentage

    async def get_discount_status(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
    ) -> DiscountStatus:
        """
        Report whether the user's discounted flag is set.

        A missing user row, or a failed read, counts as no discount.
        """
        statement = select(User.discounted).where(User.id == user_id)  # type: ignore[arg-type]
        try:
            result = await db.execute(statement)
            discounted = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read discount status for {user_id}: {e}")
            return NO_DISCOUNT

        if not discounted:
            return NO_DISCOUNT

        return DiscountStatus(has_discount=True, discount_percentage=self.discount_percentage)
