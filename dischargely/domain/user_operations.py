import logging
import re
import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.config import USAGE_LIMITS
from dischargely.core.exceptions import QuotaExceededError
from dischargely.models.record import Record
from dischargely.models.user import User

logger = logging.getLogger(__name__)

INVITE_LINK_TOKEN = "[link]"

_LEADING_FENCE = re.compile(r"^```[^\n]*\n?")
_TRAILING_FENCE = re.compile(r"```\s*$")
_TRAILING_CASTS = re.compile(r"(::[a-zA-Z_][a-zA-Z0-9_]*)+\s*$")
_LEADING_QUOTES = re.compile(r"^['\"`]{1,3}")
_TRAILING_QUOTES = re.compile(r"['\"`]{1,3}$")
_URL = re.compile(r"https?://\S+")


def sanitize_invite_message(raw: str) -> str:
    """
    Clean up an invite message pasted from elsewhere.

    Strips code fences, a trailing Postgres cast (``::text``), 1-3
    surrounding quotes and SQL-escaped doubled quotes, then makes sure the
    ``[link]`` placeholder is present: the first URL becomes the placeholder,
    or it is appended when there is no URL.
    """
    s = _LEADING_FENCE.sub("", raw)
    s = _TRAILING_FENCE.sub("", s).strip()
    s = _TRAILING_CASTS.sub("", s).strip()
    s = _LEADING_QUOTES.sub("", s)
    s = _TRAILING_QUOTES.sub("", s)
    s = s.replace("''", "'")

    if INVITE_LINK_TOKEN not in s:
        if _URL.search(s):
            s = _URL.sub(INVITE_LINK_TOKEN, s, count=1)
        else:
            s = f"{s} {INVITE_LINK_TOKEN}".strip()

    return s.strip()


@dataclass
class UsageStatus:
    """Free-tier usage for today plus the flags that bypass it."""

    daily_usage_count: int
    last_used_at: date | None
    is_paid: bool
    unlimited_until: datetime | None


def has_unlimited_access(user: User, now: datetime) -> bool:
    """Paid subscribers and users inside a referral window skip the daily quota."""
    if user.is_paid:
        return True
    return user.unlimited_until is not None and user.unlimited_until > now


class UserOperations:
    """Operations for User model."""

    async def get_by_id(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
    ) -> User | None:
        """Get a user by ID."""
        statement = select(User).where(User.id == user_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_stripe_customer(
        self,
        db: AsyncSession,
        customer_id: str,
    ) -> User | None:
        statement = select(User).where(User.stripe_customer_id == customer_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        phone: str | None = None,
        referred_by: uuid_pkg.UUID | None = None,
    ) -> User:
        """Insert the public users row for a freshly verified auth user."""
        user = User(id=user_id, phone=phone, referred_by=referred_by)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        logger.info(f"Created user {user_id} (referred_by={referred_by})")
        return user

    async def update(
        self,
        db: AsyncSession,
        user: User,
        obj_in: dict,
    ) -> User:
        """Update user fields."""
        for field, value in obj_in.items():
            setattr(user, field, value)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def get_usage_status(
        self,
        db: AsyncSession,
        user: User,
        today: date,
    ) -> UsageStatus:
        """
        Today's usage. A counter left over from an earlier day is reset to 0
        and stamped with today's date.
        """
        if user.last_used_at != today:
            user.daily_usage_count = 0
            user.last_used_at = today
            db.add(user)
            await db.flush()

        return UsageStatus(
            daily_usage_count=user.daily_usage_count,
            last_used_at=user.last_used_at,
            is_paid=user.is_paid,
            unlimited_until=user.unlimited_until,
        )

    async def consume_daily_quota(
        self,
        db: AsyncSession,
        user: User,
        now: datetime,
        today: date,
        daily_quota: int = USAGE_LIMITS.free_daily_summaries,
    ) -> None:
        """
        Count one summary against the free daily quota.

        Raises QuotaExceededError when today's quota is used up.
        Users with unlimited access are not counted.
        """
        if has_unlimited_access(user, now):
            return

        if user.last_used_at != today:
            user.daily_usage_count = 1
            user.last_used_at = today
        elif user.daily_usage_count >= daily_quota:
            raise QuotaExceededError(
                f"Daily limit of {daily_quota} summaries reached for user {user.id}"
            )
        else:
            user.daily_usage_count += 1

        db.add(user)
        await db.flush()

    async def update_invite_message(
        self,
        db: AsyncSession,
        user: User,
        raw_message: str,
        max_length: int = USAGE_LIMITS.max_invite_message_chars,
    ) -> str:
        """
        Sanitize and store the user's invite message.

        Raises ValueError if the cleaned message is empty or too long.
        """
        message = sanitize_invite_message(raw_message).strip()
        if not message or len(message) > max_length:
            raise ValueError(f"Invite message must be between 1 and {max_length} characters")

        user.invite_message = message
        db.add(user)
        await db.flush()
        return message

    async def delete_user_data(
        self,
        db: AsyncSession,
        user: User,
    ) -> None:
        """Delete the user's records and the user row."""
        await db.execute(delete(Record).where(Record.user_id == user.id))  # type: ignore[arg-type]
        await db.delete(user)
        await db.flush()
        logger.info(f"Deleted user {user.id} and their records")


user_ops = UserOperations()
