"""Row factories for integration tests that run real SQL."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.models.referral_milestone import ReferralMilestone
from dischargely.models.user import User


async def create_user(db: AsyncSession, **fields: object) -> User:
    user = User(id=fields.pop("id", uuid.uuid4()), **fields)
    db.add(user)
    await db.flush()
    return user


async def create_referred_users(db: AsyncSession, referrer: User, count: int) -> list[User]:
    return [await create_user(db, referred_by=referrer.id) for _ in range(count)]


async def create_milestone(
    db: AsyncSession,
    user: User,
    milestone_index: int,
    granted_months: int,
    granted_at: datetime,
    milestone_size: int = 3,
) -> ReferralMilestone:
    row = ReferralMilestone(
        user_id=user.id,
        milestone_size=milestone_size,
        milestone_index=milestone_index,
        granted_months=granted_months,
        granted_at=granted_at,
    )
    db.add(row)
    await db.flush()
    return row
