"""Domain operations for referrals: attribution, progress and milestone rewards."""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.config import REFERRAL_REWARD_SCHEME, ReferralRewardScheme
from dischargely.core.dates import add_calendar_months, utc_now
from dischargely.core.validation import parse_referral_uuid
from dischargely.models.referral_milestone import ReferralMilestone
from dischargely.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class MilestoneGrant:
    """One milestone reward written to the ledger."""

    milestone_index: int
    granted_months: int
    unlimited_until: datetime


@dataclass
class ReferralProgress:
    """Progress towards the next referral milestone."""

    converted_count: int
    milestones_earned: int
    invites_to_next: int
    unlimited_until: datetime | None


@dataclass
class ReferralData:
    """What the invite screen shows about the user's own referral."""

    referral_link: str
    has_been_referred: bool
    referrer_id: uuid_pkg.UUID | None = None
    referrer_created_at: datetime | None = None


def build_referral_link(frontend_url: str, user_id: uuid_pkg.UUID) -> str:
    return f"{frontend_url.rstrip('/')}/signup?ref={user_id}"


def compute_referral_progress(
    converted_count: int,
    unlimited_until: datetime | None,
    scheme: ReferralRewardScheme = REFERRAL_REWARD_SCHEME,
) -> ReferralProgress:
    """
    Build the progress shown in the invite widget.

    invites_to_next counts down within each group of ``milestone_size``
    invites and reads 0 on an exact multiple (a group was just completed).
    """
    invites_to_next = scheme.milestone_size - (converted_count % scheme.milestone_size)
    if invites_to_next == scheme.milestone_size:
        invites_to_next = 0

    return ReferralProgress(
        converted_count=converted_count,
        milestones_earned=min(converted_count, scheme.milestone_count),
        invites_to_next=invites_to_next,
        unlimited_until=unlimited_until,
    )


class ReferralOperations:
    """
    Referral attribution plus the milestone reward engine.

    Constructed once per application (see ``build_services``) with the
    reward scheme it applies.
    """

    def __init__(self, scheme: ReferralRewardScheme = REFERRAL_REWARD_SCHEME) -> None:
        self.scheme = scheme

    # ─────────────────────────────────────────────────────────────────────────
    # Data access
    # ─────────────────────────────────────────────────────────────────────────

    async def count_conversions(self, db: AsyncSession, referrer_id: uuid_pkg.UUID) -> int:
        """Count users whose referred_by points at the referrer."""
        statement = (
            select(func.count())
            .select_from(User)
            .where(User.referred_by == referrer_id)  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        count = result.scalar()
        return int(count) if count else 0

    async def lock_user(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> User | None:
        """Load a user row with SELECT ... FOR UPDATE.

        Concurrent reward runs for the same referrer queue behind this lock.
        """
        statement = select(User).where(User.id == user_id).with_for_update()  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_granted_indices(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> set[int]:
        """Milestone indices already in the ledger for this campaign."""
        statement = select(ReferralMilestone.milestone_index).where(
            ReferralMilestone.user_id == user_id,  # type: ignore[arg-type]
            ReferralMilestone.milestone_size == self.scheme.milestone_size,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return set(result.scalars().all())

    async def get_months_granted_since(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        since: datetime,
    ) -> int:
        """Sum of granted_months for ledger rows granted at or after ``since``."""
        statement = select(
            func.coalesce(func.sum(ReferralMilestone.granted_months), 0)
        ).where(
            ReferralMilestone.user_id == user_id,  # type: ignore[arg-type]
            ReferralMilestone.granted_at >= since,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        total = result.scalar()
        return int(total) if total else 0

    async def get_referrer_from_uuid(
        self,
        db: AsyncSession,
        value: str | None,
    ) -> User | None:
        """Resolve a referral id from a signup link to an existing user."""
        referrer_id = parse_referral_uuid(value)
        if referrer_id is None:
            return None

        statement = select(User).where(User.id == referrer_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    # ─────────────────────────────────────────────────────────────────────────
    # Attribution
    # ─────────────────────────────────────────────────────────────────────────

    async def attach_referrer(
        self,
        db: AsyncSession,
        user: User,
        referrer_id: uuid_pkg.UUID,
    ) -> bool:
        """
        Set referred_by on a user that has none yet.

        Returns False (and changes nothing) when the user already has a
        referrer or would be referring themselves.
        """
        if user.referred_by is not None:
            return False
        if user.id == referrer_id:
            return False

        user.referred_by = referrer_id
        db.add(user)
        await db.flush()
        logger.info(f"Attributed user {user.id} to referrer {referrer_id}")
        return True

    async def get_referral_data(
        self,
        db: AsyncSession,
        user: User,
        frontend_url: str,
    ) -> ReferralData:
        data = ReferralData(
            referral_link=build_referral_link(frontend_url, user.id),
            has_been_referred=user.referred_by is not None,
        )
        if user.referred_by is None:
            return data

        statement = select(User).where(User.id == user.referred_by)  # type: ignore[arg-type]
        result = await db.execute(statement)
        referrer = result.scalar_one_or_none()
        if referrer is not None:
            data.referrer_id = referrer.id
            data.referrer_created_at = referrer.created_at
        return data

    async def get_referral_progress(
        self,
        db: AsyncSession,
        user: User,
    ) -> ReferralProgress:
        converted = await self.count_conversions(db, user.id)
        return compute_referral_progress(converted, user.unlimited_until, self.scheme)

    async def mark_referral_converted(
        self,
        db: AsyncSession,
        referred_user: User,
    ) -> User | None:
        """
        Flag the referrer of a user who just paid.

        Sets discounted and has_referred_paid_user on the referrer and
        returns it, or None when the user was not referred.
        """
        if referred_user.referred_by is None:
            return None

        statement = select(User).where(User.id == referred_user.referred_by)  # type: ignore[arg-type]
        result = await db.execute(statement)
        referrer = result.scalar_one_or_none()
        if referrer is None:
            logger.warning(
                f"Referrer {referred_user.referred_by} of user {referred_user.id} no longer exists"
            )
            return None

        referrer.discounted = True
        referrer.has_referred_paid_user = True
        db.add(referrer)
        await db.flush()
        logger.info(f"Referral converted: {referred_user.id} paid, referrer {referrer.id} discounted")
        return referrer

    # ─────────────────────────────────────────────────────────────────────────
    # Milestone reward engine
    # ─────────────────────────────────────────────────────────────────────────

    async def grant_milestone_rewards(
        self,
        db: AsyncSession,
        referrer_id: uuid_pkg.UUID,
        now: datetime | None = None,
    ) -> list[MilestoneGrant]:
        """
        Grant any newly earned referral milestones to a referrer.

        Runs in a SAVEPOINT with the referrer row locked, so the
        unlimited_until update and the ledger insert commit or roll back
        together. Storage errors are logged and swallowed: signup must
        not fail because reward granting did.

        Returns the grants made in this run (empty when nothing was due).
        """
        now = now or utc_now()
        try:
            async with db.begin_nested():
                return await self._grant_locked(db, referrer_id, now)
        except SQLAlchemyError as e:
            logger.error(f"Failed to grant referral rewards for {referrer_id}: {e}")
            await self._reload_user(db, referrer_id)
            return []

    async def _reload_user(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> None:
        """Re-read a user whose attributes were expired by a savepoint rollback.

        Callers keep using the same User instance afterwards, and lazy loads
        are not possible on an AsyncSession.
        """
        try:
            await db.get(User, user_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error(f"Failed to reload user {user_id} after rollback: {e}")

    async def _grant_locked(
        self,
        db: AsyncSession,
        referrer_id: uuid_pkg.UUID,
        now: datetime,
    ) -> list[MilestoneGrant]:
        referrer = await self.lock_user(db, referrer_id)
        if referrer is None:
            logger.warning(f"Referral reward skipped: referrer {referrer_id} not found")
            return []

        total_converted = await self.count_conversions(db, referrer_id)
        milestones_earned = min(total_converted, self.scheme.milestone_count)
        if milestones_earned == 0:
            return []

        granted = await self.get_granted_indices(db, referrer_id)
        window_start = now - timedelta(days=self.scheme.cap_window_days)
        months_in_window = await self.get_months_granted_since(db, referrer_id, window_start)

        grants: list[MilestoneGrant] = []
        for idx in range(1, milestones_earned + 1):
            if idx in granted:
                continue

            proposed = self.scheme.months_for(idx)
            remaining_cap = max(0, self.scheme.cap_months - months_in_window)
            grant_months = min(proposed, remaining_cap)
            if grant_months <= 0:
                logger.info(
                    f"Referral cap reached for {referrer_id}: "
                    f"{months_in_window} months in the last {self.scheme.cap_window_days} days"
                )
                break

            base = referrer.unlimited_until or now
            new_until = add_calendar_months(base, grant_months)

            referrer.unlimited_until = new_until
            db.add(referrer)
            db.add(
                ReferralMilestone(
                    user_id=referrer_id,
                    milestone_size=self.scheme.milestone_size,
                    milestone_index=idx,
                    granted_months=grant_months,
                    granted_at=now,
                )
            )
            await db.flush()

            months_in_window += grant_months
            grants.append(
                MilestoneGrant(
                    milestone_index=idx,
                    granted_months=grant_months,
                    unlimited_until=new_until,
                )
            )
            logger.info(
                f"Granted referral milestone {idx} ({grant_months} months) to {referrer_id}, "
                f"unlimited until {new_until.isoformat()}"
            )

        return grants
