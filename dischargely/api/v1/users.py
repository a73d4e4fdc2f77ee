import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from stripe import StripeError

from dischargely.api.deps import AppServices, CurrentAuthUser, CurrentUser, DbSession
from dischargely.config import USAGE_LIMITS
from dischargely.core.dates import utc_now
from dischargely.core.exceptions import UpstreamServiceError
from dischargely.core.validation import parse_referral_uuid
from dischargely.domain import user_ops
from dischargely.domain.user_operations import has_unlimited_access
from dischargely.services.supabase import delete_auth_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


# ─────────────────────────────────────────────────────────────────────────────
# Request/Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


class UserCreateRequest(BaseModel):
    """Create the users row after phone verification, optionally with a referrer."""

    referred_by: str | None = None
    phone: str | None = None


class UserCreateResponse(BaseModel):
    user_id: str
    created: bool
    referral_attached: bool
    milestones_granted: int


class UserExistsResponse(BaseModel):
    exists: bool


class UsageStatusResponse(BaseModel):
    daily_usage_count: int
    daily_limit: int
    remaining_today: int | None  # None when unlimited
    last_used_at: str | None
    is_paid: bool
    unlimited_until: datetime | None
    has_unlimited_access: bool


class ReferralProgressResponse(BaseModel):
    converted_count: int
    milestones_earned: int
    invites_to_next: int
    unlimited_until: datetime | None


class UserDataResponse(BaseModel):
    id: str
    phone: str | None
    is_paid: bool
    discounted: bool
    has_referred_paid_user: bool
    unlimited_until: datetime | None
    referred_by: str | None
    invite_message: str | None
    created_at: datetime
    referral_progress: ReferralProgressResponse


class InviteMessageUpdate(BaseModel):
    message: str


class InviteMessageResponse(BaseModel):
    message: str


# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────


@router.post("", response_model=UserCreateResponse)
async def create_or_attach_user(
    data: UserCreateRequest,
    auth_user: CurrentAuthUser,
    db: DbSession,
    services: AppServices,
) -> UserCreateResponse:
    """
    Create the users row for a verified phone, or attach a referrer to it.

    The referrer is only ever set once. When attribution happens the
    referrer's milestone rewards are recomputed straight away.
    """
    referrer_id = None
    if data.referred_by:
        referrer_id = parse_referral_uuid(data.referred_by)
        if referrer_id is None:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid referral code")
        if referrer_id == auth_user.id:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "You cannot refer yourself")
        referrer = await services.referral_ops.get_referrer_from_uuid(db, data.referred_by)
        if referrer is None:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Referrer not found")

    user = await user_ops.get_by_id(db, auth_user.id)
    created = user is None
    attached = False

    if user is None:
        user = await user_ops.create(
            db,
            user_id=auth_user.id,
            phone=data.phone or auth_user.phone,
            referred_by=referrer_id,
        )
        attached = referrer_id is not None
    elif referrer_id is not None:
        attached = await services.referral_ops.attach_referrer(db, user, referrer_id)

    grants = []
    if attached and referrer_id is not None:
        grants = await services.referral_ops.grant_milestone_rewards(db, referrer_id)

    await db.commit()

    return UserCreateResponse(
        user_id=str(user.id),
        created=created,
        referral_attached=attached,
        milestones_granted=len(grants),
    )


@router.get("/me/exists", response_model=UserExistsResponse)
async def user_exists(auth_user: CurrentAuthUser, db: DbSession) -> UserExistsResponse:
    """Whether sign-up finished (the users row exists) for this token."""
    user = await user_ops.get_by_id(db, auth_user.id)
    return UserExistsResponse(exists=user is not None)


@router.get("/me/status", response_model=UsageStatusResponse)
async def get_usage_status(current_user: CurrentUser, db: DbSession) -> UsageStatusResponse:
    now = utc_now()
    usage = await user_ops.get_usage_status(db, current_user, now.date())
    await db.commit()

    unlimited = has_unlimited_access(current_user, now)
    daily_limit = USAGE_LIMITS.free_daily_summaries
    return UsageStatusResponse(
        daily_usage_count=usage.daily_usage_count,
        daily_limit=daily_limit,
        remaining_today=None if unlimited else max(0, daily_limit - usage.daily_usage_count),
        last_used_at=usage.last_used_at.isoformat() if usage.last_used_at else None,
        is_paid=usage.is_paid,
        unlimited_until=usage.unlimited_until,
        has_unlimited_access=unlimited,
    )


@router.get("/me/data", response_model=UserDataResponse)
async def get_user_data(
    current_user: CurrentUser,
    db: DbSession,
    services: AppServices,
) -> UserDataResponse:
    """
    Profile plus referral progress.

    Re-runs the milestone engine first so a grant missed at signup time
    (for example after a storage error) is picked up on the next visit.
    """
    await services.referral_ops.grant_milestone_rewards(db, current_user.id)
    progress = await services.referral_ops.get_referral_progress(db, current_user)
    await db.commit()

    return UserDataResponse(
        id=str(current_user.id),
        phone=current_user.phone,
        is_paid=current_user.is_paid,
        discounted=current_user.discounted,
        has_referred_paid_user=current_user.has_referred_paid_user,
        unlimited_until=current_user.unlimited_until,
        referred_by=str(current_user.referred_by) if current_user.referred_by else None,
        invite_message=current_user.invite_message,
        created_at=current_user.created_at,
        referral_progress=ReferralProgressResponse(
            converted_count=progress.converted_count,
            milestones_earned=progress.milestones_earned,
            invites_to_next=progress.invites_to_next,
            unlimited_until=progress.unlimited_until,
        ),
    )


@router.put("/me/invite-message", response_model=InviteMessageResponse)
async def update_invite_message(
    data: InviteMessageUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> InviteMessageResponse:
    try:
        message = await user_ops.update_invite_message(db, current_user, data.message)
    except ValueError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e)) from e

    await db.commit()
    return InviteMessageResponse(message=message)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_current_user(
    current_user: CurrentUser,
    db: DbSession,
    services: AppServices,
) -> None:
    """
    Delete the account and everything stored for it.

    Order: cancel the Stripe subscription, delete the Stripe customer
    (best effort), delete records and the users row, then remove the
    Supabase auth user.
    """
    user_id = str(current_user.id)

    if current_user.stripe_subscription_id:
        try:
            services.stripe.cancel_subscription_for_deletion(current_user.stripe_subscription_id)
        except StripeError as e:
            raise UpstreamServiceError("Stripe") from e

    if current_user.stripe_customer_id:
        services.stripe.delete_customer(current_user.stripe_customer_id)

    await user_ops.delete_user_data(db, current_user)
    await db.commit()

    try:
        await delete_auth_user(user_id)
    except Exception as e:
        logger.error(f"Failed to delete auth user {user_id}: {e}")
        raise UpstreamServiceError("Supabase") from e

    logger.info(f"Account deleted: {user_id}")
