"""Referral API endpoints: link validation, invite data and the referrer discount."""

import logging
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from dischargely.api.deps import AppServices, CurrentUser, DbSession
from dischargely.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["referrals"])


# ─────────────────────────────────────────────────────────────────────────────
# Request/Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


class ValidateReferralRequest(BaseModel):
    referral_id: str


class ValidateReferralResponse(BaseModel):
    """Public: whether a ?ref= id belongs to an existing user."""

    valid: bool


class ReferrerInfo(BaseModel):
    id: str
    created_at: datetime | None = None


class ReferralDataResponse(BaseModel):
    referral_link: str
    has_been_referred: bool
    referrer_info: ReferrerInfo | None = None


class DiscountStatusResponse(BaseModel):
    has_discount: bool
    discount_percentage: int


# ─────────────────────────────────────────────────────────────────────────────
# Public Endpoints (no auth required)
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/validate", response_model=ValidateReferralResponse)
async def validate_referral(
    data: ValidateReferralRequest,
    db: DbSession,
    services: AppServices,
) -> ValidateReferralResponse:
    """
    Public endpoint: check a referral id from a signup link.

    Used by the signup page before the referral is sent with POST /users.
    """
    referrer = await services.referral_ops.get_referrer_from_uuid(db, data.referral_id)
    return ValidateReferralResponse(valid=referrer is not None)


# ─────────────────────────────────────────────────────────────────────────────
# Authenticated Endpoints
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/data", response_model=ReferralDataResponse)
async def get_referral_data(
    current_user: CurrentUser,
    db: DbSession,
    services: AppServices,
) -> ReferralDataResponse:
    data = await services.referral_ops.get_referral_data(db, current_user, settings.frontend_url)

    referrer_info = None
    if data.referrer_id is not None:
        referrer_info = ReferrerInfo(id=str(data.referrer_id), created_at=data.referrer_created_at)

    return ReferralDataResponse(
        referral_link=data.referral_link,
        has_been_referred=data.has_been_referred,
        referrer_info=referrer_info,
    )


@router.get("/discount-status", response_model=DiscountStatusResponse)
async def get_discount_status(
    current_user: CurrentUser,
    db: DbSession,
    services: AppServices,
) -> DiscountStatusResponse:
    """The discount earned by having a referral convert to a paid plan."""
    discount = await services.discount_ops.get_discount_status(db, current_user.id)
    return DiscountStatusResponse(
        has_discount=discount.has_discount,
        discount_percentage=discount.discount_percentage,
    )
