"""Billing API endpoints for the monthly subscription via Stripe."""

import logging
import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from stripe import StripeError

from dischargely.api.deps import AppServices, CurrentUser, DbSession
from dischargely.config import settings
from dischargely.core.exceptions import NotFoundError, UpstreamServiceError
from dischargely.domain import user_ops
from dischargely.models.user import User
from dischargely.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])

# Stripe subscription status -> is_paid
PAID_STATUSES = {"active"}
UNPAID_STATUSES = {"canceled", "unpaid", "past_due"}


# ─────────────────────────────────────────────────────────────────────────────
# Request/Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


class CheckoutResponse(BaseModel):
    checkout_url: str


class PortalResponse(BaseModel):
    portal_url: str


class PaymentMethodInfo(BaseModel):
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None


class SubscriptionResponse(BaseModel):
    """Subscription details; only has_subscription is set when there is none."""

    has_subscription: bool
    status: str | None = None
    current_period_start: int | None = None
    current_period_end: int | None = None
    cancel_at_period_end: bool = False
    canceled_at: int | None = None
    price: int | None = None  # minor units
    currency: str | None = None
    interval: str | None = None
    payment_method: PaymentMethodInfo | None = None
    customer_email: str | None = None


class CancelRequest(BaseModel):
    cancel_immediately: bool = False


class CancelResponse(BaseModel):
    success: bool
    cancel_at_period_end: bool
    canceled_at: int | None = None
    current_period_end: int | None = None


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _require_billing() -> None:
    if not settings.stripe_enabled:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Billing is not configured")


# ─────────────────────────────────────────────────────────────────────────────
# Subscription Endpoints
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    current_user: CurrentUser,
    services: AppServices,
) -> CheckoutResponse:
    """
    Start a Stripe Checkout session for the monthly plan.

    Referred users get the referral coupon applied at checkout.
    """
    _require_billing()

    try:
        checkout_url = services.stripe.create_checkout_session(
            current_user.id,
            apply_referral_coupon=current_user.referred_by is not None,
        )
    except ValueError as e:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(e)) from e
    except StripeError as e:
        raise UpstreamServiceError("Stripe") from e

    return CheckoutResponse(checkout_url=checkout_url)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    current_user: CurrentUser,
    services: AppServices,
) -> SubscriptionResponse:
    if (
        not current_user.is_paid
        or not current_user.stripe_customer_id
        or not current_user.stripe_subscription_id
    ):
        return SubscriptionResponse(has_subscription=False)

    try:
        details = services.stripe.get_subscription_details(
            current_user.stripe_customer_id,
            current_user.stripe_subscription_id,
        )
    except StripeError as e:
        raise UpstreamServiceError("Stripe") from e

    return SubscriptionResponse(has_subscription=True, **details)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_subscription(
    data: CancelRequest,
    current_user: CurrentUser,
    services: AppServices,
) -> CancelResponse:
    """Cancel at the end of the billing period, or immediately on request."""
    if not current_user.stripe_subscription_id:
        raise NotFoundError("Subscription")

    try:
        result = services.stripe.cancel_subscription(
            current_user.stripe_subscription_id,
            cancel_immediately=data.cancel_immediately,
        )
    except StripeError as e:
        raise UpstreamServiceError("Stripe") from e

    return CancelResponse(success=True, **result)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    current_user: CurrentUser,
    services: AppServices,
) -> PortalResponse:
    """Open the Stripe Customer Portal (payment method, invoices)."""
    if not current_user.stripe_customer_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "No billing account found")

    try:
        portal_url = services.stripe.create_portal_session(
            current_user.stripe_customer_id,
            return_url=f"{settings.frontend_url}/billing",
        )
    except StripeError as e:
        raise UpstreamServiceError("Stripe") from e

    return PortalResponse(portal_url=portal_url)


# ─────────────────────────────────────────────────────────────────────────────
# Stripe Webhook
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/webhooks/stripe")
async def handle_stripe_webhook(
    request: Request,
    db: DbSession,
    services: AppServices,
) -> dict[str, str]:
    """
    Handle Stripe webhook events.

    No authentication required (verified by Stripe signature).
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = services.stripe.construct_webhook_event(payload, sig_header)
    except ValueError:
        raise HTTPException(400, "Invalid webhook signature") from None

    event_type = str(event.get("type", ""))
    event_id = str(event.get("id", ""))
    data = event.get("data", {})
    obj = data.get("object", {}) if isinstance(data, dict) else {}

    logger.info(f"Received Stripe webhook: {event_type} ({event_id})")

    if event_type == "checkout.session.completed":
        await _handle_checkout_completed(db, services, obj)
    elif event_type == "customer.subscription.created":
        await _handle_subscription_created(db, services, obj)
    elif event_type == "customer.subscription.updated":
        await _handle_subscription_updated(db, obj)
    elif event_type == "customer.subscription.deleted":
        await _set_paid_for_customer(db, obj.get("customer"), False)
    elif event_type == "invoice.payment_succeeded":
        await _set_paid_for_customer(db, obj.get("customer"), True)
    elif event_type == "invoice.payment_failed":
        await _set_paid_for_customer(db, obj.get("customer"), False)
    else:
        logger.debug(f"Unhandled webhook event type: {event_type}")

    await db.commit()
    return {"status": "ok"}


# ─────────────────────────────────────────────────────────────────────────────
# Webhook Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def _handle_checkout_completed(
    db: DbSession,
    services: Services,
    session: dict[str, Any],
) -> None:
    """Activate the subscription and credit whoever referred this user."""
    metadata = session.get("metadata") or {}
    raw_user_id = metadata.get("user_id") if isinstance(metadata, dict) else None
    try:
        user_id = uuid_pkg.UUID(str(raw_user_id))
    except ValueError:
        logger.error(f"Checkout session without a valid user_id: {raw_user_id!r}")
        return

    user = await user_ops.get_by_id(db, user_id)
    if not user:
        logger.error(f"Checkout completed for unknown user {user_id}")
        return

    await user_ops.update(
        db,
        user,
        {
            "stripe_customer_id": session.get("customer"),
            "stripe_subscription_id": session.get("subscription"),
            "is_paid": True,
        },
    )
    logger.info(f"User {user_id} subscribed ({session.get('subscription')})")

    await convert_referral(db, services, user)


async def convert_referral(db: DbSession, services: Services, referred_user: User) -> None:
    """
    Reward the referrer of a user who just paid.

    Flags the referrer as discounted and applies the referral coupon to
    their own subscription if they have one. Failures are logged only.
    """
    if referred_user.referred_by is None:
        return

    try:
        async with db.begin_nested():
            referrer = await services.referral_ops.mark_referral_converted(db, referred_user)
    except SQLAlchemyError as e:
        logger.error(f"Failed to mark referral converted for {referred_user.id}: {e}")
        return

    if referrer is None or not referrer.stripe_subscription_id:
        return

    if not services.stripe.apply_referral_discount(referrer.stripe_subscription_id):
        logger.warning(f"Referral discount not applied to referrer {referrer.id}")


async def _handle_subscription_created(
    db: DbSession,
    services: Services,
    subscription: dict[str, Any],
) -> None:
    user = await _user_for_customer(db, subscription.get("customer"))
    if not user:
        return

    await user_ops.update(
        db,
        user,
        {"is_paid": True, "stripe_subscription_id": subscription.get("id")},
    )

    if user.discounted and subscription.get("id"):
        services.stripe.apply_referral_discount(subscription["id"])


async def _handle_subscription_updated(db: DbSession, subscription: dict[str, Any]) -> None:
    sub_status = subscription.get("status")
    if sub_status in PAID_STATUSES:
        await _set_paid_for_customer(db, subscription.get("customer"), True)
    elif sub_status in UNPAID_STATUSES:
        await _set_paid_for_customer(db, subscription.get("customer"), False)
    else:
        logger.debug(f"Ignoring subscription status {sub_status}")


async def _set_paid_for_customer(db: DbSession, customer_id: str | None, is_paid: bool) -> None:
    user = await _user_for_customer(db, customer_id)
    if not user:
        return
    await user_ops.update(db, user, {"is_paid": is_paid})
    logger.info(f"User {user.id} is_paid={is_paid}")


async def _user_for_customer(db: DbSession, customer_id: str | None) -> User | None:
    if not customer_id:
        return None
    user = await user_ops.get_by_stripe_customer(db, customer_id)
    if not user:
        logger.warning(f"No user for Stripe customer {customer_id}")
    return user
