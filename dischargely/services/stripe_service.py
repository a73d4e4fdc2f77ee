"""Stripe payment service for the single monthly subscription."""

import json
import logging
import uuid as uuid_pkg
from typing import Any

import stripe
from stripe import StripeError

from dischargely.config import REFERRAL_DISCOUNT_PERCENTAGE, settings

logger = logging.getLogger(__name__)

# Initialize Stripe with secret key
stripe.api_key = settings.stripe_secret_key

REFERRAL_COUPON_ID = "REFERRAL_DISCOUNT_50"


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a StripeObject or plain dict, tolerating absence."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


class StripeService:
    """
    Handles all Stripe API interactions.

    All methods are static and stateless. Stripe SDK handles connection pooling.

    Pricing model: one monthly price (STRIPE_PRICE_ID). Referred users get the
    referral coupon at checkout; referrers whose referral pays get a 50%
    forever coupon on their own subscription.
    """

    @staticmethod
    def create_checkout_session(
        user_id: uuid_pkg.UUID,
        apply_referral_coupon: bool = False,
    ) -> str:
        """
        Create a Stripe Checkout session for the monthly subscription.

        Returns the checkout session URL.
        """
        if not settings.stripe_price_id:
            raise ValueError("No subscription price configured (STRIPE_PRICE_ID)")

        params: dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": settings.stripe_price_id, "quantity": 1}],
            "metadata": {"user_id": str(user_id)},
            "success_url": f"{settings.frontend_url}/?checkout=success",
            "cancel_url": f"{settings.frontend_url}/?checkout=cancel",
        }
        if apply_referral_coupon and settings.stripe_referral_coupon_id:
            params["discounts"] = [{"coupon": settings.stripe_referral_coupon_id}]

        try:
            session = stripe.checkout.Session.create(**params)
            logger.info(
                f"Created checkout session for user {user_id}, "
                f"referral_coupon={'discounts' in params}"
            )
            return session.url or ""
        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise

    @staticmethod
    def create_portal_session(customer_id: str, return_url: str) -> str:
        """
        Create a Stripe Customer Portal session for self-service billing.

        Returns the portal session URL.
        """
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
            return session.url
        except StripeError as e:
            logger.error(f"Failed to create portal session: {e}")
            raise

    @staticmethod
    def get_subscription_details(
        stripe_customer_id: str,
        stripe_subscription_id: str,
    ) -> dict[str, Any]:
        """
        Fetch the subscription, its price and card, and the customer email.

        Period dates are read from the first subscription item, falling back
        to the subscription itself (older API versions).
        """
        try:
            sub = stripe.Subscription.retrieve(
                stripe_subscription_id,
                expand=["default_payment_method", "items.data.price"],
            )
            customer = stripe.Customer.retrieve(stripe_customer_id)
        except StripeError as e:
            logger.error(f"Failed to retrieve subscription {stripe_subscription_id}: {e}")
            raise

        items = _field(_field(sub, "items"), "data", [])
        first_item = items[0] if items else None
        price = _field(first_item, "price")

        payment_method = None
        card = _field(_field(sub, "default_payment_method"), "card")
        if card is not None:
            payment_method = {
                "brand": _field(card, "brand"),
                "last4": _field(card, "last4"),
                "exp_month": _field(card, "exp_month"),
                "exp_year": _field(card, "exp_year"),
            }

        return {
            "status": _field(sub, "status"),
            "current_period_start": _field(
                first_item, "current_period_start", _field(sub, "current_period_start")
            ),
            "current_period_end": _field(
                first_item, "current_period_end", _field(sub, "current_period_end")
            ),
            "cancel_at_period_end": bool(_field(sub, "cancel_at_period_end", False)),
            "canceled_at": _field(sub, "canceled_at"),
            "price": _field(price, "unit_amount", 0),
            "currency": _field(price, "currency", "gbp"),
            "interval": _field(_field(price, "recurring"), "interval", "month"),
            "payment_method": payment_method,
            "customer_email": _field(customer, "email"),
        }

    @staticmethod
    def cancel_subscription(
        stripe_subscription_id: str,
        cancel_immediately: bool = False,
    ) -> dict[str, Any]:
        """Cancel a subscription now, or at the end of the current period."""
        try:
            if cancel_immediately:
                sub = stripe.Subscription.cancel(stripe_subscription_id)
            else:
                sub = stripe.Subscription.modify(
                    stripe_subscription_id,
                    cancel_at_period_end=True,
                )
            logger.info(
                f"Canceled subscription {stripe_subscription_id} "
                f"({'immediately' if cancel_immediately else 'at period end'})"
            )
        except StripeError as e:
            logger.error(f"Failed to cancel subscription: {e}")
            raise

        return {
            "cancel_at_period_end": bool(_field(sub, "cancel_at_period_end", False)),
            "canceled_at": _field(sub, "canceled_at"),
            "current_period_end": _field(sub, "current_period_end"),
        }

    @staticmethod
    def cancel_subscription_for_deletion(stripe_subscription_id: str) -> None:
        """
        Cancel a subscription immediately during account deletion.

        A subscription Stripe no longer knows about is treated as already gone.
        """
        try:
            stripe.Subscription.cancel(stripe_subscription_id)
            logger.info(f"Canceled subscription {stripe_subscription_id} for account deletion")
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                logger.info(f"Subscription {stripe_subscription_id} already removed from Stripe")
                return
            logger.error(f"Failed to cancel subscription for deletion: {e}")
            raise
        except StripeError as e:
            logger.error(f"Failed to cancel subscription for deletion: {e}")
            raise

    @staticmethod
    def delete_customer(stripe_customer_id: str) -> bool:
        """Delete a Stripe customer. Returns False on failure (never raises)."""
        try:
            stripe.Customer.delete(stripe_customer_id)
            logger.info(f"Deleted Stripe customer {stripe_customer_id}")
            return True
        except StripeError as e:
            logger.warning(f"Failed to delete Stripe customer {stripe_customer_id}: {e}")
            return False

    @staticmethod
    def construct_webhook_event(payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook signature and return the event as plain dicts.

        Raises ValueError if signature verification fails.
        """
        try:
            stripe.Webhook.construct_event(  # type: ignore[no-untyped-call]
                payload,
                signature,
                settings.stripe_webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValueError("Invalid webhook signature") from None
        except ValueError as e:
            logger.warning(f"Invalid webhook payload: {e}")
            raise ValueError("Invalid webhook payload") from None

        return json.loads(payload)

    # ─────────────────────────────────────────────────────────────────────────────
    # Referral Coupon Management
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def get_or_create_referral_coupon() -> str:
        """
        Get or create the referrer discount coupon (50% off, forever).

        Returns the coupon ID.
        """
        if settings.stripe_referral_coupon_id:
            try:
                stripe.Coupon.retrieve(settings.stripe_referral_coupon_id)
                return settings.stripe_referral_coupon_id
            except StripeError:
                logger.warning(
                    f"Configured coupon {settings.stripe_referral_coupon_id} not found, creating new one"
                )

        try:
            coupon = stripe.Coupon.create(
                id=REFERRAL_COUPON_ID,  # Idempotent ID
                percent_off=REFERRAL_DISCOUNT_PERCENTAGE,
                duration="forever",
                name="Referral Discount",
                metadata={
                    "discount_type": "referral",
                    "discount_percentage": str(REFERRAL_DISCOUNT_PERCENTAGE),
                },
            )
            logger.info(f"Created referral coupon: {coupon.id}")
            return coupon.id
        except StripeError as e:
            if "already exists" in str(e).lower():
                return REFERRAL_COUPON_ID
            logger.error(f"Failed to create referral coupon: {e}")
            raise

    @staticmethod
    def apply_coupon_to_subscription(
        stripe_subscription_id: str,
        coupon_id: str,
    ) -> bool:
        """
        Apply a coupon to an existing subscription.

        Returns True if successful, False otherwise.
        """
        try:
            stripe.Subscription.modify(
                stripe_subscription_id,
                discounts=[{"coupon": coupon_id}],
            )
            logger.info(f"Applied coupon {coupon_id} to subscription {stripe_subscription_id}")
            return True
        except StripeError as e:
            logger.error(f"Failed to apply coupon to subscription: {e}")
            return False

    @staticmethod
    def apply_referral_discount(stripe_subscription_id: str) -> bool:
        """Apply the referrer discount coupon to a subscription. Never raises."""
        try:
            coupon_id = StripeService.get_or_create_referral_coupon()
        except StripeError as e:
            logger.error(f"Failed to apply referral discount: {e}")
            return False
        return StripeService.apply_coupon_to_subscription(stripe_subscription_id, coupon_id)


# Singleton instance
stripe_service = StripeService()
