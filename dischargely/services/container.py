"""Explicitly constructed application services.

Built once in the FastAPI lifespan and stored on ``app.state.services``.
Request handlers receive them through the ``get_services`` dependency, so
tests can swap the whole container via ``app.dependency_overrides``.
"""

from dataclasses import dataclass

from dischargely.config import REFERRAL_REWARD_SCHEME, Settings
from dischargely.core.rate_limit import RateLimiter
from dischargely.domain.discount_operations import DiscountOperations
from dischargely.domain.referral_operations import ReferralOperations
from dischargely.services.captcha import TurnstileVerifier
from dischargely.services.interpreter import DischargeSummaryInterpreter
from dischargely.services.stripe_service import StripeService, stripe_service
from dischargely.services.supabase import OtpService


@dataclass
class Services:
    referral_ops: ReferralOperations
    discount_ops: DiscountOperations
    otp_service: OtpService
    captcha: TurnstileVerifier
    summary_interpreter: DischargeSummaryInterpreter
    stripe: StripeService
    rate_limiter: RateLimiter


def build_services(settings: Settings) -> Services:
    return Services(
        referral_ops=ReferralOperations(scheme=REFERRAL_REWARD_SCHEME),
        discount_ops=DiscountOperations(),
        otp_service=OtpService(),
        captcha=TurnstileVerifier(secret_key=settings.turnstile_secret_key),
        summary_interpreter=DischargeSummaryInterpreter(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
        ),
        stripe=stripe_service,
        rate_limiter=RateLimiter(),
    )
