"""Phone OTP sign-in endpoints (public)."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from dischargely.api.deps import AppServices
from dischargely.core.phone import normalize_uk_phone_number, validate_uk_phone_number
from dischargely.core.rate_limit import (
    RESEND_OTP_LIMIT,
    SEND_OTP_LIMIT,
    VERIFY_OTP_LIMIT,
    RateLimitConfig,
    client_id_for,
)
from dischargely.core.validation import validate_otp
from dischargely.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ─────────────────────────────────────────────────────────────────────────────
# Request/Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


class SendOtpRequest(BaseModel):
    phone_number: str
    captcha_token: str | None = None


class ResendOtpRequest(BaseModel):
    phone_number: str


class VerifyOtpRequest(BaseModel):
    phone_number: str
    otp: str


class OtpSentResponse(BaseModel):
    success: bool
    remaining: int
    is_new_user: bool = False


class VerifyOtpResponse(BaseModel):
    success: bool
    session: dict[str, Any]
    user: dict[str, Any]
    remaining: int


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _normalized_phone(raw: str) -> str:
    error = validate_uk_phone_number(raw)
    phone = normalize_uk_phone_number(raw)
    if error or not phone:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, error or "Invalid phone number")
    return phone


def _check_limit(
    services: Services,
    request: Request,
    phone: str,
    endpoint_key: str,
    config: RateLimitConfig,
) -> int:
    """Record the attempt and return how many remain in the window."""
    client_id = client_id_for(request, phone)
    services.rate_limiter.check_rate_limit(client_id, endpoint_key, config)
    return services.rate_limiter.get_remaining(client_id, endpoint_key, config)


# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/send-otp", response_model=OtpSentResponse)
async def send_otp(
    data: SendOtpRequest,
    request: Request,
    services: AppServices,
) -> OtpSentResponse:
    """
    Send a sign-in code by SMS.

    Existing accounts get a sign-in code; unknown numbers are signed up.
    Requires a Turnstile token. Limited to 3 requests per 15 minutes.
    """
    if not data.captcha_token and services.captcha.enabled:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "CAPTCHA verification is required")

    phone = _normalized_phone(data.phone_number)
    remaining = _check_limit(services, request, phone, "send_otp", SEND_OTP_LIMIT)

    remote_ip = client_id_for(request).removeprefix("ip:")
    captcha = await services.captcha.verify(data.captcha_token, remote_ip=remote_ip)
    if not captcha.success:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, captcha.error or "CAPTCHA verification failed")

    result = await services.otp_service.sign_in_or_sign_up(phone)
    if not result.success:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, result.error or "Failed to send code")

    return OtpSentResponse(success=True, remaining=remaining, is_new_user=result.is_new_user)


@router.post("/resend-otp", response_model=OtpSentResponse)
async def resend_otp(
    data: ResendOtpRequest,
    request: Request,
    services: AppServices,
) -> OtpSentResponse:
    """Send the code again. Limited to 2 requests per 5 minutes."""
    phone = _normalized_phone(data.phone_number)
    remaining = _check_limit(services, request, phone, "resend_otp", RESEND_OTP_LIMIT)

    result = await services.otp_service.resend(phone)
    if not result.success:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, result.error or "Failed to resend code")

    return OtpSentResponse(success=True, remaining=remaining, is_new_user=result.is_new_user)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    data: VerifyOtpRequest,
    request: Request,
    services: AppServices,
) -> VerifyOtpResponse:
    """Exchange an SMS code for a session. Limited to 5 attempts per 10 minutes."""
    phone = _normalized_phone(data.phone_number)
    otp_error = validate_otp(data.otp)
    if otp_error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, otp_error)

    remaining = _check_limit(services, request, phone, "verify_otp", VERIFY_OTP_LIMIT)

    result = await services.otp_service.verify(phone, data.otp.strip())
    if not result.success or result.session is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, result.error or "Verification failed")

    logger.info(f"Phone verified for user {result.user.get('id')}")
    return VerifyOtpResponse(
        success=True,
        session=result.session,
        user=result.user,
        remaining=remaining,
    )
