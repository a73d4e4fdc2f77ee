"""API test fixtures — service container mocks + authenticated clients.

The app runs without a database or network: get_db yields a mocked session,
auth dependencies return mock users, and get_services returns a container of
mocks so each test can script Supabase, Stripe, OpenAI and Turnstile.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from dischargely.api.deps.auth import AuthUser
from dischargely.core.rate_limit import RateLimiter
from dischargely.domain.discount_operations import DiscountOperations
from dischargely.domain.referral_operations import ReferralOperations
from dischargely.services.captcha import CaptchaResult, TurnstileVerifier
from dischargely.services.container import Services
from dischargely.services.interpreter import DischargeSummaryInterpreter
from dischargely.services.stripe_service import StripeService
from dischargely.services.supabase import OtpService


@pytest.fixture
def mock_services() -> Services:
    """A container whose collaborators are all mocks (real rate limiter)."""
    captcha = MagicMock(spec=TurnstileVerifier)
    captcha.enabled = True
    captcha.verify = AsyncMock(return_value=CaptchaResult(success=True))

    referral_ops = MagicMock(spec=ReferralOperations)
    referral_ops.grant_milestone_rewards = AsyncMock(return_value=[])

    return Services(
        referral_ops=referral_ops,
        discount_ops=MagicMock(spec=DiscountOperations),
        otp_service=MagicMock(spec=OtpService),
        captcha=captcha,
        summary_interpreter=MagicMock(spec=DischargeSummaryInterpreter),
        stripe=MagicMock(spec=StripeService),
        rate_limiter=RateLimiter(),
    )


@pytest.fixture
def auth_user(test_user) -> AuthUser:
    return AuthUser(id=test_user.id, phone=test_user.phone)


def _override(app, mock_db, mock_services, current_user=None, auth_user=None) -> None:
    from dischargely.api.deps.auth import (
        get_current_auth_user,
        get_current_user,
        get_current_user_optional,
    )
    from dischargely.api.deps.services import get_services
    from dischargely.core.database import get_db

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_services] = lambda: mock_services
    app.dependency_overrides[get_current_user_optional] = lambda: current_user
    if current_user is not None:
        app.dependency_overrides[get_current_user] = lambda: current_user
    if auth_user is not None:
        app.dependency_overrides[get_current_auth_user] = lambda: auth_user


@pytest.fixture
async def api_client(mock_db, mock_services, test_user, auth_user):
    """HTTP client authenticated as test_user."""
    from dischargely.main import app

    _override(app, mock_db, mock_services, current_user=test_user, auth_user=auth_user)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def public_client(mock_db, mock_services):
    """HTTP client with no bearer token."""
    from dischargely.main import app

    _override(app, mock_db, mock_services)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

