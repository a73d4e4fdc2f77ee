"""Referral API endpoint tests."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import pytest
from httpx import AsyncClient

from dischargely.domain.discount_operations import NO_DISCOUNT, DiscountStatus
from dischargely.domain.referral_operations import ReferralData

from tests.helpers.mock_factories import make_mock_user


@pytest.mark.anyio
async def test_validate_known_referrer(public_client: AsyncClient, mock_services):
    mock_services.referral_ops.get_referrer_from_uuid.return_value = make_mock_user()

    resp = await public_client.post(
        "/api/v1/referrals/validate", json={"referral_id": str(uuid.uuid4())}
    )

    assert resp.status_code == 200
    assert resp.json() == {"valid": True}


@pytest.mark.anyio
async def test_validate_unknown_referrer(public_client: AsyncClient, mock_services):
    mock_services.referral_ops.get_referrer_from_uuid.return_value = None
    resp = await public_client.post("/api/v1/referrals/validate", json={"referral_id": "nope"})
    assert resp.json() == {"valid": False}


@pytest.mark.anyio
async def test_referral_data(api_client: AsyncClient, mock_services, test_user):
    referrer_id = uuid.uuid4()
    created = datetime(2025, 12, 1, tzinfo=UTC)
    mock_services.referral_ops.get_referral_data.return_value = ReferralData(
        referral_link=f"http://localhost:3000/signup?ref={test_user.id}",
        has_been_referred=True,
        referrer_id=referrer_id,
        referrer_created_at=created,
    )

    resp = await api_client.get("/api/v1/referrals/data")

    assert resp.status_code == 200
    data = resp.json()
    assert data["referral_link"].endswith(f"/signup?ref={test_user.id}")
    assert data["has_been_referred"] is True
    assert data["referrer_info"]["id"] == str(referrer_id)


@pytest.mark.anyio
async def test_referral_data_not_referred(api_client: AsyncClient, mock_services, test_user):
    mock_services.referral_ops.get_referral_data.return_value = ReferralData(
        referral_link="http://localhost:3000/signup?ref=x",
        has_been_referred=False,
    )
    resp = await api_client.get("/api/v1/referrals/data")
    assert resp.json()["referrer_info"] is None


@pytest.mark.anyio
async def test_discount_status(api_client: AsyncClient, mock_services, test_user):
    mock_services.discount_ops.get_discount_status.return_value = DiscountStatus(
        has_discount=True, discount_percentage=50
    )

    resp = await api_client.get("/api/v1/referrals/discount-status")

    assert resp.status_code == 200
    assert resp.json() == {"has_discount": True, "discount_percentage": 50}
    assert mock_services.discount_ops.get_discount_status.call_args.args[1] == test_user.id


@pytest.mark.anyio
async def test_no_discount(api_client: AsyncClient, mock_services):
    mock_services.discount_ops.get_discount_status.return_value = NO_DISCOUNT
    resp = await api_client.get("/api/v1/referrals/discount-status")
    assert resp.json() == {"has_discount": False, "discount_percentage": 0}
