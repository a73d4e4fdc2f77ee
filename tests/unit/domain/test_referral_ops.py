"""Unit tests for ReferralOperations — milestone engine, attribution, progress."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from dischargely.config import ReferralRewardScheme
from dischargely.domain.referral_operations import (
    ReferralOperations,
    build_referral_link,
    compute_referral_progress,
)
from dischargely.models.referral_milestone import ReferralMilestone

from tests.helpers.mock_factories import (
    make_mock_session,
    make_mock_user,
    mock_scalar_result,
)

NOW = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)


def _ledger_rows(db) -> list[ReferralMilestone]:
    """ReferralMilestone rows passed to db.add during a run."""
    return [
        call.args[0]
        for call in db.add.call_args_list
        if isinstance(call.args[0], ReferralMilestone)
    ]


# ---------------------------------------------------------------------------
# Milestone engine
# ---------------------------------------------------------------------------


class TestGrantMilestoneRewards:
    """Tests for the reward engine with data access stubbed out."""

    def setup_method(self):
        self.ops = ReferralOperations()
        self.db = make_mock_session()
        self.referrer = make_mock_user()
        self.referrer_id = self.referrer.id

    async def _run(
        self,
        converted: int,
        granted: set[int] | None = None,
        months_in_window: int = 0,
    ):
        with (
            patch.object(
                ReferralOperations, "lock_user", new_callable=AsyncMock
            ) as mock_lock,
            patch.object(
                ReferralOperations, "count_conversions", new_callable=AsyncMock
            ) as mock_count,
            patch.object(
                ReferralOperations, "get_granted_indices", new_callable=AsyncMock
            ) as mock_granted,
            patch.object(
                ReferralOperations, "get_months_granted_since", new_callable=AsyncMock
            ) as mock_window,
        ):
            mock_lock.return_value = self.referrer
            mock_count.return_value = converted
            mock_granted.return_value = granted or set()
            mock_window.return_value = months_in_window
            return await self.ops.grant_milestone_rewards(self.db, self.referrer_id, now=NOW)

    @pytest.mark.asyncio
    async def test_no_conversions_grants_nothing(self):
        grants = await self._run(converted=0)
        assert grants == []
        assert _ledger_rows(self.db) == []

    @pytest.mark.asyncio
    async def test_first_conversion_grants_one_month_from_now(self):
        grants = await self._run(converted=1)

        assert len(grants) == 1
        assert grants[0].milestone_index == 1
        assert grants[0].granted_months == 1
        assert grants[0].unlimited_until == datetime(2026, 2, 15, 9, 30, tzinfo=UTC)
        assert self.referrer.unlimited_until == datetime(2026, 2, 15, 9, 30, tzinfo=UTC)

        rows = _ledger_rows(self.db)
        assert len(rows) == 1
        assert rows[0].user_id == self.referrer_id
        assert rows[0].milestone_size == 3
        assert rows[0].milestone_index == 1
        assert rows[0].granted_months == 1
        assert rows[0].granted_at == NOW

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self):
        grants = await self._run(converted=1, granted={1}, months_in_window=1)
        assert grants == []
        assert _ledger_rows(self.db) == []

    @pytest.mark.asyncio
    async def test_second_milestone_extends_existing_window(self):
        self.referrer.unlimited_until = datetime(2026, 2, 15, tzinfo=UTC)

        grants = await self._run(converted=2, granted={1}, months_in_window=1)

        assert [g.milestone_index for g in grants] == [2]
        assert grants[0].granted_months == 2
        assert self.referrer.unlimited_until == datetime(2026, 4, 15, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_third_milestone_fits_exactly_under_cap(self):
        self.referrer.unlimited_until = datetime(2026, 4, 15, tzinfo=UTC)

        grants = await self._run(converted=3, granted={1, 2}, months_in_window=3)

        assert len(grants) == 1
        assert grants[0].granted_months == 3
        assert self.referrer.unlimited_until == datetime(2026, 7, 15, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_partial_grant_when_cap_nearly_reached(self):
        self.referrer.unlimited_until = datetime(2026, 3, 1, tzinfo=UTC)

        grants = await self._run(converted=3, granted={1, 2}, months_in_window=5)

        assert len(grants) == 1
        assert grants[0].milestone_index == 3
        assert grants[0].granted_months == 1
        assert self.referrer.unlimited_until == datetime(2026, 4, 1, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_nothing_granted_once_cap_reached(self):
        grants = await self._run(converted=3, granted={1, 2}, months_in_window=6)
        assert grants == []
        assert _ledger_rows(self.db) == []

    @pytest.mark.asyncio
    async def test_catches_up_multiple_milestones_in_one_run(self):
        grants = await self._run(converted=2)

        assert [(g.milestone_index, g.granted_months) for g in grants] == [(1, 1), (2, 2)]
        assert sum(r.granted_months for r in _ledger_rows(self.db)) == 3
        # Second grant builds on the first: now + 1 month + 2 months
        assert self.referrer.unlimited_until == datetime(2026, 4, 15, 9, 30, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_conversions_beyond_last_milestone_are_ignored(self):
        grants = await self._run(converted=7)
        assert [g.milestone_index for g in grants] == [1, 2, 3]
        assert sum(g.granted_months for g in grants) == 6

    @pytest.mark.asyncio
    async def test_cap_stops_loop_part_way(self):
        grants = await self._run(converted=3, months_in_window=4)
        # idx1 -> 1 month (5 total), idx2 -> 1 month (6 total), idx3 -> stop
        assert [(g.milestone_index, g.granted_months) for g in grants] == [(1, 1), (2, 1)]

    @pytest.mark.asyncio
    async def test_month_end_is_clamped(self):
        self.referrer.unlimited_until = datetime(2026, 1, 31, tzinfo=UTC)
        grants = await self._run(converted=1)
        assert grants[0].unlimited_until == datetime(2026, 2, 28, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_missing_referrer_returns_empty(self):
        self.referrer = None
        grants = await self._run(converted=1)
        assert grants == []

    @pytest.mark.asyncio
    async def test_storage_error_is_swallowed(self):
        with patch.object(
            ReferralOperations, "lock_user", new_callable=AsyncMock
        ) as mock_lock:
            mock_lock.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
            grants = await self.ops.grant_milestone_rewards(self.db, self.referrer_id, now=NOW)

        assert grants == []
        self.db.begin_nested.assert_called_once()
        self.db.get.assert_awaited_once()
        assert self.db.get.call_args.args[1] == self.referrer_id
        assert self.db.get.call_args.kwargs["populate_existing"] is True

    @pytest.mark.asyncio
    async def test_failed_reload_after_rollback_still_returns_empty(self):
        self.db.get.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        with patch.object(
            ReferralOperations, "lock_user", new_callable=AsyncMock
        ) as mock_lock:
            mock_lock.side_effect = OperationalError("SELECT", {}, Exception("gone"))
            grants = await self.ops.grant_milestone_rewards(self.db, self.referrer_id, now=NOW)

        assert grants == []

    @pytest.mark.asyncio
    async def test_custom_scheme(self):
        self.ops = ReferralOperations(
            scheme=ReferralRewardScheme(
                milestone_size=5,
                milestone_months=(2,),
                cap_months=2,
                cap_window_days=365,
            )
        )
        grants = await self._run(converted=4)
        assert [(g.milestone_index, g.granted_months) for g in grants] == [(1, 2)]
        assert _ledger_rows(self.db)[0].milestone_size == 5


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class TestComputeReferralProgress:
    def test_no_conversions(self):
        progress = compute_referral_progress(0, None)
        assert progress.milestones_earned == 0
        assert progress.invites_to_next == 0

    def test_counts_down_within_group(self):
        assert compute_referral_progress(1, None).invites_to_next == 2
        assert compute_referral_progress(2, None).invites_to_next == 1

    def test_exact_multiple_reports_zero(self):
        assert compute_referral_progress(3, None).invites_to_next == 0
        assert compute_referral_progress(6, None).invites_to_next == 0

    def test_milestones_capped_at_three(self):
        assert compute_referral_progress(10, None).milestones_earned == 3

    def test_passes_through_unlimited_until(self):
        until = datetime(2026, 5, 1, tzinfo=UTC)
        assert compute_referral_progress(1, until).unlimited_until == until


# ---------------------------------------------------------------------------
# Attribution
# ---------------------------------------------------------------------------


class TestAttachReferrer:
    def setup_method(self):
        self.ops = ReferralOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_sets_referrer_once(self):
        user = make_mock_user(referred_by=None)
        referrer_id = uuid.uuid4()

        assert await self.ops.attach_referrer(self.db, user, referrer_id) is True
        assert user.referred_by == referrer_id
        self.db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_referrer_is_never_overwritten(self):
        original = uuid.uuid4()
        user = make_mock_user(referred_by=original)

        assert await self.ops.attach_referrer(self.db, user, uuid.uuid4()) is False
        assert user.referred_by == original
        self.db.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self):
        user = make_mock_user(referred_by=None)
        assert await self.ops.attach_referrer(self.db, user, user.id) is False
        assert user.referred_by is None


class TestGetReferrerFromUuid:
    def setup_method(self):
        self.ops = ReferralOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_malformed_id_skips_lookup(self):
        assert await self.ops.get_referrer_from_uuid(self.db, "not-a-uuid") is None
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_existing_user(self):
        referrer = make_mock_user()
        self.db.execute.return_value = mock_scalar_result(referrer)
        assert await self.ops.get_referrer_from_uuid(self.db, str(referrer.id)) is referrer


class TestMarkReferralConverted:
    def setup_method(self):
        self.ops = ReferralOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_not_referred_returns_none(self):
        user = make_mock_user(referred_by=None)
        assert await self.ops.mark_referral_converted(self.db, user) is None
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_flags_referrer(self):
        referrer = make_mock_user()
        user = make_mock_user(referred_by=referrer.id)
        self.db.execute.return_value = mock_scalar_result(referrer)

        result = await self.ops.mark_referral_converted(self.db, user)

        assert result is referrer
        assert referrer.discounted is True
        assert referrer.has_referred_paid_user is True

    @pytest.mark.asyncio
    async def test_deleted_referrer_returns_none(self):
        user = make_mock_user(referred_by=uuid.uuid4())
        self.db.execute.return_value = mock_scalar_result(None)
        assert await self.ops.mark_referral_converted(self.db, user) is None


class TestReferralData:
    def setup_method(self):
        self.ops = ReferralOperations()
        self.db = make_mock_session()

    def test_link_format(self):
        user_id = uuid.uuid4()
        assert build_referral_link("https://app.example/", user_id) == (
            f"https://app.example/signup?ref={user_id}"
        )

    @pytest.mark.asyncio
    async def test_not_referred(self):
        user = make_mock_user(referred_by=None)
        data = await self.ops.get_referral_data(self.db, user, "https://app.example")
        assert data.has_been_referred is False
        assert data.referrer_id is None
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_includes_referrer_info(self):
        referrer = make_mock_user()
        user = make_mock_user(referred_by=referrer.id)
        self.db.execute.return_value = mock_scalar_result(referrer)

        data = await self.ops.get_referral_data(self.db, user, "https://app.example")

        assert data.has_been_referred is True
        assert data.referrer_id == referrer.id
        assert data.referrer_created_at == referrer.created_at
