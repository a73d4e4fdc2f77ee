"""Unit tests for UserOperations — daily quota, usage reset, invite message."""

from datetime import UTC, date, datetime, timedelta

import pytest

from dischargely.core.exceptions import QuotaExceededError
from dischargely.domain.user_operations import (
    INVITE_LINK_TOKEN,
    UserOperations,
    has_unlimited_access,
    sanitize_invite_message,
)

from tests.helpers.mock_factories import make_mock_session, make_mock_user

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
TODAY = NOW.date()
YESTERDAY = TODAY - timedelta(days=1)


class TestHasUnlimitedAccess:
    def test_free_user(self):
        assert has_unlimited_access(make_mock_user(), NOW) is False

    def test_paid_user(self):
        assert has_unlimited_access(make_mock_user(is_paid=True), NOW) is True

    def test_active_referral_window(self):
        user = make_mock_user(unlimited_until=NOW + timedelta(days=1))
        assert has_unlimited_access(user, NOW) is True

    def test_expired_referral_window(self):
        user = make_mock_user(unlimited_until=NOW - timedelta(seconds=1))
        assert has_unlimited_access(user, NOW) is False


class TestConsumeDailyQuota:
    def setup_method(self):
        self.ops = UserOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_first_use_today_resets_counter_to_one(self):
        user = make_mock_user(daily_usage_count=3, last_used_at=YESTERDAY)

        await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)

        assert user.daily_usage_count == 1
        assert user.last_used_at == TODAY
        self.db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_never_used_before(self):
        user = make_mock_user(daily_usage_count=0, last_used_at=None)
        await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)
        assert user.daily_usage_count == 1

    @pytest.mark.asyncio
    async def test_increments_within_quota(self):
        user = make_mock_user(daily_usage_count=2, last_used_at=TODAY)
        await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)
        assert user.daily_usage_count == 3

    @pytest.mark.asyncio
    async def test_raises_when_quota_used_up(self):
        user = make_mock_user(daily_usage_count=3, last_used_at=TODAY)

        with pytest.raises(QuotaExceededError):
            await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)

        assert user.daily_usage_count == 3
        self.db.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paid_user_not_counted(self):
        user = make_mock_user(is_paid=True, daily_usage_count=3, last_used_at=TODAY)
        await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)
        assert user.daily_usage_count == 3
        self.db.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_referral_window_bypasses_quota(self):
        user = make_mock_user(
            unlimited_until=NOW + timedelta(days=30),
            daily_usage_count=3,
            last_used_at=TODAY,
        )
        await self.ops.consume_daily_quota(self.db, user, now=NOW, today=TODAY)
        assert user.daily_usage_count == 3


class TestGetUsageStatus:
    def setup_method(self):
        self.ops = UserOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_resets_stale_counter(self):
        user = make_mock_user(daily_usage_count=2, last_used_at=date(2026, 3, 1))

        status = await self.ops.get_usage_status(self.db, user, TODAY)

        assert status.daily_usage_count == 0
        assert status.last_used_at == TODAY
        self.db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keeps_todays_counter(self):
        user = make_mock_user(daily_usage_count=2, last_used_at=TODAY, is_paid=True)

        status = await self.ops.get_usage_status(self.db, user, TODAY)

        assert status.daily_usage_count == 2
        assert status.is_paid is True
        self.db.flush.assert_not_awaited()


class TestSanitizeInviteMessage:
    def test_plain_message_gets_link_appended(self):
        assert sanitize_invite_message("Try this app") == f"Try this app {INVITE_LINK_TOKEN}"

    def test_existing_token_kept(self):
        msg = "Sign up at [link] today"
        assert sanitize_invite_message(msg) == msg

    def test_first_url_replaced(self):
        result = sanitize_invite_message("Go to https://a.example/x and https://b.example")
        assert result == "Go to [link] and https://b.example"

    def test_strips_code_fences(self):
        assert sanitize_invite_message("```text\nJoin me [link]\n```") == "Join me [link]"

    def test_strips_quotes_and_cast(self):
        assert sanitize_invite_message("'Join me [link]'::text") == "Join me [link]"

    def test_collapses_doubled_single_quotes(self):
        assert sanitize_invite_message("It''s great [link]") == "It's great [link]"


class TestUpdateInviteMessage:
    def setup_method(self):
        self.ops = UserOperations()
        self.db = make_mock_session()

    @pytest.mark.asyncio
    async def test_stores_sanitized_message(self):
        user = make_mock_user()
        message = await self.ops.update_invite_message(self.db, user, '"Use this"')
        assert message == "Use this [link]"
        assert user.invite_message == "Use this [link]"

    @pytest.mark.asyncio
    async def test_rejects_too_long(self):
        user = make_mock_user()
        with pytest.raises(ValueError, match="between 1 and 1000"):
            await self.ops.update_invite_message(self.db, user, "x" * 1000)
        assert user.invite_message is None


class TestDeleteUserData:
    @pytest.mark.asyncio
    async def test_deletes_records_then_user(self):
        db = make_mock_session()
        user = make_mock_user()

        await UserOperations().delete_user_data(db, user)

        db.execute.assert_awaited_once()
        db.delete.assert_awaited_once_with(user)
        db.flush.assert_awaited_once()
