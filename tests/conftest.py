"""Root conftest — shared fixtures for all backend tests.

Every test runs without a database: sessions are mocks from
tests/helpers/mock_factories.py and external services (Supabase, Stripe,
OpenAI, Turnstile) are replaced on the service container.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tests.helpers.mock_factories import make_mock_session, make_mock_user


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def mock_db() -> MagicMock:
    """A mocked AsyncSession."""
    return make_mock_session()


@pytest.fixture
def test_user() -> MagicMock:
    """A signed-up free user with no referrer."""
    return make_mock_user()
