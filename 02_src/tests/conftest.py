"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from nudge.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def config():
    """Bot configuration without Graph or AI."""
    from nudge.config import BotConfig

    return BotConfig(
        bot_app_id="bot-app-id",
        bot_app_secret="",
        app_catalog_team_app_id="teams-app-id",
        bot_name="Nudge Bot",
        test_upn="tester@contoso.com",
    )


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="Test response")
    return llm


@pytest.fixture
def mock_graph():
    """Graph client with every call mocked."""
    graph = Mock()
    graph.get_user = AsyncMock(return_value=None)
    graph.get_user_manager = AsyncMock(return_value=None)
    graph.get_user_count = AsyncMock(return_value=0)
    graph.get_users_delta = AsyncMock(return_value=([], None))
    graph.install_app_for_user = AsyncMock(return_value=True)
    graph.get_installed_app_chat_id = AsyncMock(return_value=None)
    graph.get_copilot_usage_csv = AsyncMock(return_value="")
    graph.close = AsyncMock()
    return graph


@pytest.fixture
def settings_manager(storage):
    from nudge.settings import SettingsManager

    return SettingsManager(storage)


@pytest.fixture
def queue(storage):
    from nudge.batching import BatchQueueService

    return BatchQueueService(storage)


@pytest.fixture
def template_service(storage, queue):
    from nudge.templates import MessageTemplateService

    return MessageTemplateService(storage, queue)


@pytest.fixture
def card_json():
    return (
        '{"type": "AdaptiveCard", "version": "1.5", '
        '"body": [{"type": "TextBlock", "text": "Try Copilot"}]}'
    )


def make_user(upn: str, user_id: str | None = None, **kwargs):
    """EnrichedUserInfo with sensible defaults."""
    from nudge.models import EnrichedUserInfo

    return EnrichedUserInfo(
        id=user_id or f"id-{upn.split('@')[0]}",
        user_principal_name=upn,
        **kwargs,
    )


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
