"""Tests for resume handlers, the resume manager and the message sender."""

from unittest.mock import AsyncMock, Mock

import pytest

from nudge.batching import BatchMessageProcessor
from nudge.bot.conversation_cache import BotConversationCache
from nudge.models import BatchQueueMessage, CachedUserAndConversationData, MessageStatus
from nudge.notifications import (
    BotConvoResumeManager,
    ConversationResumeResult,
    ConversationResumeStatus,
    DefaultConversationResumeHandler,
    DiagnosticsResumeHandler,
    MessageSenderService,
    PendingCardConversationResumeHandler,
)
from nudge.templates import PendingCardLookupService


@pytest.fixture
def pending_handler(storage, template_service):
    return PendingCardConversationResumeHandler(
        PendingCardLookupService(storage), template_service
    )


@pytest.fixture
def adapter():
    """Adapter whose continue_conversation runs the callback on a mock turn."""
    adapter = Mock()
    adapter.turn_context = Mock()
    adapter.turn_context.send_activity = AsyncMock()

    async def continue_conversation(reference, callback, bot_id):
        adapter.reference = reference
        await callback(adapter.turn_context)

    adapter.continue_conversation = AsyncMock(side_effect=continue_conversation)
    return adapter


@pytest.fixture
def conversation_cache(storage, mock_graph):
    return BotConversationCache(storage, mock_graph)


@pytest.fixture
def resume_manager(adapter, conversation_cache, mock_graph, config):
    return BotConvoResumeManager(
        adapter,
        conversation_cache,
        mock_graph,
        config,
        DefaultConversationResumeHandler(),
    )


async def pending_log(template_service, card_json, upn="alice@contoso.com"):
    template = await template_service.create_template("Tips", card_json, "admin@contoso.com")
    batch = await template_service.create_batch("B", template.id, "admin@contoso.com")
    [log] = await template_service.log_batch_messages(batch, [upn])
    return log


class TestResumeHandlers:
    """Tests for the cards sent on resume."""

    async def test_pending_card_is_marked_sent(self, pending_handler, template_service, card_json):
        log = await pending_log(template_service, card_json)

        card, attachment = await pending_handler.load_data_and_resume_conversation(
            "alice@contoso.com"
        )

        assert card.message_log_id == log.id
        assert attachment.content_type == "application/vnd.microsoft.card.adaptive"
        updated = await template_service.get_message_log(log.id)
        assert updated.status == MessageStatus.SUCCESS.value

    async def test_no_pending_card_sends_welcome(self, pending_handler):
        card, attachment = await pending_handler.load_data_and_resume_conversation(
            "alice@contoso.com"
        )

        assert card is None
        assert attachment.content_type == "application/vnd.microsoft.card.hero"
        assert attachment.content.title == "Welcome!"

    async def test_default_handler(self):
        card, attachment = await DefaultConversationResumeHandler().load_data_and_resume_conversation(
            "alice@contoso.com"
        )

        assert card is None
        assert attachment.content.title == "Welcome Back!"

    async def test_diagnostics_handler_uses_bot_name(self):
        _, attachment = await DiagnosticsResumeHandler("Nudge Bot").load_data_and_resume_conversation(
            "alice@contoso.com"
        )

        assert attachment.content["body"][0]["text"] == "Nudge Bot diagnostics finished"


class TestBotConvoResumeManager:
    """Tests for proactive delivery."""

    async def test_unknown_user_fails(self, resume_manager, mock_graph):
        mock_graph.get_user = AsyncMock(return_value=None)

        result = await resume_manager.resume_conversation("ghost@contoso.com")

        assert result.status == ConversationResumeStatus.FAILED
        assert "ghost@contoso.com" in result.error_message

    async def test_cached_user_is_messaged(
        self, resume_manager, conversation_cache, mock_graph, adapter
    ):
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        await conversation_cache.save(
            CachedUserAndConversationData(
                user_id="aad-1",
                service_url="https://smba.example/",
                conversation_id="conv-1",
                user_principal_name="alice@contoso.com",
            )
        )

        result = await resume_manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.MESSAGE_SENT
        assert adapter.reference.conversation.id == "conv-1"
        assert adapter.reference.bot.id == "28:bot-app-id"
        assert adapter.reference.channel_id == "msteams"
        assert adapter.continue_conversation.call_args.args[2] == "bot-app-id"
        sent = adapter.turn_context.send_activity.call_args.args[0]
        assert sent.attachments[0].content.title == "Welcome Back!"
        mock_graph.install_app_for_user.assert_not_called()

    async def test_new_user_gets_app_installed(self, resume_manager, mock_graph, adapter):
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        mock_graph.install_app_for_user = AsyncMock(return_value=True)

        result = await resume_manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.APP_INSTALLED_PENDING
        mock_graph.install_app_for_user.assert_awaited_once_with("aad-1", "teams-app-id")
        adapter.continue_conversation.assert_not_called()

    async def test_already_installed_messages_existing_chat(
        self, resume_manager, conversation_cache, mock_graph, adapter, storage
    ):
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        mock_graph.install_app_for_user = AsyncMock(return_value=False)
        mock_graph.get_installed_app_chat_id = AsyncMock(return_value="chat-9")

        result = await resume_manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.MESSAGE_SENT
        assert adapter.reference.conversation.id == "chat-9"
        assert adapter.reference.service_url == "https://smba.trafficmanager.net/teams/"
        cached = conversation_cache.get_cached_user("aad-1")
        assert cached.conversation_id == "chat-9"
        assert cached.user_principal_name == "alice@contoso.com"
        assert len(await storage.get_all_cached_users()) == 1

    async def test_already_installed_without_chat_is_pending(self, resume_manager, mock_graph):
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        mock_graph.install_app_for_user = AsyncMock(return_value=False)
        mock_graph.get_installed_app_chat_id = AsyncMock(return_value=None)

        result = await resume_manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.APP_INSTALLED_PENDING

    async def test_missing_app_id_fails(self, resume_manager, mock_graph, config):
        config.app_catalog_team_app_id = ""
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})

        result = await resume_manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.FAILED

    async def test_graph_not_configured_fails(self, adapter, storage, config):
        manager = BotConvoResumeManager(
            adapter, BotConversationCache(storage), None, config, DefaultConversationResumeHandler()
        )

        result = await manager.resume_conversation("alice@contoso.com")

        assert result.status == ConversationResumeStatus.FAILED
        assert result.error_message == "Graph is not configured"

    async def test_custom_handler_is_used(
        self, resume_manager, conversation_cache, mock_graph, adapter
    ):
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        await conversation_cache.save(
            CachedUserAndConversationData("aad-1", "https://smba.example/", "conv-1")
        )

        await resume_manager.resume_conversation(
            "alice@contoso.com", DiagnosticsResumeHandler("Nudge Bot")
        )

        sent = adapter.turn_context.send_activity.call_args.args[0]
        assert sent.attachments[0].content_type == "application/vnd.microsoft.card.adaptive"


class TestMessageSenderService:
    """Tests for MessageSenderService log updates."""

    def _sender(self, template_service, pending_handler, result):
        manager = Mock()
        manager.resume_conversation = AsyncMock(return_value=result)
        return MessageSenderService(manager, template_service, pending_handler), manager

    async def test_sent_marks_success(self, template_service, pending_handler, card_json):
        log = await pending_log(template_service, card_json)
        sender, manager = self._sender(
            template_service,
            pending_handler,
            ConversationResumeResult(ConversationResumeStatus.MESSAGE_SENT),
        )

        result = await sender.send_message(
            BatchQueueMessage("b1", log.id, "alice@contoso.com", "t1")
        )

        assert result.success
        manager.resume_conversation.assert_awaited_once_with("alice@contoso.com", pending_handler)
        assert (await template_service.get_message_log(log.id)).status == "Success"

    async def test_app_installed_leaves_pending(self, template_service, pending_handler, card_json):
        log = await pending_log(template_service, card_json)
        sender, _ = self._sender(
            template_service,
            pending_handler,
            ConversationResumeResult(ConversationResumeStatus.APP_INSTALLED_PENDING),
        )

        result = await sender.send_message(
            BatchQueueMessage("b1", log.id, "alice@contoso.com", "t1")
        )

        assert result.success
        assert result.status == ConversationResumeStatus.APP_INSTALLED_PENDING
        assert (await template_service.get_message_log(log.id)).status == "Pending"

    async def test_failure_records_error(self, template_service, pending_handler, card_json):
        log = await pending_log(template_service, card_json)
        sender, _ = self._sender(
            template_service,
            pending_handler,
            ConversationResumeResult(ConversationResumeStatus.FAILED, "User not found"),
        )

        result = await sender.send_message(
            BatchQueueMessage("b1", log.id, "alice@contoso.com", "t1")
        )

        assert not result.success
        assert result.error_message == "User not found"
        stored = await template_service.get_message_log(log.id)
        assert stored.status == "Failed"
        assert stored.last_error == "User not found"

    async def test_missing_log_is_tolerated(self, template_service, pending_handler):
        sender, _ = self._sender(
            template_service,
            pending_handler,
            ConversationResumeResult(ConversationResumeStatus.MESSAGE_SENT),
        )

        result = await sender.send_message(
            BatchQueueMessage("b1", "gone", "alice@contoso.com", "t1")
        )

        assert result.success
        assert await template_service.get_message_log("gone") is None


class TestDeletedBatchDelivery:
    """Queued messages of a deleted batch are delivered at most once."""

    async def test_message_is_removed_after_batch_deleted(
        self,
        template_service,
        pending_handler,
        resume_manager,
        conversation_cache,
        mock_graph,
        adapter,
        queue,
        card_json,
    ):
        log = await pending_log(template_service, card_json)
        await template_service.delete_batch(log.message_batch_id)
        mock_graph.get_user = AsyncMock(return_value={"id": "aad-1"})
        await conversation_cache.save(
            CachedUserAndConversationData(
                user_id="aad-1",
                service_url="https://smba.example/",
                conversation_id="conv-1",
                user_principal_name="alice@contoso.com",
            )
        )
        sender = MessageSenderService(resume_manager, template_service, pending_handler)
        processor = BatchMessageProcessor(queue, sender)

        assert await processor.process_next() is True

        assert adapter.turn_context.send_activity.await_count == 1
        assert await queue.pending_count() == 0
        assert await processor.process_next() is False
