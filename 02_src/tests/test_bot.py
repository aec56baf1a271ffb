"""Tests for the Teams bot: cards, conversation cache, dialog and handlers."""

from unittest.mock import AsyncMock, Mock

import pytest
from botbuilder.core import ConversationState, MemoryStorage, TurnContext, UserState
from botbuilder.core.adapters import TestAdapter
from botbuilder.schema import Activity, ActivityTypes, ChannelAccount, ConversationAccount

from nudge.bot import BotConversationCache, parse_bot_user_info
from nudge.bot.adapter import ERROR_FOLLOW_UP, ERROR_MESSAGE, AdapterWithErrorHandler
from nudge.bot.cards import BaseAdaptiveCard, BotDiagFinished, BotFirstIntroduction
from nudge.bot.dialogs import (
    DEFAULT_GREETING,
    MAX_HISTORY_ENTRIES,
    MainDialogue,
    create_convo_state_accessor,
    get_convo_state,
)
from nudge.bot.teams_bot import ANONYMOUS_USER_MESSAGE, DialogueBot, TeamsBot
from nudge.models import AIFollowUpResponse, CachedUserAndConversationData
from nudge.notifications import PendingCardConversationResumeHandler
from nudge.templates import PendingCardLookupService


def conversation_update(members):
    return Activity(
        type=ActivityTypes.conversation_update,
        channel_id="msteams",
        service_url="https://smba.example/",
        conversation=ConversationAccount(id="conv-1"),
        recipient=ChannelAccount(id="28:bot"),
        from_property=ChannelAccount(id="29:user", aad_object_id="aad-1"),
        members_added=members,
    )


class TestParseBotUserInfo:
    def test_prefers_aad_object_id(self):
        user = parse_bot_user_info(ChannelAccount(id="29:abc", aad_object_id="aad-1"))

        assert user.user_id == "aad-1"
        assert user.is_azure_ad_user_id

    def test_falls_back_to_channel_id(self):
        user = parse_bot_user_info(ChannelAccount(id="user1"))

        assert user.user_id == "user1"
        assert not user.is_azure_ad_user_id


class TestCards:
    def test_bot_name_is_substituted(self):
        attachment = BotFirstIntroduction("Nudge Bot").get_card_attachment()

        assert attachment.content_type == "application/vnd.microsoft.card.adaptive"
        assert attachment.content["body"][0]["text"] == "Hi, I'm Nudge Bot!"

    def test_default_bot_name(self):
        attachment = BotDiagFinished().get_card_attachment()

        assert attachment.content["body"][0]["text"] == "Bot diagnostics finished"

    @pytest.mark.parametrize("content", ["", "  ", "null"])
    def test_empty_content_gives_empty_card(self, content):
        class EmptyCard(BaseAdaptiveCard):
            def get_card_content(self) -> str:
                return content

        assert EmptyCard().get_card_attachment().content == {}


class TestBotConversationCache:
    """Tests for BotConversationCache."""

    async def test_aad_user_upn_comes_from_graph(self, storage, mock_graph):
        mock_graph.get_user = AsyncMock(
            return_value={"id": "aad-1", "userPrincipalName": "alice@contoso.com"}
        )
        cache = BotConversationCache(storage, mock_graph, test_upn="tester@contoso.com")
        activity = conversation_update([])

        data = await cache.add_conversation_reference_to_cache(
            activity, parse_bot_user_info(activity.from_property)
        )

        assert data.user_principal_name == "alice@contoso.com"
        assert data.conversation_id == "conv-1"
        assert data.service_url == "https://smba.example/"
        assert cache.contains_user_id("aad-1")
        [stored] = await storage.get_all_cached_users()
        assert stored == data

    async def test_non_aad_user_gets_test_upn(self, storage, mock_graph):
        cache = BotConversationCache(storage, mock_graph, test_upn="tester@contoso.com")
        activity = conversation_update([])
        activity.from_property = ChannelAccount(id="emulator-user")

        data = await cache.add_conversation_reference_to_cache(
            activity, parse_bot_user_info(activity.from_property)
        )

        assert data.user_principal_name == "tester@contoso.com"
        mock_graph.get_user.assert_not_called()

    async def test_populate_and_remove(self, storage):
        await storage.save_cached_user(
            CachedUserAndConversationData("u1", "https://smba.example/", "c1", "a@contoso.com")
        )
        cache = BotConversationCache(storage)

        await cache.populate_mem_cache_if_empty()
        assert [u.user_id for u in cache.get_cached_users()] == ["u1"]

        await cache.remove_from_cache("u1")
        assert cache.get_cached_user("u1") is None
        assert await storage.get_all_cached_users() == []

    async def test_clear_mem_cache_reloads_from_storage(self, storage):
        cache = BotConversationCache(storage)
        await cache.save(CachedUserAndConversationData("u1", "https://smba.example/", "c1"))

        cache.clear_mem_cache()
        assert not cache.contains_user_id("u1")

        await cache.populate_mem_cache_if_empty()
        assert cache.contains_user_id("u1")


class TestMainDialogue:
    """Tests for MainDialogue run through a test adapter."""

    def _bot(self, storage, config, ai_service=None):
        memory = MemoryStorage()
        conversation_state = ConversationState(memory)
        user_state = UserState(memory)
        dialog = MainDialogue(
            BotConversationCache(storage), config, user_state, ai_service
        )
        return DialogueBot(conversation_state, user_state, dialog)

    async def test_greets_without_ai(self, storage, config):
        bot = self._bot(storage, config)
        adapter = TestAdapter(bot.on_turn)

        await adapter.test("hi", DEFAULT_GREETING)

    async def test_ai_reply_keeps_history(self, storage, config):
        ai_service = Mock()
        ai_service.handle_follow_up_chat = AsyncMock(
            side_effect=[AIFollowUpResponse("Reply 1"), AIFollowUpResponse("Reply 2")]
        )
        bot = self._bot(storage, config, ai_service)
        adapter = TestAdapter(bot.on_turn)

        flow = await adapter.test("hello", "Reply 1")
        await flow.test("and then?", "Reply 2")

        first, second = ai_service.handle_follow_up_chat.call_args_list
        assert first.kwargs["history"] == []
        assert first.kwargs["user_message"] == "hello"
        assert second.kwargs["history"] == [("user", "hello"), ("assistant", "Reply 1")]

    async def test_history_keeps_newest_entries(self, storage, config):
        exchanges = MAX_HISTORY_ENTRIES // 2 + 2
        ai_service = Mock()
        ai_service.handle_follow_up_chat = AsyncMock(
            side_effect=[AIFollowUpResponse(f"r{i}") for i in range(exchanges)]
        )
        bot = self._bot(storage, config, ai_service)
        adapter = TestAdapter(bot.on_turn)

        flow = await adapter.test("m0", "r0")
        for i in range(1, exchanges):
            flow = await flow.test(f"m{i}", f"r{i}")

        histories = [c.kwargs["history"] for c in ai_service.handle_follow_up_chat.call_args_list]
        assert max(len(h) for h in histories) == MAX_HISTORY_ENTRIES
        last = histories[-1]
        assert last[0] == ("user", "m1")
        assert last[-1] == ("assistant", f"r{exchanges - 2}")

    async def test_ending_conversation_clears_history(self, storage, config):
        ai_service = Mock()
        ai_service.handle_follow_up_chat = AsyncMock(
            side_effect=[
                AIFollowUpResponse("Glad to help", should_end_conversation=True),
                AIFollowUpResponse("Hello again"),
            ]
        )
        bot = self._bot(storage, config, ai_service)
        adapter = TestAdapter(bot.on_turn)

        flow = await adapter.test("thanks", "Glad to help")
        await flow.test("one more thing", "Hello again")

        assert ai_service.handle_follow_up_chat.call_args_list[1].kwargs["history"] == []

    async def test_ai_failure_falls_back_to_greeting(self, storage, config):
        ai_service = Mock()
        ai_service.handle_follow_up_chat = AsyncMock(side_effect=RuntimeError("db down"))
        bot = self._bot(storage, config, ai_service)
        adapter = TestAdapter(bot.on_turn)

        await adapter.test("hello", DEFAULT_GREETING)


class TestTeamsBot:
    """Tests for member-added handling."""

    @pytest.fixture
    def user_state(self):
        return UserState(MemoryStorage())

    @pytest.fixture
    def bot(self, storage, mock_graph, config, template_service, user_state):
        cache = BotConversationCache(storage, mock_graph, config.test_upn)
        dialog = MainDialogue(cache, config, user_state)
        handler = PendingCardConversationResumeHandler(
            PendingCardLookupService(storage), template_service
        )
        return TeamsBot(
            ConversationState(MemoryStorage()), user_state, dialog, cache, handler
        )

    async def test_new_user_gets_intro_and_pending_card(
        self, bot, mock_graph, template_service, card_json, user_state
    ):
        mock_graph.get_user = AsyncMock(
            return_value={"id": "aad-1", "userPrincipalName": "alice@contoso.com"}
        )
        template = await template_service.create_template("Tips", card_json, "admin@contoso.com")
        batch = await template_service.create_batch("B", template.id, "admin@contoso.com")
        [log] = await template_service.log_batch_messages(batch, ["alice@contoso.com"])
        members = [ChannelAccount(id="29:user", aad_object_id="aad-1")]
        adapter = TestAdapter()
        turn_context = TurnContext(adapter, conversation_update(members))

        await bot.on_members_added_activity(members, turn_context)

        intro, card = adapter.activity_buffer
        assert intro.attachments[0].content["body"][0]["text"] == "Hi, I'm Nudge Bot!"
        assert card.attachments[0].content["body"][0]["text"] == "Try Copilot"
        assert (await template_service.get_message_log(log.id)).status == "Success"
        state = await get_convo_state(create_convo_state_accessor(user_state), turn_context)
        assert state.last_nudge_context == "Tips"

    async def test_known_user_without_pending_card_gets_nothing(self, bot, storage):
        await storage.save_cached_user(
            CachedUserAndConversationData(
                "aad-1", "https://smba.example/", "conv-1", "alice@contoso.com"
            )
        )
        members = [ChannelAccount(id="29:user", aad_object_id="aad-1")]
        adapter = TestAdapter()

        await bot.on_members_added_activity(
            members, TurnContext(adapter, conversation_update(members))
        )

        assert adapter.activity_buffer == []

    async def test_bot_itself_is_skipped(self, bot, mock_graph):
        members = [ChannelAccount(id="28:bot")]
        adapter = TestAdapter()

        await bot.on_members_added_activity(
            members, TurnContext(adapter, conversation_update(members))
        )

        assert adapter.activity_buffer == []
        mock_graph.get_user.assert_not_called()

    async def test_anonymous_user_is_told(self, bot):
        members = [ChannelAccount(id="anon")]
        adapter = TestAdapter()

        await bot.on_members_added_activity(
            members, TurnContext(adapter, conversation_update(members))
        )

        [reply] = adapter.activity_buffer
        assert reply.text == ANONYMOUS_USER_MESSAGE

    async def test_unresolved_upn_sends_nothing(self, bot, mock_graph):
        mock_graph.get_user = AsyncMock(return_value=None)
        members = [ChannelAccount(id="29:user", aad_object_id="aad-1")]
        adapter = TestAdapter()

        await bot.on_members_added_activity(
            members, TurnContext(adapter, conversation_update(members))
        )

        assert adapter.activity_buffer == []


class TestAdapterWithErrorHandler:
    """Tests for the turn error handler."""

    def _turn_context(self):
        turn_context = Mock()
        turn_context.send_activity = AsyncMock()
        return turn_context

    async def test_reports_error_and_clears_state(self, config):
        conversation_state = Mock()
        conversation_state.delete = AsyncMock()
        adapter = AdapterWithErrorHandler(config, conversation_state)
        turn_context = self._turn_context()

        await adapter.on_turn_error(turn_context, RuntimeError("boom"))

        sent = [c.args[0] for c in turn_context.send_activity.call_args_list]
        assert sent[:2] == [ERROR_MESSAGE, ERROR_FOLLOW_UP]
        assert sent[2].type == ActivityTypes.trace
        assert sent[2].value == "boom"
        conversation_state.delete.assert_awaited_once_with(turn_context)

    async def test_send_failure_still_clears_state(self, config):
        conversation_state = Mock()
        conversation_state.delete = AsyncMock()
        adapter = AdapterWithErrorHandler(config, conversation_state)
        turn_context = self._turn_context()
        turn_context.send_activity = AsyncMock(side_effect=RuntimeError("channel down"))

        await adapter.on_turn_error(turn_context, RuntimeError("boom"))

        conversation_state.delete.assert_awaited_once_with(turn_context)

    async def test_follow_up_is_sent_when_first_message_fails(self, config):
        conversation_state = Mock()
        conversation_state.delete = AsyncMock()
        adapter = AdapterWithErrorHandler(config, conversation_state)
        turn_context = self._turn_context()
        turn_context.send_activity = AsyncMock(side_effect=[RuntimeError("rejected"), None, None])

        await adapter.on_turn_error(turn_context, RuntimeError("boom"))

        sent = [c.args[0] for c in turn_context.send_activity.call_args_list]
        assert sent[:2] == [ERROR_MESSAGE, ERROR_FOLLOW_UP]
        assert sent[2].type == ActivityTypes.trace
        conversation_state.delete.assert_awaited_once_with(turn_context)
