"""Tests for AIService and its response parsing."""

from unittest.mock import AsyncMock

import pytest

from conftest import make_user
from nudge.llm import AIService, parse_user_match_response
from nudge.llm.ai_service import ERROR_REPLY, FALLBACK_REPLY, should_end_conversation
from nudge.settings import DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT


@pytest.fixture
def users():
    return [
        make_user("Alice@Contoso.com", department="Sales"),
        make_user("bob@contoso.com", department="Engineering"),
    ]


class TestParseUserMatchResponse:
    """Tests for parsing the model's JSON."""

    def test_keeps_known_users_with_directory_casing(self, users):
        text = (
            '[{"upn": "alice@contoso.com", "confidence": 0.9, "reason": "Sales"},'
            ' {"upn": "ghost@contoso.com", "confidence": 0.8}]'
        )

        results = parse_user_match_response(text, users)

        assert len(results) == 1
        assert results[0].user_principal_name == "Alice@Contoso.com"
        assert results[0].confidence_score == 0.9
        assert results[0].reason == "Sales"

    def test_default_confidence(self, users):
        results = parse_user_match_response('[{"upn": "bob@contoso.com"}]', users)
        assert results[0].confidence_score == 0.5

    def test_non_numeric_confidence_falls_back(self, users):
        text = (
            '[{"upn": "alice@contoso.com", "confidence": "high"},'
            ' {"upn": "bob@contoso.com", "confidence": 0.9}]'
        )

        results = parse_user_match_response(text, users)

        assert [r.confidence_score for r in results] == [0.5, 0.9]

    def test_code_fence_is_stripped(self, users):
        text = '```json\n[{"upn": "bob@contoso.com", "confidence": 1}]\n```'
        assert len(parse_user_match_response(text, users)) == 1

    def test_invalid_json_gives_empty_list(self, users):
        assert parse_user_match_response("no idea", users) == []
        assert parse_user_match_response('{"upn": "bob@contoso.com"}', users) == []


class TestShouldEndConversation:
    def test_short_thanks_ends(self):
        assert should_end_conversation("Thanks!")
        assert should_end_conversation("ok got it")

    def test_long_message_continues(self):
        assert not should_end_conversation(
            "Thanks, but can you explain how to use Copilot in Excel pivot tables?"
        )

    def test_question_continues(self):
        assert not should_end_conversation("How do I start?")


class TestResolveSmartGroupMembers:
    async def test_no_users_skips_llm(self, mock_llm, settings_manager):
        service = AIService(mock_llm, settings_manager)

        assert await service.resolve_smart_group_members("Sales", []) == []
        mock_llm.complete.assert_not_called()

    async def test_prompt_lists_users(self, mock_llm, settings_manager, users):
        mock_llm.complete = AsyncMock(
            return_value='[{"upn": "alice@contoso.com", "confidence": 0.95}]'
        )
        service = AIService(mock_llm, settings_manager)

        results = await service.resolve_smart_group_members("People in sales", users)

        assert [r.user_principal_name for r in results] == ["Alice@Contoso.com"]
        kwargs = mock_llm.complete.call_args.kwargs
        prompt = kwargs["messages"][0]["content"]
        assert "Group Description: People in sales" in prompt
        assert "1. UPN: Alice@Contoso.com" in prompt
        assert "2. UPN: bob@contoso.com" in prompt
        assert "Current date: " in kwargs["system"]


class TestHandleFollowUpChat:
    """Tests for follow-up chat replies."""

    async def test_uses_default_prompt_and_context(self, mock_llm, settings_manager):
        service = AIService(mock_llm, settings_manager)

        response = await service.handle_follow_up_chat(
            "u1", "How do I use it?", nudge_context="Copilot Chat - Tips"
        )

        assert response.reply == "Test response"
        assert response.should_end_conversation is False
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["system"].startswith(DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT)
        assert kwargs["system"].endswith(
            "The original nudge message context was about: Copilot Chat - Tips"
        )
        assert kwargs["max_tokens"] == 500

    async def test_custom_prompt_and_history(self, mock_llm, settings_manager):
        await settings_manager.update_settings("Custom prompt", "admin@contoso.com")
        service = AIService(mock_llm, settings_manager)

        await service.handle_follow_up_chat(
            "u1",
            "And then?",
            history=[("user", "Hi"), ("assistant", "Hello"), ("system", "ignored")],
        )

        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["system"] == "Custom prompt"
        assert kwargs["messages"] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "And then?"},
        ]

    async def test_thanks_ends_conversation(self, mock_llm, settings_manager):
        service = AIService(mock_llm, settings_manager)

        response = await service.handle_follow_up_chat("u1", "thanks!")

        assert response.should_end_conversation is True

    async def test_empty_reply_falls_back(self, mock_llm, settings_manager):
        mock_llm.complete = AsyncMock(return_value="")
        service = AIService(mock_llm, settings_manager)

        response = await service.handle_follow_up_chat("u1", "Hello?")

        assert response.reply == FALLBACK_REPLY
        assert response.should_end_conversation is False

    async def test_llm_error_apologises_and_ends(self, mock_llm, settings_manager):
        mock_llm.complete = AsyncMock(side_effect=RuntimeError("LLM API error: down"))
        service = AIService(mock_llm, settings_manager)

        response = await service.handle_follow_up_chat("u1", "Hello?")

        assert response.reply == ERROR_REPLY
        assert response.should_end_conversation is True
