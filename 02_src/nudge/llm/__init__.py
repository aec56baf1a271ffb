"""LLM module."""

from .ai_service import AIService, END_CONVERSATION_PHRASES, parse_user_match_response
from .llm_provider import ILLMProvider, LLMProvider

__all__ = [
    "AIService",
    "END_CONVERSATION_PHRASES",
    "ILLMProvider",
    "LLMProvider",
    "parse_user_match_response",
]
