"""AI features: follow-up chat with nudge recipients and smart group matching."""

import json
from datetime import datetime, timezone

from ..logging_config import get_logger
from ..models import AIFollowUpResponse, AIUserMatchResult, EnrichedUserInfo
from ..settings import SettingsManager
from .llm_provider import ILLMProvider

logger = get_logger(__name__)

END_CONVERSATION_PHRASES = (
    "thank",
    "thanks",
    "got it",
    "ok",
    "okay",
    "understood",
    "bye",
    "goodbye",
    "cheers",
    "perfect",
    "great",
    "awesome",
)

FOLLOW_UP_MAX_TOKENS = 500
DEFAULT_CONFIDENCE = 0.5
FALLBACK_REPLY = "I'm sorry, I couldn't process your message. Please try again."
ERROR_REPLY = (
    "I apologize, but I'm having trouble responding right now. Please try again later."
)

SMART_GROUP_SYSTEM_PROMPT = """You are an AI assistant that helps match users to group criteria based on their profile and activity data.

Current date: {today}

You will receive:
1. A description of the target user group
2. A list of users with their metadata including:
   - Profile information (name, department, job title, location, etc.)
   - Copilot Activity data showing the last activity date for Microsoft 365 Copilot features (format: YYYY-MM-DD).
     Overall is the last activity across any Copilot feature; Chat, Teams, Word, Excel,
     PowerPoint, Outlook, OneNote and Loop are per-feature dates.

Identify which users match the group description and return them with confidence scores.

DATE HANDLING:
- When criteria mention time periods (e.g. "last 30 days", "recently"), calculate the range from the current date
- A user matches if they have activity within the requested timeframe
- A user with no activity date for a feature does not match criteria requiring that feature

MATCHING RULES:
- Only include users that genuinely match ALL specified criteria
- Confidence score is between 0.0 and 1.0 (1.0 = perfect match)
- Include a brief reason referencing specific dates or attributes
- If no users match, return an empty array

Return your response as a JSON array in this exact format:
[
  {{"upn": "user@example.com", "confidence": 0.95, "reason": "Matches because..."}}
]

Only return the JSON array, no other text."""


def should_end_conversation(user_message: str) -> bool:
    """Short acknowledgements ("thanks!", "ok got it") close the chat."""
    lowered = user_message.lower()
    return len(user_message) < 50 and any(p in lowered for p in END_CONVERSATION_PHRASES)


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if not cleaned.startswith("```"):
        return cleaned

    lines = cleaned.split("\n")[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines)


def _confidence(value) -> float:
    if value is None:
        return DEFAULT_CONFIDENCE
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric confidence from AI: {value!r}")
        return DEFAULT_CONFIDENCE


def parse_user_match_response(
    response_text: str, available_users: list[EnrichedUserInfo]
) -> list[AIUserMatchResult]:
    """
    Turn the model's JSON array into match results.

    Only UPNs present in available_users are kept (case-insensitive) and the
    directory casing is used. Invalid JSON yields an empty list.
    """
    try:
        items = json.loads(_strip_code_fence(response_text))
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse AI response as JSON: {response_text}")
        return []

    if not isinstance(items, list):
        logger.warning(f"AI response is not a JSON array: {response_text}")
        return []

    lookup: dict[str, EnrichedUserInfo] = {}
    for user in available_users:
        lookup.setdefault(user.user_principal_name.lower(), user)

    results = []
    for item in items:
        if not isinstance(item, dict):
            continue
        upn = item.get("upn")
        user = lookup.get(upn.lower()) if isinstance(upn, str) else None
        if not user:
            continue

        results.append(
            AIUserMatchResult(
                user_principal_name=user.user_principal_name,
                confidence_score=_confidence(item.get("confidence")),
                reason=item.get("reason"),
            )
        )

    return results


class AIService:
    """Prompts and parsing on top of an LLM provider."""

    def __init__(self, llm_provider: ILLMProvider, settings: SettingsManager):
        self._llm = llm_provider
        self._settings = settings

    async def resolve_smart_group_members(
        self, group_description: str, available_users: list[EnrichedUserInfo]
    ) -> list[AIUserMatchResult]:
        logger.info(
            f"Resolving smart group '{group_description}' against {len(available_users)} users"
        )
        if not available_users:
            logger.warning("No users provided for smart group resolution")
            return []

        user_list = "\n".join(
            f"{idx}. {user.to_ai_summary()}"
            for idx, user in enumerate(available_users, start=1)
        )
        system = SMART_GROUP_SYSTEM_PROMPT.format(
            today=datetime.now(timezone.utc).strftime("%Y-%m-%d")
        )
        prompt = (
            f"Group Description: {group_description}\n\n"
            f"Available Users:\n{user_list}\n\n"
            "Which users match the group description? Return as JSON array."
        )

        response_text = await self._llm.complete(
            messages=[{"role": "user", "content": prompt}],
            system=system,
        )
        results = parse_user_match_response(response_text, available_users)
        logger.info(f"AI matched {len(results)} users for smart group")
        return results

    async def handle_follow_up_chat(
        self,
        user_id: str,
        user_message: str,
        nudge_context: str | None = None,
        history: list[tuple[str, str]] | None = None,
    ) -> AIFollowUpResponse:
        """
        Answer a user's reply to a nudge.

        history holds earlier (role, content) turns, not including user_message.
        LLM failures are logged and answered with an apology that ends the chat.
        """
        logger.info(f"Handling follow-up chat from {user_id}: {user_message[:50]}")

        system = await self._settings.get_effective_follow_up_chat_system_prompt()
        if nudge_context:
            system += f"\n\nThe original nudge message context was about: {nudge_context}"

        messages = [
            {"role": role.lower(), "content": content}
            for role, content in history or []
            if role.lower() in ("user", "assistant")
        ]
        messages.append({"role": "user", "content": user_message})

        try:
            reply = await self._llm.complete(
                messages=messages, system=system, max_tokens=FOLLOW_UP_MAX_TOKENS
            )
        except Exception as e:
            logger.error(f"Follow-up chat failed for {user_id}: {e}", exc_info=True)
            return AIFollowUpResponse(reply=ERROR_REPLY, should_end_conversation=True)

        if not reply:
            return AIFollowUpResponse(reply=FALLBACK_REPLY)

        return AIFollowUpResponse(
            reply=reply,
            should_end_conversation=should_end_conversation(user_message),
        )
